"""WasteCollect asynchronous report generation service."""
