"""Artifact naming, media types, and human-readable size formatting."""

import uuid

from wastecollect_api.lib.reports.types import ReportFormat

FORMAT_EXTENSIONS: dict[ReportFormat, str] = {
    ReportFormat.PDF: "pdf",
    ReportFormat.EXCEL: "xlsx",
    ReportFormat.BOTH: "zip",
}

MEDIA_TYPES: dict[str, str] = {
    "pdf": "application/pdf",
    "xlsx": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "zip": "application/zip",
}

_SIZE_UNITS = "KMGTPE"


def format_file_size(size: int) -> str:
    """Format a byte count as a short human-readable string.

    Sizes below 1024 are shown in bytes; larger sizes use the largest
    binary unit not exceeding the value, with one decimal place.

    Args:
        size: Number of bytes.

    Returns:
        Formatted size (e.g., "500 B", "2.0 KB", "1.5 MB").
    """
    if size < 1024:
        return f"{size} B"
    exponent = 0
    while exponent < len(_SIZE_UNITS) and size >= 1024 ** (exponent + 1):
        exponent += 1
    return f"{size / 1024**exponent:.1f} {_SIZE_UNITS[exponent - 1]}B"


def artifact_name(job_id: uuid.UUID, report_type: str, output_format: ReportFormat | str) -> str:
    """Build the storage name for a job's artifact.

    Args:
        job_id: The report job id.
        report_type: The report type tag.
        output_format: Requested output format.

    Returns:
        Name of the form ``report-{id}-{type}.{ext}``.
    """
    return f"report-{job_id}-{report_type}.{FORMAT_EXTENSIONS[ReportFormat(output_format)]}"


def media_type_for(filename: str) -> str:
    """Return the media type for an artifact filename."""
    ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else ""
    return MEDIA_TYPES.get(ext, "application/octet-stream")
