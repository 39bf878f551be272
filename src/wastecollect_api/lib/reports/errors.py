"""Error taxonomy for report submission, generation, and retrieval."""


class ReportError(Exception):
    """Base class for all report errors."""


class ReportValidationError(ReportError, ValueError):
    """A submission is malformed; no job was created.

    Args:
        fields: Names of the offending fields.
        message: Human-readable description.
    """

    def __init__(self, fields: list[str], message: str) -> None:
        self.fields = fields
        self.message = message
        super().__init__(message)


class NotFoundError(ReportError, LookupError):
    """A requested job or artifact does not exist."""


class ReportNotFoundError(NotFoundError):
    """No report job exists with the given id."""


class ArtifactNotFoundError(NotFoundError):
    """A stored artifact is missing or unreadable."""


class ReportNotReadyError(ReportError):
    """Download attempted before the job completed.

    Args:
        status: The job's current status.
    """

    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(f"Report is not available for download (status: {status})")


class StorageError(ReportError):
    """Artifact write or read failed in the storage backend."""


class GenerationError(ReportError):
    """Content building failed."""


class ConcurrencyViolation(ReportError):
    """A status transition found the job in an unexpected state."""
