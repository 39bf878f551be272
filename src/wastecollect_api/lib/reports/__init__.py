"""Report generation library: builders, renderers, storage, and data sources.

Public API:
    - ``build_report``: Build and render a report for a job's parameters
    - ``register_builder``: Register a content builder for a report type
    - ``ReportStorage``: Protocol for artifact storage backends
    - ``LocalFileStorage`` / ``S3FileStorage``: Storage implementations
    - ``ReportDataSource``: Protocol for aggregated input data
    - ``HttpReportDataSource``: WasteCollect backend data source
    - ``format_file_size`` / ``artifact_name``: Naming and size helpers
"""

from wastecollect_api.lib.reports.builders import build_report, get_builder, register_builder
from wastecollect_api.lib.reports.data_source import (
    CollectionSummary,
    DataSourceError,
    HttpReportDataSource,
    PerformanceSummary,
    PredictiveSummary,
    ReportDataSource,
    UnconfiguredReportDataSource,
)
from wastecollect_api.lib.reports.errors import (
    ArtifactNotFoundError,
    ConcurrencyViolation,
    GenerationError,
    NotFoundError,
    ReportError,
    ReportNotFoundError,
    ReportNotReadyError,
    ReportValidationError,
    StorageError,
)
from wastecollect_api.lib.reports.formatting import artifact_name, format_file_size, media_type_for
from wastecollect_api.lib.reports.storage import LocalFileStorage, ReportStorage, S3FileStorage, create_s3_client
from wastecollect_api.lib.reports.types import (
    RenderedReport,
    ReportFilters,
    ReportFormat,
    ReportParameters,
    ReportPeriod,
    ReportStatus,
    ReportType,
)

__all__ = [
    "ArtifactNotFoundError",
    "CollectionSummary",
    "ConcurrencyViolation",
    "DataSourceError",
    "GenerationError",
    "HttpReportDataSource",
    "LocalFileStorage",
    "NotFoundError",
    "PerformanceSummary",
    "PredictiveSummary",
    "RenderedReport",
    "ReportDataSource",
    "ReportError",
    "ReportFilters",
    "ReportFormat",
    "ReportNotFoundError",
    "ReportNotReadyError",
    "ReportParameters",
    "ReportPeriod",
    "ReportStatus",
    "ReportStorage",
    "ReportType",
    "ReportValidationError",
    "S3FileStorage",
    "StorageError",
    "UnconfiguredReportDataSource",
    "artifact_name",
    "build_report",
    "create_s3_client",
    "format_file_size",
    "get_builder",
    "media_type_for",
    "register_builder",
]
