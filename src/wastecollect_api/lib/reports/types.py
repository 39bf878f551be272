"""Shared types for the report generation library."""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import date


class ReportType(enum.StrEnum):
    """Kind of report; selects the content builder."""

    PERFORMANCE = "performance"
    COLLECTIONS = "collections"
    PREDICTIVE = "predictive"
    OTHER = "other"


class ReportPeriod(enum.StrEnum):
    """Reporting period covered by a report."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    YEARLY = "yearly"


class ReportFormat(enum.StrEnum):
    """Output format of the generated artifact."""

    PDF = "pdf"
    EXCEL = "excel"
    BOTH = "both"


class ReportStatus(enum.StrEnum):
    """Lifecycle status of a report job.

    Legal transitions: PENDING -> GENERATING -> COMPLETED | FAILED.
    """

    PENDING = "pending"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (ReportStatus.COMPLETED, ReportStatus.FAILED)


@dataclass(frozen=True)
class ReportFilters:
    """Optional scoping filters applied to a report's input data."""

    municipality_id: int | None = None
    collector_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None

    def as_query_params(self) -> dict[str, str]:
        """Render the filters as camelCase query parameters, omitting unset ones."""
        params: dict[str, str] = {}
        if self.municipality_id is not None:
            params["municipalityId"] = str(self.municipality_id)
        if self.collector_id is not None:
            params["collectorId"] = str(self.collector_id)
        if self.start_date is not None:
            params["startDate"] = self.start_date.isoformat()
        if self.end_date is not None:
            params["endDate"] = self.end_date.isoformat()
        return params


@dataclass(frozen=True)
class ReportParameters:
    """Immutable snapshot of a job's configuration handed to a builder."""

    job_id: uuid.UUID
    title: str
    report_type: str
    period: str
    output_format: ReportFormat
    include_charts: bool
    filters: ReportFilters = field(default_factory=ReportFilters)


@dataclass
class ReportTable:
    """A titled table of rows."""

    title: str
    headers: list[str]
    rows: list[list[object]]


@dataclass
class ChartSeries:
    """A single bar-chart series; labels and values are parallel lists."""

    title: str
    labels: list[str]
    values: list[float]


@dataclass
class ReportDocument:
    """Format-neutral report content produced by a builder."""

    title: str
    subtitle_lines: list[str] = field(default_factory=list)
    summary: list[tuple[str, object]] = field(default_factory=list)
    tables: list[ReportTable] = field(default_factory=list)
    chart: ChartSeries | None = None
    municipality_name: str | None = None


@dataclass
class RenderedReport:
    """Rendered artifact bytes plus what is needed to store and serve them."""

    content: bytes
    extension: str
    media_type: str
    municipality_name: str | None = None
