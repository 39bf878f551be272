"""Report Pydantic v2 request/response schemas.

JSON field names are camelCase (``includeCharts``, ``startDate``) to match
the WasteCollect web client; Python attributes stay snake_case.
"""

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel
from pydantic_core import PydanticCustomError

from wastecollect_api.lib.reports.types import ReportFormat, ReportPeriod, ReportStatus, ReportType
from wastecollect_api.schemas.common import PaginationMeta

_CAMEL = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ReportConfig(BaseModel):
    """Request to generate a report."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, str_strip_whitespace=True)

    title: str = Field(..., min_length=1, max_length=255)
    type: ReportType
    period: ReportPeriod
    include_charts: bool
    format: ReportFormat
    municipality_id: int | None = Field(default=None, gt=0)
    collector_id: int | None = Field(default=None, gt=0)
    start_date: date | None = None
    end_date: date | None = None

    @model_validator(mode="after")
    def validate_date_range(self) -> "ReportConfig":
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise PydanticCustomError("date_range", "startDate must be on or before endDate")
        return self


class ReportSubmitResponse(BaseModel):
    """Acknowledgement of an accepted report request."""

    model_config = _CAMEL

    id: UUID
    status: ReportStatus


class ReportJobResponse(BaseModel):
    """Snapshot of a report job for polling clients."""

    model_config = _CAMEL

    id: UUID
    title: str
    type: str
    period: str
    format: str
    include_charts: bool
    municipality_id: int | None = None
    collector_id: int | None = None
    start_date: date | None = None
    end_date: date | None = None
    status: ReportStatus
    generated_date: datetime | None = None
    file_path: str | None = None
    file_size: str | None = None
    failure_reason: str | None = None
    municipality_name: str | None = None
    generated_by: str | None = None
    created_at: datetime
    download_url: str | None = None


class PaginatedReportJobResponse(BaseModel):
    """Paginated list of report jobs."""

    items: list[ReportJobResponse]
    pagination: PaginationMeta
