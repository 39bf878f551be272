"""ReportJob model: lifecycle record of an asynchronous report generation."""

from datetime import UTC, date, datetime

from sqlalchemy import Boolean, Date, DateTime, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column

from wastecollect_api.lib.reports.types import ReportFilters, ReportFormat, ReportParameters, ReportStatus
from wastecollect_api.models.base import Base, UUIDMixin


class ReportJob(Base, UUIDMixin):
    """Tracks one report generation request and its status.

    Configuration columns are written once by the dispatcher. Status,
    file, and failure columns are only changed by the worker that claimed
    the job, through conditional updates in the report service.
    """

    __tablename__ = "report_jobs"

    # Configuration (immutable after creation)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    report_type: Mapped[str] = mapped_column("type", String(50), nullable=False)
    period: Mapped[str] = mapped_column(String(50), nullable=False)
    output_format: Mapped[str] = mapped_column("format", String(10), nullable=False)
    include_charts: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Filters
    municipality_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    collector_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    start_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    end_date: Mapped[date | None] = mapped_column(Date, nullable=True)

    # Lifecycle
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=ReportStatus.PENDING.value,
        server_default=ReportStatus.PENDING.value,
    )
    file_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    file_size: Mapped[str | None] = mapped_column(String(50), nullable=True)
    failure_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    generated_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    started_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # Metadata
    municipality_name: Mapped[str | None] = mapped_column(String(100), nullable=True)
    requested_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(UTC),
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_report_jobs_status", "status"),
        Index("ix_report_jobs_type", "type"),
        Index("ix_report_jobs_created_at", "created_at"),
    )

    def to_parameters(self) -> ReportParameters:
        """Snapshot the job's configuration for a content builder."""
        return ReportParameters(
            job_id=self.id,
            title=self.title,
            report_type=self.report_type,
            period=self.period,
            output_format=ReportFormat(self.output_format),
            include_charts=self.include_charts,
            filters=ReportFilters(
                municipality_id=self.municipality_id,
                collector_id=self.collector_id,
                start_date=self.start_date,
                end_date=self.end_date,
            ),
        )
