"""Report service: dispatches, generates, and tracks report jobs.

The job record is the single source of truth. The dispatcher writes the
initial PENDING row; afterwards only the worker that claimed the job
changes it, and every status change is a conditional update on the
expected current status.
"""

import asyncio
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from pathlib import PurePosixPath
from typing import Any

from loguru import logger
from pydantic import ValidationError
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wastecollect_api.core.background import BackgroundTaskRunner
from wastecollect_api.lib.reports import (
    ArtifactNotFoundError,
    ConcurrencyViolation,
    GenerationError,
    ReportDataSource,
    ReportNotFoundError,
    ReportNotReadyError,
    ReportStatus,
    ReportStorage,
    ReportValidationError,
    StorageError,
    artifact_name,
    build_report,
    format_file_size,
    media_type_for,
)
from wastecollect_api.models.report_job import ReportJob
from wastecollect_api.schemas.report import ReportConfig

MAX_FAILURE_REASON_LENGTH = 500


@dataclass(frozen=True)
class ReportDownload:
    """Artifact bytes ready to be streamed to a client."""

    content: bytes
    filename: str
    media_type: str


def parse_report_config(config: ReportConfig | Mapping[str, Any]) -> ReportConfig:
    """Validate a report submission.

    Args:
        config: A validated schema instance or a raw mapping using either
            camelCase or snake_case keys.

    Returns:
        The validated configuration.

    Raises:
        ReportValidationError: If any field is missing or invalid.
    """
    if isinstance(config, ReportConfig):
        return config
    try:
        return ReportConfig.model_validate(dict(config))
    except ValidationError as exc:
        fields: list[str] = []
        messages: list[str] = []
        for error in exc.errors():
            name = str(error["loc"][0]) if error["loc"] else error["type"]
            if name not in fields:
                fields.append(name)
            messages.append(f"{name}: {error['msg']}")
        raise ReportValidationError(fields, "; ".join(messages)) from exc


async def submit_report(
    session: AsyncSession,
    config: ReportConfig | Mapping[str, Any],
    *,
    requested_by: str | None,
    runner: BackgroundTaskRunner,
) -> ReportJob:
    """Validate a submission, persist it as PENDING, and hand it to the runner.

    Returns as soon as the job is committed and submitted; generation
    happens in the background.

    Args:
        session: Database session.
        config: The report request.
        requested_by: Identity of the submitting actor.
        runner: Background runner executing report jobs.

    Returns:
        The created ReportJob in PENDING status.

    Raises:
        ReportValidationError: If the submission is invalid. No job is created.
        RuntimeError: If the runner refuses the job. The job is recorded as
            FAILED so it is not left PENDING with no worker.
    """
    cfg = parse_report_config(config)
    job = ReportJob(
        title=cfg.title,
        report_type=cfg.type.value,
        period=cfg.period.value,
        output_format=cfg.format.value,
        include_charts=cfg.include_charts,
        municipality_id=cfg.municipality_id,
        collector_id=cfg.collector_id,
        start_date=cfg.start_date,
        end_date=cfg.end_date,
        status=ReportStatus.PENDING.value,
        municipality_name="All" if cfg.municipality_id is None else None,
        requested_by=requested_by,
    )
    session.add(job)
    await session.commit()
    await session.refresh(job)
    logger.bind(report_id=str(job.id)).info(
        "Created report job {} (type={}, format={}, by={})",
        job.id,
        job.report_type,
        job.output_format,
        requested_by,
    )
    try:
        runner.submit(job.id)
    except RuntimeError as exc:
        await _transition(
            session,
            job.id,
            ReportStatus.PENDING,
            status=ReportStatus.FAILED.value,
            failure_reason=f"Report could not be queued: {exc}"[:MAX_FAILURE_REASON_LENGTH],
            generated_date=datetime.now(UTC),
        )
        logger.bind(report_id=str(job.id)).warning("Report job {} was not queued: {}", job.id, exc)
        raise
    return job


async def _transition(
    session: AsyncSession,
    job_id: uuid.UUID,
    expected: ReportStatus,
    **values: Any,
) -> None:
    """Apply a conditional status update and commit it.

    Raises:
        ConcurrencyViolation: If the job is not currently in ``expected``.
    """
    result = await session.execute(
        update(ReportJob)
        .where(ReportJob.id == job_id, ReportJob.status == expected.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        msg = f"Report job {job_id} is not {expected.value}"
        raise ConcurrencyViolation(msg)
    await session.commit()


async def claim_report_job(session: AsyncSession, job_id: uuid.UUID) -> ReportJob:
    """Move a job from PENDING to GENERATING and return its fresh state.

    Raises:
        ConcurrencyViolation: If the job is missing or not PENDING.
    """
    await _transition(
        session,
        job_id,
        ReportStatus.PENDING,
        status=ReportStatus.GENERATING.value,
        started_at=datetime.now(UTC),
    )
    return await get_report_job(session, job_id)


async def complete_report_job(
    session: AsyncSession,
    job_id: uuid.UUID,
    *,
    file_path: str,
    file_size: str,
    municipality_name: str | None,
) -> None:
    """Record a successful generation (GENERATING -> COMPLETED)."""
    values: dict[str, Any] = {
        "status": ReportStatus.COMPLETED.value,
        "file_path": file_path,
        "file_size": file_size,
        "generated_date": datetime.now(UTC),
    }
    if municipality_name:
        values["municipality_name"] = municipality_name
    await _transition(session, job_id, ReportStatus.GENERATING, **values)


async def fail_report_job(session: AsyncSession, job_id: uuid.UUID, reason: str) -> None:
    """Record a failed generation (GENERATING -> FAILED)."""
    reason = (reason.strip() or "Report generation failed")[:MAX_FAILURE_REASON_LENGTH]
    await _transition(
        session,
        job_id,
        ReportStatus.GENERATING,
        status=ReportStatus.FAILED.value,
        failure_reason=reason,
        generated_date=datetime.now(UTC),
    )


async def generate_report(
    job_id: uuid.UUID,
    *,
    session_factory: async_sessionmaker[AsyncSession],
    storage: ReportStorage,
    data_source: ReportDataSource,
    time_budget: float | None = None,
) -> ReportStatus | None:
    """Run one report job end-to-end.

    Claims the job, builds and renders its content, stores the artifact,
    and records the terminal state. Each database step uses its own short
    session; none is held open while the report is built.

    Args:
        job_id: Id of a PENDING job.
        session_factory: Factory for database sessions.
        storage: Artifact storage backend.
        data_source: Source of aggregated report data.
        time_budget: Optional generation time limit in seconds.

    Returns:
        The terminal status recorded, or None if the job was not PENDING
        or its terminal state could not be written.
    """
    log = logger.bind(report_id=str(job_id))
    try:
        async with session_factory() as session:
            job = await claim_report_job(session, job_id)
    except ConcurrencyViolation:
        log.info("Report job {} is not pending, skipping", job_id)
        return None

    log.info("Generating {} report {} ({})", job.report_type, job_id, job.output_format)
    name = artifact_name(job.id, job.report_type, job.output_format)
    try:
        async with asyncio.timeout(time_budget):
            rendered = await build_report(
                job.to_parameters(),
                data_source,
                basename=PurePosixPath(name).stem,
            )
            file_path = await storage.save_file(rendered.content, name)
    except TimeoutError:
        if time_budget is None:
            reason = "Report generation timed out"
        else:
            reason = f"Report generation exceeded the time budget of {time_budget:g}s"
        log.warning("Report job {} timed out", job_id)
    except (GenerationError, StorageError) as exc:
        reason = str(exc)
        log.warning("Report job {} failed: {}", job_id, reason)
    except Exception as exc:
        reason = f"Unexpected error: {type(exc).__name__}"
        log.exception("Report job {} failed unexpectedly", job_id)
    else:
        file_size = format_file_size(len(rendered.content))
        try:
            async with session_factory() as session:
                await complete_report_job(
                    session,
                    job_id,
                    file_path=file_path,
                    file_size=file_size,
                    municipality_name=rendered.municipality_name,
                )
        except Exception as exc:
            reason = f"Could not record completion: {type(exc).__name__}"
            log.exception("Report job {} stored {} but completion was not recorded", job_id, file_path)
        else:
            log.info("Report job {} completed: {} ({})", job_id, file_path, file_size)
            return ReportStatus.COMPLETED

    try:
        async with session_factory() as session:
            await fail_report_job(session, job_id, reason)
    except Exception:
        # Left GENERATING; `reports stale` lists it
        log.exception("Report job {} failed and the failure could not be recorded", job_id)
        return None
    return ReportStatus.FAILED


async def get_report_job(session: AsyncSession, job_id: uuid.UUID) -> ReportJob:
    """Get a report job by ID.

    Raises:
        ReportNotFoundError: If no job has this id.
    """
    result = await session.execute(
        select(ReportJob).where(ReportJob.id == job_id).execution_options(populate_existing=True)
    )
    job = result.scalar_one_or_none()
    if job is None:
        msg = f"Report job {job_id} not found"
        raise ReportNotFoundError(msg)
    return job


async def list_report_jobs(
    session: AsyncSession,
    *,
    report_type: str | None = None,
    status_filter: str | None = None,
    search: str | None = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[ReportJob], int]:
    """List report jobs, newest first.

    Args:
        session: Database session.
        report_type: Optional report type to filter by.
        status_filter: Optional status to filter by.
        search: Optional case-insensitive title substring.
        page: Page number.
        page_size: Items per page.

    Returns:
        Tuple of (jobs, total count).
    """
    conditions = []
    if report_type:
        conditions.append(ReportJob.report_type == report_type)
    if status_filter:
        conditions.append(ReportJob.status == status_filter)
    if search and search.strip():
        conditions.append(ReportJob.title.ilike(f"%{search.strip()}%"))

    count_query = select(func.count(ReportJob.id)).where(*conditions)
    total = (await session.execute(count_query)).scalar_one()

    offset = (page - 1) * page_size
    query = (
        select(ReportJob)
        .where(*conditions)
        .order_by(ReportJob.created_at.desc(), ReportJob.id)
        .offset(offset)
        .limit(page_size)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(query)
    return list(result.scalars().all()), total


async def list_stale_report_jobs(
    session: AsyncSession,
    *,
    older_than: timedelta,
    now: datetime | None = None,
) -> list[ReportJob]:
    """Return jobs that have been GENERATING for longer than ``older_than``.

    Such jobs are left behind by a worker that stopped before writing a
    terminal state. They are reported only; nothing is changed.
    """
    cutoff = (now or datetime.now(UTC)) - older_than
    query = (
        select(ReportJob)
        .where(ReportJob.status == ReportStatus.GENERATING.value, ReportJob.started_at < cutoff)
        .order_by(ReportJob.started_at)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(query)
    return list(result.scalars().all())


async def download_report(
    session: AsyncSession,
    storage: ReportStorage,
    job_id: uuid.UUID,
) -> ReportDownload:
    """Fetch the artifact of a completed report.

    Raises:
        ReportNotFoundError: If no job has this id.
        ReportNotReadyError: If the job has not completed.
        ArtifactNotFoundError: If the stored artifact is missing.
    """
    job = await get_report_job(session, job_id)
    if job.status != ReportStatus.COMPLETED.value:
        raise ReportNotReadyError(job.status)
    if not job.file_path:
        msg = f"Report job {job_id} has no stored artifact"
        raise ArtifactNotFoundError(msg)

    content = await storage.download_file(job.file_path)
    filename = PurePosixPath(job.file_path).name
    return ReportDownload(content=content, filename=filename, media_type=media_type_for(filename))
