"""Tests for the report service: dispatch, generation lifecycle, and status queries."""

import asyncio
import functools
import io
import uuid
import zipfile
from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from wastecollect_api.core.background import BoundedTaskRunner
from wastecollect_api.lib.reports import (
    ArtifactNotFoundError,
    ConcurrencyViolation,
    ReportNotFoundError,
    ReportNotReadyError,
    ReportStatus,
    ReportValidationError,
    StorageError,
    UnconfiguredReportDataSource,
    format_file_size,
)
from wastecollect_api.models.report_job import ReportJob
from wastecollect_api.schemas.report import ReportConfig
from wastecollect_api.services.report_service import (
    claim_report_job,
    download_report,
    fail_report_job,
    generate_report,
    get_report_job,
    list_report_jobs,
    list_stale_report_jobs,
    parse_report_config,
    submit_report,
)


def _config(**overrides) -> dict:
    config = {
        "title": "Monthly Performance",
        "type": "performance",
        "period": "monthly",
        "includeCharts": True,
        "format": "pdf",
    }
    config.update(overrides)
    return config


async def _submit(session, **overrides) -> ReportJob:
    return await submit_report(session, _config(**overrides), requested_by="testadmin", runner=MagicMock())


@pytest.fixture
def run_job(session_factory, report_storage, fake_data_source):
    """Generate a job with the test storage and data source."""
    return functools.partial(
        generate_report,
        session_factory=session_factory,
        storage=report_storage,
        data_source=fake_data_source,
    )


class TestParseReportConfig:
    """Tests for parse_report_config."""

    def test_schema_instance_passes_through(self) -> None:
        config = ReportConfig.model_validate(_config())
        assert parse_report_config(config) is config

    def test_mapping_validated(self) -> None:
        config = parse_report_config(_config(format="both"))
        assert config.format == "both"

    def test_empty_title_named(self) -> None:
        with pytest.raises(ReportValidationError) as exc_info:
            parse_report_config(_config(title=""))
        assert exc_info.value.fields == ["title"]

    def test_date_range_named(self) -> None:
        with pytest.raises(ReportValidationError) as exc_info:
            parse_report_config(_config(startDate="2025-03-01", endDate="2025-01-01"))
        assert exc_info.value.fields == ["date_range"]
        assert "startDate must be on or before endDate" in exc_info.value.message

    def test_all_offending_fields_named(self) -> None:
        with pytest.raises(ReportValidationError) as exc_info:
            parse_report_config({"title": "t", "type": "weather", "period": "monthly", "format": "pdf"})
        assert sorted(exc_info.value.fields) == ["includeCharts", "type"]

    def test_validation_error_is_value_error(self) -> None:
        with pytest.raises(ValueError):
            parse_report_config(_config(period="hourly"))


class TestSubmitReport:
    """Tests for submit_report."""

    async def test_creates_pending_job_and_submits_once(self, async_session) -> None:
        runner = MagicMock()
        job = await submit_report(async_session, _config(), requested_by="testadmin", runner=runner)

        assert isinstance(job.id, uuid.UUID)
        assert job.status == ReportStatus.PENDING
        assert job.requested_by == "testadmin"
        assert job.municipality_name == "All"
        assert job.file_path is None
        assert job.failure_reason is None
        assert job.created_at is not None
        runner.submit.assert_called_once_with(job.id)

    async def test_municipality_name_deferred_when_filtered(self, async_session) -> None:
        job = await _submit(async_session, municipalityId=7)
        assert job.municipality_id == 7
        assert job.municipality_name is None

    async def test_invalid_submission_creates_no_job(self, async_session) -> None:
        runner = MagicMock()
        with pytest.raises(ReportValidationError):
            await submit_report(async_session, _config(title=""), requested_by="a", runner=runner)

        count = (await async_session.execute(select(func.count(ReportJob.id)))).scalar_one()
        assert count == 0
        runner.submit.assert_not_called()

    async def test_returns_before_generation_starts(self, async_session, run_job) -> None:
        runner = BoundedTaskRunner(run_job, pool_size=1)
        job = await submit_report(async_session, _config(), requested_by="a", runner=runner)

        assert job.status == ReportStatus.PENDING
        await runner.drain()
        assert (await get_report_job(async_session, job.id)).status == ReportStatus.COMPLETED

    async def test_closed_runner_leaves_no_pending_job(self, async_session, run_job) -> None:
        runner = BoundedTaskRunner(run_job, pool_size=1)
        runner.close()

        with pytest.raises(RuntimeError, match="closed"):
            await submit_report(async_session, _config(), requested_by="a", runner=runner)

        jobs, total = await list_report_jobs(async_session)
        assert total == 1
        assert jobs[0].status == ReportStatus.FAILED
        assert jobs[0].failure_reason.startswith("Report could not be queued")
        assert jobs[0].generated_date is not None
        assert jobs[0].file_path is None
        pending, _ = await list_report_jobs(async_session, status_filter=ReportStatus.PENDING.value)
        assert pending == []


class TestGenerateReport:
    """Tests for the generate_report worker."""

    async def test_performance_pdf_with_charts_completes(self, async_session, run_job, report_storage) -> None:
        job = await _submit(async_session)

        assert await run_job(job.id) == ReportStatus.COMPLETED

        job = await get_report_job(async_session, job.id)
        assert job.status == ReportStatus.COMPLETED
        assert job.file_path == f"report-{job.id}-performance.pdf"
        content = await report_storage.download_file(job.file_path)
        assert content.startswith(b"%PDF")
        assert job.file_size == format_file_size(len(content))
        assert job.generated_date is not None
        assert job.failure_reason is None
        assert job.municipality_name == "All"

    async def test_resolves_municipality_name(self, async_session, run_job) -> None:
        job = await _submit(async_session, municipalityId=7, type="collections", format="excel")
        await run_job(job.id)

        job = await get_report_job(async_session, job.id)
        assert job.status == ReportStatus.COMPLETED
        assert job.municipality_name == "Springfield"
        assert job.file_path.endswith("-collections.xlsx")

    async def test_both_format_stores_single_zip(self, async_session, run_job, report_storage) -> None:
        job = await _submit(async_session, type="predictive", format="both")
        await run_job(job.id)

        job = await get_report_job(async_session, job.id)
        assert job.file_path == f"report-{job.id}-predictive.zip"
        content = await report_storage.download_file(job.file_path)
        with zipfile.ZipFile(io.BytesIO(content)) as bundle:
            assert sorted(bundle.namelist()) == [
                f"report-{job.id}-predictive.pdf",
                f"report-{job.id}-predictive.xlsx",
            ]

    async def test_rerun_of_terminal_job_is_noop(self, async_session, run_job) -> None:
        job = await _submit(async_session)
        await run_job(job.id)
        first = await get_report_job(async_session, job.id)
        snapshot = (first.status, first.file_path, first.file_size, first.generated_date)

        assert await run_job(job.id) is None

        again = await get_report_job(async_session, job.id)
        assert (again.status, again.file_path, again.file_size, again.generated_date) == snapshot

    async def test_unknown_job_is_noop(self, run_job) -> None:
        assert await run_job(uuid.uuid4()) is None

    async def test_storage_failure_marks_failed(self, async_session, session_factory, fake_data_source) -> None:
        storage = AsyncMock()
        storage.save_file.side_effect = StorageError("disk full")
        job = await _submit(async_session)

        status = await generate_report(
            job.id,
            session_factory=session_factory,
            storage=storage,
            data_source=fake_data_source,
        )

        assert status == ReportStatus.FAILED
        job = await get_report_job(async_session, job.id)
        assert job.status == ReportStatus.FAILED
        assert job.failure_reason == "disk full"
        assert job.file_path is None
        assert job.file_size is None
        assert job.generated_date is not None

    async def test_missing_data_source_marks_failed(self, async_session, session_factory, report_storage) -> None:
        job = await _submit(async_session)

        await generate_report(
            job.id,
            session_factory=session_factory,
            storage=report_storage,
            data_source=UnconfiguredReportDataSource(),
        )

        job = await get_report_job(async_session, job.id)
        assert job.status == ReportStatus.FAILED
        assert job.failure_reason.startswith("Could not load report data")

    async def test_generic_report_needs_no_data_source(self, async_session, session_factory, report_storage) -> None:
        job = await _submit(async_session, type="other")

        await generate_report(
            job.id,
            session_factory=session_factory,
            storage=report_storage,
            data_source=UnconfiguredReportDataSource(),
        )

        assert (await get_report_job(async_session, job.id)).status == ReportStatus.COMPLETED

    async def test_unexpected_error_marks_failed(self, async_session, session_factory, fake_data_source) -> None:
        storage = AsyncMock()
        storage.save_file.side_effect = RuntimeError("boom")
        job = await _submit(async_session)

        await generate_report(
            job.id,
            session_factory=session_factory,
            storage=storage,
            data_source=fake_data_source,
        )

        job = await get_report_job(async_session, job.id)
        assert job.status == ReportStatus.FAILED
        assert job.failure_reason == "Unexpected error: RuntimeError"

    async def test_completion_write_error_marks_failed(
        self, async_session, run_job, report_storage, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(
            "wastecollect_api.services.report_service.complete_report_job",
            AsyncMock(side_effect=SQLAlchemyError("database unavailable")),
        )
        job = await _submit(async_session)

        assert await run_job(job.id) == ReportStatus.FAILED

        job = await get_report_job(async_session, job.id)
        assert job.status == ReportStatus.FAILED
        assert job.failure_reason == "Could not record completion: SQLAlchemyError"
        assert job.file_path is None
        assert await report_storage.download_file(f"report-{job.id}-performance.pdf")

    async def test_unrecordable_failure_leaves_job_generating(
        self, async_session, run_job, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setattr(
            "wastecollect_api.services.report_service.complete_report_job",
            AsyncMock(side_effect=SQLAlchemyError("database unavailable")),
        )
        monkeypatch.setattr(
            "wastecollect_api.services.report_service.fail_report_job",
            AsyncMock(side_effect=SQLAlchemyError("database unavailable")),
        )
        job = await _submit(async_session)

        assert await run_job(job.id) is None

        later = datetime.now(UTC) + timedelta(hours=2)
        stale = await list_stale_report_jobs(async_session, older_than=timedelta(minutes=30), now=later)
        assert [j.id for j in stale] == [job.id]

    async def test_time_budget_exceeded_marks_failed(
        self, async_session, session_factory, report_storage, fake_data_source
    ) -> None:
        async def slow_summary(filters):
            await asyncio.sleep(5)

        fake_data_source.get_performance_summary = slow_summary
        job = await _submit(async_session)

        status = await generate_report(
            job.id,
            session_factory=session_factory,
            storage=report_storage,
            data_source=fake_data_source,
            time_budget=0.05,
        )

        assert status == ReportStatus.FAILED
        job = await get_report_job(async_session, job.id)
        assert job.failure_reason == "Report generation exceeded the time budget of 0.05s"
        assert job.file_path is None

    async def test_concurrent_jobs_are_isolated(self, async_session, run_job, report_storage) -> None:
        runner = BoundedTaskRunner(run_job, pool_size=3)
        jobs = [
            await submit_report(async_session, _config(type=t, format=f), requested_by="a", runner=runner)
            for t, f in [("performance", "pdf"), ("collections", "excel"), ("predictive", "both")]
        ]
        await runner.drain()

        paths = set()
        for job in jobs:
            job = await get_report_job(async_session, job.id)
            assert job.status == ReportStatus.COMPLETED
            assert str(job.id) in job.file_path
            assert job.file_path.startswith(f"report-{job.id}-{job.report_type}.")
            paths.add(job.file_path)
        assert len(paths) == 3


class TestTransitions:
    """Tests for conditional status transitions."""

    async def test_claim_moves_pending_to_generating(self, async_session, session_factory) -> None:
        job = await _submit(async_session)
        async with session_factory() as session:
            claimed = await claim_report_job(session, job.id)
        assert claimed.status == ReportStatus.GENERATING
        assert claimed.started_at is not None

    async def test_second_claim_violates(self, async_session, session_factory) -> None:
        job = await _submit(async_session)
        async with session_factory() as session:
            await claim_report_job(session, job.id)
            with pytest.raises(ConcurrencyViolation):
                await claim_report_job(session, job.id)

    async def test_fail_from_pending_violates_and_changes_nothing(self, async_session, session_factory) -> None:
        job = await _submit(async_session)
        async with session_factory() as session:
            with pytest.raises(ConcurrencyViolation):
                await fail_report_job(session, job.id, "nope")

        job = await get_report_job(async_session, job.id)
        assert job.status == ReportStatus.PENDING
        assert job.failure_reason is None

    async def test_failure_reason_is_truncated(self, async_session, session_factory) -> None:
        job = await _submit(async_session)
        async with session_factory() as session:
            await claim_report_job(session, job.id)
            await fail_report_job(session, job.id, "x" * 2000)

        job = await get_report_job(async_session, job.id)
        assert len(job.failure_reason) == 500


class TestStatusQueries:
    """Tests for get_report_job, list_report_jobs, and list_stale_report_jobs."""

    async def test_get_unknown_raises(self, async_session) -> None:
        with pytest.raises(ReportNotFoundError):
            await get_report_job(async_session, uuid.uuid4())

    async def test_list_newest_first_with_pagination(self, async_session) -> None:
        created = [await _submit(async_session, title=f"Report {i}") for i in range(3)]

        jobs, total = await list_report_jobs(async_session, page=1, page_size=2)

        assert total == 3
        assert [j.id for j in jobs] == [created[2].id, created[1].id]
        jobs, _ = await list_report_jobs(async_session, page=2, page_size=2)
        assert [j.id for j in jobs] == [created[0].id]

    async def test_list_filters(self, async_session, run_job) -> None:
        perf = await _submit(async_session, title="Fleet Performance")
        await _submit(async_session, title="Weekly Volumes", type="collections")
        await run_job(perf.id)

        jobs, total = await list_report_jobs(async_session, report_type="collections")
        assert total == 1
        assert jobs[0].title == "Weekly Volumes"

        jobs, total = await list_report_jobs(async_session, status_filter="completed")
        assert [j.id for j in jobs] == [perf.id]
        assert jobs[0].status == ReportStatus.COMPLETED
        assert jobs[0].file_path is not None

        jobs, total = await list_report_jobs(async_session, search="fleet")
        assert total == 1
        assert jobs[0].id == perf.id

    async def test_list_stale_jobs(self, async_session, session_factory) -> None:
        job = await _submit(async_session)
        await _submit(async_session)
        async with session_factory() as session:
            await claim_report_job(session, job.id)

        assert await list_stale_report_jobs(async_session, older_than=timedelta(minutes=30)) == []

        later = datetime.now(UTC) + timedelta(hours=2)
        stale = await list_stale_report_jobs(async_session, older_than=timedelta(minutes=30), now=later)
        assert [j.id for j in stale] == [job.id]
        assert stale[0].status == ReportStatus.GENERATING


class TestDownloadReport:
    """Tests for download_report."""

    async def test_downloads_completed_artifact(self, async_session, run_job, report_storage) -> None:
        job = await _submit(async_session, format="excel")
        await run_job(job.id)

        download = await download_report(async_session, report_storage, job.id)

        assert download.filename == f"report-{job.id}-performance.xlsx"
        assert download.media_type == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
        assert download.content[:2] == b"PK"

    async def test_unknown_job_raises_not_found(self, async_session, report_storage) -> None:
        with pytest.raises(ReportNotFoundError):
            await download_report(async_session, report_storage, uuid.uuid4())

    async def test_pending_job_not_ready(self, async_session, report_storage) -> None:
        job = await _submit(async_session)
        with pytest.raises(ReportNotReadyError) as exc_info:
            await download_report(async_session, report_storage, job.id)
        assert exc_info.value.status == "pending"

    async def test_failed_job_not_ready(self, async_session, session_factory, report_storage) -> None:
        job = await _submit(async_session)
        await generate_report(
            job.id,
            session_factory=session_factory,
            storage=report_storage,
            data_source=UnconfiguredReportDataSource(),
        )
        with pytest.raises(ReportNotReadyError, match="failed"):
            await download_report(async_session, report_storage, job.id)

    async def test_missing_artifact_raises(self, async_session, run_job, report_storage) -> None:
        job = await _submit(async_session)
        await run_job(job.id)
        job = await get_report_job(async_session, job.id)
        (report_storage.base_dir / job.file_path).unlink()

        with pytest.raises(ArtifactNotFoundError):
            await download_report(async_session, report_storage, job.id)
