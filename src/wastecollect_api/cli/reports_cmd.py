"""Report CLI commands: generate in-process, inspect status, list, and find stale jobs."""

import asyncio
import uuid
from datetime import timedelta

import typer

reports_app = typer.Typer()


@reports_app.command("generate")
def reports_generate(
    title: str = typer.Option(..., "--title", help="Report title"),
    report_type: str = typer.Option("performance", "--type", help="performance, collections, predictive, other"),
    period: str = typer.Option("monthly", "--period", help="daily, weekly, monthly, quarterly, yearly"),
    output_format: str = typer.Option("pdf", "--format", help="pdf, excel, both"),
    include_charts: bool = typer.Option(True, "--charts/--no-charts", help="Include a chart"),
    municipality_id: int | None = typer.Option(None, "--municipality-id", help="Filter by municipality"),
    collector_id: int | None = typer.Option(None, "--collector-id", help="Filter by collector"),
    start_date: str | None = typer.Option(None, "--start-date", help="Start date (YYYY-MM-DD)"),
    end_date: str | None = typer.Option(None, "--end-date", help="End date (YYYY-MM-DD)"),
    requested_by: str = typer.Option("cli", "--requested-by", help="Identity recorded on the job"),
) -> None:
    """Generate a report in-process and wait for it to finish."""
    config = {
        "title": title,
        "type": report_type,
        "period": period,
        "format": output_format,
        "includeCharts": include_charts,
        "municipalityId": municipality_id,
        "collectorId": collector_id,
        "startDate": start_date,
        "endDate": end_date,
    }
    asyncio.run(_reports_generate(config, requested_by))


async def _reports_generate(config: dict, requested_by: str) -> None:
    """Async implementation of report generation."""
    from wastecollect_api.core.config import get_settings
    from wastecollect_api.core.database import dispose_engine, get_session_factory, init_engine
    from wastecollect_api.core.reporting import (
        create_report_data_source,
        create_report_runner,
        create_report_storage,
    )
    from wastecollect_api.lib.reports import ReportValidationError
    from wastecollect_api.services.report_service import get_report_job, submit_report

    settings = get_settings()
    init_engine(settings.database_url)
    data_source = create_report_data_source(settings)

    try:
        factory = get_session_factory()
        runner = create_report_runner(
            settings,
            session_factory=factory,
            storage=create_report_storage(settings),
            data_source=data_source,
        )
        async with factory() as session:
            try:
                job = await submit_report(session, config, requested_by=requested_by, runner=runner)
            except ReportValidationError as exc:
                typer.echo(f"Invalid report request ({', '.join(exc.fields)}): {exc.message}", err=True)
                raise typer.Exit(code=1) from exc

        typer.echo(f"Report job created: {job.id}")
        typer.echo("Generating...")
        runner.close()
        await runner.drain()

        async with factory() as session:
            job = await get_report_job(session, job.id)

        typer.echo(f"\nReport {job.status}:")
        typer.echo(f"  File path:  {job.file_path or 'N/A'}")
        typer.echo(f"  File size:  {job.file_size or 'N/A'}")
        if job.failure_reason:
            typer.echo(f"  Reason:     {job.failure_reason}")
        if job.status != "completed":
            raise typer.Exit(code=1)
    finally:
        await data_source.close()
        await dispose_engine()


@reports_app.command("status")
def reports_status(
    job_id: str = typer.Argument(..., help="Report job ID"),
) -> None:
    """Show the current state of a report job."""
    try:
        parsed = uuid.UUID(job_id)
    except ValueError as exc:
        typer.echo(f"Invalid job ID: {job_id}", err=True)
        raise typer.Exit(code=1) from exc
    asyncio.run(_reports_status(parsed))


async def _reports_status(job_id: uuid.UUID) -> None:
    """Async implementation of report status."""
    from wastecollect_api.core.config import get_settings
    from wastecollect_api.core.database import dispose_engine, get_session_factory, init_engine
    from wastecollect_api.lib.reports import ReportNotFoundError
    from wastecollect_api.services.report_service import get_report_job

    settings = get_settings()
    init_engine(settings.database_url)

    try:
        factory = get_session_factory()
        async with factory() as session:
            try:
                job = await get_report_job(session, job_id)
            except ReportNotFoundError as exc:
                typer.echo(f"Report job not found: {job_id}", err=True)
                raise typer.Exit(code=1) from exc

        typer.echo(f"Report:        {job.id}")
        typer.echo(f"  Title:        {job.title}")
        typer.echo(f"  Type:         {job.report_type} ({job.period}, {job.output_format})")
        typer.echo(f"  Status:       {job.status}")
        typer.echo(f"  Municipality: {job.municipality_name or 'N/A'}")
        typer.echo(f"  Requested by: {job.requested_by or 'N/A'}")
        typer.echo(f"  Created:      {job.created_at}")
        typer.echo(f"  Generated:    {job.generated_date or 'N/A'}")
        if job.file_path:
            typer.echo(f"  File:         {job.file_path} ({job.file_size})")
        if job.failure_reason:
            typer.echo(f"  Reason:       {job.failure_reason}")
    finally:
        await dispose_engine()


@reports_app.command("list")
def reports_list(
    report_type: str | None = typer.Option(None, "--type", help="Filter by report type"),
    status_filter: str | None = typer.Option(None, "--status", help="Filter by status"),
    search: str | None = typer.Option(None, "--search", help="Filter by title"),
    limit: int = typer.Option(20, "--limit", min=1, max=100, help="Maximum jobs to show"),
) -> None:
    """List report jobs, newest first."""
    asyncio.run(_reports_list(report_type, status_filter, search, limit))


async def _reports_list(
    report_type: str | None,
    status_filter: str | None,
    search: str | None,
    limit: int,
) -> None:
    """Async implementation of report listing."""
    from wastecollect_api.core.config import get_settings
    from wastecollect_api.core.database import dispose_engine, get_session_factory, init_engine
    from wastecollect_api.services.report_service import list_report_jobs

    settings = get_settings()
    init_engine(settings.database_url)

    try:
        factory = get_session_factory()
        async with factory() as session:
            jobs, total = await list_report_jobs(
                session,
                report_type=report_type,
                status_filter=status_filter,
                search=search,
                page_size=limit,
            )

        if not jobs:
            typer.echo("No report jobs found.")
            return
        for job in jobs:
            typer.echo(f"{job.id}  {job.status:<10}  {job.report_type:<12}  {job.output_format:<5}  {job.title}")
        typer.echo(f"\nShowing {len(jobs)} of {total} jobs")
    finally:
        await dispose_engine()


@reports_app.command("stale")
def reports_stale(
    minutes: int | None = typer.Option(
        None,
        "--minutes",
        min=1,
        help="Age threshold in minutes (default: REPORT_STALE_AFTER_MINUTES)",
    ),
) -> None:
    """List jobs stuck in GENERATING longer than the threshold.

    Jobs are only reported; reconcile them with the deployment's own tooling.
    """
    asyncio.run(_reports_stale(minutes))


async def _reports_stale(minutes: int | None) -> None:
    """Async implementation of stale job listing."""
    from wastecollect_api.core.config import get_settings
    from wastecollect_api.core.database import dispose_engine, get_session_factory, init_engine
    from wastecollect_api.services.report_service import list_stale_report_jobs

    settings = get_settings()
    init_engine(settings.database_url)
    threshold = minutes or settings.report_stale_after_minutes

    try:
        factory = get_session_factory()
        async with factory() as session:
            jobs = await list_stale_report_jobs(session, older_than=timedelta(minutes=threshold))

        if not jobs:
            typer.echo(f"No jobs generating for more than {threshold} minutes.")
            return
        typer.echo(f"{len(jobs)} job(s) generating for more than {threshold} minutes:")
        for job in jobs:
            typer.echo(f"  {job.id}  started {job.started_at}  {job.report_type}  {job.title}")
        raise typer.Exit(code=1)
    finally:
        await dispose_engine()
