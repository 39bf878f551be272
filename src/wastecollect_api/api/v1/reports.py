"""Report API endpoints: submit, poll, list, and download generated reports."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from wastecollect_api.core.background import BackgroundTaskRunner
from wastecollect_api.core.config import Settings
from wastecollect_api.core.dependencies import (
    get_app_settings,
    get_async_session,
    get_current_user,
    get_report_runner,
    get_report_storage,
    require_role,
)
from wastecollect_api.core.security import Actor
from wastecollect_api.lib.reports import (
    ArtifactNotFoundError,
    ReportNotFoundError,
    ReportNotReadyError,
    ReportStatus,
    ReportStorage,
    ReportType,
)
from wastecollect_api.models.report_job import ReportJob
from wastecollect_api.schemas.common import ErrorResponse, PaginationMeta
from wastecollect_api.schemas.report import (
    PaginatedReportJobResponse,
    ReportConfig,
    ReportJobResponse,
    ReportSubmitResponse,
)
from wastecollect_api.services.report_service import (
    download_report,
    get_report_job,
    list_report_jobs,
    submit_report,
)

reports_router = APIRouter(prefix="/reports", tags=["reports"])


def _job_to_response(job: ReportJob, settings: Settings) -> ReportJobResponse:
    """Convert a ReportJob to a response with a download URL when ready."""
    response = ReportJobResponse(
        id=job.id,
        title=job.title,
        type=job.report_type,
        period=job.period,
        format=job.output_format,
        include_charts=job.include_charts,
        municipality_id=job.municipality_id,
        collector_id=job.collector_id,
        start_date=job.start_date,
        end_date=job.end_date,
        status=ReportStatus(job.status),
        generated_date=job.generated_date,
        file_path=job.file_path,
        file_size=job.file_size,
        failure_reason=job.failure_reason,
        municipality_name=job.municipality_name,
        generated_by=job.requested_by,
        created_at=job.created_at,
    )
    if response.status is ReportStatus.COMPLETED:
        response.download_url = f"{settings.api_v1_prefix}/reports/{job.id}/download"
    return response


@reports_router.post(
    "",
    response_model=ReportSubmitResponse,
    status_code=status.HTTP_202_ACCEPTED,
    responses={503: {"model": ErrorResponse}},
)
async def request_report(
    request: ReportConfig,
    session: AsyncSession = Depends(get_async_session),
    current_user: Actor = Depends(require_role("admin")),
    runner: BackgroundTaskRunner = Depends(get_report_runner),
) -> ReportSubmitResponse:
    """Request report generation (admin only). Poll the returned id for status."""
    try:
        job = await submit_report(session, request, requested_by=current_user.username, runner=runner)
    except RuntimeError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Report queue is not accepting jobs",
        ) from exc
    return ReportSubmitResponse(id=job.id, status=ReportStatus(job.status))


@reports_router.get(
    "",
    response_model=PaginatedReportJobResponse,
)
async def list_reports(
    report_type: ReportType | None = Query(None, alias="type"),
    status_filter: ReportStatus | None = Query(None, alias="status"),
    search: str | None = Query(None, max_length=255),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    session: AsyncSession = Depends(get_async_session),
    _current_user: Actor = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
) -> PaginatedReportJobResponse:
    """List report jobs, newest first."""
    jobs, total = await list_report_jobs(
        session,
        report_type=report_type.value if report_type else None,
        status_filter=status_filter.value if status_filter else None,
        search=search,
        page=page,
        page_size=page_size,
    )
    return PaginatedReportJobResponse(
        items=[_job_to_response(j, settings) for j in jobs],
        pagination=PaginationMeta.build(total=total, page=page, page_size=page_size),
    )


@reports_router.get(
    "/{job_id}",
    response_model=ReportJobResponse,
    responses={404: {"model": ErrorResponse}},
)
async def get_report_status(
    job_id: uuid.UUID,
    session: AsyncSession = Depends(get_async_session),
    _current_user: Actor = Depends(get_current_user),
    settings: Settings = Depends(get_app_settings),
) -> ReportJobResponse:
    """Get report job status."""
    try:
        job = await get_report_job(session, job_id)
    except ReportNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found") from exc
    return _job_to_response(job, settings)


@reports_router.get(
    "/{job_id}/download",
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)
async def download_report_file(
    job_id: uuid.UUID,
    session: AsyncSession = Depends(get_async_session),
    _current_user: Actor = Depends(get_current_user),
    storage: ReportStorage = Depends(get_report_storage),
) -> Response:
    """Download a completed report artifact."""
    try:
        download = await download_report(session, storage, job_id)
    except ReportNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report not found") from exc
    except ReportNotReadyError as exc:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(exc)) from exc
    except ArtifactNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Report file not found") from exc

    return Response(
        content=download.content,
        media_type=download.media_type,
        headers={"Content-Disposition": f'attachment; filename="{download.filename}"'},
    )
