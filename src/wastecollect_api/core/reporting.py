"""Construction of the report storage, data source, and worker pool from settings."""

import functools

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from wastecollect_api.core.background import BoundedTaskRunner
from wastecollect_api.core.config import Settings
from wastecollect_api.lib.reports import (
    HttpReportDataSource,
    LocalFileStorage,
    ReportDataSource,
    ReportStorage,
    S3FileStorage,
    UnconfiguredReportDataSource,
    create_s3_client,
)


def create_report_storage(settings: Settings) -> ReportStorage:
    """Create the artifact storage backend selected by configuration."""
    if settings.report_storage_backend == "s3":
        client = create_s3_client(
            endpoint_url=settings.report_s3_endpoint_url,
            region_name=settings.report_s3_region,
            access_key_id=settings.report_s3_access_key_id,
            secret_access_key=settings.report_s3_secret_access_key,
        )
        logger.info("Report storage: s3://{}/{}", settings.report_s3_bucket, settings.report_s3_prefix)
        return S3FileStorage(client, settings.report_s3_bucket or "", prefix=settings.report_s3_prefix)

    storage = LocalFileStorage(settings.report_storage_dir)
    logger.info("Report storage: {}", storage.base_dir)
    return storage


def create_report_data_source(settings: Settings) -> ReportDataSource:
    """Create the report data source, or a placeholder when none is configured."""
    if not settings.report_data_source_url:
        logger.warning("REPORT_DATA_SOURCE_URL is not set; data-dependent reports will fail")
        return UnconfiguredReportDataSource()
    return HttpReportDataSource(
        settings.report_data_source_url,
        api_token=settings.report_data_source_token,
        timeout=settings.report_data_source_timeout,
    )


def create_report_runner(
    settings: Settings,
    *,
    session_factory: async_sessionmaker[AsyncSession],
    storage: ReportStorage,
    data_source: ReportDataSource,
) -> BoundedTaskRunner:
    """Create the bounded worker pool executing report jobs."""
    from wastecollect_api.services.report_service import generate_report

    handler = functools.partial(
        generate_report,
        session_factory=session_factory,
        storage=storage,
        data_source=data_source,
        time_budget=settings.report_generation_timeout,
    )
    return BoundedTaskRunner(handler, pool_size=settings.report_worker_pool_size)
