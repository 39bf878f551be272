"""Content builders: one strategy per report type.

Builders are plain async functions registered in a tag-to-strategy mapping.
Each one pulls its own aggregates from a ``ReportDataSource`` and returns a
format-neutral ``ReportDocument``; ``build_report`` then renders it. Unknown
types fall back to the generic builder. New report types are added with
``register_builder``.
"""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import UTC, datetime

from loguru import logger

from wastecollect_api.lib.reports.data_source import DataSourceError, ReportDataSource
from wastecollect_api.lib.reports.errors import GenerationError
from wastecollect_api.lib.reports.renderers import render_report
from wastecollect_api.lib.reports.types import (
    ChartSeries,
    RenderedReport,
    ReportDocument,
    ReportParameters,
    ReportTable,
    ReportType,
)

ReportBuilder = Callable[[ReportParameters, ReportDataSource], Awaitable[ReportDocument]]


async def _scope_lines(params: ReportParameters, data_source: ReportDataSource) -> tuple[list[str], str]:
    """Build the subtitle block and resolve the municipality label."""
    filters = params.filters
    municipality_name = "All"
    if filters.municipality_id is not None:
        resolved = await data_source.get_municipality_name(filters.municipality_id)
        municipality_name = resolved or f"Municipality {filters.municipality_id}"

    lines = [
        f"Period: {params.period}",
        f"Municipality: {municipality_name}",
    ]
    if filters.collector_id is not None:
        lines.append(f"Collector: {filters.collector_id}")
    if filters.start_date or filters.end_date:
        start = filters.start_date.isoformat() if filters.start_date else "..."
        end = filters.end_date.isoformat() if filters.end_date else "..."
        lines.append(f"Date range: {start} to {end}")
    lines.append(f"Generated at: {datetime.now(UTC).strftime('%Y-%m-%d %H:%M UTC')}")
    return lines, municipality_name


async def build_performance_document(params: ReportParameters, data_source: ReportDataSource) -> ReportDocument:
    """Collection performance KPIs."""
    lines, municipality_name = await _scope_lines(params, data_source)
    summary = await data_source.get_performance_summary(params.filters)
    pending = max(summary.total_collections - summary.completed_collections, 0)
    return ReportDocument(
        title=params.title,
        subtitle_lines=lines,
        summary=[
            ("Total collections", summary.total_collections),
            ("Completed collections", summary.completed_collections),
            ("Completion rate (%)", round(summary.completion_rate, 1)),
            ("Average rating", round(summary.average_rating, 2)),
            ("Households served", summary.total_households),
            ("Total revenue", round(summary.total_revenue, 2)),
        ],
        chart=ChartSeries(
            title="Collections by outcome",
            labels=["Completed", "Not completed"],
            values=[float(summary.completed_collections), float(pending)],
        ),
        municipality_name=municipality_name,
    )


async def build_collections_document(params: ReportParameters, data_source: ReportDataSource) -> ReportDocument:
    """Collection volumes and service-request throughput."""
    lines, municipality_name = await _scope_lines(params, data_source)
    summary = await data_source.get_collection_summary(params.filters)
    by_type = sorted(summary.waste_volume_by_type.items(), key=lambda item: item[1], reverse=True)
    return ReportDocument(
        title=params.title,
        subtitle_lines=lines,
        summary=[
            ("Total collections", summary.total_collections),
            ("Total waste volume (kg)", round(summary.total_waste_volume_kg, 2)),
            ("Average per collection (kg)", round(summary.average_waste_per_collection_kg, 2)),
            ("Pending service requests", summary.pending_service_requests),
            ("Completed service requests", summary.completed_service_requests),
        ],
        tables=[
            ReportTable(
                title="Waste volume by type",
                headers=["Waste type", "Volume (kg)"],
                rows=[[waste_type, round(volume, 2)] for waste_type, volume in by_type],
            ),
        ],
        chart=ChartSeries(
            title="Waste volume by type (kg)",
            labels=[waste_type for waste_type, _ in by_type],
            values=[volume for _, volume in by_type],
        ),
        municipality_name=municipality_name,
    )


async def build_predictive_document(params: ReportParameters, data_source: ReportDataSource) -> ReportDocument:
    """Next-week volume forecast, demand hot spots, and suggested routes."""
    lines, municipality_name = await _scope_lines(params, data_source)
    summary = await data_source.get_predictive_summary(params.filters)
    return ReportDocument(
        title=params.title,
        subtitle_lines=lines,
        summary=[
            ("Predicted waste volume next week (kg)", round(summary.next_week_volume_prediction, 2)),
            ("High-demand areas", len(summary.high_demand_areas)),
        ],
        tables=[
            ReportTable(
                title="High-demand areas",
                headers=["Rank", "Area"],
                rows=[[rank, area] for rank, area in enumerate(summary.high_demand_areas, start=1)],
            ),
            ReportTable(
                title="Suggested collection routes",
                headers=["Route"],
                rows=[[route] for route in summary.suggested_routes],
            ),
        ],
        municipality_name=municipality_name,
    )


async def build_generic_document(params: ReportParameters, data_source: ReportDataSource) -> ReportDocument:
    """Title block only; used for report types without a dedicated builder."""
    lines, municipality_name = await _scope_lines(params, data_source)
    return ReportDocument(
        title=params.title,
        subtitle_lines=[f"Report type: {params.report_type}", *lines],
        municipality_name=municipality_name,
    )


_BUILDERS: dict[str, ReportBuilder] = {
    ReportType.PERFORMANCE: build_performance_document,
    ReportType.COLLECTIONS: build_collections_document,
    ReportType.PREDICTIVE: build_predictive_document,
}


def register_builder(report_type: str, builder: ReportBuilder) -> None:
    """Register (or replace) the builder for a report type tag."""
    _BUILDERS[report_type] = builder


def get_builder(report_type: str) -> ReportBuilder:
    """Return the builder for a report type, falling back to the generic one."""
    return _BUILDERS.get(report_type, build_generic_document)


async def build_report(params: ReportParameters, data_source: ReportDataSource, *, basename: str) -> RenderedReport:
    """Build and render a report.

    Args:
        params: The job's report parameters.
        data_source: Source of aggregated input data.
        basename: File stem for bundle members (``both`` format).

    Returns:
        The rendered artifact.

    Raises:
        GenerationError: If fetching data or rendering fails.
    """
    builder = get_builder(params.report_type)
    try:
        document = await builder(params, data_source)
        return await asyncio.to_thread(
            render_report,
            document,
            params.output_format,
            include_charts=params.include_charts,
            basename=basename,
        )
    except DataSourceError as exc:
        raise GenerationError(f"Could not load report data: {exc}") from exc
    except GenerationError:
        raise
    except Exception as exc:
        logger.opt(exception=exc).debug("Report builder for {} raised", params.report_type)
        raise GenerationError(f"{type(exc).__name__}: {exc}") from exc
