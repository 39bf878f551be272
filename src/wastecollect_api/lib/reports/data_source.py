"""External data sources feeding the report content builders.

The aggregation queries behind each report live in the WasteCollect
backend. Builders only see the ``ReportDataSource`` Protocol and the
normalized summary dataclasses below; ``HttpReportDataSource`` fetches them
over the backend's REST API.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

import httpx
from loguru import logger

from wastecollect_api.lib.reports.types import ReportFilters


@dataclass
class PerformanceSummary:
    """Collector/service performance KPIs for the filtered scope."""

    total_collections: int = 0
    completed_collections: int = 0
    completion_rate: float = 0.0
    average_rating: float = 0.0
    total_households: int = 0
    total_revenue: float = 0.0


@dataclass
class CollectionSummary:
    """Collection volumes and service-request counts for the filtered scope."""

    total_collections: int = 0
    total_waste_volume_kg: float = 0.0
    average_waste_per_collection_kg: float = 0.0
    pending_service_requests: int = 0
    completed_service_requests: int = 0
    waste_volume_by_type: dict[str, float] = field(default_factory=dict)


@dataclass
class PredictiveSummary:
    """Output of the backend's predictive heuristics."""

    next_week_volume_prediction: float = 0.0
    high_demand_areas: list[str] = field(default_factory=list)
    suggested_routes: list[str] = field(default_factory=list)


class DataSourceError(Exception):
    """Raised when a data source experiences a transport or service error.

    Args:
        source_name: Name of the failing data source.
        message: Human-readable error description.
        status_code: Optional HTTP status code from the source.
    """

    def __init__(self, source_name: str, message: str, status_code: int | None = None) -> None:
        self.source_name = source_name
        self.message = message
        self.status_code = status_code
        super().__init__(f"{source_name}: {message}")


class ReportDataSource(Protocol):
    """Aggregated input data for report builders."""

    async def get_performance_summary(self, filters: ReportFilters) -> PerformanceSummary: ...

    async def get_collection_summary(self, filters: ReportFilters) -> CollectionSummary: ...

    async def get_predictive_summary(self, filters: ReportFilters) -> PredictiveSummary: ...

    async def get_municipality_name(self, municipality_id: int) -> str | None: ...

    async def close(self) -> None: ...


class UnconfiguredReportDataSource:
    """Placeholder used when no data source URL is configured.

    Every data call fails, so data-dependent reports end FAILED with a clear
    reason while generic reports still generate.
    """

    source_name = "unconfigured"

    def _fail(self) -> DataSourceError:
        return DataSourceError(self.source_name, "no report data source is configured (REPORT_DATA_SOURCE_URL)")

    async def get_performance_summary(self, filters: ReportFilters) -> PerformanceSummary:
        raise self._fail()

    async def get_collection_summary(self, filters: ReportFilters) -> CollectionSummary:
        raise self._fail()

    async def get_predictive_summary(self, filters: ReportFilters) -> PredictiveSummary:
        raise self._fail()

    async def get_municipality_name(self, municipality_id: int) -> str | None:
        return None

    async def close(self) -> None:
        return None


class HttpReportDataSource:
    """Fetches report aggregates from the WasteCollect backend REST API.

    Args:
        base_url: Backend base URL (e.g., "https://api.wastecollect.example").
        api_token: Optional bearer token for the backend.
        timeout: Request timeout in seconds.
        transport: Optional httpx transport (used by tests).
    """

    source_name = "wastecollect_backend"

    def __init__(
        self,
        base_url: str,
        *,
        api_token: str | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Accept": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    async def get_performance_summary(self, filters: ReportFilters) -> PerformanceSummary:
        data = await self._request("GET", "/api/v1/statistics/performance", params=filters.as_query_params())
        return PerformanceSummary(
            total_collections=int(data.get("totalCollections") or 0),
            completed_collections=int(data.get("completedCollections") or 0),
            completion_rate=float(data.get("completionRate") or 0.0),
            average_rating=float(data.get("averageRating") or 0.0),
            total_households=int(data.get("totalHouseholds") or 0),
            total_revenue=float(data.get("totalRevenue") or 0.0),
        )

    async def get_collection_summary(self, filters: ReportFilters) -> CollectionSummary:
        data = await self._request(
            "GET",
            "/api/v1/municipalities/collection-data",
            params=filters.as_query_params(),
        )
        by_type = data.get("wasteVolumeByType") or {}
        return CollectionSummary(
            total_collections=int(data.get("totalCollections") or 0),
            total_waste_volume_kg=float(data.get("totalWasteVolumeKg") or 0.0),
            average_waste_per_collection_kg=float(data.get("averageWastePerCollectionKg") or 0.0),
            pending_service_requests=int(data.get("pendingServiceRequests") or 0),
            completed_service_requests=int(data.get("completedServiceRequests") or 0),
            waste_volume_by_type={str(k): float(v or 0.0) for k, v in by_type.items()},
        )

    async def get_predictive_summary(self, filters: ReportFilters) -> PredictiveSummary:
        data = await self._request(
            "POST",
            "/api/v1/admin/predictive-analysis",
            json=filters.as_query_params(),
        )
        return PredictiveSummary(
            next_week_volume_prediction=float(data.get("nextWeekWasteVolumePrediction") or 0.0),
            high_demand_areas=[str(a) for a in data.get("highDemandAreas") or []],
            suggested_routes=[str(r) for r in data.get("optimalCollectorRoutes") or []],
        )

    async def get_municipality_name(self, municipality_id: int) -> str | None:
        try:
            data = await self._request("GET", f"/api/v1/municipalities/{municipality_id}")
        except DataSourceError as exc:
            if exc.status_code == 404:
                return None
            raise
        name = data.get("municipalityName") or data.get("name")
        return str(name) if name else None

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        """Make a request to the backend and return the decoded JSON object."""
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "Report data source error: {} {} for {}",
                exc.response.status_code,
                exc.response.reason_phrase,
                path,
            )
            raise DataSourceError(
                self.source_name,
                f"HTTP {exc.response.status_code} for {path}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise DataSourceError(self.source_name, f"Request failed for {path}: {exc}") from exc
        except ValueError as exc:
            raise DataSourceError(self.source_name, f"Invalid JSON from {path}") from exc

        if not isinstance(result, dict):
            raise DataSourceError(self.source_name, f"Unexpected response shape from {path}")
        return result
