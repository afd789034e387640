"""
Statistics Router — Consumption statistics and item correlation endpoints.

Thin pass-through to the analytics services. Insufficient data renders as
{"error": "No consumption data available"}; unknown items and categories
are 404s.
"""

from datetime import date, datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from pydantic import BaseModel, Field

from analytics.batch import BatchStatisticsService
from analytics.correlation_graph import CorrelationGraphService
from analytics.statistics import ItemStatisticsService
from api.deps import get_batch_service, get_correlation_service, get_statistics_service

router = APIRouter(prefix="/api/v1/statistics", tags=["statistics"])

NO_DATA_RESPONSE = {"error": "No consumption data available"}


# ─── Schemas ────────────────────────────────────────────────────────────────


class RecalculateRequest(BaseModel):
    item_ids: list[int] | None = Field(None, description="Restrict the batch to these items")
    window_days: int | None = Field(None, ge=1, le=365)


class ItemSnapshotResponse(BaseModel):
    item_id: int
    mean: float
    std_dev: float
    coefficient_of_variation: float
    volatility: str
    trend: str
    pattern: str
    forecast_next_period: float
    coverage_days: int
    expected_stockout_date: date | None
    calculated_at: datetime


class RecommendationResponse(BaseModel):
    item_id: int
    item_name: str
    correlation: float
    correlation_type: str
    current_stock: float | None
    reorder_level: float | None
    needs_reorder: bool


def _not_found(exc: LookupError) -> HTTPException:
    return HTTPException(status_code=404, detail=str(exc))


# ─── Item & Category Statistics ─────────────────────────────────────────────


@router.get("/items/{item_id}")
async def get_item_statistics(
    item_id: int,
    days: int = Query(30, ge=1, le=365),
    service: ItemStatisticsService = Depends(get_statistics_service),
):
    """Descriptive statistics, trend, seasonality and coverage for one item."""
    try:
        stats = await service.compute_item_statistics(item_id, window_days=days)
    except LookupError as exc:
        raise _not_found(exc) from exc
    return stats if stats is not None else NO_DATA_RESPONSE


@router.post("/items/{item_id}/refresh", response_model=ItemSnapshotResponse)
async def refresh_item_statistics(
    item_id: int,
    service: ItemStatisticsService = Depends(get_statistics_service),
):
    """Recompute and store the item's statistics snapshot."""
    try:
        snapshot = await service.update_item_statistics(item_id)
    except LookupError as exc:
        raise _not_found(exc) from exc
    return ItemSnapshotResponse(
        item_id=snapshot.item_id,
        mean=snapshot.mean,
        std_dev=snapshot.std_dev,
        coefficient_of_variation=snapshot.coefficient_of_variation,
        volatility=snapshot.volatility.value,
        trend=snapshot.trend.value,
        pattern=snapshot.pattern.value,
        forecast_next_period=snapshot.forecast_next_period,
        coverage_days=snapshot.coverage_days,
        expected_stockout_date=snapshot.expected_stockout_date,
        calculated_at=snapshot.calculated_at,
    )


@router.get("/categories/{category_id}")
async def get_category_statistics(
    category_id: int,
    days: int = Query(30, ge=1, le=365),
    service: ItemStatisticsService = Depends(get_statistics_service),
):
    """Aggregate statistics and top consumers for a category."""
    try:
        stats = await service.compute_category_statistics(category_id, window_days=days)
    except LookupError as exc:
        raise _not_found(exc) from exc
    return stats if stats is not None else NO_DATA_RESPONSE


@router.get("/dashboard")
async def get_dashboard_statistics(
    days: int = Query(30, ge=1, le=365),
    service: ItemStatisticsService = Depends(get_statistics_service),
):
    """Inventory-wide totals and a daily consumption series."""
    return await service.compute_dashboard_statistics(window_days=days)


# ─── Batch Recompute ────────────────────────────────────────────────────────


@router.post("/recalculate")
async def recalculate_statistics(
    request: RecalculateRequest | None = None,
    service: BatchStatisticsService = Depends(get_batch_service),
):
    """Recompute snapshots for every item, or for the listed items."""
    request = request or RecalculateRequest()
    if request.item_ids is not None:
        return await service.recalculate_statistics_for_items(request.item_ids, window_days=request.window_days)
    return await service.recalculate_all_statistics(window_days=request.window_days)


@router.post("/categories/{category_id}/recalculate")
async def recalculate_category_statistics(
    category_id: int,
    window_days: int | None = Query(None, ge=1, le=365),
    service: BatchStatisticsService = Depends(get_batch_service),
):
    """Recompute snapshots for every item in a category."""
    try:
        return await service.recalculate_statistics_for_category(category_id, window_days=window_days)
    except LookupError as exc:
        raise _not_found(exc) from exc


# ─── Correlations ───────────────────────────────────────────────────────────


@router.post("/correlations/calculate")
async def calculate_correlations(
    force: bool = Query(False, description="Delete every edge before the sweep"),
    service: CorrelationGraphService = Depends(get_correlation_service),
):
    """Sweep every item pair and upsert correlation edges."""
    if force:
        return await service.force_recalculate_all_correlations()
    return await service.calculate_all_correlations()


@router.post("/correlations/items/{item_id}")
async def calculate_item_correlations(
    item_id: int,
    service: CorrelationGraphService = Depends(get_correlation_service),
):
    """Recompute every edge touching one item."""
    try:
        return await service.calculate_item_correlations(item_id)
    except LookupError as exc:
        raise _not_found(exc) from exc


@router.get("/correlations/items/{item_id}/recommendations", response_model=list[RecommendationResponse])
async def get_recommendations(
    item_id: int,
    limit: int = Query(5, ge=1, le=50),
    service: CorrelationGraphService = Depends(get_correlation_service),
):
    """Significantly correlated items, strongest first."""
    return await service.get_recommendations(item_id, limit=limit)


@router.get("/correlations/summary")
async def get_correlation_statistics(
    service: CorrelationGraphService = Depends(get_correlation_service),
):
    return await service.get_correlation_statistics()


@router.get("/debug")
async def get_debug_info(
    service: CorrelationGraphService = Depends(get_correlation_service),
):
    return await service.get_debug_info()
