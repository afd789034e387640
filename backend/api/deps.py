"""
StockPulse API Dependencies

Dependency injection for DB sessions and analytics services.
"""

from collections.abc import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from analytics.batch import BatchStatisticsService
from analytics.correlation_graph import CorrelationGraphService
from analytics.repository import AnalyticsRepository
from analytics.statistics import ItemStatisticsService
from core.config import get_settings
from db.repository import SqlAnalyticsRepository
from db.session import AsyncSessionLocal

settings = get_settings()


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Yield an async database session."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
        finally:
            await session.close()


async def get_repository(db: AsyncSession = Depends(get_db)) -> AnalyticsRepository:
    return SqlAnalyticsRepository(db)


def _refresh_hook():
    if not settings.analytics_refresh_on_write:
        return None
    from workers.analytics import publish_correlation_refresh

    return publish_correlation_refresh


async def get_statistics_service(
    repository: AnalyticsRepository = Depends(get_repository),
) -> ItemStatisticsService:
    return ItemStatisticsService(
        repository,
        window_days=settings.analytics_statistics_window_days,
        on_statistics_updated=_refresh_hook(),
    )


async def get_batch_service(
    repository: AnalyticsRepository = Depends(get_repository),
) -> BatchStatisticsService:
    return BatchStatisticsService(repository, window_days=settings.analytics_statistics_window_days)


async def get_correlation_service(
    repository: AnalyticsRepository = Depends(get_repository),
) -> CorrelationGraphService:
    return CorrelationGraphService(
        repository,
        window_days=settings.analytics_correlation_window_days,
        min_data_points=settings.analytics_min_data_points,
        significance_threshold=settings.analytics_significance_threshold,
        strong_threshold=settings.analytics_strong_threshold,
        confidence_level=settings.analytics_confidence_level,
    )
