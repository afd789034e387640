"""
Analytics Worker — Statistics and correlation recompute jobs.

Tasks:
  - refresh_item_analytics: one item's correlation edges, published after a
    consumption write. Fire-and-forget: failures are logged, never retried.
  - recalculate_all_statistics: nightly batch snapshot recompute.
  - recalculate_all_correlations: nightly sweep over every item pair;
    force=True drops every edge first (weekly rebuild).

Each task opens its own engine and session, so a failing job never touches
the transaction of the write that triggered it.

Queue: analytics
"""

import asyncio
from datetime import datetime, timezone

import structlog
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from workers.celery_app import celery_app

logger = structlog.get_logger()

REFRESH_TASK_NAME = "workers.analytics.refresh_item_analytics"


def _correlation_service(db: AsyncSession, settings):
    from analytics.correlation_graph import CorrelationGraphService
    from db.repository import SqlAnalyticsRepository

    return CorrelationGraphService(
        SqlAnalyticsRepository(db),
        window_days=settings.analytics_correlation_window_days,
        min_data_points=settings.analytics_min_data_points,
        significance_threshold=settings.analytics_significance_threshold,
        strong_threshold=settings.analytics_strong_threshold,
        confidence_level=settings.analytics_confidence_level,
    )


async def _with_session(settings, work):
    engine = create_async_engine(settings.database_url)
    try:
        async_session = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
        async with async_session() as db:
            return await work(db)
    finally:
        await engine.dispose()


def publish_correlation_refresh(item_id: int) -> bool:
    """Queue a correlation refresh for an item. Broker errors are logged and swallowed."""
    try:
        celery_app.send_task(REFRESH_TASK_NAME, kwargs={"item_id": item_id})
    except Exception as exc:  # noqa: BLE001
        logger.error("analytics.publish_failed", item_id=item_id, error=str(exc))
        return False
    logger.info("analytics.refresh_published", item_id=item_id)
    return True


@celery_app.task(
    name=REFRESH_TASK_NAME,
    bind=True,
    acks_late=True,
    ignore_result=True,
)
def refresh_item_analytics(self, item_id: int):
    """Recompute every correlation edge touching one item."""
    from core.config import get_settings

    run_id = self.request.id or "manual"
    logger.info("analytics.refresh_started", item_id=item_id, run_id=run_id)

    async def _refresh():
        settings = get_settings()

        async def _work(db: AsyncSession):
            return await _correlation_service(db, settings).calculate_item_correlations(item_id)

        return await _with_session(settings, _work)

    try:
        result = asyncio.run(_refresh())
    except Exception as exc:  # noqa: BLE001
        logger.error("analytics.refresh_failed", item_id=item_id, error=str(exc), exc_info=True)
        return {"status": "failed", "item_id": item_id, "error": str(exc), "run_id": run_id}

    summary = {
        "status": "success",
        "item_id": item_id,
        "total_correlations": result["total_correlations"],
        "completed_at": datetime.now(timezone.utc).isoformat(),
        "run_id": run_id,
    }
    logger.info("analytics.refresh_completed", **summary)
    return summary


@celery_app.task(
    name="workers.analytics.recalculate_all_statistics",
    bind=True,
    max_retries=2,
    default_retry_delay=120,
    acks_late=True,
)
def recalculate_all_statistics(self, window_days: int | None = None):
    """Nightly job: rebuild every item's statistics snapshot in one batch."""
    from core.config import get_settings

    run_id = self.request.id or "manual"
    logger.info("analytics.statistics_started", run_id=run_id)

    async def _recalculate():
        from analytics.batch import BatchStatisticsService
        from db.repository import SqlAnalyticsRepository

        settings = get_settings()

        async def _work(db: AsyncSession):
            service = BatchStatisticsService(
                SqlAnalyticsRepository(db),
                window_days=settings.analytics_statistics_window_days,
            )
            return await service.recalculate_all_statistics(window_days=window_days)

        return await _with_session(settings, _work)

    try:
        result = asyncio.run(_recalculate())
    except Exception as exc:
        logger.error("analytics.statistics_failed", error=str(exc), exc_info=True)
        raise self.retry(exc=exc)

    summary = {
        "status": "success",
        "total_items": result["total_items"],
        "updated": result["updated"],
        "no_data": result["no_data"],
        "failed": result["failed"],
        "completed_at": datetime.now(timezone.utc).isoformat(),
        "run_id": run_id,
    }
    logger.info("analytics.statistics_completed", **summary)
    return summary


@celery_app.task(
    name="workers.analytics.recalculate_all_correlations",
    bind=True,
    max_retries=2,
    default_retry_delay=300,
    acks_late=True,
)
def recalculate_all_correlations(self, force: bool = False):
    """Nightly job: sweep every item pair; force=True rebuilds from an empty edge set."""
    from core.config import get_settings

    run_id = self.request.id or "manual"
    logger.info("analytics.correlations_started", force=force, run_id=run_id)

    async def _recalculate():
        settings = get_settings()

        async def _work(db: AsyncSession):
            service = _correlation_service(db, settings)
            if force:
                return await service.force_recalculate_all_correlations()
            return await service.calculate_all_correlations()

        return await _with_session(settings, _work)

    try:
        result = asyncio.run(_recalculate())
    except Exception as exc:
        logger.error("analytics.correlations_failed", error=str(exc), exc_info=True)
        raise self.retry(exc=exc)

    if "error" in result:
        logger.warning("analytics.correlations_skipped", reason=result["error"])
        return {"status": "skipped", "reason": result["error"], "run_id": run_id}

    summary = {
        "status": "success",
        "force": force,
        "total_items": result["total_items"],
        "total_pairs": result["total_pairs"],
        "significant_correlations": result["significant_correlations"],
        "errors": len(result["errors"]),
        "completed_at": datetime.now(timezone.utc).isoformat(),
        "run_id": run_id,
    }
    logger.info("analytics.correlations_completed", **summary)
    return summary
