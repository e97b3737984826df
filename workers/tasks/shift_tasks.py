"""
Shift Tasks

Scheduled sweeps: force-close overdue shifts and record missed ones.
"""

import asyncio
import logging

from workers.celery_app import app

logger = logging.getLogger(__name__)


@app.task(bind=True, max_retries=2, default_retry_delay=60)
def force_auto_close_sweep(self):
    """
    Close every ACTIVE shift past its scheduled end plus the grace period.

    Per-shift failures are reported in the result, not raised; only a
    failure of the sweep itself is retried.
    """
    logger.info("Starting auto-close sweep")
    try:
        return asyncio.run(_async_auto_close_sweep())
    except Exception as exc:
        logger.error(f"Auto-close sweep failed: {exc}")
        raise self.retry(exc=exc)


@app.task
def mark_missed_shifts(lookback_days: int = 1):
    """Write MISSED instances for assigned windows that elapsed unworked."""
    logger.info(f"Starting missed-shift sweep (lookback {lookback_days} day(s))")
    return asyncio.run(_async_mark_missed(lookback_days))


async def _run_with_sessions(work):
    """
    Run ``work(session_factory, settings)`` against a task-local engine.

    Each task runs on a fresh event loop, so pooled connections from an
    earlier loop cannot be reused.
    """
    from sqlalchemy.ext.asyncio import create_async_engine
    from sqlalchemy.pool import NullPool

    from backend.config import get_settings
    from backend.db.session import build_session_factory

    settings = get_settings()
    engine = create_async_engine(settings.database_url, poolclass=NullPool)
    try:
        return await work(build_session_factory(engine), settings)
    finally:
        await engine.dispose()


async def _async_auto_close_sweep():
    from backend.services.auto_closer import AutoCloser
    from backend.services.debounce import build_debounce_store

    async def work(session_factory, settings):
        closer = AutoCloser(
            session_factory=session_factory,
            debounce_store=build_debounce_store(settings),
            settings=settings,
        )
        result = await closer.force_sweep()
        if result.failed:
            logger.error(
                f"Auto-close sweep: {result.failed} of {result.checked} shift(s) failed: "
                f"{[f.shift_id for f in result.failures]}"
            )
        return result.to_dict()

    return await _run_with_sessions(work)


async def _async_mark_missed(lookback_days: int):
    from backend.services.auto_closer import MissedShiftSweeper

    async def work(session_factory, settings):
        sweeper = MissedShiftSweeper(session_factory, settings, lookback_days=lookback_days)
        result = await sweeper.sweep()
        return result.to_dict()

    return await _run_with_sessions(work)
