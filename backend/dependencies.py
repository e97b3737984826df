"""
Shared FastAPI Dependencies

Clock and auto-closer providers. Both are overridable through
``app.dependency_overrides`` so tests can pin time and storage.
"""

from collections.abc import Callable
from datetime import datetime
from functools import lru_cache

from backend.config import get_settings
from backend.db.session import async_session_factory
from backend.services.auto_closer import AutoCloser
from backend.services.debounce import build_debounce_store
from engines.services.time_periods import utc_now


def get_clock() -> Callable[[], datetime]:
    return utc_now


@lru_cache
def get_auto_closer() -> AutoCloser:
    """Process-wide auto-closer; it owns the opportunistic-sweep debounce state."""
    settings = get_settings()
    return AutoCloser(
        session_factory=async_session_factory,
        clock=utc_now,
        debounce_store=build_debounce_store(settings),
        settings=settings,
    )
