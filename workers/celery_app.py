"""
Celery Application Configuration

Configures Celery with Redis broker and result backend, and the beat
schedule that drives the shift sweeps.
"""

import logging
import os

from celery import Celery
from celery.schedules import crontab

# Broker and backend URLs
REDIS_URL = os.getenv("REDIS_URL", "redis://localhost:6379/0")
RESULT_BACKEND = os.getenv("CELERY_RESULT_BACKEND", REDIS_URL)

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO"),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = Celery(
    "shift_earnings",
    broker=REDIS_URL,
    backend=RESULT_BACKEND,
)

app.conf.update(
    # Serialization
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",

    # Timezone
    timezone="UTC",
    enable_utc=True,

    # Task behavior
    task_track_started=True,
    task_acks_late=True,
    worker_prefetch_multiplier=1,

    # Result expiry
    result_expires=86400,  # 24 hours

    # Routing
    task_routes={
        "workers.tasks.shift_tasks.*": {"queue": "shifts"},
    },

    # Default queue
    task_default_queue="default",

    # Concurrency
    worker_concurrency=2,
)

# Beat schedule for periodic tasks
app.conf.beat_schedule = {
    "auto-close-overdue-shifts": {
        "task": "workers.tasks.shift_tasks.force_auto_close_sweep",
        "schedule": crontab(minute="*/10"),
        "options": {"queue": "shifts"},
    },
    "mark-missed-shifts": {
        "task": "workers.tasks.shift_tasks.mark_missed_shifts",
        "schedule": crontab(minute=5),  # Hourly
        "options": {"queue": "shifts"},
    },
}

# Initialize Sentry for error monitoring in workers
_sentry_dsn = os.getenv("SENTRY_DSN", "")
if _sentry_dsn:
    import sentry_sdk
    from sentry_sdk.integrations.celery import CeleryIntegration

    sentry_sdk.init(
        dsn=_sentry_dsn,
        environment=os.getenv("ENVIRONMENT", "development"),
        release=f"shift-earnings-worker@{os.getenv('APP_VERSION', '0.1.0')}",
        traces_sample_rate=0.1,
        integrations=[CeleryIntegration()],
    )

# Auto-discover tasks
app.autodiscover_tasks(["workers.tasks"], related_name="shift_tasks")
