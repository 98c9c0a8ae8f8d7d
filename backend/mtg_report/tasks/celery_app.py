"""
Celery application configuration.

Task schedule:
- Price reconciliation: Daily at ``reconcile_schedule_hour`` (UTC)
"""
from celery import Celery
from celery.schedules import crontab
from celery.signals import worker_process_init

from mtg_report.core.config import settings
from mtg_report.core.logging import setup_logging

celery_app = Celery(
    "mtg_report",
    broker=settings.celery_broker_url,
    backend=settings.celery_result_backend,
    include=[
        "mtg_report.tasks.reconciliation",
    ],
)

# Celery configuration
celery_app.conf.update(
    # Task settings
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone="UTC",
    enable_utc=True,

    # Task execution settings
    # Ack on receipt: a worker lost mid-run must not re-deliver the job and
    # append a second set of snapshots. The next daily run catches up.
    task_acks_late=False,
    task_reject_on_worker_lost=False,

    # Result settings
    result_expires=86400,  # Keep the last daily result around for a day

    # Worker settings
    worker_prefetch_multiplier=1,
    worker_concurrency=1,

    beat_schedule={
        # Refresh every card's price once a day
        "reconcile-prices-daily": {
            "task": "mtg_report.tasks.reconciliation.reconcile_prices",
            "schedule": crontab(hour=settings.reconcile_schedule_hour, minute=0),
        },
    },
)


@worker_process_init.connect
def configure_worker_logging(**kwargs) -> None:
    """Set up structured logging in each worker process."""
    setup_logging(settings)
