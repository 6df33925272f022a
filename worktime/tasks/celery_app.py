from celery import Celery
from celery.schedules import crontab
from celery.signals import setup_logging as celery_setup_logging

from worktime.core.config import settings
from worktime.core.logging import setup_logging

celery_app = Celery(
    "worktime",
    broker=settings.REDIS_URL,
    backend=settings.REDIS_URL,
    include=["worktime.tasks.compliance_tasks"],
)

celery_app.conf.update(
    task_serializer="json",
    accept_content=["json"],
    result_serializer="json",
    timezone=settings.COMPLIANCE_TIMEZONE,
    enable_utc=True,
    beat_schedule={
        # Täglich um 02:30: Compliance-Prüfung des Vortags für alle Tenants
        "nightly-compliance-check": {
            "task": "worktime.tasks.compliance_tasks.run_nightly_compliance_check",
            "schedule": crontab(hour=2, minute=30),
        },
    },
)


@celery_setup_logging.connect
def _configure_worker_logging(**kwargs):
    # Worker nutzt dasselbe Format wie die API
    setup_logging()
