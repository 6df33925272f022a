"""
Celery-Tasks für die Compliance-Erkennung im Hintergrund.
"""
import asyncio
import logging
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from worktime.tasks.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(name="worktime.tasks.compliance_tasks.detect_user_violations")
def detect_user_violations(tenant_id: str, user_id: str, start: str, end: str, trigger: str = "scheduled"):
    """Erkennung für einen Mitarbeiter in [start, end) (ISO-8601, mit Zeitzone)."""
    return asyncio.run(_detect_user(tenant_id, user_id, start, end, trigger))


@celery_app.task(name="worktime.tasks.compliance_tasks.run_nightly_compliance_check")
def run_nightly_compliance_check():
    """
    Prüft den Vortag für alle aktiven Tenants.
    Montags wird die ganze Vorwoche geprüft, damit die wöchentliche Ruhezeit greift.
    """
    from worktime.core.config import settings

    window_start, window_end = nightly_window(date.today(), ZoneInfo(settings.COMPLIANCE_TIMEZONE))
    return asyncio.run(_check_all_tenants(window_start, window_end))


def nightly_window(today: date, tz: ZoneInfo) -> tuple[datetime, datetime]:
    first_day = today - timedelta(days=7 if today.weekday() == 0 else 1)
    start = datetime.combine(first_day, time(0), tzinfo=tz)
    end = datetime.combine(today, time(0), tzinfo=tz)
    return start.astimezone(timezone.utc), end.astimezone(timezone.utc)


async def _detect_user(tenant_id: str, user_id: str, start: str, end: str, trigger: str) -> int:
    import uuid
    from worktime.compliance.types import DetectionWindow, Trigger
    from worktime.core.database import session_scope
    from worktime.services.compliance_service import ComplianceService

    window = DetectionWindow(datetime.fromisoformat(start), datetime.fromisoformat(end))
    async with session_scope() as db:
        svc = ComplianceService(db)
        recorded = await svc.detect_for_user(uuid.UUID(tenant_id), user_id, window, Trigger(trigger))
    return len(recorded)


async def _check_all_tenants(window_start: datetime, window_end: datetime) -> dict:
    from sqlalchemy import select
    from worktime.compliance.types import DetectionWindow, Trigger
    from worktime.core.database import session_scope
    from worktime.models.tenant import Tenant
    from worktime.services.compliance_service import ComplianceService

    window = DetectionWindow(window_start, window_end)
    checked = 0
    violations = 0

    async with session_scope() as db:
        result = await db.execute(select(Tenant.id).where(Tenant.is_active == True))  # noqa: E712
        tenant_ids = result.scalars().all()

        for tenant_id in tenant_ids:
            try:
                svc = ComplianceService(db)
                recorded = await svc.detect_for_tenant(tenant_id, window, Trigger.SCHEDULED)
                violations += len(recorded)
                checked += 1
            except Exception:
                logger.exception("Nightly compliance check failed for tenant %s", tenant_id)
                await db.rollback()

    logger.info(
        "Nightly compliance check %s..%s: %d tenants, %d violations",
        window_start.isoformat(), window_end.isoformat(), checked, violations,
    )
    return {"tenants": checked, "violations": violations}
