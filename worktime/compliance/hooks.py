"""
Trigger für die Zeiterfassung (Ein-/Ausstempeln, Schichtabschluss, manuelle Einträge).

Aufruf nach dem Commit der eigentlichen Operation. Fehler werden geloggt und
nie an den Aufrufer weitergegeben – Compliance blockiert keine Stempelung.
"""
import logging
import uuid
from datetime import datetime, timedelta
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncSession

from worktime.compliance.types import DetectionWindow, Trigger
from worktime.core.config import settings
from worktime.models.time_entry import TimeEntry
from worktime.services.compliance_service import ComplianceService

logger = logging.getLogger(__name__)

_EPSILON = timedelta(seconds=1)


async def _safe_detect(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    user_id: uuid.UUID | str,
    window: DetectionWindow,
    trigger: Trigger,
) -> None:
    try:
        svc = ComplianceService(db)
        await svc.detect_for_user(tenant_id, user_id, window, trigger)
    except Exception:
        logger.exception(
            "Compliance detection (%s) failed for tenant %s user %s", trigger.value, tenant_id, user_id
        )
        await db.rollback()


def _entry_window(entry: TimeEntry) -> DetectionWindow:
    end = entry.actual_clock_out or entry.actual_clock_in
    return DetectionWindow(entry.actual_clock_in, max(end, entry.actual_clock_in) + _EPSILON)


async def on_clock_in(db: AsyncSession, entry: TimeEntry) -> None:
    """Ruhezeit seit dem letzten Ausstempeln."""
    window = DetectionWindow(entry.actual_clock_in, entry.actual_clock_in + _EPSILON)
    await _safe_detect(db, entry.tenant_id, entry.user_id, window, Trigger.CLOCK_IN)


async def on_clock_out(db: AsyncSession, entry: TimeEntry) -> None:
    """Schichtdauer, Pause und Ruhezeit des abgeschlossenen Eintrags."""
    await _safe_detect(db, entry.tenant_id, entry.user_id, _entry_window(entry), Trigger.CLOCK_OUT)


async def on_entry_created(db: AsyncSession, entry: TimeEntry) -> None:
    """Manuell nachgetragener Eintrag – wie Ausstempeln prüfen."""
    await _safe_detect(db, entry.tenant_id, entry.user_id, _entry_window(entry), Trigger.ENTRY_CREATED)


async def on_shift_completed(
    db: AsyncSession,
    tenant_id: uuid.UUID,
    user_ids: Iterable[uuid.UUID | str],
    shift_end: datetime,
) -> None:
    """Ganze Kalenderwoche für alle eingeteilten Mitarbeiter prüfen."""
    try:
        week = ComplianceService(db).week_bounds(shift_end)
    except Exception:
        logger.exception("Could not determine week for shift completed at %s", shift_end)
        return

    if settings.USE_CELERY:
        from worktime.tasks.compliance_tasks import detect_user_violations

        for user_id in user_ids:
            try:
                detect_user_violations.delay(
                    str(tenant_id), str(user_id), week.start.isoformat(), week.end.isoformat(),
                    Trigger.SHIFT_COMPLETED.value,
                )
            except Exception:
                logger.exception("Could not enqueue compliance check for user %s", user_id)
        return

    for user_id in user_ids:
        await _safe_detect(db, tenant_id, user_id, week, Trigger.SHIFT_COMPLETED)
