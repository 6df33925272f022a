"""
Compliance-Service: Verdrahtet Rule Set Store, Detector, Ledger, Stats,
Reports und Audit Trail für einen Request bzw. Hintergrund-Lauf.

Der Tenant wird bei jedem Aufruf explizit übergeben.
"""
import logging
import uuid
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo

from dateutil.relativedelta import relativedelta, MO
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from worktime.compliance.audit import AuditTrail
from worktime.compliance.detector import detect
from worktime.compliance.ledger import ViolationLedger
from worktime.compliance.reports import ReportGenerator
from worktime.compliance.rule_store import RuleSetStore, to_config
from worktime.compliance.stats import StatsAggregator
from worktime.compliance.types import DetectionWindow, TimeEntryRecord, Trigger
from worktime.core.config import settings
from worktime.core.exceptions import InvalidRangeError, ValidationError
from worktime.models.compliance import ComplianceRule, ComplianceViolation
from worktime.models.time_entry import TimeEntry
from worktime.schemas.compliance import ManualCheckDetails
from worktime.services.report_storage import ReportStorage

logger = logging.getLogger(__name__)


def to_record(entry: TimeEntry) -> TimeEntryRecord:
    return TimeEntryRecord(
        id=str(entry.id),
        user_id=str(entry.user_id),
        clock_in=entry.actual_clock_in,
        clock_out=entry.actual_clock_out,
        break_minutes=entry.break_minutes or 0,
    )


class ComplianceService:

    def __init__(self, db: AsyncSession, storage: ReportStorage | None = None):
        self.db = db
        self.tz = ZoneInfo(settings.COMPLIANCE_TIMEZONE)
        self.audit = AuditTrail(db)
        self.rules = RuleSetStore(db, self.audit)
        self.ledger = ViolationLedger(db, self.audit)
        self.stats = StatsAggregator(db)
        self.reports = ReportGenerator(db, storage, self.audit)

    # ── Zeitfenster ──────────────────────────────────────────────────────────

    def week_bounds(self, moment: datetime) -> DetectionWindow:
        """Kalenderwoche (Montag 00:00 lokal) um moment herum."""
        local = moment.astimezone(self.tz)
        monday = local + relativedelta(weekday=MO(-1), hour=0, minute=0, second=0, microsecond=0)
        start = monday.replace(tzinfo=self.tz)
        end = (monday + relativedelta(weeks=1)).replace(tzinfo=self.tz)
        return DetectionWindow(start.astimezone(timezone.utc), end.astimezone(timezone.utc))

    def load_bounds(self, window: DetectionWindow, rule: ComplianceRule) -> tuple[datetime, datetime]:
        """
        Ladezeitraum für den Detector: ganze Wochen (Wochenprüfungen) plus
        Vorlauf, damit die Ruhezeit vor dem ersten Eintrag sichtbar ist.
        """
        first_week = self.week_bounds(window.start)
        last_week = self.week_bounds(window.end - timedelta(microseconds=1))
        lookback = timedelta(
            days=1,
            minutes=rule.daily_rest_period_minutes
            + rule.max_daily_working_time_with_compensation_minutes,
        )
        # Schichten, die vor Wochenbeginn starten und in die Woche hineinreichen
        longest_shift = timedelta(minutes=rule.max_daily_working_time_with_compensation_minutes)
        return min(first_week.start - longest_shift, window.start - lookback), last_week.end

    async def load_entries(
        self,
        tenant_id: uuid.UUID,
        window: DetectionWindow,
        rule: ComplianceRule,
        user_id: str | uuid.UUID | None = None,
    ) -> list[TimeEntryRecord]:
        load_start, load_end = self.load_bounds(window, rule)
        conditions = [
            TimeEntry.tenant_id == tenant_id,
            TimeEntry.actual_clock_in >= load_start,
            TimeEntry.actual_clock_in < load_end,
        ]
        if user_id is not None:
            try:
                conditions.append(TimeEntry.user_id == uuid.UUID(str(user_id)))
            except ValueError:
                raise ValidationError(f"Invalid user_id {user_id}")

        result = await self.db.execute(
            select(TimeEntry).where(*conditions).order_by(TimeEntry.user_id, TimeEntry.actual_clock_in)
        )
        return [to_record(e) for e in result.scalars().all()]

    # ── Erkennung ────────────────────────────────────────────────────────────

    async def _run(
        self,
        tenant_id: uuid.UUID,
        window: DetectionWindow,
        trigger: Trigger,
        user_id: str | uuid.UUID | None = None,
    ) -> list[ComplianceViolation]:
        rule = await self.rules.ensure_default(tenant_id)
        entries = await self.load_entries(tenant_id, window, rule, user_id)
        detected = detect(entries, to_config(rule), window, self.tz)
        recorded = await self.ledger.record(tenant_id, detected, rule)

        logger.info(
            "Compliance run (%s) tenant=%s user=%s window=%s..%s: %d entries, %d violations",
            trigger.value, tenant_id, user_id or "*", window.start.isoformat(),
            window.end.isoformat(), len(entries), len(recorded),
        )
        return recorded

    async def detect_for_user(
        self,
        tenant_id: uuid.UUID,
        user_id: str | uuid.UUID,
        window: DetectionWindow,
        trigger: Trigger,
    ) -> list[ComplianceViolation]:
        """Erkennung für einen Mitarbeiter (Hooks, Hintergrund-Tasks)."""
        recorded = await self._run(tenant_id, window, trigger, user_id)
        await self.db.commit()
        return recorded

    async def detect_for_tenant(
        self,
        tenant_id: uuid.UUID,
        window: DetectionWindow,
        trigger: Trigger = Trigger.SCHEDULED,
    ) -> list[ComplianceViolation]:
        recorded = await self._run(tenant_id, window, trigger)
        await self.db.commit()
        return recorded

    async def check_compliance(
        self,
        tenant_id: uuid.UUID,
        actor: str,
        start: datetime,
        end: datetime,
        user_id: str | None = None,
    ) -> list[ComplianceViolation]:
        """
        Manuelle Prüfung eines Zeitraums, optional für einen Mitarbeiter.
        Ergebnis und Anzahl landen als manual_check im Audit Trail.
        """
        if start >= end:
            raise InvalidRangeError("start_date must be before end_date")
        if end - start > timedelta(days=settings.COMPLIANCE_CHECK_MAX_RANGE_DAYS):
            raise InvalidRangeError(
                f"Check period must not exceed {settings.COMPLIANCE_CHECK_MAX_RANGE_DAYS} days"
            )

        window = DetectionWindow(start, end)
        recorded = await self._run(tenant_id, window, Trigger.MANUAL, user_id)
        await self.audit.append(
            tenant_id,
            actor,
            ManualCheckDetails(
                user_id=str(user_id) if user_id else None,
                period_start=start,
                period_end=end,
                violations_found=len(recorded),
            ),
        )
        await self.db.commit()
        return recorded
