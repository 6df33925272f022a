"""
Stats Aggregator – Kennzahlen für das Compliance-Dashboard.

Wird bei jedem Aufruf aus dem Ledger berechnet, es gibt keinen Cache.
Tag, Woche (Montag) und Monat beziehen sich auf COMPLIANCE_TIMEZONE.
"""
import uuid
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from worktime.compliance.types import ViolationSeverity
from worktime.core.config import settings
from worktime.core.exceptions import ValidationError
from worktime.models.compliance import ComplianceViolation
from worktime.schemas.compliance import ComplianceStatsOut, PeriodCounts


def _local_midnight(day: date, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time(0), tzinfo=tz).astimezone(timezone.utc)


class StatsAggregator:
    def __init__(
        self,
        db: AsyncSession,
        horizon_days: int | None = None,
        tz: str | None = None,
    ):
        self.db = db
        if horizon_days is None:
            horizon_days = settings.COMPLIANCE_STATS_HORIZON_DAYS
        if horizon_days <= 0:
            raise ValidationError("horizon_days must be a positive number")
        self.horizon_days = horizon_days
        self.tz = ZoneInfo(tz or settings.COMPLIANCE_TIMEZONE)

    async def _counts_since(self, tenant_id: uuid.UUID, since: datetime) -> PeriodCounts:
        result = await self.db.execute(
            select(ComplianceViolation.severity, func.count())
            .where(
                ComplianceViolation.tenant_id == tenant_id,
                ComplianceViolation.detected_at >= since,
            )
            .group_by(ComplianceViolation.severity)
        )
        by_severity = dict(result.all())
        warnings = by_severity.get(ViolationSeverity.WARNING.value, 0)
        errors = by_severity.get(ViolationSeverity.ERROR.value, 0)
        return PeriodCounts(violations=warnings + errors, warnings=warnings, errors=errors)

    async def get_stats(self, tenant_id: uuid.UUID, now: datetime | None = None) -> ComplianceStatsOut:
        now = now or datetime.now(timezone.utc)
        local_today = now.astimezone(self.tz).date()

        today_start = _local_midnight(local_today, self.tz)
        week_start = _local_midnight(local_today - timedelta(days=local_today.weekday()), self.tz)
        month_start = _local_midnight(local_today.replace(day=1), self.tz)
        horizon_start = now - timedelta(days=self.horizon_days)

        result = await self.db.execute(
            select(ComplianceViolation.violation_type, func.count())
            .where(
                ComplianceViolation.tenant_id == tenant_id,
                ComplianceViolation.detected_at >= horizon_start,
            )
            .group_by(ComplianceViolation.violation_type)
            .order_by(ComplianceViolation.violation_type)
        )

        return ComplianceStatsOut(
            today=await self._counts_since(tenant_id, today_start),
            this_week=await self._counts_since(tenant_id, week_start),
            this_month=await self._counts_since(tenant_id, month_start),
            violations_by_type={vtype: count for vtype, count in result.all()},
            horizon_days=self.horizon_days,
        )
