"""
Violation Ledger – persistiert erkannte Verstöße genau einmal.

Die ID eines Verstoßes ist deterministisch (Tenant, Mitarbeiter, Typ,
Periodenbeginn). Erneute Erkennung trifft dieselbe ID; das Insert läuft als
INSERT … ON CONFLICT DO NOTHING, bestehende Einträge bleiben unverändert.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Iterable

from sqlalchemy import func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from worktime.compliance.audit import AuditTrail
from worktime.compliance.types import DetectedViolation, ViolationSeverity, ViolationType
from worktime.core.exceptions import NotFoundError
from worktime.models.compliance import ComplianceRule, ComplianceViolation
from worktime.schemas.compliance import ViolationAcknowledgedDetails

logger = logging.getLogger(__name__)

_UPSERT_INSERTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}


class ViolationLedger:
    def __init__(self, db: AsyncSession, audit: AuditTrail | None = None):
        self.db = db
        self.audit = audit or AuditTrail(db)

    async def record(
        self,
        tenant_id: uuid.UUID,
        detected: Iterable[DetectedViolation],
        rule: ComplianceRule,
        detected_at: datetime | None = None,
    ) -> list[ComplianceViolation]:
        """
        Verstöße idempotent speichern (kein Commit).

        Args:
            tenant_id: Mandant
            detected: Ergebnis des Detectors
            rule: Aktives Regel-Set (rule_set/version werden eingefroren)
            detected_at: Zeitpunkt der Erkennung, Standard jetzt

        Returns:
            Gespeicherte Verstöße in Reihenfolge der Erkennung – bereits
            vorhandene Einträge unverändert
        """
        now = detected_at or datetime.now(timezone.utc)

        rows: dict[uuid.UUID, dict] = {}
        for violation in detected:
            violation_id = violation.identity(tenant_id)
            if violation_id in rows:
                continue
            rows[violation_id] = {
                "id": violation_id,
                "tenant_id": tenant_id,
                "user_id": violation.user_id,
                "violation_type": violation.violation_type.value,
                "severity": violation.severity.value,
                "detected_at": now,
                "period_start": violation.period_start,
                "period_end": violation.period_end,
                "rule_set": rule.rule_set,
                "rule_version": rule.version,
                "details": violation.details,
            }

        if not rows:
            return []

        dialect = self.db.get_bind().dialect.name
        insert = _UPSERT_INSERTS.get(dialect)
        if insert is not None:
            stmt = insert(ComplianceViolation).values(list(rows.values()))
            inserted = await self.db.execute(stmt.on_conflict_do_nothing(index_elements=["id"]))
            new_count = inserted.rowcount
        else:
            existing = await self.db.execute(
                select(ComplianceViolation.id).where(ComplianceViolation.id.in_(list(rows)))
            )
            known = set(existing.scalars().all())
            for violation_id, values in rows.items():
                if violation_id not in known:
                    self.db.add(ComplianceViolation(**values))
            await self.db.flush()
            new_count = len(rows) - len(known)

        result = await self.db.execute(
            select(ComplianceViolation).where(ComplianceViolation.id.in_(list(rows)))
        )
        by_id = {v.id: v for v in result.scalars().all()}

        logger.info(
            "Recorded %d violation(s) for tenant %s (%d new)", len(by_id), tenant_id, new_count
        )
        return [by_id[violation_id] for violation_id in rows if violation_id in by_id]

    async def get(self, tenant_id: uuid.UUID, violation_id: uuid.UUID) -> ComplianceViolation:
        result = await self.db.execute(
            select(ComplianceViolation).where(
                ComplianceViolation.id == violation_id,
                ComplianceViolation.tenant_id == tenant_id,
            )
        )
        violation = result.scalar_one_or_none()
        if violation is None:
            raise NotFoundError(f"Violation {violation_id} not found")
        return violation

    async def acknowledge(
        self,
        tenant_id: uuid.UUID,
        violation_id: uuid.UUID,
        actor: str,
        acknowledged: bool = True,
    ) -> ComplianceViolation:
        """
        Quittierung setzen oder zurücknehmen.
        Ist der gewünschte Zustand schon erreicht, passiert nichts (auch kein Audit-Eintrag).
        """
        violation = await self.get(tenant_id, violation_id)
        if violation.is_acknowledged == acknowledged:
            return violation

        if acknowledged:
            violation.acknowledged_at = datetime.now(timezone.utc)
            violation.acknowledged_by = str(actor)
        else:
            violation.acknowledged_at = None
            violation.acknowledged_by = None

        await self.audit.append(
            tenant_id,
            actor,
            ViolationAcknowledgedDetails(violation_id=violation.id, acknowledged=acknowledged),
        )
        await self.db.commit()
        return violation

    async def for_period(
        self,
        tenant_id: uuid.UUID,
        period_start: datetime,
        period_end: datetime,
        user_id: str | None = None,
        violation_type: ViolationType | None = None,
        severity: ViolationSeverity | None = None,
    ) -> list[ComplianceViolation]:
        """Verstöße mit period_start in [period_start, period_end), stabil sortiert (für Reports)."""
        conditions = [
            ComplianceViolation.tenant_id == tenant_id,
            ComplianceViolation.period_start >= period_start,
            ComplianceViolation.period_start < period_end,
        ]
        conditions += self._filter_conditions(user_id, violation_type, severity)

        result = await self.db.execute(
            select(ComplianceViolation)
            .where(*conditions)
            .order_by(
                ComplianceViolation.period_start,
                ComplianceViolation.user_id,
                ComplianceViolation.violation_type,
                ComplianceViolation.id,
            )
        )
        return list(result.scalars().all())

    @staticmethod
    def _filter_conditions(user_id, violation_type, severity) -> list:
        conditions = []
        if user_id:
            conditions.append(ComplianceViolation.user_id == str(user_id))
        if violation_type:
            conditions.append(ComplianceViolation.violation_type == ViolationType(violation_type).value)
        if severity:
            conditions.append(ComplianceViolation.severity == ViolationSeverity(severity).value)
        return conditions

    async def list(
        self,
        tenant_id: uuid.UUID,
        user_id: str | None = None,
        violation_type: ViolationType | None = None,
        severity: ViolationSeverity | None = None,
        acknowledged: bool | None = None,
        from_: datetime | None = None,
        to: datetime | None = None,
        period_from: datetime | None = None,
        period_to: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ComplianceViolation], int]:
        """Gefilterte Liste (neueste Erkennung zuerst) plus Gesamtanzahl für die Filter."""
        conditions = [ComplianceViolation.tenant_id == tenant_id]
        conditions += self._filter_conditions(user_id, violation_type, severity)
        if acknowledged is True:
            conditions.append(ComplianceViolation.acknowledged_at.is_not(None))
        elif acknowledged is False:
            conditions.append(ComplianceViolation.acknowledged_at.is_(None))
        if from_:
            conditions.append(ComplianceViolation.detected_at >= from_)
        if to:
            conditions.append(ComplianceViolation.detected_at <= to)
        if period_from:
            conditions.append(ComplianceViolation.period_start >= period_from)
        if period_to:
            conditions.append(ComplianceViolation.period_start <= period_to)

        total = await self.db.scalar(
            select(func.count()).select_from(ComplianceViolation).where(*conditions)
        )
        result = await self.db.execute(
            select(ComplianceViolation)
            .where(*conditions)
            .order_by(ComplianceViolation.detected_at.desc(), ComplianceViolation.id)
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total or 0
