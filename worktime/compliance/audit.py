"""
Audit Trail – append-only Nachweis compliance-relevanter Aktionen.

Es gibt nur append() und list(); Änderungen und Löschungen werden
von den ORM-Listenern bzw. Datenbank-Triggern abgewiesen.
"""
import logging
import uuid
from datetime import datetime

from pydantic import TypeAdapter
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from worktime.compliance.types import AuditAction
from worktime.models.audit import ComplianceAuditLog
from worktime.schemas.compliance import AuditDetails

logger = logging.getLogger(__name__)

_details_adapter = TypeAdapter(AuditDetails)


class AuditTrail:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def append(
        self,
        tenant_id: uuid.UUID,
        actor: str,
        details: AuditDetails | dict,
    ) -> ComplianceAuditLog:
        """
        Neuen Eintrag in der laufenden Transaktion anlegen (kein Commit).
        details wird gegen die zur action passende Struktur validiert.
        """
        if isinstance(details, dict):
            details = _details_adapter.validate_python(details)

        entry = ComplianceAuditLog(
            tenant_id=tenant_id,
            action=details.action,
            actor_uid=str(actor),
            details=details.model_dump(mode="json"),
        )
        self.db.add(entry)
        await self.db.flush()

        logger.info("Audit %s by %s (tenant %s)", details.action, actor, tenant_id)
        return entry

    async def list(
        self,
        tenant_id: uuid.UUID,
        action: AuditAction | None = None,
        from_: datetime | None = None,
        to: datetime | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> tuple[list[ComplianceAuditLog], int]:
        conditions = [ComplianceAuditLog.tenant_id == tenant_id]
        if action:
            conditions.append(ComplianceAuditLog.action == AuditAction(action).value)
        if from_:
            conditions.append(ComplianceAuditLog.timestamp >= from_)
        if to:
            conditions.append(ComplianceAuditLog.timestamp <= to)

        total = await self.db.scalar(
            select(func.count()).select_from(ComplianceAuditLog).where(*conditions)
        )
        result = await self.db.execute(
            select(ComplianceAuditLog)
            .where(*conditions)
            .order_by(ComplianceAuditLog.timestamp.desc(), ComplianceAuditLog.id)
            .limit(limit)
            .offset(offset)
        )
        return list(result.scalars().all()), total or 0
