import uuid
from datetime import datetime, timezone

from sqlalchemy import String, ForeignKey, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column

from worktime.core.database import Base
from worktime.models.immutability import forbid_mutation, protect_table
from worktime.models.types import UTCDateTime


class ComplianceAuditLog(Base):
    """
    Append-only Nachweis aller compliance-relevanten Aktionen.
    details ist je nach action unterschiedlich aufgebaut (siehe schemas.compliance.AuditDetails).
    """

    __tablename__ = "compliance_audit_logs"
    __table_args__ = (
        Index("ix_compliance_audit_logs_tenant_timestamp", "tenant_id", "timestamp"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)

    action: Mapped[str] = mapped_column(String(50), nullable=False)
    actor_uid: Mapped[str] = mapped_column(String(255), nullable=False)
    timestamp: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(timezone.utc)
    )
    details: Mapped[dict] = mapped_column(JSON, nullable=False)


forbid_mutation(ComplianceAuditLog)
protect_table(ComplianceAuditLog.__table__)
