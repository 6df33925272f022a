import uuid
from datetime import datetime, timezone

from sqlalchemy import String, ForeignKey, Integer, JSON, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from worktime.core.database import Base
from worktime.models.immutability import forbid_mutation, protect_table
from worktime.models.types import UTCDateTime


class ComplianceRule(Base):
    """Aktives Regel-Set eines Tenants. Wird nie gelöscht, nur über update() ersetzt."""

    __tablename__ = "compliance_rules"
    __table_args__ = (UniqueConstraint("tenant_id", name="uq_compliance_rules_tenant"),)

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)

    rule_set: Mapped[str] = mapped_column(String(20), nullable=False)  # eu | de
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    daily_rest_period_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    weekly_rest_period_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    max_daily_working_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    max_daily_working_time_with_compensation_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    max_weekly_working_time_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    break_required_after_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    break_duration_minutes: Mapped[int] = mapped_column(Integer, nullable=False)
    break_required_after_minutes_2: Mapped[int | None] = mapped_column(Integer, nullable=True)
    break_duration_minutes_2: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(timezone.utc)
    )
    updated_by: Mapped[str] = mapped_column(String(255), nullable=False, default="system")


class ComplianceViolation(Base):
    """
    Erkannter Verstoß. Die ID ist deterministisch (siehe compliance.types.violation_identity),
    nur acknowledged_at/acknowledged_by dürfen sich nach dem Anlegen ändern.
    """

    __tablename__ = "compliance_violations"
    __table_args__ = (
        Index("ix_compliance_violations_tenant_detected", "tenant_id", "detected_at"),
        Index("ix_compliance_violations_tenant_user", "tenant_id", "user_id"),
        Index("ix_compliance_violations_tenant_period", "tenant_id", "period_start"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True)
    tenant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)

    violation_type: Mapped[str] = mapped_column(String(50), nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)  # warning | error
    detected_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    period_start: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    period_end: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)

    rule_set: Mapped[str] = mapped_column(String(20), nullable=False)
    rule_version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    details: Mapped[dict] = mapped_column(JSON, nullable=False)  # {expected, actual, affected_entries}

    acknowledged_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    acknowledged_by: Mapped[str | None] = mapped_column(String(255), nullable=True)

    @property
    def is_acknowledged(self) -> bool:
        return self.acknowledged_at is not None


class ComplianceReport(Base):
    """Prüfbericht – unveränderlich, Korrekturen erzeugen einen neuen Report."""

    __tablename__ = "compliance_reports"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)

    generated_by: Mapped[str] = mapped_column(String(255), nullable=False)
    generated_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(timezone.utc)
    )
    period_start: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    period_end: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    format: Mapped[str] = mapped_column(String(10), nullable=False)  # csv | pdf
    rule_set: Mapped[str] = mapped_column(String(20), nullable=False)
    filters: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    summary: Mapped[dict] = mapped_column(JSON, nullable=False)
    storage_path: Mapped[str] = mapped_column(String(500), nullable=False)
    hash: Mapped[str] = mapped_column(String(64), nullable=False)  # SHA-256 hex


forbid_mutation(ComplianceViolation, mutable_fields=frozenset({"acknowledged_at", "acknowledged_by"}))
forbid_mutation(ComplianceReport)
protect_table(ComplianceViolation.__table__, operations=("DELETE",))
protect_table(ComplianceReport.__table__)
