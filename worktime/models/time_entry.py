import uuid
from datetime import datetime, timezone

from sqlalchemy import String, ForeignKey, Integer, Index
from sqlalchemy.orm import Mapped, mapped_column

from worktime.core.database import Base
from worktime.models.types import UTCDateTime


class TimeEntry(Base):
    """
    Erfasste Arbeitszeit (Stempeluhr oder Schichtbörse).
    Gehört der Zeiterfassung – der Compliance-Kern liest nur.
    """

    __tablename__ = "time_entries"
    __table_args__ = (
        Index("ix_time_entries_tenant_user_clock_in", "tenant_id", "user_id", "actual_clock_in"),
    )

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("users.id"), nullable=False)

    actual_clock_in: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    actual_clock_out: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)  # None = eingestempelt
    break_minutes: Mapped[int | None] = mapped_column(Integer, nullable=True)
    source: Mapped[str] = mapped_column(String(50), default="time_tracking")  # time_tracking | shift_pool

    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(timezone.utc)
    )
