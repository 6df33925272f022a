import uuid
from datetime import datetime, timezone

from sqlalchemy import String, Boolean, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from worktime.core.database import Base
from worktime.models.types import UTCDateTime

ROLES = ("admin", "manager", "employee")


class User(Base):
    """
    Mitglied eines Tenants – Stammdaten kommen aus der Mitgliederverwaltung.
    Verstöße referenzieren den User nur über str(id), nicht per Fremdschlüssel.
    """

    __tablename__ = "users"

    id: Mapped[uuid.UUID] = mapped_column(primary_key=True, default=uuid.uuid4)
    tenant_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("tenants.id", ondelete="CASCADE"), nullable=False)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False)
    display_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    role: Mapped[str] = mapped_column(String(50), default="employee")  # admin | manager | employee
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(
        UTCDateTime, default=lambda: datetime.now(timezone.utc)
    )

    # Relationships
    tenant: Mapped["Tenant"] = relationship(back_populates="users")

    @property
    def is_manager(self) -> bool:
        """Admin und Verwalter dürfen Regeln ändern, quittieren und Reports erzeugen."""
        return self.role in ("admin", "manager")
