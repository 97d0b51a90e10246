"""
Customer registry models.

- Customer: a household or business we install for or service
- Machine: a purifier owned by exactly one customer
"""
import uuid
import enum
from datetime import date, datetime, timezone
from typing import Optional, List

from sqlalchemy import String, Text, Boolean, Date, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column, relationship

from guru_erp.database import Base
from guru_erp.db_types import UUIDType


class CustomerType(str, enum.Enum):
    """How the customer came to us."""
    GURU_INSTALLED = "GURU_INSTALLED"  # We sold and installed the machine
    SERVICE_ONLY = "SERVICE_ONLY"  # Third-party machine, we only service it


class Customer(Base):
    """Customer master."""
    __tablename__ = "customers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(200))
    phone: Mapped[str] = mapped_column(String(20), unique=True, index=True)
    address: Mapped[Optional[str]] = mapped_column(Text)
    customer_type: Mapped[str] = mapped_column(
        String(30), default=CustomerType.SERVICE_ONLY.value,
        comment="GURU_INSTALLED, SERVICE_ONLY"
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    machines: Mapped[List["Machine"]] = relationship(
        "Machine",
        back_populates="customer",
        cascade="all, delete-orphan",
        order_by="Machine.installation_date",
        lazy="selectin",
    )

    def __repr__(self):
        return f"<Customer {self.name} ({self.phone})>"


class Machine(Base):
    """Installed purifier with warranty and AMC tracking."""
    __tablename__ = "machines"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, primary_key=True, default=uuid.uuid4
    )
    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("customers.id", ondelete="CASCADE"), index=True
    )
    machine_type_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType, ForeignKey("machine_types.id", ondelete="SET NULL")
    )
    model_name: Mapped[str] = mapped_column(String(100))
    installation_date: Mapped[date] = mapped_column(Date)
    warranty_expiry: Mapped[Optional[date]] = mapped_column(Date)
    amc_active: Mapped[bool] = mapped_column(Boolean, default=False)
    amc_expiry: Mapped[Optional[date]] = mapped_column(Date, index=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    customer = relationship("Customer", back_populates="machines")

    @property
    def is_under_warranty(self) -> bool:
        return self.warranty_expiry is not None and self.warranty_expiry >= date.today()
