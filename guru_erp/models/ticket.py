"""
Service ticket models.

This module contains models for:
- Service tickets (installation, repair, AMC service)
- Append-only technician assignment history
"""
import uuid
import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Text, Integer, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from guru_erp.database import Base
from guru_erp.db_types import UUIDType, JSONType


class ServiceType(str, enum.Enum):
    """Kind of visit."""
    INSTALLATION = "INSTALLATION"
    REPAIR = "REPAIR"
    AMC_SERVICE = "AMC_SERVICE"


class TicketPriority(str, enum.Enum):
    """Ticket priority."""
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    URGENT = "URGENT"


class TicketStatus(str, enum.Enum):
    """Ticket lifecycle status. See ticket_state_machine for transitions."""
    PENDING = "PENDING"
    ASSIGNED = "ASSIGNED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentMode(str, enum.Enum):
    """How the customer settled the invoice."""
    CASH = "CASH"
    UPI = "UPI"
    CARD = "CARD"
    NOT_PAID = "NOT_PAID"


class Ticket(Base):
    """Service ticket."""
    __tablename__ = "tickets"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, primary_key=True, default=uuid.uuid4
    )
    ticket_number: Mapped[str] = mapped_column(
        String(30), unique=True, index=True
    )  # TKT-YYYYMMDD-XXXX

    customer_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("customers.id", ondelete="RESTRICT"), index=True
    )
    # Cached for list views; refreshed when the customer is renamed
    customer_name: Mapped[str] = mapped_column(String(200))
    machine_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType, ForeignKey("machines.id", ondelete="SET NULL"), index=True
    )

    service_type: Mapped[str] = mapped_column(
        String(30), comment="INSTALLATION, REPAIR, AMC_SERVICE"
    )
    description: Mapped[str] = mapped_column(Text)
    priority: Mapped[str] = mapped_column(
        String(20), default=TicketPriority.MEDIUM.value,
        comment="LOW, MEDIUM, HIGH, URGENT"
    )
    status: Mapped[str] = mapped_column(
        String(20), default=TicketStatus.PENDING.value, index=True,
        comment="PENDING, ASSIGNED, IN_PROGRESS, COMPLETED, CANCELLED"
    )

    # Assignment
    assigned_technician_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType, ForeignKey("users.id", ondelete="SET NULL"), index=True
    )
    scheduled_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
    started_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    # Closure
    completed_date: Mapped[Optional[date]] = mapped_column(Date)
    items_used: Mapped[list] = mapped_column(JSONType, default=list)  # [{"part_id", "quantity", "cost"}]
    service_charge: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=0)
    payment_mode: Mapped[Optional[str]] = mapped_column(
        String(20), comment="CASH, UPI, CARD, NOT_PAID"
    )
    technician_notes: Mapped[Optional[str]] = mapped_column(Text)
    next_follow_up: Mapped[Optional[date]] = mapped_column(Date)

    cancellation_reason: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    def __repr__(self):
        return f"<Ticket {self.ticket_number} [{self.status}]>"


class TicketAssignmentHistory(Base):
    """
    One row per assign call. Rows are never updated or deleted, so the log
    is an audit of calls rather than a diff of changes.
    """
    __tablename__ = "ticket_assignment_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    ticket_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("tickets.id", ondelete="CASCADE"), index=True
    )
    technician_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("users.id", ondelete="RESTRICT")
    )
    assigned_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    scheduled_date: Mapped[Optional[datetime]] = mapped_column(DateTime)
