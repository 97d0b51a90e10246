"""
Lead Management Models.

This module contains models for:
- Lead capture and pipeline status
- Lead history logging
- Lead conversion
"""
import uuid
import enum
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import String, Text, Integer, Numeric, Date, DateTime, ForeignKey
from sqlalchemy.orm import Mapped, mapped_column

from guru_erp.database import Base
from guru_erp.db_types import UUIDType


class LeadStatus(str, enum.Enum):
    """Status of lead in pipeline."""
    NEW = "NEW"
    FOLLOW_UP = "FOLLOW_UP"
    ESTIMATE_SENT = "ESTIMATE_SENT"
    SOLD = "SOLD"
    CONVERTED = "CONVERTED"  # Customer created and machine installed
    LOST = "LOST"


class LeadAction(str, enum.Enum):
    """Label written to the lead history log."""
    CREATED = "Created"
    STATUS_CHANGE = "Status Change"
    FOLLOW_UP_SET = "Follow-up Set"
    ESTIMATE_SENT = "Estimate Sent"
    MARKED_LOST = "Marked Lost"
    NOTES_UPDATED = "Notes Updated"
    DETAILS_UPDATED = "Details Updated"
    CONVERTED = "Converted"


class Lead(Base):
    """Sales lead / prospect."""
    __tablename__ = "leads"

    id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, primary_key=True, default=uuid.uuid4
    )

    # Contact Information
    name: Mapped[str] = mapped_column(String(200))
    phone: Mapped[str] = mapped_column(String(20), index=True)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    address: Mapped[Optional[str]] = mapped_column(Text)
    source: Mapped[str] = mapped_column(
        String(50), default="Walk-in", comment="Walk-in, Referral, Web, Phone, ..."
    )

    # Pipeline
    status: Mapped[str] = mapped_column(
        String(30), default=LeadStatus.NEW.value, index=True,
        comment="NEW, FOLLOW_UP, ESTIMATE_SENT, SOLD, CONVERTED, LOST"
    )
    notes: Mapped[str] = mapped_column(Text, default="")
    next_follow_up: Mapped[Optional[date]] = mapped_column(Date, index=True)
    estimate_value: Mapped[Optional[Decimal]] = mapped_column(Numeric(12, 2))
    loss_reason: Mapped[Optional[str]] = mapped_column(Text)

    # Conversion
    converted_customer_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUIDType, ForeignKey("customers.id", ondelete="SET NULL")
    )
    converted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc)
    )

    @property
    def is_converted(self) -> bool:
        return self.status == LeadStatus.CONVERTED and self.converted_customer_id is not None


class LeadHistory(Base):
    """Append-only lead activity log."""
    __tablename__ = "lead_history"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    lead_id: Mapped[uuid.UUID] = mapped_column(
        UUIDType, ForeignKey("leads.id", ondelete="CASCADE"), index=True
    )
    action: Mapped[str] = mapped_column(String(50))
    details: Mapped[Optional[str]] = mapped_column(Text)
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
