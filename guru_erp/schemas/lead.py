"""Lead pipeline schemas."""
from pydantic import Field, EmailStr
from typing import Optional
from datetime import datetime, date
import uuid

from guru_erp.models.customer import CustomerType
from guru_erp.models.lead import LeadStatus
from guru_erp.schemas.base import BaseCreateSchema, BaseUpdateSchema, BaseResponseSchema
from guru_erp.schemas.customer import MachineCreate


class LeadCreate(BaseCreateSchema):
    id: Optional[uuid.UUID] = None
    name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=1, max_length=20)
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    source: str = Field("Walk-in", max_length=50)
    notes: Optional[str] = None


class LeadUpdate(BaseUpdateSchema):
    """Generic edit. Notes are appended, never replaced."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    phone: Optional[str] = Field(None, min_length=1, max_length=20)
    email: Optional[EmailStr] = None
    address: Optional[str] = None
    source: Optional[str] = Field(None, max_length=50)
    status: Optional[LeadStatus] = None
    notes: Optional[str] = None
    next_follow_up: Optional[date] = None
    estimate_value: Optional[float] = Field(None, ge=0)
    loss_reason: Optional[str] = None
    override: bool = False


class LeadFollowUp(BaseCreateSchema):
    next_follow_up: date
    notes: Optional[str] = None


class LeadEstimate(BaseCreateSchema):
    estimate_value: float = Field(..., ge=0)
    notes: Optional[str] = None


class LeadSold(BaseCreateSchema):
    notes: Optional[str] = None


class LeadLost(BaseCreateSchema):
    reason: str
    notes: Optional[str] = None


class LeadConversion(BaseCreateSchema):
    """
    Details captured when a sold lead becomes a customer.

    When ``machine`` is given it is registered for the customer and, unless
    disabled, an INSTALLATION ticket is opened for it.
    """
    address: Optional[str] = None
    customer_type: CustomerType = CustomerType.GURU_INSTALLED
    machine: Optional[MachineCreate] = None
    create_installation_ticket: bool = True
    scheduled_date: Optional[datetime] = None


class LeadConversionResponse(BaseResponseSchema):
    customer_id: uuid.UUID
    ticket_id: Optional[uuid.UUID] = None


class LeadResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    phone: str
    email: Optional[str] = None
    address: Optional[str] = None
    source: str
    status: str
    notes: str
    next_follow_up: Optional[date] = None
    estimate_value: Optional[float] = None
    loss_reason: Optional[str] = None
    converted_customer_id: Optional[uuid.UUID] = None
    created_at: datetime
    updated_at: datetime


class LeadHistoryResponse(BaseResponseSchema):
    id: int
    lead_id: uuid.UUID
    action: str
    details: Optional[str] = None
    timestamp: datetime
