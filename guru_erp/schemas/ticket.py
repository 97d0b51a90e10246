"""Service ticket schemas for API requests/responses."""
from pydantic import Field
from typing import Optional, List
from datetime import datetime, date
import uuid

from guru_erp.models.ticket import ServiceType, TicketPriority, TicketStatus, PaymentMode
from guru_erp.schemas.base import BaseCreateSchema, BaseUpdateSchema, BaseResponseSchema


# ==================== TICKET SCHEMAS ====================

class TicketCreate(BaseCreateSchema):
    """Ticket creation schema."""
    id: Optional[uuid.UUID] = None
    customer_id: uuid.UUID
    machine_id: Optional[uuid.UUID] = None
    service_type: ServiceType
    description: str
    priority: TicketPriority = TicketPriority.MEDIUM
    scheduled_date: Optional[datetime] = None


class TicketUpdate(BaseUpdateSchema):
    """Partial ticket update. ``override`` skips transition checks (Admin only)."""
    description: Optional[str] = None
    priority: Optional[TicketPriority] = None
    scheduled_date: Optional[datetime] = None
    technician_notes: Optional[str] = None
    next_follow_up: Optional[date] = None
    status: Optional[TicketStatus] = None
    override: bool = False


class TechnicianAssignment(BaseCreateSchema):
    """Assign or reassign a technician."""
    technician_id: uuid.UUID
    scheduled_date: Optional[datetime] = None


class UsedItem(BaseCreateSchema):
    part_id: uuid.UUID
    quantity: int = Field(..., gt=0)


class TicketCompletion(BaseCreateSchema):
    """Closure data. Item cost comes from the part catalog, not the caller."""
    items: List[UsedItem] = []
    service_charge: float = Field(0, ge=0)
    payment_mode: PaymentMode = PaymentMode.NOT_PAID
    technician_notes: Optional[str] = None
    next_follow_up: Optional[date] = None


class TicketCancellation(BaseCreateSchema):
    reason: str


class UsedItemResponse(BaseResponseSchema):
    part_id: uuid.UUID
    quantity: int
    cost: float


class TicketResponse(BaseResponseSchema):
    """Ticket response schema."""
    id: uuid.UUID
    ticket_number: str
    customer_id: uuid.UUID
    customer_name: str
    machine_id: Optional[uuid.UUID] = None
    service_type: str
    description: str
    priority: str
    status: str
    assigned_technician_id: Optional[uuid.UUID] = None
    scheduled_date: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_date: Optional[date] = None
    items_used: List[UsedItemResponse] = []
    service_charge: float
    total_amount: float
    payment_mode: Optional[str] = None
    technician_notes: Optional[str] = None
    next_follow_up: Optional[date] = None
    cancellation_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class AssignmentHistoryResponse(BaseResponseSchema):
    id: int
    ticket_id: uuid.UUID
    technician_id: uuid.UUID
    assigned_at: datetime
    scheduled_date: Optional[datetime] = None


class StockWarningResponse(BaseResponseSchema):
    part_id: uuid.UUID
    part_name: str
    requested: int
    available: int


class TicketCompletionResponse(BaseResponseSchema):
    """Completed ticket plus any non-fatal stock shortfalls."""
    ticket: TicketResponse
    stock_warnings: List[StockWarningResponse] = []
