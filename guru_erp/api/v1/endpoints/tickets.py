"""Service ticket API endpoints."""
from typing import List, Optional
import uuid

from fastapi import APIRouter, HTTPException, status, Query

from guru_erp.api.deps import DB, CurrentUser, StaffOnly
from guru_erp.models.ticket import Ticket, TicketStatus
from guru_erp.models.user import User, UserRole
from guru_erp.schemas.ticket import (
    TicketCreate,
    TicketUpdate,
    TechnicianAssignment,
    TicketCompletion,
    TicketCancellation,
    TicketResponse,
    AssignmentHistoryResponse,
    TicketCompletionResponse,
    StockWarningResponse,
)
from guru_erp.services.ticket_service import TicketService


router = APIRouter(tags=["Tickets"])


def _ensure_can_work_on(ticket: Ticket, user: User) -> None:
    """Technicians may only act on tickets assigned to them."""
    if user.role == UserRole.TECHNICIAN and ticket.assigned_technician_id != user.id:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Ticket is not assigned to you"
        )


@router.get("", response_model=List[TicketResponse])
async def list_tickets(
    db: DB,
    current_user: CurrentUser,
    technician_id: Optional[uuid.UUID] = Query(None),
    ticket_status: Optional[TicketStatus] = Query(None, alias="status"),
    customer_id: Optional[uuid.UUID] = Query(None),
):
    """List tickets, newest first."""
    tickets = await TicketService(db).list_tickets(
        technician_id=technician_id,
        status=ticket_status.value if ticket_status else None,
        customer_id=customer_id,
    )
    return [TicketResponse.model_validate(t) for t in tickets]


@router.post(
    "",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[StaffOnly],
)
async def create_ticket(data: TicketCreate, db: DB):
    """Create a PENDING ticket."""
    ticket = await TicketService(db).create_ticket(data.model_dump())
    return TicketResponse.model_validate(ticket)


@router.get("/{ticket_id}", response_model=TicketResponse)
async def get_ticket(ticket_id: uuid.UUID, db: DB, current_user: CurrentUser):
    ticket = await TicketService(db).get_ticket(ticket_id)
    return TicketResponse.model_validate(ticket)


@router.patch("/{ticket_id}", response_model=TicketResponse, dependencies=[StaffOnly])
async def update_ticket(
    ticket_id: uuid.UUID,
    data: TicketUpdate,
    db: DB,
    current_user: CurrentUser,
):
    """
    Partial update.
    Setting `override` skips status transition checks and requires ADMIN.
    """
    if data.override and current_user.role != UserRole.ADMIN:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Only admins can override status transitions"
        )
    update_data = data.model_dump(exclude_unset=True, exclude={"override"})
    ticket = await TicketService(db).update_ticket(ticket_id, update_data, override=data.override)
    return TicketResponse.model_validate(ticket)


@router.post("/{ticket_id}/assign", response_model=TicketResponse, dependencies=[StaffOnly])
async def assign_technician(ticket_id: uuid.UUID, data: TechnicianAssignment, db: DB):
    """Assign or reassign a technician. Each call adds one history row."""
    ticket = await TicketService(db).assign_technician(
        ticket_id, data.technician_id, data.scheduled_date
    )
    return TicketResponse.model_validate(ticket)


@router.post("/{ticket_id}/start", response_model=TicketResponse)
async def start_work(ticket_id: uuid.UUID, db: DB, current_user: CurrentUser):
    service = TicketService(db)
    _ensure_can_work_on(await service.get_ticket(ticket_id), current_user)
    ticket = await service.start_work(ticket_id)
    return TicketResponse.model_validate(ticket)


@router.post("/{ticket_id}/complete", response_model=TicketCompletionResponse)
async def complete_ticket(
    ticket_id: uuid.UUID,
    data: TicketCompletion,
    db: DB,
    current_user: CurrentUser,
):
    """Close the ticket, snapshot part costs and decrement stock."""
    service = TicketService(db)
    _ensure_can_work_on(await service.get_ticket(ticket_id), current_user)
    ticket, warnings = await service.complete_ticket(
        ticket_id,
        items=[item.model_dump() for item in data.items],
        service_charge=data.service_charge,
        payment_mode=data.payment_mode,
        technician_notes=data.technician_notes,
        next_follow_up=data.next_follow_up,
    )
    return TicketCompletionResponse(
        ticket=TicketResponse.model_validate(ticket),
        stock_warnings=[StockWarningResponse.model_validate(w) for w in warnings],
    )


@router.post("/{ticket_id}/cancel", response_model=TicketResponse)
async def cancel_ticket(
    ticket_id: uuid.UUID,
    data: TicketCancellation,
    db: DB,
    current_user: CurrentUser,
):
    service = TicketService(db)
    _ensure_can_work_on(await service.get_ticket(ticket_id), current_user)
    ticket = await service.cancel_ticket(ticket_id, data.reason)
    return TicketResponse.model_validate(ticket)


@router.get("/{ticket_id}/history", response_model=List[AssignmentHistoryResponse])
async def get_ticket_history(ticket_id: uuid.UUID, db: DB, current_user: CurrentUser):
    """Assignment history, most recent first."""
    history = await TicketService(db).get_assignment_history(ticket_id)
    return [AssignmentHistoryResponse.model_validate(h) for h in history]
