"""
Ticket Service - service ticket lifecycle.

Every status change goes through ticket_state_machine.validate_transition;
the only bypass is update_ticket(override=True), which the API restricts
to admins.
"""
import logging
import uuid
from datetime import date, datetime, timezone
from typing import List, Optional, Tuple

from sqlalchemy import select, func, and_
from sqlalchemy.ext.asyncio import AsyncSession

from guru_erp.core.exceptions import (
    BusinessRuleError, NotFoundError, ValidationFailed,
)
from guru_erp.models.customer import Customer, Machine
from guru_erp.models.ticket import (
    Ticket, TicketAssignmentHistory, TicketStatus, TicketPriority, ServiceType,
)
from guru_erp.models.user import User, UserRole, UserStatus
from guru_erp.services.inventory_service import InventoryService, StockWarning
from guru_erp.services.ticket_state_machine import (
    validate_transition, validate_direct_update, get_transition_action,
    compute_total_amount, to_decimal,
)


logger = logging.getLogger(__name__)


class TicketService:
    """Service for ticket operations."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.inventory = InventoryService(db)

    # ==================== QUERIES ====================

    async def list_tickets(
        self,
        technician_id: Optional[uuid.UUID] = None,
        status: Optional[str] = None,
        customer_id: Optional[uuid.UUID] = None,
    ) -> List[Ticket]:
        query = select(Ticket)
        conditions = []
        if technician_id:
            conditions.append(Ticket.assigned_technician_id == technician_id)
        if status:
            conditions.append(Ticket.status == status)
        if customer_id:
            conditions.append(Ticket.customer_id == customer_id)
        if conditions:
            query = query.where(and_(*conditions))

        result = await self.db.execute(query.order_by(Ticket.created_at.desc()))
        return list(result.scalars().all())

    async def get_ticket(self, ticket_id: uuid.UUID) -> Ticket:
        ticket = await self.db.get(Ticket, ticket_id)
        if not ticket:
            raise NotFoundError("Ticket", ticket_id)
        return ticket

    async def get_assignment_history(self, ticket_id: uuid.UUID) -> List[TicketAssignmentHistory]:
        """Assignment history, most recent first."""
        await self.get_ticket(ticket_id)
        result = await self.db.execute(
            select(TicketAssignmentHistory)
            .where(TicketAssignmentHistory.ticket_id == ticket_id)
            .order_by(TicketAssignmentHistory.id.desc())
        )
        return list(result.scalars().all())

    # ==================== LIFECYCLE ====================

    async def create_ticket(self, data: dict, commit: bool = True) -> Ticket:
        """
        Create a PENDING ticket.

        The customer must exist and the machine, when given, must belong to
        that customer. customer_name is cached from the customer record.
        """
        description = (data.get("description") or "").strip()
        if not description:
            raise ValidationFailed("Description is required", {"field": "description"})

        customer = await self.db.get(Customer, data["customer_id"])
        if not customer:
            raise NotFoundError("Customer", data["customer_id"])

        machine_id = data.get("machine_id")
        if machine_id:
            machine = await self.db.get(Machine, machine_id)
            if not machine:
                raise NotFoundError("Machine", machine_id)
            if machine.customer_id != customer.id:
                raise ValidationFailed(
                    "Machine does not belong to this customer",
                    {"machine_id": str(machine_id), "customer_id": str(customer.id)},
                )

        ticket_data = {k: v for k, v in data.items() if v is not None}
        ticket_data["description"] = description
        ticket_data.pop("status", None)

        ticket = Ticket(
            ticket_number=await self._generate_ticket_number(),
            customer_name=customer.name,
            status=TicketStatus.PENDING.value,
            items_used=[],
            service_charge=0,
            total_amount=0,
            **ticket_data,
        )
        self.db.add(ticket)

        if commit:
            await self.db.commit()
            await self.db.refresh(ticket)
        else:
            await self.db.flush()

        logger.info("Ticket %s created for %s", ticket.ticket_number, customer.name)
        return ticket

    async def assign_technician(
        self,
        ticket_id: uuid.UUID,
        technician_id: uuid.UUID,
        scheduled_date: Optional[datetime] = None,
    ) -> Ticket:
        """
        Assign or reassign a technician.

        Writes one history row per call, even if the technician and date
        are unchanged.
        """
        ticket = await self.get_ticket(ticket_id)
        validate_transition(ticket.status, TicketStatus.ASSIGNED)

        technician = await self.db.get(User, technician_id)
        if not technician:
            raise NotFoundError("User", technician_id)
        if technician.role != UserRole.TECHNICIAN or technician.status != UserStatus.ACTIVE:
            raise BusinessRuleError(
                "Tickets can only be assigned to active technicians",
                {"technician_id": str(technician_id), "role": technician.role, "status": technician.status},
            )

        action = get_transition_action(ticket.status, TicketStatus.ASSIGNED)
        ticket.assigned_technician_id = technician.id
        if scheduled_date is not None:
            ticket.scheduled_date = scheduled_date
        ticket.status = TicketStatus.ASSIGNED.value

        self.db.add(TicketAssignmentHistory(
            ticket_id=ticket.id,
            technician_id=technician.id,
            scheduled_date=ticket.scheduled_date,
        ))

        await self.db.commit()
        await self.db.refresh(ticket)
        logger.info("Ticket %s: %s to %s", ticket.ticket_number, action, technician.name)
        return ticket

    async def start_work(self, ticket_id: uuid.UUID) -> Ticket:
        """ASSIGNED -> IN_PROGRESS."""
        ticket = await self.get_ticket(ticket_id)
        validate_transition(ticket.status, TicketStatus.IN_PROGRESS)

        ticket.status = TicketStatus.IN_PROGRESS.value
        ticket.started_at = datetime.now(timezone.utc)

        await self.db.commit()
        await self.db.refresh(ticket)
        logger.info("Ticket %s: work started", ticket.ticket_number)
        return ticket

    async def complete_ticket(
        self,
        ticket_id: uuid.UUID,
        items: List[dict],
        service_charge=0,
        payment_mode: Optional[str] = None,
        technician_notes: Optional[str] = None,
        next_follow_up: Optional[date] = None,
    ) -> Tuple[Ticket, List[StockWarning]]:
        """
        IN_PROGRESS -> COMPLETED.

        Each item's cost is the part's price right now and is stored on the
        ticket, so later price changes do not alter the invoice. Stock is
        decremented in the same transaction.
        """
        ticket = await self.get_ticket(ticket_id)
        validate_transition(ticket.status, TicketStatus.COMPLETED)

        used_items = []
        for item in items:
            quantity = int(item["quantity"])
            if quantity <= 0:
                raise ValidationFailed("Quantity must be positive", {"part_id": str(item["part_id"])})
            part = await self.inventory.get_part(item["part_id"])
            used_items.append({
                "part_id": str(part.id),
                "quantity": quantity,
                "cost": float(part.price),
            })

        warnings = await self.inventory.consume_parts(used_items)

        ticket.items_used = used_items
        ticket.service_charge = to_decimal(service_charge)
        ticket.total_amount = compute_total_amount(service_charge, used_items)
        ticket.payment_mode = payment_mode
        ticket.technician_notes = technician_notes
        ticket.next_follow_up = next_follow_up
        ticket.completed_date = date.today()
        ticket.status = TicketStatus.COMPLETED.value

        await self.db.commit()
        await self.db.refresh(ticket)
        logger.info(
            "Ticket %s completed: total %s, %d stock warning(s)",
            ticket.ticket_number, ticket.total_amount, len(warnings),
        )
        return ticket, warnings

    async def cancel_ticket(self, ticket_id: uuid.UUID, reason: Optional[str]) -> Ticket:
        """PENDING | ASSIGNED -> CANCELLED. A non-blank reason is required."""
        if not reason or not reason.strip():
            raise ValidationFailed("Cancellation reason is required", {"field": "reason"})

        ticket = await self.get_ticket(ticket_id)
        validate_transition(ticket.status, TicketStatus.CANCELLED)

        ticket.status = TicketStatus.CANCELLED.value
        ticket.cancellation_reason = reason.strip()

        await self.db.commit()
        await self.db.refresh(ticket)
        logger.info("Ticket %s cancelled: %s", ticket.ticket_number, ticket.cancellation_reason)
        return ticket

    async def update_ticket(self, ticket_id: uuid.UUID, data: dict, override: bool = False) -> Ticket:
        """
        Partial update. Without ``override`` a status change must be legal
        and must not be one owned by assign, start, complete or cancel.
        """
        ticket = await self.get_ticket(ticket_id)
        new_status = data.pop("status", None)

        if "description" in data:
            description = (data["description"] or "").strip()
            if not description:
                raise ValidationFailed("Description is required", {"field": "description"})
            data["description"] = description

        if new_status and new_status != ticket.status:
            if override:
                logger.warning(
                    "Ticket %s: status overridden %s -> %s",
                    ticket.ticket_number, ticket.status, new_status,
                )
            else:
                validate_direct_update(ticket.status, new_status)
            ticket.status = new_status
            if new_status == TicketStatus.IN_PROGRESS and not ticket.started_at:
                ticket.started_at = datetime.now(timezone.utc)
            if new_status == TicketStatus.COMPLETED and not ticket.completed_date:
                ticket.completed_date = date.today()

        for key, value in data.items():
            if key in ("priority", "description", "scheduled_date", "technician_notes", "next_follow_up"):
                setattr(ticket, key, value)

        await self.db.commit()
        await self.db.refresh(ticket)
        return ticket

    # ==================== AMC ====================

    async def create_amc_renewal_ticket(self, machine_id: uuid.UUID) -> Ticket:
        """Open an AMC service ticket for a machine whose AMC is running out."""
        machine = await self.db.get(Machine, machine_id)
        if not machine:
            raise NotFoundError("Machine", machine_id)
        if not machine.amc_active or machine.amc_expiry is None:
            raise BusinessRuleError(
                "Machine has no active AMC",
                {"machine_id": str(machine_id)},
            )

        return await self.create_ticket({
            "customer_id": machine.customer_id,
            "machine_id": machine.id,
            "service_type": ServiceType.AMC_SERVICE.value,
            "priority": TicketPriority.MEDIUM.value,
            "description": (
                f"AMC Renewal / Service for {machine.model_name}. "
                f"Expiry: {machine.amc_expiry.isoformat()}"
            ),
        })

    # ==================== HELPERS ====================

    async def _generate_ticket_number(self) -> str:
        """Generate unique ticket number."""
        date_part = datetime.now(timezone.utc).strftime("%Y%m%d")
        query = select(func.count()).select_from(Ticket).where(
            Ticket.ticket_number.like(f"TKT-{date_part}%")
        )
        count = await self.db.scalar(query)
        return f"TKT-{date_part}-{(count or 0) + 1:04d}"
