"""
Lead Service - sales pipeline and lead-to-customer conversion.

History is append-only: every pipeline step writes one or more LeadHistory
rows in the same transaction as the lead change. Notes are only ever
appended.
"""
import logging
import uuid
from datetime import date, datetime, timezone
from typing import List, Optional

from sqlalchemy import select, delete
from sqlalchemy.ext.asyncio import AsyncSession

from guru_erp.core.exceptions import NotFoundError, ValidationFailed
from guru_erp.models.customer import CustomerType
from guru_erp.models.lead import Lead, LeadHistory, LeadStatus, LeadAction
from guru_erp.models.ticket import ServiceType, TicketPriority
from guru_erp.services.customer_service import CustomerService
from guru_erp.services.lead_state_machine import (
    validate_transition, validate_direct_update, append_notes,
)
from guru_erp.services.ticket_service import TicketService
from guru_erp.services.ticket_state_machine import to_decimal


logger = logging.getLogger(__name__)


class LeadService:
    """Service for lead pipeline operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== QUERIES ====================

    async def list_leads(self, status: Optional[str] = None) -> List[Lead]:
        query = select(Lead)
        if status:
            query = query.where(Lead.status == status)
        result = await self.db.execute(query.order_by(Lead.created_at.desc()))
        return list(result.scalars().all())

    async def get_lead(self, lead_id: uuid.UUID) -> Lead:
        lead = await self.db.get(Lead, lead_id)
        if not lead:
            raise NotFoundError("Lead", lead_id)
        return lead

    async def get_history(self, lead_id: uuid.UUID) -> List[LeadHistory]:
        """Lead history, most recent first."""
        await self.get_lead(lead_id)
        result = await self.db.execute(
            select(LeadHistory)
            .where(LeadHistory.lead_id == lead_id)
            .order_by(LeadHistory.id.desc())
        )
        return list(result.scalars().all())

    # ==================== PIPELINE ====================

    async def create_lead(self, data: dict) -> Lead:
        if data.get("id") is None:
            data.pop("id", None)
        notes = data.pop("notes", None)
        data.pop("status", None)

        lead = Lead(
            status=LeadStatus.NEW.value,
            notes=append_notes("", notes),
            **data,
        )
        self.db.add(lead)
        await self.db.flush()

        self._log(lead, LeadAction.CREATED, f"Lead created from {lead.source}")

        await self.db.commit()
        await self.db.refresh(lead)
        logger.info("Lead created: %s (%s)", lead.name, lead.source)
        return lead

    async def schedule_follow_up(
        self,
        lead_id: uuid.UUID,
        next_follow_up: date,
        notes: Optional[str] = None,
    ) -> Lead:
        """-> FOLLOW_UP with a follow-up date."""
        lead = await self.get_lead(lead_id)
        self._change_status(lead, LeadStatus.FOLLOW_UP)

        lead.next_follow_up = next_follow_up
        lead.notes = append_notes(lead.notes, notes)
        self._log(lead, LeadAction.FOLLOW_UP_SET, f"Next follow-up on {next_follow_up.isoformat()}")

        return await self._save(lead)

    async def send_estimate(
        self,
        lead_id: uuid.UUID,
        estimate_value,
        notes: Optional[str] = None,
    ) -> Lead:
        """-> ESTIMATE_SENT with the quoted amount."""
        lead = await self.get_lead(lead_id)
        self._change_status(lead, LeadStatus.ESTIMATE_SENT)

        lead.estimate_value = to_decimal(estimate_value)
        lead.notes = append_notes(lead.notes, notes)
        self._log(lead, LeadAction.ESTIMATE_SENT, f"Estimate of {lead.estimate_value} sent")

        return await self._save(lead)

    async def mark_sold(self, lead_id: uuid.UUID, notes: Optional[str] = None) -> Lead:
        lead = await self.get_lead(lead_id)
        self._change_status(lead, LeadStatus.SOLD)
        lead.notes = append_notes(lead.notes, notes)
        return await self._save(lead)

    async def mark_lost(
        self,
        lead_id: uuid.UUID,
        reason: Optional[str],
        notes: Optional[str] = None,
    ) -> Lead:
        """-> LOST. A non-blank reason is required."""
        if not reason or not reason.strip():
            raise ValidationFailed("Loss reason is required", {"field": "reason"})

        lead = await self.get_lead(lead_id)
        self._change_status(lead, LeadStatus.LOST)

        lead.loss_reason = reason.strip()
        lead.notes = append_notes(lead.notes, notes)
        self._log(lead, LeadAction.MARKED_LOST, lead.loss_reason)

        return await self._save(lead)

    async def convert_to_customer(self, lead_id: uuid.UUID, details: Optional[dict] = None) -> dict:
        """
        Convert a SOLD lead into a customer.

        An existing customer with the same phone is reused. When machine
        details are supplied the machine is registered and, unless disabled,
        an INSTALLATION ticket is opened. Everything commits together.

        Returns:
            {"customer_id": ..., "ticket_id": ... or None}
        """
        details = details or {}
        lead = await self.get_lead(lead_id)
        validate_transition(lead.status, LeadStatus.CONVERTED)

        customer_service = CustomerService(self.db)
        customer = await customer_service.get_customer_by_phone(lead.phone)
        if customer:
            logger.info("Lead %s matches existing customer %s", lead.id, customer.id)
        else:
            customer = await customer_service.create_customer(
                {
                    "name": lead.name,
                    "phone": lead.phone,
                    "address": details.get("address") or lead.address,
                    "customer_type": details.get("customer_type") or CustomerType.GURU_INSTALLED.value,
                },
                commit=False,
            )

        ticket_id = None
        machine_data = details.get("machine")
        if machine_data:
            machine = await customer_service.add_machine(customer.id, machine_data, commit=False)
            if details.get("create_installation_ticket", True):
                ticket = await TicketService(self.db).create_ticket(
                    {
                        "customer_id": customer.id,
                        "machine_id": machine.id,
                        "service_type": ServiceType.INSTALLATION.value,
                        "priority": TicketPriority.MEDIUM.value,
                        "description": f"Installation of {machine.model_name} for new customer {customer.name}",
                        "scheduled_date": details.get("scheduled_date"),
                    },
                    commit=False,
                )
                ticket_id = ticket.id

        lead.status = LeadStatus.CONVERTED.value
        lead.converted_customer_id = customer.id
        lead.converted_at = datetime.now(timezone.utc)
        self._log(lead, LeadAction.CONVERTED, f"Converted to customer {customer.id}")

        await self.db.commit()
        logger.info("Lead %s converted to customer %s", lead.id, customer.id)
        return {"customer_id": customer.id, "ticket_id": ticket_id}

    async def update_lead(self, lead_id: uuid.UUID, data: dict, override: bool = False) -> Lead:
        """
        Generic edit. Unless ``override`` is set, status changes are validated
        and LOST or CONVERTED are refused in favour of their own operations.
        Notes are appended.
        """
        lead = await self.get_lead(lead_id)
        new_status = data.pop("status", None)
        notes = data.pop("notes", None)
        next_follow_up = data.pop("next_follow_up", None)

        if new_status and new_status != lead.status:
            if override:
                logger.warning("Lead %s: status overridden %s -> %s", lead.id, lead.status, new_status)
                self._log(lead, LeadAction.STATUS_CHANGE, f"{lead.status} -> {new_status} (override)")
                lead.status = new_status
            else:
                validate_direct_update(lead.status, new_status)
                self._change_status(lead, new_status)

        if notes and notes.strip():
            lead.notes = append_notes(lead.notes, notes)
            self._log(lead, LeadAction.NOTES_UPDATED, notes.strip())

        if next_follow_up and next_follow_up != lead.next_follow_up:
            lead.next_follow_up = next_follow_up
            self._log(lead, LeadAction.FOLLOW_UP_SET, f"Next follow-up on {next_follow_up.isoformat()}")

        if "estimate_value" in data and data["estimate_value"] is not None:
            data["estimate_value"] = to_decimal(data["estimate_value"])

        changed = [
            key for key, value in data.items()
            if hasattr(lead, key) and key != "id" and getattr(lead, key) != value
        ]
        for key in changed:
            setattr(lead, key, data[key])
        if changed:
            self._log(lead, LeadAction.DETAILS_UPDATED, ", ".join(sorted(changed)))

        return await self._save(lead)

    async def delete_lead(self, lead_id: uuid.UUID) -> None:
        """Delete a lead and its history."""
        lead = await self.get_lead(lead_id)
        await self.db.execute(delete(LeadHistory).where(LeadHistory.lead_id == lead.id))
        await self.db.delete(lead)
        await self.db.commit()
        logger.info("Lead %s deleted", lead_id)

    # ==================== HELPERS ====================

    def _change_status(self, lead: Lead, new_status: str) -> None:
        """Validate and apply a status change, logging it when the status moves."""
        new_status = LeadStatus(new_status).value
        validate_transition(lead.status, new_status)
        if new_status != lead.status:
            self._log(lead, LeadAction.STATUS_CHANGE, f"{lead.status} -> {new_status}")
            lead.status = new_status

    def _log(self, lead: Lead, action: LeadAction, details: Optional[str] = None) -> None:
        self.db.add(LeadHistory(lead_id=lead.id, action=action.value, details=details))

    async def _save(self, lead: Lead) -> Lead:
        await self.db.commit()
        await self.db.refresh(lead)
        return lead
