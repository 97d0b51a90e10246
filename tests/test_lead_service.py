"""LeadService: pipeline steps, history log and conversion."""
from datetime import date

import pytest
from sqlalchemy import select, func

from guru_erp.core.exceptions import InvalidTransitionError, ValidationFailed
from guru_erp.models import Customer, LeadHistory, LeadStatus, Ticket
from guru_erp.services.lead_service import LeadService


async def _new_lead(db, **overrides):
    data = {
        "name": "New Resident A",
        "phone": "1231231234",
        "source": "Referral",
        "notes": "Interested in RO",
    }
    data.update(overrides)
    return await LeadService(db).create_lead(data)


async def _sold_lead(db, **overrides):
    service = LeadService(db)
    lead = await _new_lead(db, **overrides)
    await service.schedule_follow_up(lead.id, date(2024, 6, 25))
    await service.send_estimate(lead.id, 15000)
    return await service.mark_sold(lead.id)


class TestPipeline:
    async def test_create_logs_history(self, db, seed):
        lead = await _new_lead(db)

        assert lead.status == LeadStatus.NEW
        assert lead.notes.endswith("Interested in RO")

        history = await LeadService(db).get_history(lead.id)
        assert [(h.action, h.details) for h in history] == [("Created", "Lead created from Referral")]

    async def test_full_pipeline_history_is_newest_first(self, db, seed):
        service = LeadService(db)
        lead = await _new_lead(db)

        await service.schedule_follow_up(lead.id, date(2024, 6, 25), "Call after 5pm")
        await service.send_estimate(lead.id, 15000, "Commercial plant quote")
        lead = await service.mark_sold(lead.id)

        assert lead.status == LeadStatus.SOLD
        assert lead.estimate_value == 15000
        assert "Call after 5pm" in lead.notes
        assert lead.notes.index("Interested in RO") < lead.notes.index("Commercial plant quote")

        actions = [h.action for h in await service.get_history(lead.id)]
        assert actions == [
            "Status Change",   # ESTIMATE_SENT -> SOLD
            "Estimate Sent",
            "Status Change",   # FOLLOW_UP -> ESTIMATE_SENT
            "Follow-up Set",
            "Status Change",   # NEW -> FOLLOW_UP
            "Created",
        ]

    async def test_rescheduling_follow_up_does_not_log_status_change(self, db, seed):
        service = LeadService(db)
        lead = await _new_lead(db)
        await service.schedule_follow_up(lead.id, date(2024, 6, 25))
        lead = await service.schedule_follow_up(lead.id, date(2024, 7, 2))

        assert lead.next_follow_up == date(2024, 7, 2)
        actions = [h.action for h in await service.get_history(lead.id)]
        assert actions.count("Status Change") == 1
        assert actions.count("Follow-up Set") == 2

    async def test_new_lead_cannot_be_sold_directly(self, db, seed):
        lead = await _new_lead(db)
        with pytest.raises(InvalidTransitionError):
            await LeadService(db).mark_sold(lead.id)

    async def test_mark_lost_requires_reason(self, db, seed):
        service = LeadService(db)
        lead = await _new_lead(db)

        with pytest.raises(ValidationFailed):
            await service.mark_lost(lead.id, "")

        lead = await service.mark_lost(lead.id, "Bought from competitor")
        assert lead.status == LeadStatus.LOST
        assert lead.loss_reason == "Bought from competitor"

        history = await service.get_history(lead.id)
        assert history[0].action == "Marked Lost"
        assert history[0].details == "Bought from competitor"

        with pytest.raises(InvalidTransitionError):
            await service.schedule_follow_up(lead.id, date(2024, 7, 1))


class TestUpdateLead:
    async def test_notes_are_appended(self, db, seed):
        service = LeadService(db)
        lead = await _new_lead(db)

        lead = await service.update_lead(lead.id, {"notes": "Prefers UV model"})
        assert lead.notes.splitlines()[0].endswith("Interested in RO")
        assert lead.notes.endswith("Prefers UV model")

        history = await service.get_history(lead.id)
        assert history[0].action == "Notes Updated"

    async def test_details_change_is_logged(self, db, seed):
        service = LeadService(db)
        lead = await _new_lead(db)

        lead = await service.update_lead(lead.id, {"address": "7, Park Lane", "name": "Resident A"})
        history = await service.get_history(lead.id)
        assert history[0].action == "Details Updated"
        assert history[0].details == "address, name"

    async def test_status_change_is_validated(self, db, seed):
        service = LeadService(db)
        lead = await _new_lead(db)

        with pytest.raises(InvalidTransitionError):
            await service.update_lead(lead.id, {"status": "SOLD"})

        lead = await service.update_lead(lead.id, {"status": "SOLD"}, override=True)
        assert lead.status == LeadStatus.SOLD

    async def test_generic_status_change_is_logged(self, db, seed):
        service = LeadService(db)
        lead = await _new_lead(db)

        lead = await service.update_lead(lead.id, {"status": "FOLLOW_UP"})
        assert lead.status == LeadStatus.FOLLOW_UP
        history = await service.get_history(lead.id)
        assert history[0].action == "Status Change"

    async def test_lost_needs_its_own_operation(self, db, seed):
        service = LeadService(db)
        lead = await _new_lead(db)

        with pytest.raises(ValidationFailed) as exc_info:
            await service.update_lead(lead.id, {"status": "LOST"})
        assert exc_info.value.details["operation"] == "lost"

        lead = await service.get_lead(lead.id)
        assert lead.status == LeadStatus.NEW
        assert lead.loss_reason is None

    async def test_converted_needs_its_own_operation(self, db, seed):
        service = LeadService(db)
        lead = await _sold_lead(db)

        with pytest.raises(ValidationFailed) as exc_info:
            await service.update_lead(lead.id, {"status": "CONVERTED"})
        assert exc_info.value.details["operation"] == "convert"

        lead = await service.get_lead(lead.id)
        assert lead.status == LeadStatus.SOLD
        assert lead.converted_customer_id is None
        assert [h.action for h in await service.get_history(lead.id)].count("Converted") == 0
        count = await db.scalar(select(func.count()).select_from(Customer))
        assert count == 1

    async def test_delete_removes_history(self, db, seed):
        service = LeadService(db)
        lead = await _new_lead(db)
        await service.schedule_follow_up(lead.id, date(2024, 6, 25))

        await service.delete_lead(lead.id)

        remaining = await db.scalar(
            select(func.count()).select_from(LeadHistory).where(LeadHistory.lead_id == lead.id)
        )
        assert remaining == 0


class TestConversion:
    async def test_conversion_creates_customer_machine_and_ticket(self, db, seed):
        lead = await _sold_lead(db)

        result = await LeadService(db).convert_to_customer(lead.id, {
            "address": "7, Park Lane, Madurai",
            "machine": {"model_name": "GURU-RO-PRO", "installation_date": date(2024, 7, 1)},
        })

        customer = await db.get(Customer, result["customer_id"])
        assert customer.name == "New Resident A"
        assert customer.phone == "1231231234"
        assert customer.customer_type == "GURU_INSTALLED"

        ticket = await db.get(Ticket, result["ticket_id"])
        assert ticket.service_type == "INSTALLATION"
        assert ticket.status == "PENDING"
        assert ticket.customer_id == customer.id
        assert ticket.machine_id is not None

        lead = await LeadService(db).get_lead(lead.id)
        assert lead.status == LeadStatus.CONVERTED
        assert lead.converted_customer_id == customer.id

        history = await LeadService(db).get_history(lead.id)
        assert history[0].action == "Converted"
        assert history[0].details == f"Converted to customer {customer.id}"

    async def test_warranty_is_derived_from_machine_type(self, db, seed):
        lead = await _sold_lead(db)
        result = await LeadService(db).convert_to_customer(lead.id, {
            "machine": {"model_name": "GURU-RO-PRO", "installation_date": date(2024, 7, 1)},
            "create_installation_ticket": False,
        })

        assert result["ticket_id"] is None
        customer = await db.scalar(select(Customer).where(Customer.id == result["customer_id"]))
        await db.refresh(customer, ["machines"])
        assert customer.machines[0].warranty_expiry == date(2025, 7, 1)

    async def test_existing_customer_is_reused(self, db, seed):
        lead = await _sold_lead(db, phone=seed.customer.phone)

        result = await LeadService(db).convert_to_customer(lead.id)

        assert result == {"customer_id": seed.customer.id, "ticket_id": None}
        count = await db.scalar(select(func.count()).select_from(Customer))
        assert count == 1

    async def test_only_sold_leads_convert(self, db, seed):
        lead = await _new_lead(db)
        with pytest.raises(InvalidTransitionError):
            await LeadService(db).convert_to_customer(lead.id)

        count = await db.scalar(select(func.count()).select_from(Customer))
        assert count == 1

    async def test_converted_lead_is_terminal(self, db, seed):
        lead = await _sold_lead(db)
        await LeadService(db).convert_to_customer(lead.id)

        with pytest.raises(InvalidTransitionError):
            await LeadService(db).convert_to_customer(lead.id)


async def test_walk_in_lead_lost_on_price(db, seed):
    service = LeadService(db)
    lead = await service.create_lead({"name": "Dr. Priya", "phone": "9898989898", "source": "Walk-in"})
    assert lead.status == LeadStatus.NEW

    lead = await service.schedule_follow_up(lead.id, date(2024, 6, 25), "Call back next week")
    assert lead.status == LeadStatus.FOLLOW_UP
    assert lead.next_follow_up == date(2024, 6, 25)
    history = await service.get_history(lead.id)
    assert sorted(h.action for h in history) == ["Created", "Follow-up Set", "Status Change"]

    notes_before = lead.notes
    lead = await service.mark_lost(lead.id, "Price too high", "Went with a cheaper brand")
    assert lead.status == LeadStatus.LOST
    assert lead.loss_reason == "Price too high"
    assert lead.notes.startswith(notes_before)
    assert lead.notes.endswith("Went with a cheaper brand")
