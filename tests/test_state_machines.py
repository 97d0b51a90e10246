"""Transition tables, closure arithmetic and note appending."""
from datetime import date
from decimal import Decimal

import pytest

from guru_erp.core.exceptions import InvalidTransitionError
from guru_erp.models.lead import LeadStatus
from guru_erp.models.ticket import TicketStatus
from guru_erp.services import lead_state_machine, ticket_state_machine


class TestTicketTransitions:
    @pytest.mark.parametrize("current,new", [
        ("PENDING", "ASSIGNED"),
        ("PENDING", "CANCELLED"),
        ("ASSIGNED", "ASSIGNED"),
        ("ASSIGNED", "IN_PROGRESS"),
        ("ASSIGNED", "CANCELLED"),
        ("IN_PROGRESS", "COMPLETED"),
    ])
    def test_allowed(self, current, new):
        assert ticket_state_machine.can_transition(current, new)
        ticket_state_machine.validate_transition(current, new)

    @pytest.mark.parametrize("current,new", [
        ("PENDING", "IN_PROGRESS"),
        ("PENDING", "COMPLETED"),
        ("IN_PROGRESS", "CANCELLED"),
        ("IN_PROGRESS", "ASSIGNED"),
        ("PENDING", "PENDING"),
    ])
    def test_rejected(self, current, new):
        with pytest.raises(InvalidTransitionError) as exc_info:
            ticket_state_machine.validate_transition(current, new)
        assert exc_info.value.status_code == 409
        assert exc_info.value.details["current_status"] == current

    @pytest.mark.parametrize("terminal", ["COMPLETED", "CANCELLED"])
    def test_terminal_states_reject_everything(self, terminal):
        assert ticket_state_machine.is_terminal(terminal)
        assert ticket_state_machine.get_allowed_transitions(terminal) == []
        for status in TicketStatus:
            with pytest.raises(InvalidTransitionError, match="terminal state"):
                ticket_state_machine.validate_transition(terminal, status)

    def test_error_message_uses_plain_values(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            ticket_state_machine.validate_transition(TicketStatus.PENDING, TicketStatus.COMPLETED)
        message = exc_info.value.message
        assert "'PENDING'" in message
        assert "TicketStatus." not in message
        assert exc_info.value.details["allowed"] == ["ASSIGNED", "CANCELLED"]

    def test_transition_action_names(self):
        assert ticket_state_machine.get_transition_action("ASSIGNED", "ASSIGNED") == "Reassign"
        assert ticket_state_machine.get_transition_action("PENDING", "ASSIGNED") == "Assign"


class TestClosureArithmetic:
    def test_total_is_service_charge_plus_items(self):
        items = [{"cost": 350.0, "quantity": 1}, {"cost": 1200, "quantity": 2}]
        assert ticket_state_machine.compute_total_amount(200, items) == Decimal("2950")

    def test_no_float_drift(self):
        items = [{"cost": 0.1, "quantity": 3}]
        assert ticket_state_machine.compute_total_amount("0.2", items) == Decimal("0.5")

    def test_empty_items(self):
        assert ticket_state_machine.compute_total_amount(0, []) == Decimal("0")
        assert ticket_state_machine.to_decimal(None) == Decimal("0")


class TestLeadTransitions:
    @pytest.mark.parametrize("current,new", [
        ("NEW", "FOLLOW_UP"),
        ("NEW", "LOST"),
        ("FOLLOW_UP", "FOLLOW_UP"),
        ("FOLLOW_UP", "ESTIMATE_SENT"),
        ("FOLLOW_UP", "SOLD"),
        ("ESTIMATE_SENT", "SOLD"),
        ("ESTIMATE_SENT", "LOST"),
        ("SOLD", "CONVERTED"),
    ])
    def test_allowed(self, current, new):
        lead_state_machine.validate_transition(current, new)

    @pytest.mark.parametrize("current,new", [
        ("NEW", "SOLD"),
        ("NEW", "CONVERTED"),
        ("ESTIMATE_SENT", "FOLLOW_UP"),
        ("SOLD", "LOST"),
    ])
    def test_rejected(self, current, new):
        with pytest.raises(InvalidTransitionError):
            lead_state_machine.validate_transition(current, new)

    @pytest.mark.parametrize("terminal", [LeadStatus.CONVERTED, LeadStatus.LOST])
    def test_terminal(self, terminal):
        assert lead_state_machine.is_terminal(terminal)
        with pytest.raises(InvalidTransitionError, match="terminal state"):
            lead_state_machine.validate_transition(terminal, LeadStatus.FOLLOW_UP)


class TestAppendNotes:
    def test_appends_dated_entry(self):
        notes = lead_state_machine.append_notes("Interested in RO", "Called back", on=date(2024, 6, 20))
        assert notes == "Interested in RO\n[2024-06-20] Called back"

    def test_first_entry_has_no_leading_newline(self):
        assert lead_state_machine.append_notes("", "Hello", on=date(2024, 1, 2)) == "[2024-01-02] Hello"

    @pytest.mark.parametrize("blank", [None, "", "   "])
    def test_blank_input_keeps_notes(self, blank):
        assert lead_state_machine.append_notes("existing", blank) == "existing"
