"""
Service Ticket State Machine

This module is the SINGLE SOURCE OF TRUTH for ticket status transitions.
Both the server-side TicketService and the client coordinator's optimistic
updates go through it, so the two can never disagree about legality.

    PENDING -> ASSIGNED -> IN_PROGRESS -> COMPLETED
    PENDING | ASSIGNED -> CANCELLED
    ASSIGNED -> ASSIGNED            (reassign / reschedule)
"""

from decimal import Decimal
from typing import Dict, Iterable, List

from guru_erp.core.exceptions import InvalidTransitionError, ValidationFailed
from guru_erp.models.ticket import TicketStatus


# =============================================================================
# TRANSITION RULES
# =============================================================================

TICKET_TRANSITIONS: Dict[str, List[str]] = {
    TicketStatus.PENDING: [
        TicketStatus.ASSIGNED,      # Assign technician
        TicketStatus.CANCELLED,     # Cancel before dispatch
    ],
    TicketStatus.ASSIGNED: [
        TicketStatus.ASSIGNED,      # Reassign / reschedule
        TicketStatus.IN_PROGRESS,   # Technician starts work
        TicketStatus.CANCELLED,     # Cancel at site or by phone
    ],
    TicketStatus.IN_PROGRESS: [
        TicketStatus.COMPLETED,     # Close with parts and charges
    ],
    TicketStatus.COMPLETED: [],     # Terminal state - no transitions
    TicketStatus.CANCELLED: [],     # Terminal state - no transitions
}

TRANSITION_ACTIONS: Dict[tuple, str] = {
    (TicketStatus.PENDING, TicketStatus.ASSIGNED): "Assign",
    (TicketStatus.PENDING, TicketStatus.CANCELLED): "Cancel",
    (TicketStatus.ASSIGNED, TicketStatus.ASSIGNED): "Reassign",
    (TicketStatus.ASSIGNED, TicketStatus.IN_PROGRESS): "Start Work",
    (TicketStatus.ASSIGNED, TicketStatus.CANCELLED): "Cancel",
    (TicketStatus.IN_PROGRESS, TicketStatus.COMPLETED): "Complete",
}

# Statuses written only by their lifecycle operation (endpoint suffix)
OPERATION_STATUSES: Dict[str, str] = {
    TicketStatus.ASSIGNED: "assign",
    TicketStatus.IN_PROGRESS: "start",
    TicketStatus.COMPLETED: "complete",
    TicketStatus.CANCELLED: "cancel",
}


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def can_transition(current_status: str, new_status: str) -> bool:
    """Check if a transition is allowed."""
    allowed = TICKET_TRANSITIONS.get(current_status, [])
    return new_status in allowed


def get_allowed_transitions(current_status: str) -> List[str]:
    """Get list of statuses that can be transitioned to from current status."""
    return [s.value for s in TICKET_TRANSITIONS.get(current_status, [])]


def get_transition_action(current_status: str, new_status: str) -> str:
    """Get human-readable action name for a transition."""
    return TRANSITION_ACTIONS.get(
        (current_status, new_status), f"{current_status} -> {new_status}"
    )


def validate_transition(current_status: str, new_status: str) -> None:
    """
    Validate a status transition. Raises InvalidTransitionError if invalid.

    A same-status move is not implicitly allowed: only ASSIGNED -> ASSIGNED
    is listed, so terminal tickets reject every request.
    """
    if not can_transition(current_status, new_status):
        raise InvalidTransitionError(
            "Ticket",
            getattr(current_status, "value", current_status),
            getattr(new_status, "value", new_status),
            get_allowed_transitions(current_status),
        )


def validate_direct_update(current_status: str, new_status: str) -> None:
    """
    Validate a status set through a generic update.

    Assignment, start, completion and cancellation carry their own side
    effects (history row, item snapshot, stock, reason), so those statuses
    are refused here and must go through their operation.
    """
    operation = OPERATION_STATUSES.get(new_status)
    if operation:
        status = getattr(new_status, "value", new_status)
        raise ValidationFailed(
            f"Use POST /tickets/{{id}}/{operation} to move a ticket to {status}",
            {"field": "status", "operation": operation},
        )
    validate_transition(current_status, new_status)


def is_terminal(status: str) -> bool:
    """Is this a terminal (final) state?"""
    return status in (TicketStatus.COMPLETED, TicketStatus.CANCELLED)


def is_open(status: str) -> bool:
    """Is the ticket still waiting on someone?"""
    return not is_terminal(status)


# =============================================================================
# CLOSURE ARITHMETIC
# =============================================================================

def to_decimal(value) -> Decimal:
    """Convert float/int/str money values without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value or 0))


def compute_total_amount(service_charge, items: Iterable[dict]) -> Decimal:
    """total = service charge + sum(cost x quantity) over consumed items."""
    parts_total = sum(
        (to_decimal(item["cost"]) * int(item["quantity"]) for item in items),
        Decimal("0"),
    )
    return to_decimal(service_charge) + parts_total
