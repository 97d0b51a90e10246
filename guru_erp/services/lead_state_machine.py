"""
Lead Pipeline State Machine

    NEW -> FOLLOW_UP -> ESTIMATE_SENT -> SOLD -> CONVERTED
    FOLLOW_UP -> FOLLOW_UP               (reschedule)
    FOLLOW_UP -> SOLD                    (closed without a formal estimate)
    NEW | FOLLOW_UP | ESTIMATE_SENT -> LOST

CONVERTED and LOST are terminal.
"""

from datetime import date
from typing import Dict, List, Optional

from guru_erp.core.exceptions import InvalidTransitionError, ValidationFailed
from guru_erp.models.lead import LeadStatus


LEAD_TRANSITIONS: Dict[str, List[str]] = {
    LeadStatus.NEW: [
        LeadStatus.FOLLOW_UP,
        LeadStatus.LOST,
    ],
    LeadStatus.FOLLOW_UP: [
        LeadStatus.FOLLOW_UP,
        LeadStatus.ESTIMATE_SENT,
        LeadStatus.SOLD,
        LeadStatus.LOST,
    ],
    LeadStatus.ESTIMATE_SENT: [
        LeadStatus.SOLD,
        LeadStatus.LOST,
    ],
    LeadStatus.SOLD: [
        LeadStatus.CONVERTED,
    ],
    LeadStatus.CONVERTED: [],       # Terminal state
    LeadStatus.LOST: [],            # Terminal state
}

# Statuses written only by their pipeline operation (endpoint suffix)
OPERATION_STATUSES: Dict[str, str] = {
    LeadStatus.LOST: "lost",
    LeadStatus.CONVERTED: "convert",
}


def can_transition(current_status: str, new_status: str) -> bool:
    """Check if a transition is allowed."""
    return new_status in LEAD_TRANSITIONS.get(current_status, [])


def get_allowed_transitions(current_status: str) -> List[str]:
    """Get list of statuses reachable from current status."""
    return [s.value for s in LEAD_TRANSITIONS.get(current_status, [])]


def validate_transition(current_status: str, new_status: str) -> None:
    """Raise InvalidTransitionError when the move is not in the table."""
    if not can_transition(current_status, new_status):
        raise InvalidTransitionError(
            "Lead",
            getattr(current_status, "value", current_status),
            getattr(new_status, "value", new_status),
            get_allowed_transitions(current_status),
        )


def validate_direct_update(current_status: str, new_status: str) -> None:
    """LOST needs a reason and CONVERTED a customer; both have their own endpoint."""
    operation = OPERATION_STATUSES.get(new_status)
    if operation:
        status = getattr(new_status, "value", new_status)
        raise ValidationFailed(
            f"Use POST /leads/{{id}}/{operation} to move a lead to {status}",
            {"field": "status", "operation": operation},
        )
    validate_transition(current_status, new_status)


def is_terminal(status: str) -> bool:
    return status in (LeadStatus.CONVERTED, LeadStatus.LOST)


def append_notes(existing: Optional[str], new_notes: Optional[str], on: Optional[date] = None) -> str:
    """
    Append a dated entry to a lead's notes. Existing text is always kept as
    the prefix; blank input leaves the notes untouched.
    """
    existing = existing or ""
    if not new_notes or not new_notes.strip():
        return existing
    entry = f"[{(on or date.today()).isoformat()}] {new_notes.strip()}"
    if not existing:
        return entry
    return f"{existing}\n{entry}"
