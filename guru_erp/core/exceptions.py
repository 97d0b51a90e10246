"""
Domain errors raised by the service layer.

Services never raise HTTPException; main.py maps these onto JSON responses
so the same services can be driven from scripts and tests.
"""
from typing import Dict, Optional


class DomainError(Exception):
    """Base class for expected, user-facing failures."""
    status_code = 400

    def __init__(self, message: str, details: Optional[Dict] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ValidationFailed(DomainError):
    """A required field is missing or blank."""
    status_code = 400


class NotFoundError(DomainError):
    """Referenced entity does not exist."""
    status_code = 404

    def __init__(self, entity: str, entity_id):
        super().__init__(
            f"{entity} not found",
            {"entity": entity, "id": str(entity_id)},
        )


class ConflictError(DomainError):
    """Unique business key already taken (phone, email, model name)."""
    status_code = 409


class InvalidTransitionError(DomainError):
    """Requested status change is not in the transition table."""
    status_code = 409

    def __init__(self, entity: str, current_status: str, new_status: str, allowed=None):
        allowed = list(allowed or [])
        if not allowed:
            message = f"{entity} in '{current_status}' status cannot be modified. This is a terminal state."
        else:
            message = (
                f"Cannot change {entity} from '{current_status}' to '{new_status}'. "
                f"Allowed transitions: {', '.join(allowed)}"
            )
        super().__init__(message, {
            "current_status": current_status,
            "requested_status": new_status,
            "allowed": allowed,
        })
        self.current_status = current_status
        self.new_status = new_status


class BusinessRuleError(DomainError):
    """Operation would break an invariant (e.g. removing the last admin)."""
    status_code = 422


class AuthenticationError(DomainError):
    """Login rejected. ``reason`` is 'invalid_credentials' or 'account_inactive'."""
    INVALID_CREDENTIALS = "invalid_credentials"
    ACCOUNT_INACTIVE = "account_inactive"

    def __init__(self, reason: str):
        if reason == self.ACCOUNT_INACTIVE:
            message = "User account is deactivated"
            self.status_code = 403
        else:
            message = "Invalid email or password"
            self.status_code = 401
        super().__init__(message, {"reason": reason})
        self.reason = reason
