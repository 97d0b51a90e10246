# Import every model so Base.metadata knows all tables
from guru_erp.models.user import User, UserRole, UserStatus
from guru_erp.models.customer import Customer, CustomerType, Machine
from guru_erp.models.catalog import Part, MachineType
from guru_erp.models.ticket import (
    Ticket, TicketAssignmentHistory, TicketStatus, TicketPriority, ServiceType, PaymentMode,
)
from guru_erp.models.lead import Lead, LeadHistory, LeadStatus, LeadAction

__all__ = [
    "User", "UserRole", "UserStatus",
    "Customer", "CustomerType", "Machine",
    "Part", "MachineType",
    "Ticket", "TicketAssignmentHistory", "TicketStatus", "TicketPriority",
    "ServiceType", "PaymentMode",
    "Lead", "LeadHistory", "LeadStatus", "LeadAction",
]
