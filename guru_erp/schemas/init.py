"""Bootstrap payload returned by GET /init."""
from typing import List

from pydantic import BaseModel

from guru_erp.schemas.catalog import PartResponse, MachineTypeResponse
from guru_erp.schemas.customer import CustomerResponse, AmcExpiryResponse
from guru_erp.schemas.lead import LeadResponse
from guru_erp.schemas.ticket import TicketResponse
from guru_erp.schemas.user import UserResponse


class InitDataResponse(BaseModel):
    """Every collection the client keeps locally, in one round trip."""
    tickets: List[TicketResponse] = []
    customers: List[CustomerResponse] = []
    leads: List[LeadResponse] = []
    parts: List[PartResponse] = []
    machine_types: List[MachineTypeResponse] = []
    users: List[UserResponse] = []
    amc_expiries: List[AmcExpiryResponse] = []
