"""Machine and AMC endpoints."""
from typing import List
import uuid

from fastapi import APIRouter, status

from guru_erp.api.deps import DB, CurrentUser, StaffOnly
from guru_erp.schemas.customer import MachineUpdate, MachineResponse, AmcExpiryResponse
from guru_erp.schemas.ticket import TicketResponse
from guru_erp.services.customer_service import CustomerService
from guru_erp.services.ticket_service import TicketService


router = APIRouter(tags=["Machines"])


@router.get("/amc-expiries", response_model=List[AmcExpiryResponse])
async def get_amc_expiries(db: DB, current_user: CurrentUser):
    """Active AMCs expiring within the renewal window, soonest first."""
    expiries = await CustomerService(db).get_amc_expiries()
    return [AmcExpiryResponse.model_validate(e) for e in expiries]


@router.patch("/{machine_id}", response_model=MachineResponse, dependencies=[StaffOnly])
async def update_machine(machine_id: uuid.UUID, data: MachineUpdate, db: DB):
    machine = await CustomerService(db).update_machine(
        machine_id, data.model_dump(exclude_unset=True)
    )
    return MachineResponse.model_validate(machine)


@router.delete("/{machine_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[StaffOnly])
async def delete_machine(machine_id: uuid.UUID, db: DB):
    """Delete a machine. Tickets referencing it keep their record with no machine."""
    await CustomerService(db).delete_machine(machine_id)


@router.post(
    "/{machine_id}/amc-renewal",
    response_model=TicketResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[StaffOnly],
)
async def create_amc_renewal_ticket(machine_id: uuid.UUID, db: DB):
    """Open an AMC_SERVICE ticket for the machine's owner."""
    ticket = await TicketService(db).create_amc_renewal_ticket(machine_id)
    return TicketResponse.model_validate(ticket)
