"""Machine type catalog endpoints."""
from typing import List

from fastapi import APIRouter, status

from guru_erp.api.deps import DB, CurrentUser, StaffOnly
from guru_erp.schemas.catalog import MachineTypeCreate, MachineTypeResponse
from guru_erp.services.customer_service import CustomerService


router = APIRouter(tags=["Machine Types"])


@router.get("", response_model=List[MachineTypeResponse])
async def list_machine_types(db: DB, current_user: CurrentUser):
    machine_types = await CustomerService(db).list_machine_types()
    return [MachineTypeResponse.model_validate(m) for m in machine_types]


@router.post(
    "",
    response_model=MachineTypeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[StaffOnly],
)
async def create_machine_type(data: MachineTypeCreate, db: DB):
    machine_type = await CustomerService(db).create_machine_type(data.model_dump())
    return MachineTypeResponse.model_validate(machine_type)
