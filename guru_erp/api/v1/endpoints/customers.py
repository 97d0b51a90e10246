"""Customer API endpoints."""
from typing import List
import uuid

from fastapi import APIRouter, status

from guru_erp.api.deps import DB, CurrentUser, StaffOnly
from guru_erp.schemas.customer import (
    CustomerCreate,
    CustomerUpdate,
    CustomerResponse,
    MachineCreate,
    MachineResponse,
)
from guru_erp.services.customer_service import CustomerService


router = APIRouter(tags=["Customers"])


@router.get("", response_model=List[CustomerResponse])
async def list_customers(db: DB, current_user: CurrentUser):
    customers = await CustomerService(db).list_customers()
    return [CustomerResponse.model_validate(c) for c in customers]


@router.post(
    "",
    response_model=CustomerResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[StaffOnly],
)
async def create_customer(data: CustomerCreate, db: DB):
    """Create a customer. Phone numbers are unique."""
    customer = await CustomerService(db).create_customer(data.model_dump())
    return CustomerResponse.model_validate(customer)


@router.get("/{customer_id}", response_model=CustomerResponse)
async def get_customer(customer_id: uuid.UUID, db: DB, current_user: CurrentUser):
    customer = await CustomerService(db).get_customer(customer_id)
    return CustomerResponse.model_validate(customer)


@router.patch("/{customer_id}", response_model=CustomerResponse, dependencies=[StaffOnly])
async def update_customer(customer_id: uuid.UUID, data: CustomerUpdate, db: DB):
    """Update a customer. Renames propagate to the customer's tickets."""
    customer = await CustomerService(db).update_customer(
        customer_id, data.model_dump(exclude_unset=True)
    )
    return CustomerResponse.model_validate(customer)


@router.post(
    "/{customer_id}/machines",
    response_model=MachineResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[StaffOnly],
)
async def add_machine(customer_id: uuid.UUID, data: MachineCreate, db: DB):
    """Register a machine. Warranty and AMC expiry are derived when omitted."""
    machine = await CustomerService(db).add_machine(customer_id, data.model_dump())
    return MachineResponse.model_validate(machine)
