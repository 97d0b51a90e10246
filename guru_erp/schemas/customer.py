"""Customer and machine schemas for API requests/responses."""
from pydantic import Field
from typing import Optional, List
from datetime import datetime, date
import uuid

from guru_erp.models.customer import CustomerType
from guru_erp.schemas.base import BaseCreateSchema, BaseUpdateSchema, BaseResponseSchema


# ==================== MACHINE SCHEMAS ====================

class MachineCreate(BaseCreateSchema):
    """Register a machine for a customer.

    warranty_expiry and amc_expiry are derived when omitted.
    """
    id: Optional[uuid.UUID] = None
    model_name: str = Field(..., min_length=1, max_length=100)
    machine_type_id: Optional[uuid.UUID] = None
    installation_date: date
    warranty_expiry: Optional[date] = None
    amc_active: bool = False
    amc_expiry: Optional[date] = None


class MachineUpdate(BaseUpdateSchema):
    model_name: Optional[str] = Field(None, min_length=1, max_length=100)
    machine_type_id: Optional[uuid.UUID] = None
    installation_date: Optional[date] = None
    warranty_expiry: Optional[date] = None
    amc_active: Optional[bool] = None
    amc_expiry: Optional[date] = None


class MachineResponse(BaseResponseSchema):
    id: uuid.UUID
    customer_id: uuid.UUID
    machine_type_id: Optional[uuid.UUID] = None
    model_name: str
    installation_date: date
    warranty_expiry: Optional[date] = None
    amc_active: bool
    amc_expiry: Optional[date] = None


# ==================== CUSTOMER SCHEMAS ====================

class CustomerCreate(BaseCreateSchema):
    """Customer creation schema."""
    id: Optional[uuid.UUID] = None
    name: str = Field(..., min_length=1, max_length=200)
    phone: str = Field(..., min_length=1, max_length=20)
    address: Optional[str] = None
    customer_type: CustomerType = CustomerType.SERVICE_ONLY
    machines: List[MachineCreate] = []


class CustomerUpdate(BaseUpdateSchema):
    """Customer update schema."""
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    phone: Optional[str] = Field(None, min_length=1, max_length=20)
    address: Optional[str] = None
    customer_type: Optional[CustomerType] = None


class CustomerResponse(BaseResponseSchema):
    """Customer with machines."""
    id: uuid.UUID
    name: str
    phone: str
    address: Optional[str] = None
    customer_type: str
    machines: List[MachineResponse] = []
    created_at: datetime


class AmcExpiryResponse(BaseResponseSchema):
    """Machine whose AMC runs out inside the renewal window."""
    machine_id: uuid.UUID
    customer_id: uuid.UUID
    customer_name: str
    customer_phone: str
    model_name: str
    amc_expiry: date
    days_remaining: int
