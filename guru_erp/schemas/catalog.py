"""Part and machine-type catalog schemas."""
from pydantic import Field
from typing import Optional
from datetime import datetime
import uuid

from guru_erp.schemas.base import BaseCreateSchema, BaseUpdateSchema, BaseResponseSchema


# ==================== PART SCHEMAS ====================

class PartCreate(BaseCreateSchema):
    id: Optional[uuid.UUID] = None
    name: str = Field(..., min_length=1, max_length=200)
    category: Optional[str] = Field(None, max_length=100)
    price: float = Field(0, ge=0)
    warranty_months: int = Field(0, ge=0)
    stock_quantity: int = Field(0, ge=0)


class PartUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=200)
    category: Optional[str] = Field(None, max_length=100)
    price: Optional[float] = Field(None, ge=0)
    warranty_months: Optional[int] = Field(None, ge=0)
    stock_quantity: Optional[int] = Field(None, ge=0)


class PartResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    category: Optional[str] = None
    price: float
    warranty_months: int
    stock_quantity: int
    updated_at: datetime


# ==================== MACHINE TYPE SCHEMAS ====================

class MachineTypeCreate(BaseCreateSchema):
    id: Optional[uuid.UUID] = None
    model_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    warranty_months: int = Field(12, ge=0)
    price: float = Field(0, ge=0)


class MachineTypeResponse(BaseResponseSchema):
    id: uuid.UUID
    model_name: str
    description: Optional[str] = None
    warranty_months: int
    price: float
