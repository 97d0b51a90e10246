"""User schemas. Password hashes are never part of a response."""
from pydantic import Field, EmailStr
from typing import Optional
from datetime import datetime
import uuid

from guru_erp.models.user import UserRole, UserStatus
from guru_erp.schemas.base import BaseCreateSchema, BaseUpdateSchema, BaseResponseSchema


class UserCreate(BaseCreateSchema):
    id: Optional[uuid.UUID] = None
    name: str = Field(..., min_length=1, max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=6)
    role: UserRole = UserRole.TECHNICIAN
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    status: UserStatus = UserStatus.ACTIVE


class UserUpdate(BaseUpdateSchema):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[EmailStr] = None
    password: Optional[str] = Field(None, min_length=6)
    role: Optional[UserRole] = None
    phone: Optional[str] = Field(None, max_length=20)
    address: Optional[str] = None
    status: Optional[UserStatus] = None


class UserResponse(BaseResponseSchema):
    id: uuid.UUID
    name: str
    email: str
    role: str
    phone: Optional[str] = None
    address: Optional[str] = None
    status: str
    last_login_at: Optional[datetime] = None
