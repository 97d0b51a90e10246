"""Authentication schemas."""
from pydantic import BaseModel, Field

from guru_erp.schemas.user import UserResponse


class LoginRequest(BaseModel):
    """Login request schema."""
    email: str = Field(..., min_length=3, description="User email address")
    password: str = Field(..., min_length=1, description="User password")


class TokenResponse(BaseModel):
    """Token response schema."""
    access_token: str = Field(..., description="JWT access token")
    token_type: str = Field(default="bearer", description="Token type")
    expires_in: int = Field(..., description="Access token expiration in seconds")
    user: UserResponse
