"""Authentication endpoints."""
from fastapi import APIRouter

from guru_erp.api.deps import DB, CurrentUser
from guru_erp.schemas.auth import LoginRequest, TokenResponse
from guru_erp.schemas.user import UserResponse
from guru_erp.services.auth_service import AuthService


router = APIRouter(tags=["Authentication"])


@router.post("/login", response_model=TokenResponse)
async def login(data: LoginRequest, db: DB):
    """
    Authenticate with email and password.

    401 for unknown email or wrong password, 403 for a deactivated account.
    """
    auth_service = AuthService(db)
    user = await auth_service.authenticate_user(data.email, data.password)
    access_token, expires_in = await auth_service.create_token(user)

    return TokenResponse(
        access_token=access_token,
        token_type="bearer",
        expires_in=expires_in,
        user=UserResponse.model_validate(user),
    )


@router.get("/me", response_model=UserResponse)
async def get_me(current_user: CurrentUser):
    """Get the logged-in user."""
    return UserResponse.model_validate(current_user)
