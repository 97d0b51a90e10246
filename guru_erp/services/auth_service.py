from datetime import datetime, timezone
from typing import Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from guru_erp.config import settings
from guru_erp.core.exceptions import AuthenticationError
from guru_erp.core.security import (
    verify_and_check_needs_rehash,
    get_password_hash,
    create_access_token,
)
from guru_erp.models.user import User


class AuthService:
    """Authentication service for user login and token management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def authenticate_user(self, email: str, password: str) -> User:
        """
        Authenticate a user by email and password.

        Unknown email and wrong password are indistinguishable to the caller;
        a correct password on a deactivated account is reported separately.
        Hashes from a deprecated scheme are upgraded on successful login.

        Raises:
            AuthenticationError: reason is INVALID_CREDENTIALS or ACCOUNT_INACTIVE
        """
        result = await self.db.execute(
            select(User).where(User.email == email.strip().lower())
        )
        user = result.scalar_one_or_none()

        if user is None:
            raise AuthenticationError(AuthenticationError.INVALID_CREDENTIALS)

        is_valid, needs_rehash = verify_and_check_needs_rehash(password, user.password_hash)
        if not is_valid:
            raise AuthenticationError(AuthenticationError.INVALID_CREDENTIALS)

        if not user.is_active:
            raise AuthenticationError(AuthenticationError.ACCOUNT_INACTIVE)

        if needs_rehash:
            user.password_hash = get_password_hash(password)
            await self.db.commit()

        return user

    async def create_token(self, user: User) -> Tuple[str, int]:
        """
        Create an access token for a user and stamp last_login_at.

        Returns:
            Tuple of (access_token, expires_in_seconds)
        """
        access_token = create_access_token(
            subject=user.id,
            additional_claims={"email": user.email, "role": user.role},
        )
        expires_in = settings.ACCESS_TOKEN_EXPIRE_MINUTES * 60

        user.last_login_at = datetime.now(timezone.utc)
        await self.db.commit()
        await self.db.refresh(user)

        return access_token, expires_in
