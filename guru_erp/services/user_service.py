"""User Service - staff accounts and the last-admin invariant."""
import logging
import uuid
from typing import List, Optional

from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from guru_erp.core.exceptions import BusinessRuleError, ConflictError, NotFoundError
from guru_erp.core.security import get_password_hash
from guru_erp.models.user import User, UserRole, UserStatus


logger = logging.getLogger(__name__)


class UserService:
    """Service for user management."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def list_users(self, role: Optional[str] = None) -> List[User]:
        query = select(User)
        if role:
            query = query.where(User.role == role)
        result = await self.db.execute(query.order_by(User.name))
        return list(result.scalars().all())

    async def get_user(self, user_id: uuid.UUID) -> User:
        user = await self.db.get(User, user_id)
        if not user:
            raise NotFoundError("User", user_id)
        return user

    async def get_user_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(
            select(User).where(User.email == email.strip().lower())
        )
        return result.scalar_one_or_none()

    async def create_user(self, data: dict) -> User:
        """Create a user. The plain password is hashed and discarded."""
        if data.get("id") is None:
            data.pop("id", None)
        data["email"] = data["email"].strip().lower()

        if await self.get_user_by_email(data["email"]):
            raise ConflictError(
                f"User with email {data['email']} already exists",
                {"email": data["email"]},
            )

        password = data.pop("password")
        user = User(password_hash=get_password_hash(password), **data)
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)
        logger.info("User created: %s (%s)", user.email, user.role)
        return user

    async def update_user(self, user_id: uuid.UUID, data: dict) -> User:
        """
        Partial update. Demoting or deactivating the only active admin is
        rejected the same way deleting them is.
        """
        user = await self.get_user(user_id)

        if data.get("email"):
            data["email"] = data["email"].strip().lower()
            if data["email"] != user.email:
                existing = await self.get_user_by_email(data["email"])
                if existing and existing.id != user.id:
                    raise ConflictError(
                        f"User with email {data['email']} already exists",
                        {"email": data["email"]},
                    )

        loses_admin = user.role == UserRole.ADMIN and (
            (data.get("role") or user.role) != UserRole.ADMIN
            or (data.get("status") or user.status) != UserStatus.ACTIVE
        )
        if loses_admin:
            await self._ensure_not_last_admin(user, active_only=True)

        password = data.pop("password", None)
        if password:
            user.password_hash = get_password_hash(password)

        for key, value in data.items():
            if value is not None and hasattr(user, key) and key != "id":
                setattr(user, key, value)

        await self.db.commit()
        await self.db.refresh(user)
        return user

    async def delete_user(self, user_id: uuid.UUID) -> None:
        """Delete a user. The last remaining admin cannot be deleted."""
        user = await self.get_user(user_id)
        if user.role == UserRole.ADMIN:
            await self._ensure_not_last_admin(user)

        await self.db.delete(user)
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise ConflictError(
                "User is referenced by ticket history; deactivate the account instead",
                {"user_id": str(user_id)},
            )
        logger.info("User %s deleted", user.email)

    async def _ensure_not_last_admin(self, user: User, active_only: bool = False) -> None:
        query = select(func.count()).select_from(User).where(
            User.role == UserRole.ADMIN.value,
            User.id != user.id,
        )
        if active_only:
            query = query.where(User.status == UserStatus.ACTIVE.value)
        others = await self.db.scalar(query)
        if not others:
            raise BusinessRuleError(
                "Cannot remove the last admin",
                {"user_id": str(user.id)},
            )
