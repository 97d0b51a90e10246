"""User management endpoints. Writes are admin-only."""
from typing import List, Optional
import uuid

from fastapi import APIRouter, status, Query

from guru_erp.api.deps import DB, CurrentUser, AdminOnly
from guru_erp.models.user import UserRole
from guru_erp.schemas.user import UserCreate, UserUpdate, UserResponse
from guru_erp.services.user_service import UserService


router = APIRouter(tags=["Users"])


@router.get("", response_model=List[UserResponse])
async def list_users(
    db: DB,
    current_user: CurrentUser,
    role: Optional[UserRole] = Query(None),
):
    users = await UserService(db).list_users(role=role.value if role else None)
    return [UserResponse.model_validate(u) for u in users]


@router.post(
    "",
    response_model=UserResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[AdminOnly],
)
async def create_user(data: UserCreate, db: DB):
    user = await UserService(db).create_user(data.model_dump())
    return UserResponse.model_validate(user)


@router.patch("/{user_id}", response_model=UserResponse, dependencies=[AdminOnly])
async def update_user(user_id: uuid.UUID, data: UserUpdate, db: DB):
    """Update a user. The only remaining admin cannot be demoted or deactivated."""
    user = await UserService(db).update_user(user_id, data.model_dump(exclude_unset=True))
    return UserResponse.model_validate(user)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT, dependencies=[AdminOnly])
async def delete_user(user_id: uuid.UUID, db: DB):
    """Delete a user. The last admin cannot be deleted."""
    await UserService(db).delete_user(user_id)
