"""Parts inventory endpoints."""
from typing import List
import uuid

from fastapi import APIRouter, status, Query

from guru_erp.api.deps import DB, CurrentUser, StaffOnly
from guru_erp.schemas.catalog import PartCreate, PartUpdate, PartResponse
from guru_erp.services.inventory_service import InventoryService


router = APIRouter(tags=["Parts"])


@router.get("", response_model=List[PartResponse])
async def list_parts(
    db: DB,
    current_user: CurrentUser,
    low_stock: bool = Query(False, description="Only parts at or below the low-stock threshold"),
):
    service = InventoryService(db)
    parts = await service.get_low_stock_parts() if low_stock else await service.list_parts()
    return [PartResponse.model_validate(p) for p in parts]


@router.post(
    "",
    response_model=PartResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[StaffOnly],
)
async def create_part(data: PartCreate, db: DB):
    part = await InventoryService(db).create_part(data.model_dump())
    return PartResponse.model_validate(part)


@router.patch("/{part_id}", response_model=PartResponse, dependencies=[StaffOnly])
async def update_part(part_id: uuid.UUID, data: PartUpdate, db: DB):
    part = await InventoryService(db).update_part(part_id, data.model_dump(exclude_unset=True))
    return PartResponse.model_validate(part)
