"""
Inventory Service - part catalog and stock consumption.

Stock is decremented when a ticket is completed. There is no reservation
between start and completion, so a part can run short; when it does the
stock is floored at zero and a StockWarning is returned instead of failing
the completion.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from guru_erp.config import settings
from guru_erp.core.exceptions import NotFoundError
from guru_erp.models.catalog import Part


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StockWarning:
    """Requested quantity exceeded the stock on hand."""
    part_id: uuid.UUID
    part_name: str
    requested: int
    available: int


class InventoryService:
    """Service for part catalog and stock operations."""

    def __init__(self, db: AsyncSession):
        self.db = db

    # ==================== CATALOG ====================

    async def list_parts(self) -> List[Part]:
        result = await self.db.execute(select(Part).order_by(Part.name))
        return list(result.scalars().all())

    async def get_part(self, part_id: uuid.UUID) -> Part:
        part = await self.db.get(Part, part_id)
        if not part:
            raise NotFoundError("Part", part_id)
        return part

    async def create_part(self, data: dict) -> Part:
        """Create a part. Stock starts at the given non-negative quantity."""
        if data.get("id") is None:
            data.pop("id", None)
        part = Part(**data)
        self.db.add(part)
        await self.db.commit()
        await self.db.refresh(part)
        logger.info("Part created: %s (stock %s)", part.name, part.stock_quantity)
        return part

    async def update_part(self, part_id: uuid.UUID, data: dict) -> Part:
        part = await self.get_part(part_id)
        for key, value in data.items():
            if hasattr(part, key):
                setattr(part, key, value)
        await self.db.commit()
        await self.db.refresh(part)
        return part

    # ==================== STOCK ====================

    async def consume_parts(self, items: Iterable[dict]) -> List[StockWarning]:
        """
        Decrement stock for each ``{part_id, quantity}``.

        Does not commit; the caller owns the transaction so stock and the
        ticket closure land together.
        """
        warnings: List[StockWarning] = []
        for item in items:
            part = await self.get_part(uuid.UUID(str(item["part_id"])))
            requested = int(item["quantity"])
            available = part.stock_quantity or 0

            if requested > available:
                warning = StockWarning(
                    part_id=part.id,
                    part_name=part.name,
                    requested=requested,
                    available=available,
                )
                warnings.append(warning)
                logger.warning(
                    "Insufficient stock for %s: requested %d, available %d",
                    part.name, requested, available,
                )

            part.stock_quantity = max(available - requested, 0)

            if part.stock_quantity <= settings.LOW_STOCK_THRESHOLD:
                logger.warning("Low stock: %s has %d left", part.name, part.stock_quantity)

        await self.db.flush()
        return warnings

    async def get_low_stock_parts(self, threshold: Optional[int] = None) -> List[Part]:
        threshold = settings.LOW_STOCK_THRESHOLD if threshold is None else threshold
        result = await self.db.execute(
            select(Part).where(Part.stock_quantity <= threshold).order_by(Part.stock_quantity)
        )
        return list(result.scalars().all())
