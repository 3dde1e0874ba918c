# storefront/repositories/order_repository.py
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.auditable import active_only, history
from storefront.models.order_models import Order

logger = logging.getLogger(__name__)


class OrderRepository:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    def add(self, order: Order) -> None:
        self._db.add(order)

    async def get(self, order_id: int, include_deleted: bool = False) -> Optional[Order]:
        stmt = select(Order).where(Order.id == order_id)
        if not include_deleted:
            stmt = active_only(Order, stmt)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_active(self, user_id: Optional[int] = None) -> List[Order]:
        stmt = active_only(Order)
        if user_id is not None:
            stmt = stmt.where(Order.user_id == user_id)
        result = await self._db.execute(stmt.order_by(Order.created_at.desc(), Order.id.desc()))
        return list(result.scalars().all())

    async def list_history(self, start: datetime, end: datetime) -> List[Order]:
        """Every order created in [start, end), deleted ones included."""
        stmt = history(Order).where(Order.created_at >= start, Order.created_at < end)
        result = await self._db.execute(stmt.order_by(Order.created_at.desc(), Order.id.desc()))
        return list(result.scalars().all())

    async def get_by_idempotency_key(self, key: str) -> Optional[Order]:
        result = await self._db.execute(select(Order).where(Order.idempotency_key == key))
        return result.scalar_one_or_none()

    async def list_expired(self, cutoff: datetime) -> List[Order]:
        """Live orders created at or before ``cutoff``."""
        stmt = active_only(Order).where(Order.created_at <= cutoff)
        result = await self._db.execute(stmt.order_by(Order.id))
        return list(result.scalars().all())
