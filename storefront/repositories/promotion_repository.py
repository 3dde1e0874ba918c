# storefront/repositories/promotion_repository.py
"""
Promotion Repository - discounts and coupons.

Holds the only write the checkout makes to a coupon: the guarded
``uses`` increment.
"""
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.auditable import active_only
from storefront.models.order_models import Order, OrderStatus
from storefront.models.promotion_models import Coupon, Discount
from storefront.schemas.pricing_schemas import Identity
from storefront.services.pricing_services.promotion_catalog import PromotionCatalog

logger = logging.getLogger(__name__)


class PromotionRepository:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # =========================================================================
    # Discounts
    # =========================================================================

    async def list_live_discounts(self) -> List[Discount]:
        """Switched-on, non-deleted discounts; date windows are checked per request."""
        result = await self._db.execute(active_only(Discount).where(Discount.active == True))  # noqa: E712
        return list(result.scalars().all())

    async def load_catalog(self) -> PromotionCatalog:
        return PromotionCatalog(await self.list_live_discounts())

    async def get_discount(self, discount_id: int, include_deleted: bool = False) -> Optional[Discount]:
        stmt = select(Discount).where(Discount.id == discount_id)
        if not include_deleted:
            stmt = active_only(Discount, stmt)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def list_discounts(self, include_deleted: bool = False) -> List[Discount]:
        stmt = select(Discount) if include_deleted else active_only(Discount)
        result = await self._db.execute(stmt.order_by(Discount.created_at.desc(), Discount.id.desc()))
        return list(result.scalars().all())

    async def list_expired_discounts(self, now: datetime) -> List[Discount]:
        result = await self._db.execute(
            active_only(Discount).where(Discount.end_date.is_not(None), Discount.end_date <= now)
        )
        return list(result.scalars().all())

    # =========================================================================
    # Coupons
    # =========================================================================

    async def get_coupon(self, code: str) -> Optional[Coupon]:
        """A live coupon by normalized code. Soft-deleted coupons are invisible here."""
        result = await self._db.execute(active_only(Coupon).where(Coupon.code == code))
        return result.scalar_one_or_none()

    async def get_coupon_by_id(self, coupon_id: int, include_deleted: bool = False) -> Optional[Coupon]:
        stmt = select(Coupon).where(Coupon.id == coupon_id)
        if not include_deleted:
            stmt = active_only(Coupon, stmt)
        result = await self._db.execute(stmt)
        return result.scalar_one_or_none()

    async def code_taken(self, code: str) -> bool:
        # Deleted coupons keep their code reserved for the audit trail
        result = await self._db.execute(select(Coupon.id).where(Coupon.code == code))
        return result.first() is not None

    async def list_coupons(self, include_deleted: bool = False) -> List[Coupon]:
        stmt = select(Coupon) if include_deleted else active_only(Coupon)
        result = await self._db.execute(stmt.order_by(Coupon.created_at.desc(), Coupon.id.desc()))
        return list(result.scalars().all())

    async def list_expired_coupons(self, now: datetime) -> List[Coupon]:
        result = await self._db.execute(
            active_only(Coupon).where(Coupon.expires_at.is_not(None), Coupon.expires_at <= now)
        )
        return list(result.scalars().all())

    async def count_prior_coupon_orders(self, code: str, identity: Identity) -> int:
        """
        Successful orders by this identity that used ``code``. Cancelled and
        deleted orders do not count. Guests are matched by email only, so this
        is a best-effort, identity-scoped limit.
        """
        identity_filters = []
        if identity.user_id is not None:
            identity_filters.append(Order.user_id == identity.user_id)
        if identity.guest_email:
            identity_filters.append(func.lower(Order.guest_email) == identity.guest_email)

        result = await self._db.execute(
            select(func.count(Order.id)).where(
                Order.coupon_code == code,
                Order.status != OrderStatus.CANCELLED,
                Order.deleted_at.is_(None),
                or_(*identity_filters),
            )
        )
        return result.scalar_one()

    async def increment_coupon_use(self, code: str) -> bool:
        """
        Compare-and-set on ``uses``: succeeds only while under ``max_uses``.
        A False return means a concurrent checkout took the last use.
        """
        stmt = (
            update(Coupon)
            .where(
                Coupon.code == code,
                Coupon.deleted_at.is_(None),
                Coupon.active == True,  # noqa: E712
                or_(Coupon.max_uses.is_(None), Coupon.uses < Coupon.max_uses),
            )
            .values(uses=Coupon.uses + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self._db.execute(stmt)
        return result.rowcount == 1
