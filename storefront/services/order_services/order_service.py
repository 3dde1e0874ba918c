# storefront/services/order_services/order_service.py
import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import NotFoundError, ValidationError
from storefront.models.auditable import SYSTEM_ACTOR, admin_actor
from storefront.models.order_models import Order, OrderStatus
from storefront.repositories.catalog_repository import CatalogRepository
from storefront.repositories.order_repository import OrderRepository
from storefront.schemas.order_schemas import OrderExpiryResult, OrderHistoryResponse
from storefront.services.order_services.order_lifecycle import (
    EDIT_WINDOW, can_edit, is_delayed, soft_delete, transition,
)
from storefront.utils.activity_helpers import log_user_activity
from storefront.utils.datetime_utils import STORE_TZ, as_utc

logger = logging.getLogger(__name__)

ORDER_EXPIRY_REASON = "expired_30_days"


async def _get_order_or_404(db: AsyncSession, order_id: int, include_deleted: bool = False) -> Order:
    order = await OrderRepository(db).get(order_id, include_deleted=include_deleted)
    if not order:
        raise NotFoundError("Order not found")
    return order


# =====================================================
# 🔹 READ
# =====================================================
async def get_order(db: AsyncSession, order_id: int) -> Order:
    return await _get_order_or_404(db, order_id)


async def list_active_orders(db: AsyncSession, user_id: Optional[int] = None) -> List[Order]:
    return await OrderRepository(db).list_active(user_id=user_id)


def history_view(order: Order, now: datetime) -> OrderHistoryResponse:
    data = OrderHistoryResponse.model_validate(
        {
            **{c.name: getattr(order, c.name) for c in Order.__table__.columns},
            "is_deleted": order.is_deleted,
            "can_edit": can_edit(order, now),
            "is_delayed": is_delayed(order, now),
        }
    )
    return data


async def get_order_history(db: AsyncSession, year: int, month: Optional[int], now: datetime) -> List[OrderHistoryResponse]:
    """
    Orders of a store-calendar year (or month), deleted ones included, with the
    derived ``can_edit`` / ``is_delayed`` flags computed at read time.
    """
    if month is None:
        start = datetime(year, 1, 1, tzinfo=STORE_TZ)
        end = datetime(year + 1, 1, 1, tzinfo=STORE_TZ)
    else:
        start = datetime(year, month, 1, tzinfo=STORE_TZ)
        end = datetime(year + (month // 12), month % 12 + 1, 1, tzinfo=STORE_TZ)

    orders = await OrderRepository(db).list_history(as_utc(start), as_utc(end))
    return [history_view(order, now) for order in orders]


# =====================================================
# 🔹 UPDATE STATUS
# =====================================================
async def update_order_status(
    db: AsyncSession,
    order_id: int,
    status: OrderStatus,
    note: Optional[str],
    now: datetime,
    _user=None,
) -> Order:
    order = await _get_order_or_404(db, order_id, include_deleted=True)

    try:
        previous = transition(order, status, now, note)
        if previous == order.status:
            return order

        # Cancelling gives back the units the order took at commit
        if order.status == OrderStatus.CANCELLED:
            catalog_repo = CatalogRepository(db)
            for item in order.items_snapshot or []:
                await catalog_repo.restore_stock(item["product_id"], item.get("variant_id"), item["quantity"])

        await log_user_activity(
            db,
            user=_user,
            entity_type="order",
            entity_id=order.id,
            message=f"Order {order.order_code}: {previous.value} → {order.status.value}",
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(order)
    return order


# =====================================================
# 🔹 SOFT DELETE
# =====================================================
async def delete_order(db: AsyncSession, order_id: int, reason: str, now: datetime, _user) -> Order:
    if not (reason or "").strip():
        raise ValidationError("A deletion reason is required")
    order = await _get_order_or_404(db, order_id, include_deleted=True)

    try:
        soft_delete(order, admin_actor(_user.id), reason, now)
        await log_user_activity(
            db,
            user=_user,
            entity_type="order",
            entity_id=order.id,
            message=f"Soft-deleted order {order.order_code}: {order.deletion_reason}",
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    await db.refresh(order)
    return order


# =====================================================
# 🔹 AUTO-EXPIRY
# =====================================================
async def expire_orders(db: AsyncSession, now: datetime) -> OrderExpiryResult:
    """
    Soft-delete every live order past the edit window. They drop out of the
    active lists and stay in history marked ``system`` / ``expired_30_days``.
    """
    now = as_utc(now)
    orders = await OrderRepository(db).list_expired(now - EDIT_WINDOW)

    try:
        for order in orders:
            soft_delete(order, SYSTEM_ACTOR, ORDER_EXPIRY_REASON, now)

        if orders:
            await log_user_activity(
                db,
                entity_type="order",
                message=f"Expired {len(orders)} order(s) past the edit window",
            )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Order expiry sweep: %d orders", len(orders))
    return OrderExpiryResult(orders=len(orders), timestamp=now)
