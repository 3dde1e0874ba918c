from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from storefront.core.db import get_db
from storefront.core.permissions import HISTORY, ORDERS
from storefront.schemas.order_schemas import (
    OrderDelete, OrderExpiryResult, OrderHistoryResponse, OrderResponse, OrderStatusUpdate,
)
from storefront.services.order_services.order_service import (
    delete_order, expire_orders, get_order, get_order_history, history_view, list_active_orders,
    update_order_status,
)
from storefront.utils.check_roles import require_permission
from storefront.utils.datetime_utils import now_store, now_utc
from storefront.utils.get_user import get_current_user

router = APIRouter(prefix="/orders", tags=["Admin Orders"])


@router.get("/", response_model=List[OrderResponse])
@require_permission(ORDERS)
async def route_list_orders(db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await list_active_orders(db)


@router.get("/history", response_model=List[OrderHistoryResponse])
@require_permission(HISTORY)
async def route_order_history(
    year: Optional[int] = Query(None, ge=2000, le=2100, description="Store-calendar year, defaults to the current one"),
    month: Optional[int] = Query(None, ge=1, le=12),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    """
    All orders of a year (or month), soft-deleted ones included.
    Example:
    /admin/orders/history?year=2025&month=3
    """
    return await get_order_history(db, year or now_store().year, month, now_utc())


@router.post("/expire", response_model=OrderExpiryResult)
@require_permission(ORDERS)
async def route_expire_orders(db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    """Soft-delete orders past the edit window. Meant for a scheduled caller."""
    return await expire_orders(db, now_utc())


@router.get("/{order_id}", response_model=OrderHistoryResponse)
@require_permission(ORDERS)
async def route_get_order(order_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    order = await get_order(db, order_id)
    return history_view(order, now_utc())


@router.patch("/{order_id}/status", response_model=OrderHistoryResponse)
@require_permission(ORDERS)
async def route_update_status(
    order_id: int,
    payload: OrderStatusUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    now = now_utc()
    order = await update_order_status(db, order_id, payload.status, payload.note, now, _user=_user)
    return history_view(order, now)


@router.delete("/{order_id}", response_model=OrderHistoryResponse)
@require_permission(ORDERS)
async def route_delete_order(
    order_id: int,
    payload: OrderDelete,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    """Soft delete: the row stays in history with who deleted it and why."""
    now = now_utc()
    order = await delete_order(db, order_id, payload.reason, now, _user)
    return history_view(order, now)
