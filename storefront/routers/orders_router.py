from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from storefront.core.db import get_db
from storefront.core.exceptions import NotFoundError
from storefront.schemas.order_schemas import OrderResponse
from storefront.services.order_services.order_service import get_order, list_active_orders
from storefront.utils.get_user import get_current_user

router = APIRouter(prefix="/orders", tags=["Orders"])


@router.get("/", response_model=List[OrderResponse])
async def route_my_orders(db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    """Active orders of the signed-in customer, newest first."""
    return await list_active_orders(db, user_id=_user.id)


@router.get("/{order_id}", response_model=OrderResponse)
async def route_my_order(order_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    order = await get_order(db, order_id)
    # Other customers' orders look the same as missing ones
    if order.user_id != _user.id:
        raise NotFoundError("Order not found")
    return order
