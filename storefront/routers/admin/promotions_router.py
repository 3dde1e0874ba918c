from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from storefront.core.db import get_db
from storefront.core.permissions import COUPONS, DISCOUNTS
from storefront.schemas.promotion_schemas import (
    CouponCreate, PromotionDelete, CouponOut, CouponUpdate,
    DiscountCreate, DiscountOut, DiscountUpdate, ExpirySweepResult,
)
from storefront.schemas.response_schemas import ResponseMessage
from storefront.services import promotion_service
from storefront.utils.check_roles import require_permission
from storefront.utils.datetime_utils import now_utc
from storefront.utils.get_user import get_current_user

router = APIRouter(tags=["Promotions"])


# -----------------------
# DISCOUNTS
# -----------------------
@router.post("/discounts", response_model=DiscountOut, status_code=201)
@require_permission(DISCOUNTS)
async def route_create_discount(payload: DiscountCreate, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    """
    Create a product, category or cart-value discount.
    Percentages above the store cap and dangling targets are rejected.
    """
    return await promotion_service.create_discount(db, payload, _user)


@router.get("/discounts", response_model=List[DiscountOut])
@require_permission(DISCOUNTS)
async def route_list_discounts(
    include_deleted: bool = Query(False, description="Include soft-deleted discounts"),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await promotion_service.list_discounts(db, include_deleted=include_deleted)


@router.get("/discounts/{discount_id}", response_model=DiscountOut)
@require_permission(DISCOUNTS)
async def route_get_discount(discount_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await promotion_service.get_discount(db, discount_id)


@router.put("/discounts/{discount_id}", response_model=DiscountOut)
@require_permission(DISCOUNTS)
async def route_update_discount(
    discount_id: int,
    payload: DiscountUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await promotion_service.update_discount(db, discount_id, payload, _user)


@router.delete("/discounts/{discount_id}", response_model=ResponseMessage[DiscountOut])
@require_permission(DISCOUNTS)
async def route_delete_discount(
    discount_id: int,
    payload: PromotionDelete,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    discount = await promotion_service.delete_discount(db, discount_id, payload.reason, now_utc(), _user)
    return ResponseMessage(message="Discount deleted", data=DiscountOut.model_validate(discount))


# -----------------------
# COUPONS
# -----------------------
@router.post("/coupons", response_model=CouponOut, status_code=201)
@require_permission(COUPONS)
async def route_create_coupon(payload: CouponCreate, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    """Create a coupon; when no code is given one is generated."""
    return await promotion_service.create_coupon(db, payload, _user)


@router.get("/coupons", response_model=List[CouponOut])
@require_permission(COUPONS)
async def route_list_coupons(
    include_deleted: bool = Query(False, description="Include soft-deleted coupons"),
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await promotion_service.list_coupons(db, include_deleted=include_deleted)


@router.get("/coupons/{coupon_id}", response_model=CouponOut)
@require_permission(COUPONS)
async def route_get_coupon(coupon_id: int, db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    return await promotion_service.get_coupon(db, coupon_id)


@router.put("/coupons/{coupon_id}", response_model=CouponOut)
@require_permission(COUPONS)
async def route_update_coupon(
    coupon_id: int,
    payload: CouponUpdate,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    return await promotion_service.update_coupon(db, coupon_id, payload, _user)


@router.delete("/coupons/{coupon_id}", response_model=ResponseMessage[CouponOut])
@require_permission(COUPONS)
async def route_delete_coupon(
    coupon_id: int,
    payload: PromotionDelete,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_current_user),
):
    coupon = await promotion_service.delete_coupon(db, coupon_id, payload.reason, now_utc(), _user)
    return ResponseMessage(message="Coupon deleted", data=CouponOut.model_validate(coupon))


# -----------------------
# EXPIRY SWEEP
# -----------------------
@router.post("/promotions/expire", response_model=ExpirySweepResult)
@require_permission(DISCOUNTS)
async def route_expire_promotions(db: AsyncSession = Depends(get_db), _user=Depends(get_current_user)):
    """Retire every coupon and discount past its end date. Meant for a scheduled caller."""
    return await promotion_service.expire_promotions(db, now_utc())
