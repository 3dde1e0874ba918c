from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.db import get_db
from storefront.schemas.order_schemas import CheckoutRequest, OrderCreatedResponse
from storefront.schemas.pricing_schemas import (
    CartQuote, CartSnapshot, CouponApplication, CouponCheckRequest, QuoteRequest,
)
from storefront.repositories.promotion_repository import PromotionRepository
from storefront.services.order_services.checkout_service import commit_order, price_cart, price_lines
from storefront.services.pricing_services.coupon_validator import check_coupon
from storefront.repositories.catalog_repository import CatalogRepository
from storefront.utils.datetime_utils import now_utc
from storefront.utils.get_user import get_optional_user

router = APIRouter(prefix="/checkout", tags=["Checkout"])


@router.post("/quote", response_model=CartQuote)
async def route_quote_cart(payload: QuoteRequest, db: AsyncSession = Depends(get_db)):
    """
    Price a cart against the live catalog. Nothing is written; the same cart
    quoted twice at the same instant gives the same breakdown.
    """
    return await price_cart(db, payload.items, now_utc(), payload.coupon_code, payload.identity)


@router.post("/coupon", response_model=CouponApplication)
async def route_check_coupon(payload: CouponCheckRequest, db: AsyncSession = Depends(get_db)):
    """Validate a coupon code against a cart and return what it would take off."""
    now = now_utc()
    promotions = PromotionRepository(db)
    catalog = await promotions.load_catalog()
    lines = await price_lines(CatalogRepository(db), catalog, payload.items, now)
    return await check_coupon(promotions, payload.code, CartSnapshot(lines=lines), payload.identity, now)


@router.post("/orders", response_model=OrderCreatedResponse, status_code=201)
async def route_commit_order(
    payload: CheckoutRequest,
    db: AsyncSession = Depends(get_db),
    _user=Depends(get_optional_user),
):
    identity = payload.identity_for(_user)
    order = await commit_order(db, payload, identity, now_utc())
    return OrderCreatedResponse(
        message="Order created successfully",
        order_id=order.id,
        order_code=order.order_code,
        total=order.total,
    )
