# storefront/services/order_services/checkout_service.py
import logging
from collections import defaultdict
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import ORDER_CODE_PREFIX
from storefront.core.exceptions import CouponError, CouponErrorCode, NotFoundError, StockError
from storefront.models.order_models import Order, OrderStatus
from storefront.repositories.catalog_repository import CatalogRepository
from storefront.repositories.order_repository import OrderRepository
from storefront.repositories.promotion_repository import PromotionRepository
from storefront.schemas.order_schemas import CheckoutRequest
from storefront.schemas.pricing_schemas import (
    CartLineIn, CartQuote, CartSnapshot, Identity, PricedLine, QuotedLine,
)
from storefront.services.order_services.order_lifecycle import start_history
from storefront.services.pricing_services.cart_aggregator import compute_cart_totals
from storefront.services.pricing_services.coupon_validator import check_coupon
from storefront.services.pricing_services.price_resolver import resolve_price
from storefront.services.pricing_services.promotion_catalog import PromotionCatalog
from storefront.services.pricing_services.variant_stock import effective_variant, ensure_in_stock
from storefront.utils.datetime_utils import as_utc, store_year

logger = logging.getLogger(__name__)

StockKey = Tuple[int, Optional[int]]


def build_order_code(now: datetime, order_id: int) -> str:
    return f"{ORDER_CODE_PREFIX}{store_year(now)}{order_id:05d}"


# =====================================================
# 🔹 PRICE LINES
# =====================================================
async def price_lines(
    catalog_repo: CatalogRepository,
    catalog: PromotionCatalog,
    items: List[CartLineIn],
    now: datetime,
) -> List[PricedLine]:
    """
    Re-resolve every client line against the live catalog. Client prices are
    ignored; stock is soft-checked on the total demand per product/variant.
    """
    products = await catalog_repo.get_products(item.product_id for item in items)

    resolved = []
    demand: Dict[StockKey, int] = defaultdict(int)
    for item in items:
        product = products.get(item.product_id)
        if product is None:
            raise NotFoundError(f"Product {item.product_id} not found")
        variant = effective_variant(product, item.variant_id)
        demand[(product.id, variant.id if variant is not None else None)] += item.quantity
        resolved.append((item, product, variant))

    priced = []
    for line_id, (item, product, variant) in enumerate(resolved, start=1):
        ensure_in_stock(product, variant, demand[(product.id, variant.id if variant is not None else None)])
        priced.append(PricedLine(
            line_id=line_id,
            product_id=product.id,
            product_name=product.name,
            category_id=product.category_id,
            variant_id=variant.id if variant is not None else None,
            variant_label=variant.label if variant is not None else None,
            quantity=item.quantity,
            price=resolve_price(product, variant, now, catalog),
            client_unit_price=item.added_unit_price,
        ))
    return priced


# =====================================================
# 🔹 QUOTE CART
# =====================================================
async def price_cart(
    db: AsyncSession,
    items: List[CartLineIn],
    now: datetime,
    coupon_code: Optional[str] = None,
    identity: Optional[Identity] = None,
) -> CartQuote:
    """Authoritative price of a cart; read-only, safe to repeat."""
    promotions = PromotionRepository(db)
    catalog = await promotions.load_catalog()

    lines = await price_lines(CatalogRepository(db), catalog, items, now)
    for line in lines:
        if line.price_changed:
            logger.info(
                "Price drift on product %s: client %s, server %s",
                line.product_id, line.client_unit_price, line.unit_price,
            )

    coupon = None
    if coupon_code:
        coupon = await check_coupon(promotions, coupon_code, CartSnapshot(lines=lines), identity, now)

    breakdown = compute_cart_totals(lines, coupon, catalog.cart_value_discount(now), now)
    return CartQuote(
        lines=[QuotedLine.from_priced(line) for line in lines],
        breakdown=breakdown,
        coupon=coupon,
    )


def _items_snapshot(quote: CartQuote) -> list:
    return [line.model_dump(mode="json", exclude={"line_id", "price_changed"}) for line in quote.lines]


def _stock_demand(quote: CartQuote) -> Dict[StockKey, int]:
    demand: Dict[StockKey, int] = defaultdict(int)
    for line in quote.lines:
        demand[(line.product_id, line.variant_id)] += line.quantity
    return demand


# =====================================================
# 🔹 COMMIT ORDER
# =====================================================
async def commit_order(
    db: AsyncSession,
    checkout: CheckoutRequest,
    identity: Identity,
    now: datetime,
) -> Order:
    """
    Price the cart server-side and persist the order.

    Stock decrement, coupon-use increment and the order insert share one
    transaction; each guarded update reports a lost race through its rowcount
    and the whole transaction is rolled back.
    """
    orders = OrderRepository(db)
    if checkout.idempotency_key:
        existing = await orders.get_by_idempotency_key(checkout.idempotency_key)
        if existing is not None:
            logger.info("Replayed checkout %s -> order %s", checkout.idempotency_key, existing.order_code)
            return existing

    quote = await price_cart(db, checkout.items, now, checkout.coupon_code, identity)
    catalog_repo = CatalogRepository(db)
    promotions = PromotionRepository(db)
    breakdown = quote.breakdown

    try:
        for (product_id, variant_id), quantity in _stock_demand(quote).items():
            if not await catalog_repo.decrement_stock(product_id, variant_id, quantity):
                raise StockError(product_id=product_id, variant_id=variant_id, requested=quantity)

        if quote.coupon is not None:
            if not await promotions.increment_coupon_use(quote.coupon.code):
                raise CouponError(CouponErrorCode.MAX_USES_REACHED)

        order = Order(
            idempotency_key=checkout.idempotency_key,
            user_id=identity.user_id,
            guest_email=identity.guest_email if identity.user_id is None else None,
            guest_name=checkout.guest_name,
            guest_phone=checkout.guest_phone,
            shipping_address=checkout.shipping_address,
            payment_method=checkout.payment_method,
            items_snapshot=_items_snapshot(quote),
            subtotal=breakdown.subtotal,
            discount=breakdown.discount,
            total=breakdown.total,
            discount_info=breakdown.discount_info,
            coupon_code=quote.coupon.code if quote.coupon is not None else None,
            status=OrderStatus.PENDING,
            created_at=as_utc(now),
        )
        start_history(order, now)
        orders.add(order)
        await db.flush()  # ensures order.id is available

        order.order_code = build_order_code(now, order.id)
        await db.commit()
    except IntegrityError:
        await db.rollback()
        if checkout.idempotency_key:
            # A concurrent retry with the same key won the insert
            existing = await orders.get_by_idempotency_key(checkout.idempotency_key)
            if existing is not None:
                return existing
        raise
    except Exception:
        await db.rollback()
        raise

    logger.info(
        "Order %s committed: subtotal=%s discount=%s total=%s coupon=%s",
        order.order_code, order.subtotal, order.discount, order.total, order.coupon_code,
    )
    return order
