# storefront/services/pricing_services/price_resolver.py
"""
Unit price of one product/variant at a point in time.

At most one discount source applies per item: the product's own flash
percentage when it is running, otherwise a targeted Discount, where a
product-level record beats a category-level one.
"""
from datetime import datetime
from decimal import Decimal
from typing import Iterable, Optional

from storefront.models.catalog_models import Product, ProductVariant
from storefront.models.promotion_models import Discount, DiscountType
from storefront.schemas.pricing_schemas import PriceResult
from storefront.services.pricing_services.promotion_catalog import WINDOW_OPEN, PromotionCatalog, window_state
from storefront.utils.decimal_utils import ZERO, to_decimal, percentage_of


def format_percentage(value) -> str:
    text = format(to_decimal(value), "f")
    if "." in text:
        text = text.rstrip("0").rstrip(".")
    return f"{text}% OFF"


def discount_amount_for(discount: Discount, base_price: Decimal) -> Decimal:
    if discount.discount_type == DiscountType.PERCENTAGE:
        amount = percentage_of(base_price, discount.discount_value)
    else:
        amount = to_decimal(discount.discount_value)
    # fixed discounts (and anything over 100 %) never push the price below zero
    return min(amount, base_price)


def flash_is_running(product: Product, now: datetime) -> bool:
    percentage = to_decimal(product.flash_discount_percentage or 0)
    if percentage <= 0:
        return False
    return window_state(product, now, None, "flash_discount_end_date") == WINDOW_OPEN


def _best(discounts: Iterable[Discount], base_price: Decimal) -> Optional[Discount]:
    best, best_amount = None, None
    for discount in discounts:
        amount = discount_amount_for(discount, base_price)
        if best is None or amount > best_amount:
            best, best_amount = discount, amount
    return best


def resolve_price(
    product: Product,
    variant: Optional[ProductVariant],
    now: datetime,
    catalog: PromotionCatalog,
) -> PriceResult:
    base_price = to_decimal(variant.price if variant is not None else product.list_price)

    if flash_is_running(product, now):
        amount = min(percentage_of(base_price, product.flash_discount_percentage), base_price)
        return PriceResult(
            base_price=base_price,
            final_price=base_price - amount,
            discount_amount=amount,
            discount_label=format_percentage(product.flash_discount_percentage),
            source="flash",
        )

    # more specific wins: product-level first, category only as a fallback
    for source, candidates in (
        ("product", catalog.product_discounts(product.id, now)),
        ("category", catalog.category_discounts(product.category_id, now)),
    ):
        discount = _best(candidates, base_price)
        if discount is None:
            continue
        amount = discount_amount_for(discount, base_price)
        return PriceResult(
            base_price=base_price,
            final_price=base_price - amount,
            discount_amount=amount,
            discount_label=discount.name,
            source=source,
            discount_id=discount.id,
        )

    return PriceResult(base_price=base_price, final_price=base_price, discount_amount=ZERO)
