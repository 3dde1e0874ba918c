# storefront/services/pricing_services/cart_aggregator.py
"""
Cart totals.

Stacking is sequential and fixed: item-level discounts are already inside the
line prices, then the coupon comes off the subtotal, then the cart-value
discount (computed against the subtotal, not the post-coupon amount).
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from storefront.models.promotion_models import AppliesTo, Discount, DiscountType
from storefront.schemas.pricing_schemas import CouponApplication, PriceBreakdown, PricedLine
from storefront.services.pricing_services.promotion_catalog import is_active_at
from storefront.utils.decimal_utils import ZERO, to_decimal, percentage_of


def cart_discount_amount(discount: Optional[Discount], subtotal: Decimal, now: Optional[datetime]) -> Decimal:
    if discount is None or discount.applies_to != AppliesTo.CART_VALUE:
        return ZERO
    if now is not None and not is_active_at(discount, now):
        return ZERO
    if subtotal < to_decimal(discount.min_cart_value or 0):
        return ZERO
    if discount.discount_type == DiscountType.PERCENTAGE:
        return percentage_of(subtotal, discount.discount_value)
    return to_decimal(discount.discount_value)


def _item_entries(lines: List[PricedLine]) -> list:
    entries = []
    for line in lines:
        if line.price.source is None:
            continue
        entries.append({
            "line_id": line.line_id,
            "product_id": line.product_id,
            "variant_id": line.variant_id,
            "source": line.price.source,
            "discount_id": line.price.discount_id,
            "label": line.price.discount_label,
            "unit_discount": str(line.price.discount_amount),
            "quantity": line.quantity,
            "amount": str(to_decimal(line.price.discount_amount * line.quantity)),
        })
    return entries


def compute_cart_totals(
    lines: List[PricedLine],
    coupon: Optional[CouponApplication] = None,
    cart_value_discount: Optional[Discount] = None,
    now: Optional[datetime] = None,
) -> PriceBreakdown:
    subtotal = to_decimal(sum((line.line_total for line in lines), ZERO))

    coupon_amount = coupon.amount if coupon is not None else ZERO
    after_coupon = subtotal - coupon_amount

    # Measured on the subtotal, but never more than the coupon left to take
    cart_amount = min(cart_discount_amount(cart_value_discount, subtotal, now), max(ZERO, after_coupon))

    total = max(ZERO, after_coupon - cart_amount)
    discount = subtotal - total

    discount_info = {
        "items": _item_entries(lines),
        "coupon": None,
        "cart_discount": None,
        "subtotal": str(subtotal),
        "discount": str(discount),
        "total": str(total),
    }
    if coupon is not None:
        discount_info["coupon"] = coupon.model_dump(mode="json")
    if cart_amount > 0:
        discount_info["cart_discount"] = {
            "id": cart_value_discount.id,
            "name": cart_value_discount.name,
            "type": cart_value_discount.discount_type.value,
            "value": str(to_decimal(cart_value_discount.discount_value)),
            "min_cart_value": str(to_decimal(cart_value_discount.min_cart_value or 0)),
            "amount": str(cart_amount),
        }

    return PriceBreakdown(
        subtotal=subtotal,
        coupon_discount=coupon_amount,
        cart_discount=cart_amount,
        discount=discount,
        total=total,
        discount_info=discount_info,
    )
