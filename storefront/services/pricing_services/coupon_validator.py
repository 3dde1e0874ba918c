# storefront/services/pricing_services/coupon_validator.py
"""
Coupon validation against a priced cart.

Checks run in a fixed order and stop at the first failure. Validation is
read-only: ``uses`` is only incremented when an order commits.
"""
import logging
from datetime import datetime
from typing import Optional

from storefront.core.exceptions import CouponError, CouponErrorCode
from storefront.models.promotion_models import AppliesTo, Coupon, DiscountType
from storefront.schemas.pricing_schemas import CartSnapshot, CouponApplication, Identity
from storefront.services.pricing_services.promotion_catalog import WINDOW_CLOSED, WINDOW_PENDING, window_state
from storefront.utils.decimal_utils import ZERO, to_decimal, percentage_of

logger = logging.getLogger(__name__)


def normalize_code(code: Optional[str]) -> str:
    return (code or "").strip().upper()


def _matches(coupon: Coupon, line) -> bool:
    if coupon.applies_to == AppliesTo.PRODUCT:
        return line.product_id == coupon.target_id
    if coupon.applies_to == AppliesTo.CATEGORY:
        return line.category_id is not None and line.category_id == coupon.target_id
    return True


def validate_coupon(
    coupon: Optional[Coupon],
    cart: CartSnapshot,
    identity: Optional[Identity],
    now: datetime,
    prior_uses: int = 0,
) -> CouponApplication:
    """
    Validate ``coupon`` for ``cart`` and compute its amount.

    ``prior_uses`` is the number of earlier successful orders by ``identity``
    that used this code. Without an identity the per-user limit cannot be
    evaluated and is left to the commit step.
    """
    # A deleted coupon must be indistinguishable from one that never existed
    if coupon is None or coupon.deleted_at is not None or not coupon.active:
        raise CouponError(CouponErrorCode.NOT_FOUND)

    window = window_state(coupon, now, "starts_at", "expires_at")
    if window == WINDOW_PENDING:
        raise CouponError(CouponErrorCode.INACTIVE)
    if window == WINDOW_CLOSED:
        raise CouponError(CouponErrorCode.EXPIRED)

    if cart.subtotal < to_decimal(coupon.min_purchase or 0):
        raise CouponError(CouponErrorCode.MIN_PURCHASE_NOT_MET)

    matching = [line for line in cart.lines if _matches(coupon, line)]
    # Cart-value coupons cover whatever the cart holds, even nothing
    if not matching and coupon.applies_to != AppliesTo.CART_VALUE:
        raise CouponError(CouponErrorCode.TARGET_MISMATCH)

    if coupon.max_uses is not None and (coupon.uses or 0) >= coupon.max_uses:
        raise CouponError(CouponErrorCode.MAX_USES_REACHED)

    limit = coupon.usage_limit_per_user or 0
    if identity is not None and limit > 0 and prior_uses >= limit:
        raise CouponError(CouponErrorCode.PER_USER_LIMIT_REACHED)

    eligible = to_decimal(sum((line.line_total for line in matching), ZERO))
    if coupon.discount_type == DiscountType.PERCENTAGE:
        amount = percentage_of(eligible, coupon.discount_value)
    else:
        amount = to_decimal(coupon.discount_value)
    amount = min(amount, eligible)

    logger.info("Coupon %s valid: amount=%s over %d line(s)", coupon.code, amount, len(matching))
    return CouponApplication(
        code=coupon.code,
        type=coupon.discount_type.value,
        value=to_decimal(coupon.discount_value),
        amount=amount,
        applied_line_ids=[line.line_id for line in matching],
    )


async def check_coupon(repo, code: str, cart: CartSnapshot, identity: Optional[Identity], now: datetime) -> CouponApplication:
    """Load the coupon through ``repo`` (a PromotionRepository) and validate it."""
    normalized = normalize_code(code)
    coupon = await repo.get_coupon(normalized) if normalized else None

    prior_uses = 0
    if coupon is not None and identity is not None and (coupon.usage_limit_per_user or 0) > 0:
        prior_uses = await repo.count_prior_coupon_orders(normalized, identity)

    return validate_coupon(coupon, cart, identity, now, prior_uses)
