from datetime import timedelta
from decimal import Decimal

import pytest

from storefront.core.exceptions import CouponError, CouponErrorCode
from storefront.models import AppliesTo, Coupon, DiscountType
from storefront.schemas.pricing_schemas import CartSnapshot, Identity, PriceResult, PricedLine
from storefront.services.pricing_services.cart_aggregator import compute_cart_totals
from storefront.services.pricing_services.coupon_validator import normalize_code, validate_coupon
from storefront.services.pricing_services.promotion_catalog import (
    WINDOW_CLOSED, WINDOW_OPEN, WINDOW_PENDING, window_state,
)


def line(unit_price, quantity=1, line_id=1, product_id=1, category_id=None):
    price = Decimal(unit_price)
    return PricedLine(
        line_id=line_id,
        product_id=product_id,
        product_name=f"Producto {product_id}",
        category_id=category_id,
        quantity=quantity,
        price=PriceResult(base_price=price, final_price=price),
    )


def coupon(code="BIENVENIDO10", value="10", discount_type=DiscountType.PERCENTAGE, **overrides):
    fields = dict(
        code=code,
        discount_type=discount_type,
        discount_value=Decimal(value),
        min_purchase=Decimal("0"),
        applies_to=AppliesTo.CART_VALUE,
        target_id=None,
        max_uses=None,
        uses=0,
        usage_limit_per_user=0,
        active=True,
    )
    fields.update(overrides)
    return Coupon(**fields)


def reason_of(excinfo):
    return excinfo.value.reason


def test_welcome_coupon_on_cart(now):
    cart = CartSnapshot(lines=[line("50.00"), line("33.00", line_id=2, product_id=2)])

    application = validate_coupon(coupon(), cart, None, now)
    totals = compute_cart_totals(cart.lines, application)

    assert cart.subtotal == Decimal("83.00")
    assert application.amount == Decimal("8.30")
    assert totals.total == Decimal("74.70")
    assert application.applied_line_ids == [1, 2]


def test_min_purchase_is_inclusive(now):
    minimum = coupon(min_purchase=Decimal("50.00"))

    with pytest.raises(CouponError) as excinfo:
        validate_coupon(minimum, CartSnapshot(lines=[line("49.99")]), None, now)
    assert reason_of(excinfo) == CouponErrorCode.MIN_PURCHASE_NOT_MET

    application = validate_coupon(minimum, CartSnapshot(lines=[line("50.00")]), None, now)
    assert application.amount == Decimal("5.00")


def test_deleted_coupon_is_indistinguishable_from_unknown(now):
    cart = CartSnapshot(lines=[line("100.00")])
    deleted = coupon(deleted_at=now - timedelta(days=1), deleted_by="admin:1", deletion_reason="leaked")

    with pytest.raises(CouponError) as unknown:
        validate_coupon(None, cart, None, now)
    with pytest.raises(CouponError) as removed:
        validate_coupon(deleted, cart, None, now)

    assert unknown.value == removed.value
    assert str(unknown.value) == str(removed.value)
    assert removed.value.status_code == 404


def test_expires_exactly_now_is_expired(now):
    with pytest.raises(CouponError) as excinfo:
        validate_coupon(coupon(expires_at=now), CartSnapshot(lines=[line("100.00")]), None, now)

    assert reason_of(excinfo) == CouponErrorCode.EXPIRED


def test_coupon_not_started_is_inactive(now):
    with pytest.raises(CouponError) as excinfo:
        validate_coupon(coupon(starts_at=now + timedelta(hours=1)), CartSnapshot(lines=[line("100.00")]), None, now)

    assert reason_of(excinfo) == CouponErrorCode.INACTIVE


def test_category_coupon_only_discounts_matching_lines(now):
    cart = CartSnapshot(lines=[
        line("100.00", line_id=1, product_id=1, category_id=3),
        line("40.00", line_id=2, product_id=2, category_id=4),
    ])

    application = validate_coupon(
        coupon(applies_to=AppliesTo.CATEGORY, target_id=4, value="50"), cart, None, now,
    )

    assert application.amount == Decimal("20.00")
    assert application.applied_line_ids == [2]


def test_target_mismatch(now):
    with pytest.raises(CouponError) as excinfo:
        validate_coupon(
            coupon(applies_to=AppliesTo.PRODUCT, target_id=99),
            CartSnapshot(lines=[line("100.00")]),
            None,
            now,
        )

    assert reason_of(excinfo) == CouponErrorCode.TARGET_MISMATCH



def test_cart_value_coupon_on_empty_cart(now):
    application = validate_coupon(coupon(), CartSnapshot(lines=[]), None, now)

    assert application.amount == Decimal("0.00")
    assert application.applied_line_ids == []

    with pytest.raises(CouponError) as excinfo:
        validate_coupon(coupon(applies_to=AppliesTo.PRODUCT, target_id=1), CartSnapshot(lines=[]), None, now)
    assert reason_of(excinfo) == CouponErrorCode.TARGET_MISMATCH


def test_coupon_window_boundaries(now):
    windowed = coupon(starts_at=now, expires_at=now + timedelta(days=1))

    assert window_state(windowed, now - timedelta(seconds=1), "starts_at", "expires_at") == WINDOW_PENDING
    assert window_state(windowed, now, "starts_at", "expires_at") == WINDOW_OPEN
    assert window_state(windowed, now + timedelta(days=1), "starts_at", "expires_at") == WINDOW_CLOSED
    assert window_state(coupon(), now, "starts_at", "expires_at") == WINDOW_OPEN

def test_max_uses_reached(now):
    with pytest.raises(CouponError) as excinfo:
        validate_coupon(coupon(max_uses=5, uses=5), CartSnapshot(lines=[line("100.00")]), None, now)

    assert reason_of(excinfo) == CouponErrorCode.MAX_USES_REACHED


def test_per_user_limit_needs_an_identity(now):
    limited = coupon(usage_limit_per_user=1)
    cart = CartSnapshot(lines=[line("100.00")])

    # Anonymous quotes cannot be attributed, so the limit waits for checkout
    assert validate_coupon(limited, cart, None, now, prior_uses=3).amount == Decimal("10.00")

    with pytest.raises(CouponError) as excinfo:
        validate_coupon(limited, cart, Identity(guest_email="ana@example.com"), now, prior_uses=1)
    assert reason_of(excinfo) == CouponErrorCode.PER_USER_LIMIT_REACHED


def test_fixed_coupon_is_capped_at_eligible_subtotal(now):
    application = validate_coupon(
        coupon(value="30.00", discount_type=DiscountType.FIXED), CartSnapshot(lines=[line("25.00")]), None, now,
    )

    assert application.amount == Decimal("25.00")


def test_checks_run_in_order(now):
    # Both expired and under the minimum: expiry is reported first
    stale = coupon(expires_at=now - timedelta(days=1), min_purchase=Decimal("500"))

    with pytest.raises(CouponError) as excinfo:
        validate_coupon(stale, CartSnapshot(lines=[line("10.00")]), None, now)

    assert reason_of(excinfo) == CouponErrorCode.EXPIRED


def test_normalize_code():
    assert normalize_code("  bienvenido10 ") == "BIENVENIDO10"
    assert normalize_code(None) == ""
