import asyncio
from datetime import timedelta
from decimal import Decimal

import pytest
from sqlalchemy import select

from storefront.core.exceptions import CouponError, CouponErrorCode, NotFoundError, StockError, ValidationError
from storefront.models import AppliesTo, Coupon, Order, Product, ProductVariant
from storefront.schemas.order_schemas import CheckoutRequest
from storefront.schemas.pricing_schemas import CartLineIn, Identity
from storefront.services.order_services.checkout_service import build_order_code, commit_order, price_cart

pytestmark = pytest.mark.asyncio


def checkout(product_id, quantity=1, variant_id=None, **fields):
    fields.setdefault("guest_email", "ana@example.com")
    return CheckoutRequest(
        items=[CartLineIn(product_id=product_id, variant_id=variant_id, quantity=quantity)],
        **fields,
    )


async def test_quote_uses_server_prices(db_session, make_product, now):
    product = await make_product(price="100.00", flash_percentage="20")

    quote = await price_cart(
        db_session, [CartLineIn(product_id=product.id, quantity=2, added_unit_price=Decimal("100.00"))], now,
    )

    assert quote.lines[0].unit_price == Decimal("80.00")
    assert quote.lines[0].price_changed
    assert quote.breakdown.subtotal == Decimal("160.00")


async def test_quote_with_coupon_and_cart_discount(db_session, make_product, make_coupon, make_discount, now):
    product = await make_product(price="100.00")
    await make_coupon(code="BIENVENIDO10", value="10")
    await make_discount(name="Compra grande", applies_to=AppliesTo.CART_VALUE, value="5", min_cart_value="150")

    quote = await price_cart(db_session, [CartLineIn(product_id=product.id, quantity=2)], now, "bienvenido10")

    assert quote.coupon.code == "BIENVENIDO10"
    assert quote.breakdown.coupon_discount == Decimal("20.00")
    assert quote.breakdown.cart_discount == Decimal("10.00")
    assert quote.breakdown.total == Decimal("170.00")


async def test_variant_product_defaults_to_default_variant(db_session, make_product, now):
    product = await make_product(variants=[
        {"label": "Chico", "price": "60.00"},
        {"label": "Mediano", "price": "90.00", "is_default": True},
    ])

    quote = await price_cart(db_session, [CartLineIn(product_id=product.id, quantity=1)], now)

    assert quote.lines[0].variant_label == "Mediano"
    assert quote.lines[0].unit_price == Decimal("90.00")


async def test_quote_soft_checks_total_demand(db_session, make_product, now):
    product = await make_product(stock=3)
    items = [CartLineIn(product_id=product.id, quantity=2), CartLineIn(product_id=product.id, quantity=2)]

    with pytest.raises(StockError) as excinfo:
        await price_cart(db_session, items, now)

    assert excinfo.value.requested == 4
    assert excinfo.value.available == 3


async def test_unknown_product(db_session, now):
    with pytest.raises(NotFoundError):
        await price_cart(db_session, [CartLineIn(product_id=404, quantity=1)], now)


async def test_commit_freezes_prices_and_takes_stock(db_session, make_product, make_coupon, now):
    product = await make_product(price="100.00", stock=5, flash_percentage="20")
    await make_coupon(code="BIENVENIDO10", value="10", max_uses=10)

    order = await commit_order(db_session, checkout(product.id, 2, coupon_code="BIENVENIDO10"), Identity(guest_email="ana@example.com"), now)

    assert order.order_code == build_order_code(now, order.id) == f"MAE2025{order.id:05d}"
    assert order.subtotal == Decimal("160.00")
    assert order.discount == Decimal("16.00")
    assert order.total == Decimal("144.00")
    assert order.items_snapshot[0]["unit_price"] == "80.00"
    assert order.status_history[0]["status"] == "pending"

    refreshed = await db_session.get(Product, product.id, populate_existing=True)
    coupon = (await db_session.execute(select(Coupon).where(Coupon.code == "BIENVENIDO10"))).scalar_one()
    await db_session.refresh(coupon)
    assert refreshed.stock == 3
    assert coupon.uses == 1

    # later catalog edits never reach the stored order
    refreshed.list_price = Decimal("500.00")
    await db_session.commit()
    stored = await db_session.get(Order, order.id, populate_existing=True)
    assert stored.total == Decimal("144.00")


async def test_commit_takes_variant_stock(db_session, make_product, now):
    product = await make_product(stock=0, variants=[{"label": "2L", "price": "30.00", "stock": 4, "is_default": True}])
    variant_id = product.variants[0].id

    await commit_order(db_session, checkout(product.id, 3, variant_id=variant_id), Identity(guest_email="ana@example.com"), now)

    variant = await db_session.get(ProductVariant, variant_id, populate_existing=True)
    assert variant.stock == 1


async def test_failed_commit_rolls_back_everything(db_session, async_session_factory, make_product, make_coupon, now):
    product = await make_product(stock=2)
    await make_coupon(code="UNO", max_uses=1, uses=1)

    with pytest.raises(CouponError) as excinfo:
        await commit_order(db_session, checkout(product.id, 1, coupon_code="UNO"), Identity(guest_email="ana@example.com"), now)
    assert excinfo.value.reason == CouponErrorCode.MAX_USES_REACHED

    async with async_session_factory() as session:
        assert (await session.get(Product, product.id)).stock == 2
        assert (await session.execute(select(Order))).scalars().all() == []


async def test_per_user_limit_counts_committed_orders(db_session, make_product, make_coupon, now):
    product = await make_product(stock=10)
    await make_coupon(code="SOLOUNO", usage_limit_per_user=1)
    identity = Identity(guest_email="Ana@Example.com")

    await commit_order(db_session, checkout(product.id, coupon_code="SOLOUNO"), identity, now)
    with pytest.raises(CouponError) as excinfo:
        await commit_order(db_session, checkout(product.id, coupon_code="SOLOUNO"), identity, now + timedelta(minutes=5))

    assert excinfo.value.reason == CouponErrorCode.PER_USER_LIMIT_REACHED


async def test_idempotent_retry_returns_first_order(db_session, make_product, now):
    product = await make_product(stock=10)
    request = checkout(product.id, 2, idempotency_key="cart-7f3a")
    identity = request.identity_for()

    first = await commit_order(db_session, request, identity, now)
    second = await commit_order(db_session, request, identity, now + timedelta(seconds=3))

    assert second.id == first.id
    assert (await db_session.get(Product, product.id, populate_existing=True)).stock == 8


async def test_guest_checkout_needs_an_email():
    request = CheckoutRequest(items=[CartLineIn(product_id=1, quantity=1)])

    with pytest.raises(ValidationError):
        request.identity_for()


@pytest.mark.integration
async def test_concurrent_commits_never_exceed_max_uses(async_session_factory, make_product, make_coupon, now):
    product = await make_product(stock=100)
    await make_coupon(code="LIMITADO", max_uses=3)

    async def attempt(i):
        request = checkout(product.id, coupon_code="LIMITADO", guest_email=f"guest{i}@example.com")
        async with async_session_factory() as session:
            try:
                await commit_order(session, request, request.identity_for(), now)
            except CouponError as exc:
                return exc.reason
        return "ok"

    results = await asyncio.gather(*(attempt(i) for i in range(6)))

    assert results.count("ok") == 3
    assert results.count(CouponErrorCode.MAX_USES_REACHED) == 3
    async with async_session_factory() as session:
        coupon = (await session.execute(select(Coupon).where(Coupon.code == "LIMITADO"))).scalar_one()
        assert coupon.uses == 3
        assert (await session.get(Product, product.id)).stock == 97
