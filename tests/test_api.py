from datetime import timedelta

import pytest

from storefront.core.permissions import COUPONS, ORDERS
from storefront.schemas.order_schemas import CheckoutRequest
from storefront.schemas.pricing_schemas import CartLineIn
from storefront.services.order_services.checkout_service import commit_order
from storefront.utils.datetime_utils import now_utc

pytestmark = pytest.mark.asyncio


async def test_health(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


async def test_quote_is_public(client, make_product):
    product = await make_product(price="100.00", flash_percentage="20")

    response = await client.post("/checkout/quote", json={"items": [{"product_id": product.id, "quantity": 1}]})

    assert response.status_code == 200
    body = response.json()
    assert body["lines"][0]["unit_price"] == "80.00"
    assert body["lines"][0]["discount_label"] == "20% OFF"
    assert body["breakdown"]["total"] == "80.00"


async def test_unknown_coupon_is_404_with_reason(client, make_product):
    product = await make_product()

    response = await client.post(
        "/checkout/coupon", json={"code": "NOEXISTE", "items": [{"product_id": product.id, "quantity": 1}]},
    )

    assert response.status_code == 404
    assert response.json()["code"] == "NOT_FOUND"


async def test_coupon_check_reports_amount(client, make_product, make_coupon):
    product = await make_product(price="83.00")
    await make_coupon(code="BIENVENIDO10")

    response = await client.post(
        "/checkout/coupon", json={"code": "bienvenido10", "items": [{"product_id": product.id, "quantity": 1}]},
    )

    assert response.status_code == 200
    assert response.json()["amount"] == "8.30"


async def test_guest_checkout_creates_order(client, make_product):
    product = await make_product(stock=2)

    response = await client.post("/checkout/orders", json={
        "items": [{"product_id": product.id, "quantity": 1}],
        "guest_email": "ana@example.com",
        "guest_name": "Ana",
    })

    assert response.status_code == 201
    body = response.json()
    assert body["order_code"].startswith("MAE")
    assert body["total"] == "100.00"


async def test_guest_checkout_without_email_is_400(client, make_product):
    product = await make_product()

    response = await client.post("/checkout/orders", json={"items": [{"product_id": product.id, "quantity": 1}]})

    assert response.status_code == 400
    assert response.json()["code"] == "VALIDATION_ERROR"


async def test_out_of_stock_is_409(client, make_product):
    product = await make_product(stock=1)

    response = await client.post("/checkout/orders", json={
        "items": [{"product_id": product.id, "quantity": 2}],
        "guest_email": "ana@example.com",
    })

    assert response.status_code == 409
    assert response.json()["code"] == "INSUFFICIENT_STOCK"


async def test_customer_sees_own_orders(client, make_product, make_user, auth_headers):
    customer = await make_user(username="carla", role="user")
    product = await make_product(stock=5)
    await client.post(
        "/checkout/orders",
        json={"items": [{"product_id": product.id, "quantity": 1}]},
        headers=auth_headers(customer),
    )

    response = await client.get("/orders/", headers=auth_headers(customer))

    assert response.status_code == 200
    assert [o["user_id"] for o in response.json()] == [customer.id]


async def test_admin_routes_need_a_token(client):
    response = await client.get("/admin/orders/")

    assert response.status_code == 401


async def test_worker_without_permission_is_forbidden(client, make_user, auth_headers):
    worker = await make_user(username="wendy", role="worker", permissions=[ORDERS])

    response = await client.get("/admin/coupons", headers=auth_headers(worker))

    assert response.status_code == 403


async def test_worker_with_coupon_permission_manages_coupons(client, make_user, auth_headers):
    worker = await make_user(username="wendy", role="worker", permissions=[COUPONS])
    headers = auth_headers(worker)

    created = await client.post(
        "/admin/coupons",
        json={"code": "verano", "discount_type": "percentage", "discount_value": "15"},
        headers=headers,
    )
    assert created.status_code == 201
    coupon_id = created.json()["id"]

    deleted = await client.request(
        "DELETE", f"/admin/coupons/{coupon_id}", json={"reason": "Campaign cancelled"}, headers=headers,
    )
    assert deleted.status_code == 200
    assert deleted.json()["data"]["deleted_by"] == f"admin:{worker.id}"


async def test_admin_order_lifecycle_over_http(client, make_product, make_user, auth_headers):
    admin = await make_user()
    headers = auth_headers(admin)
    product = await make_product(stock=5)
    created = await client.post("/checkout/orders", json={
        "items": [{"product_id": product.id, "quantity": 1}],
        "guest_email": "ana@example.com",
    })
    order_id = created.json()["order_id"]

    moved = await client.patch(f"/admin/orders/{order_id}/status", json={"status": "delivered"}, headers=headers)
    assert moved.status_code == 200
    assert moved.json()["status"] == "delivered"

    back = await client.patch(f"/admin/orders/{order_id}/status", json={"status": "pending"}, headers=headers)
    assert back.status_code == 409
    assert back.json()["code"] == "INVALID_TRANSITION"

    removed = await client.request("DELETE", f"/admin/orders/{order_id}", json={"reason": "Test order"}, headers=headers)
    assert removed.status_code == 200
    assert removed.json()["is_deleted"]

    listed = await client.get("/admin/orders/", headers=headers)
    assert listed.json() == []


async def test_percentage_cap_over_http(client, make_user, auth_headers):
    admin = await make_user()

    response = await client.post(
        "/admin/discounts",
        json={"name": "Demasiado", "discount_type": "percentage", "discount_value": "95", "applies_to": "cart_value"},
        headers=auth_headers(admin),
    )

    assert response.status_code == 400


async def test_expiry_endpoint(client, make_user, auth_headers):
    admin = await make_user()

    response = await client.post("/admin/promotions/expire", headers=auth_headers(admin))

    assert response.status_code == 200
    assert response.json()["coupons"] == 0


async def test_order_expiry_endpoint(client, db_session, make_product, make_user, auth_headers):
    product = await make_product()
    request = CheckoutRequest(items=[CartLineIn(product_id=product.id, quantity=1)], guest_email="ana@example.com")
    await commit_order(db_session, request, request.identity_for(), now_utc() - timedelta(days=45))
    customer = await make_user(username="carla", role="user")
    worker = await make_user(username="wendy", role="worker", permissions=[ORDERS])

    assert (await client.post("/admin/orders/expire", headers=auth_headers(customer))).status_code == 403

    response = await client.post("/admin/orders/expire", headers=auth_headers(worker))

    assert response.status_code == 200
    assert response.json()["orders"] == 1
    listed = await client.get("/admin/orders/", headers=auth_headers(worker))
    assert listed.json() == []
