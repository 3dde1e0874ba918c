from pydantic import BaseModel, Field, EmailStr
from typing import List, Optional
from datetime import datetime
from decimal import Decimal

from storefront.core.exceptions import ValidationError
from storefront.models.order_models import OrderStatus
from storefront.schemas.pricing_schemas import CartLineIn, Identity


# =====================================================
# 🔹 Checkout
# =====================================================
class CheckoutRequest(BaseModel):
    items: List[CartLineIn] = Field(..., min_length=1)
    coupon_code: Optional[str] = None
    guest_email: Optional[EmailStr] = None
    guest_name: Optional[str] = None
    guest_phone: Optional[str] = None
    shipping_address: Optional[str] = None
    payment_method: Optional[str] = None
    idempotency_key: Optional[str] = Field(default=None, max_length=255)

    def identity_for(self, user=None) -> Identity:
        if user is not None:
            return Identity(user_id=user.id)
        if not self.guest_email:
            raise ValidationError("guest_email is required for guest checkout")
        return Identity(guest_email=self.guest_email)


# =====================================================
# 🔹 Nested / Helper Schemas
# =====================================================
class StatusHistoryStep(BaseModel):
    date: str
    status: str
    note: Optional[str] = None

    model_config = {"from_attributes": True}


class OrderItemSnapshot(BaseModel):
    product_id: int
    product_name: str
    variant_id: Optional[int] = None
    variant_label: Optional[str] = None
    quantity: int
    base_price: Decimal
    unit_price: Decimal
    discount_label: Optional[str] = None
    line_total: Decimal


# =====================================================
# 🔹 Responses
# =====================================================
class OrderResponse(BaseModel):
    id: int
    order_code: Optional[str]
    user_id: Optional[int]
    guest_email: Optional[str]
    guest_name: Optional[str]
    items_snapshot: List[OrderItemSnapshot]
    subtotal: Decimal
    discount: Decimal
    total: Decimal
    discount_info: Optional[dict]
    coupon_code: Optional[str]
    status: OrderStatus
    status_history: Optional[List[StatusHistoryStep]] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class OrderHistoryResponse(OrderResponse):
    """History rows carry the derived flags the back office filters on."""

    is_deleted: bool
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None
    deletion_reason: Optional[str] = None
    can_edit: bool
    is_delayed: bool


class OrderCreatedResponse(BaseModel):
    message: str
    order_id: int
    order_code: str
    total: Decimal


# =====================================================
# 🔹 Admin actions
# =====================================================
class OrderStatusUpdate(BaseModel):
    status: OrderStatus
    note: Optional[str] = None


class OrderDelete(BaseModel):
    reason: str = Field(..., min_length=1, max_length=255)


class OrderExpiryResult(BaseModel):
    orders: int
    timestamp: datetime
