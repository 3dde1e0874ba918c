# storefront/schemas/pricing_schemas.py
from decimal import Decimal
from typing import List, Optional, Literal
from pydantic import BaseModel, Field, EmailStr, model_validator

from storefront.utils.decimal_utils import ZERO, to_decimal

DiscountSource = Literal["flash", "product", "category"]


# --------------------------
# Cart input (client-held, untrusted)
# --------------------------
class CartLineIn(BaseModel):
    product_id: int
    variant_id: Optional[int] = None
    quantity: int = Field(..., gt=0)
    added_unit_price: Optional[Decimal] = None  # what the client last saw; never used for pricing


class Identity(BaseModel):
    """Who is buying: a registered user or a guest identified by email."""

    user_id: Optional[int] = None
    guest_email: Optional[EmailStr] = None

    @model_validator(mode="after")
    def require_one(self):
        if self.user_id is None and not self.guest_email:
            raise ValueError("Either user_id or guest_email is required")
        if self.guest_email:
            self.guest_email = self.guest_email.strip().lower()
        return self


# --------------------------
# Resolver / aggregator output
# --------------------------
class PriceResult(BaseModel):
    base_price: Decimal
    final_price: Decimal
    discount_amount: Decimal = ZERO
    discount_label: Optional[str] = None
    source: Optional[DiscountSource] = None
    discount_id: Optional[int] = None


class PricedLine(BaseModel):
    line_id: int
    product_id: int
    product_name: str
    category_id: Optional[int] = None
    variant_id: Optional[int] = None
    variant_label: Optional[str] = None
    quantity: int
    price: PriceResult
    client_unit_price: Optional[Decimal] = None

    @property
    def unit_price(self) -> Decimal:
        return self.price.final_price

    @property
    def line_total(self) -> Decimal:
        return to_decimal(self.price.final_price * self.quantity)

    @property
    def price_changed(self) -> bool:
        return self.client_unit_price is not None and to_decimal(self.client_unit_price) != self.unit_price


class CartSnapshot(BaseModel):
    lines: List[PricedLine]

    @property
    def subtotal(self) -> Decimal:
        return to_decimal(sum((line.line_total for line in self.lines), ZERO))


class CouponApplication(BaseModel):
    code: str
    type: str
    value: Decimal
    amount: Decimal
    applied_line_ids: List[int]


class PriceBreakdown(BaseModel):
    subtotal: Decimal
    coupon_discount: Decimal = ZERO
    cart_discount: Decimal = ZERO
    discount: Decimal = ZERO
    total: Decimal
    discount_info: dict


# --------------------------
# API shapes
# --------------------------
class QuoteRequest(BaseModel):
    items: List[CartLineIn] = Field(..., min_length=1)
    coupon_code: Optional[str] = None
    identity: Optional[Identity] = None


class QuotedLine(BaseModel):
    line_id: int
    product_id: int
    product_name: str
    variant_id: Optional[int] = None
    variant_label: Optional[str] = None
    quantity: int
    base_price: Decimal
    unit_price: Decimal
    discount_label: Optional[str] = None
    line_total: Decimal
    price_changed: bool = False

    @classmethod
    def from_priced(cls, line: PricedLine) -> "QuotedLine":
        return cls(
            line_id=line.line_id,
            product_id=line.product_id,
            product_name=line.product_name,
            variant_id=line.variant_id,
            variant_label=line.variant_label,
            quantity=line.quantity,
            base_price=line.price.base_price,
            unit_price=line.unit_price,
            discount_label=line.price.discount_label,
            line_total=line.line_total,
            price_changed=line.price_changed,
        )


class CartQuote(BaseModel):
    lines: List[QuotedLine]
    breakdown: PriceBreakdown
    coupon: Optional[CouponApplication] = None


class CouponCheckRequest(BaseModel):
    code: str
    items: List[CartLineIn] = Field(..., min_length=1)
    identity: Optional[Identity] = None
