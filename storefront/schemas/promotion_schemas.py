from pydantic import BaseModel, Field
from typing import Optional
from typing_extensions import Annotated
from datetime import datetime
from decimal import Decimal

from storefront.models.promotion_models import AppliesTo, DiscountType

PositiveDecimal = Annotated[Decimal, Field(gt=0, max_digits=10, decimal_places=2)]
NonNegativeDecimal = Annotated[Decimal, Field(ge=0, max_digits=10, decimal_places=2)]


# --------------------------
# Discounts
# --------------------------
class DiscountBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    discount_type: DiscountType
    discount_value: PositiveDecimal
    applies_to: AppliesTo
    target_id: Optional[int] = None
    min_cart_value: Optional[NonNegativeDecimal] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None


class DiscountCreate(DiscountBase):
    pass


class DiscountUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[PositiveDecimal] = None
    applies_to: Optional[AppliesTo] = None
    target_id: Optional[int] = None
    min_cart_value: Optional[NonNegativeDecimal] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    active: Optional[bool] = None


class DiscountOut(DiscountBase):
    id: int
    active: bool
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None
    deletion_reason: Optional[str] = None

    model_config = {"from_attributes": True}


# --------------------------
# Coupons
# --------------------------
class CouponBase(BaseModel):
    name: Optional[str] = Field(default=None, max_length=100)
    discount_type: DiscountType
    discount_value: PositiveDecimal
    min_purchase: NonNegativeDecimal = Decimal("0.00")
    applies_to: AppliesTo = AppliesTo.CART_VALUE
    target_id: Optional[int] = None
    max_uses: Optional[int] = Field(default=None, gt=0)
    usage_limit_per_user: int = Field(default=0, ge=0)
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None


class CouponCreate(CouponBase):
    code: Optional[str] = Field(default=None, min_length=3, max_length=50)


class CouponUpdate(BaseModel):
    name: Optional[str] = None
    discount_type: Optional[DiscountType] = None
    discount_value: Optional[PositiveDecimal] = None
    min_purchase: Optional[NonNegativeDecimal] = None
    applies_to: Optional[AppliesTo] = None
    target_id: Optional[int] = None
    max_uses: Optional[int] = Field(default=None, gt=0)
    usage_limit_per_user: Optional[int] = Field(default=None, ge=0)
    starts_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    active: Optional[bool] = None


class PromotionDelete(BaseModel):
    reason: str = Field(..., min_length=1, max_length=255)


class CouponOut(CouponBase):
    id: int
    code: str
    uses: int
    active: bool
    deleted_at: Optional[datetime] = None
    deleted_by: Optional[str] = None
    deletion_reason: Optional[str] = None

    model_config = {"from_attributes": True}


class ExpirySweepResult(BaseModel):
    coupons: int
    discounts: int
    timestamp: datetime
