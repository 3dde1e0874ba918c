# storefront/models/promotion_models.py
import enum
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, DateTime, Enum, CheckConstraint, ForeignKey, func
)
from storefront.core.db import Base
from storefront.models.auditable import Auditable


class DiscountType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED = "fixed"


class AppliesTo(str, enum.Enum):
    PRODUCT = "product"
    CATEGORY = "category"
    CART_VALUE = "cart_value"


class Discount(Auditable, Base):
    __tablename__ = "discounts"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    discount_type = Column(Enum(DiscountType, name="discount_type"), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)
    applies_to = Column(Enum(AppliesTo, name="discount_applies_to"), nullable=False, index=True)
    target_id = Column(Integer, nullable=True, index=True)
    min_cart_value = Column(Numeric(10, 2), nullable=True)

    start_date = Column(DateTime(timezone=True), nullable=True)
    end_date = Column(DateTime(timezone=True), nullable=True)
    active = Column(Boolean, default=True, nullable=False)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(discount_value >= 0, name="check_discount_value_non_negative"),
    )

    def __repr__(self):
        return f"<Discount(id={self.id}, name='{self.name}', applies_to='{self.applies_to}')>"


class Coupon(Auditable, Base):
    __tablename__ = "coupons"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=True)
    discount_type = Column(Enum(DiscountType, name="coupon_discount_type"), nullable=False)
    discount_value = Column(Numeric(10, 2), nullable=False)
    min_purchase = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    applies_to = Column(Enum(AppliesTo, name="coupon_applies_to"), nullable=False, default=AppliesTo.CART_VALUE)
    target_id = Column(Integer, nullable=True)

    max_uses = Column(Integer, nullable=True)
    uses = Column(Integer, nullable=False, default=0)
    usage_limit_per_user = Column(Integer, nullable=False, default=0)

    active = Column(Boolean, default=True, nullable=False)
    starts_at = Column(DateTime(timezone=True), nullable=True)
    expires_at = Column(DateTime(timezone=True), nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(discount_value >= 0, name="check_coupon_value_non_negative"),
        CheckConstraint(uses >= 0, name="check_coupon_uses_non_negative"),
        CheckConstraint("max_uses IS NULL OR uses <= max_uses", name="check_coupon_uses_within_max"),
    )

    def __repr__(self):
        return f"<Coupon(id={self.id}, code='{self.code}')>"
