# storefront/models/order_models.py
import enum
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, Enum, ForeignKey, JSON, CheckConstraint, Index, func
)
from sqlalchemy.ext.mutable import MutableList
from storefront.core.db import Base
from storefront.models.auditable import Auditable


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    TRANSIT = "transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


TERMINAL_STATUSES = frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED})


class Order(Auditable, Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_code = Column(String(20), unique=True, nullable=True, index=True)
    # Client-supplied per checkout attempt; a retried POST returns the first order
    idempotency_key = Column(String(255), unique=True, nullable=True, index=True)

    # Identity (registered user or guest)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    guest_email = Column(String(255), nullable=True, index=True)
    guest_name = Column(String(255), nullable=True)
    guest_phone = Column(String(50), nullable=True)
    shipping_address = Column(String(500), nullable=True)
    payment_method = Column(String(50), nullable=True)

    # Frozen pricing snapshot, never recomputed from the live catalog
    items_snapshot = Column(JSON, nullable=False, default=list)
    subtotal = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    discount = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    total = Column(Numeric(12, 2), nullable=False, default=Decimal("0.00"))
    discount_info = Column(JSON, nullable=True)
    coupon_code = Column(String(50), nullable=True, index=True)

    status = Column(Enum(OrderStatus, name="order_status"), default=OrderStatus.PENDING, nullable=False)
    status_history = Column(MutableList.as_mutable(JSON), default=list)  # [{"date":..., "status":..., "note":...}]

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    __table_args__ = (
        CheckConstraint(subtotal >= 0, name="check_order_subtotal_non_negative"),
        CheckConstraint(discount >= 0, name="check_order_discount_non_negative"),
        CheckConstraint(total >= 0, name="check_order_total_non_negative"),
        Index("ix_order_coupon_identity", "coupon_code", "user_id", "guest_email"),
    )

    def __repr__(self):
        return f"<Order(id={self.id}, code='{self.order_code}', status='{self.status}')>"
