# storefront/core/exceptions.py
import enum


class StorefrontError(Exception):
    """Base class for domain errors raised by the pricing and order services."""

    status_code = 400
    code = "STOREFRONT_ERROR"

    def __init__(self, message: str, code: str | None = None):
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def __str__(self):
        return self.message


class ValidationError(StorefrontError):
    """Admin input rejected before persistence."""

    code = "VALIDATION_ERROR"


class NotFoundError(StorefrontError):
    status_code = 404
    code = "NOT_FOUND"


class CouponErrorCode(str, enum.Enum):
    NOT_FOUND = "NOT_FOUND"
    EXPIRED = "EXPIRED"
    INACTIVE = "INACTIVE"
    MIN_PURCHASE_NOT_MET = "MIN_PURCHASE_NOT_MET"
    MAX_USES_REACHED = "MAX_USES_REACHED"
    PER_USER_LIMIT_REACHED = "PER_USER_LIMIT_REACHED"
    TARGET_MISMATCH = "TARGET_MISMATCH"


COUPON_MESSAGES = {
    CouponErrorCode.NOT_FOUND: "Coupon is not valid or was not found",
    CouponErrorCode.EXPIRED: "Coupon has expired",
    CouponErrorCode.INACTIVE: "Coupon is not active yet",
    CouponErrorCode.MIN_PURCHASE_NOT_MET: "Cart subtotal does not reach the coupon minimum purchase",
    CouponErrorCode.MAX_USES_REACHED: "Coupon has reached its global usage limit",
    CouponErrorCode.PER_USER_LIMIT_REACHED: "You have reached the usage limit for this coupon",
    CouponErrorCode.TARGET_MISMATCH: "Coupon does not apply to any product in your cart",
}


class CouponError(StorefrontError):
    def __init__(self, reason: CouponErrorCode):
        super().__init__(COUPON_MESSAGES[reason], code=reason.value)
        self.reason = reason
        self.status_code = 404 if reason == CouponErrorCode.NOT_FOUND else 400

    def __eq__(self, other):
        return isinstance(other, CouponError) and other.reason == self.reason

    def __hash__(self):
        return hash(self.reason)


class StockError(StorefrontError):
    status_code = 409
    code = "INSUFFICIENT_STOCK"

    def __init__(self, product_id: int, variant_id: int | None, requested: int, available: int | None = None):
        label = f"product {product_id}" if variant_id is None else f"product {product_id} variant {variant_id}"
        message = f"Insufficient stock for {label}: requested {requested}"
        if available is not None:
            message += f", available {available}"
        super().__init__(message)
        self.product_id = product_id
        self.variant_id = variant_id
        self.requested = requested
        self.available = available


class OrderNotEditableError(StorefrontError):
    status_code = 409
    code = "ORDER_NOT_EDITABLE"


class InvalidTransitionError(StorefrontError):
    status_code = 409
    code = "INVALID_TRANSITION"
