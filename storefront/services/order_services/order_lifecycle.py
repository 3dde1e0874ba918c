# storefront/services/order_services/order_lifecycle.py
"""
Order status machine and the derived predicates shown in the back office.

Status changes are admin-driven: forward steps may be skipped, but nothing
leaves ``delivered`` or ``cancelled``. Soft delete is an overlay on top of the
status, not a status of its own.
"""
from datetime import datetime, timedelta
from typing import Optional

from storefront.core.config import ORDER_DELAY_HOURS, ORDER_EDIT_WINDOW_DAYS
from storefront.core.exceptions import InvalidTransitionError, OrderNotEditableError, ValidationError
from storefront.models.auditable import SYSTEM_ACTOR
from storefront.models.order_models import Order, OrderStatus, TERMINAL_STATUSES
from storefront.utils.datetime_utils import as_utc, to_store_tz

EDIT_WINDOW = timedelta(days=ORDER_EDIT_WINDOW_DAYS)
DELAY_THRESHOLD = timedelta(hours=ORDER_DELAY_HOURS)


def is_terminal(status: OrderStatus) -> bool:
    return OrderStatus(status) in TERMINAL_STATUSES


def can_edit(order: Order, now: datetime) -> bool:
    if order.deleted_at is not None:
        return False
    return as_utc(now) - as_utc(order.created_at) < EDIT_WINDOW


def is_delayed(order: Order, now: datetime) -> bool:
    """Older than a day in store time and still not delivered or cancelled."""
    if is_terminal(order.status):
        return False
    return to_store_tz(now) - to_store_tz(order.created_at) > DELAY_THRESHOLD


def _history_entry(status: OrderStatus, now: datetime, note: Optional[str]) -> dict:
    return {
        "date": as_utc(now).isoformat(),
        "status": status.value,
        "note": note or "",
    }


def start_history(order: Order, now: datetime) -> None:
    order.status_history = [_history_entry(OrderStatus.PENDING, now, "Order placed")]


def transition(order: Order, new_status, now: datetime, note: Optional[str] = None) -> OrderStatus:
    """
    Move ``order`` to ``new_status`` and return the previous status.

    Raises OrderNotEditableError outside the edit window (or once deleted) and
    InvalidTransitionError for terminal orders and unknown statuses.
    """
    try:
        target = OrderStatus(new_status)
    except ValueError:
        raise InvalidTransitionError(f"Unknown order status '{new_status}'")

    if order.deleted_at is not None:
        raise OrderNotEditableError("Deleted orders are read-only")
    if not can_edit(order, now):
        raise OrderNotEditableError(
            f"Order is older than {ORDER_EDIT_WINDOW_DAYS} days and is archived"
        )

    current = OrderStatus(order.status)
    if current == target:
        return current
    if is_terminal(current):
        raise InvalidTransitionError(f"Order is already {current.value}")

    order.status = target
    if order.status_history is None:
        order.status_history = []
    order.status_history.append(_history_entry(target, now, note))
    return current


def soft_delete(order: Order, deleted_by: str, reason: Optional[str], now: datetime) -> None:
    if order.deleted_at is not None:
        raise InvalidTransitionError("Order is already deleted")

    reason = (reason or "").strip()
    if deleted_by == SYSTEM_ACTOR:
        reason = reason or "expired"
    elif not reason:
        raise ValidationError("A deletion reason is required")

    order.mark_deleted(deleted_by, reason, as_utc(now))
