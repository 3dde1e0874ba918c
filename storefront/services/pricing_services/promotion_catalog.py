# storefront/services/pricing_services/promotion_catalog.py
"""
Read-only view over the promotions that exist at load time.

The catalog never decides "active" once and caches it: every question is
asked with an explicit ``now`` so an admin edit to a window is picked up on
the next request.
"""
from collections import defaultdict
from datetime import datetime
from typing import Iterable, List, Optional

from storefront.models.promotion_models import AppliesTo, Discount
from storefront.utils.datetime_utils import as_utc


WINDOW_PENDING = "pending"
WINDOW_OPEN = "open"
WINDOW_CLOSED = "closed"


def window_state(
    entity, now: datetime, start_field: Optional[str] = "start_date", end_field: Optional[str] = "end_date",
) -> str:
    """
    Where ``now`` sits in the entity's window: start inclusive, end exclusive,
    missing bounds open. Discounts use start_date/end_date, coupons pass
    starts_at/expires_at, flash discounts have no start field at all.
    """
    now = as_utc(now)
    start = as_utc(getattr(entity, start_field, None)) if start_field else None
    end = as_utc(getattr(entity, end_field, None)) if end_field else None
    if start is not None and now < start:
        return WINDOW_PENDING
    if end is not None and now >= end:
        return WINDOW_CLOSED
    return WINDOW_OPEN


def is_active_at(entity, now: datetime, start_field: str = "start_date", end_field: str = "end_date") -> bool:
    """True when the entity is switched on, not soft-deleted, and inside its window."""
    if not getattr(entity, "active", True):
        return False
    if getattr(entity, "deleted_at", None) is not None:
        return False
    return window_state(entity, now, start_field, end_field) == WINDOW_OPEN


class PromotionCatalog:
    def __init__(self, discounts: Iterable[Discount] = ()):
        self._targeted = defaultdict(list)
        self._cart_value: List[Discount] = []
        for discount in discounts:
            if discount.applies_to == AppliesTo.CART_VALUE:
                self._cart_value.append(discount)
            else:
                self._targeted[(discount.applies_to, discount.target_id)].append(discount)

    def discounts_for(self, applies_to: AppliesTo, target_id: Optional[int], now: datetime) -> List[Discount]:
        if target_id is None:
            return []
        return [d for d in self._targeted.get((applies_to, target_id), []) if is_active_at(d, now)]

    def product_discounts(self, product_id: int, now: datetime) -> List[Discount]:
        return self.discounts_for(AppliesTo.PRODUCT, product_id, now)

    def category_discounts(self, category_id: Optional[int], now: datetime) -> List[Discount]:
        return self.discounts_for(AppliesTo.CATEGORY, category_id, now)

    def cart_value_discount(self, now: datetime) -> Optional[Discount]:
        """The active cart-value discount with the highest value, if any."""
        candidates = [d for d in self._cart_value if is_active_at(d, now)]
        if not candidates:
            return None
        return max(candidates, key=lambda d: (d.discount_value, d.id or 0))
