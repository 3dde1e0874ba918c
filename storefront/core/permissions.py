# storefront/core/permissions.py
"""
Capability sets for the back office.

Each request resolves its user to exactly one capability object and asks it
``has_permission(key)``. Admins hold every key, workers and assistants hold
the keys granted to them in ``worker_permissions``, customers hold none.
"""
from typing import Iterable

DASHBOARD = "dashboard"
PRODUCTS = "products"
CATEGORIES = "categories"
ORDERS = "orders"
HISTORY = "history"
DISCOUNTS = "discounts"
COUPONS = "coupons"
ACCESS = "access"

AVAILABLE_PERMISSIONS = (DASHBOARD, PRODUCTS, CATEGORIES, ORDERS, HISTORY, DISCOUNTS, COUPONS, ACCESS)

STAFF_ROLES = ("worker", "assistant")


class Capabilities:
    role = "user"
    has_full_access = False

    def has_permission(self, action: str) -> bool:
        raise NotImplementedError

    @property
    def permissions(self) -> list[str]:
        return [key for key in AVAILABLE_PERMISSIONS if self.has_permission(key)]


class AdminCapabilities(Capabilities):
    role = "admin"
    has_full_access = True

    def has_permission(self, action: str) -> bool:
        return action in AVAILABLE_PERMISSIONS


class StaffCapabilities(Capabilities):
    def __init__(self, role: str, granted: Iterable[str]):
        self.role = role
        self._granted = frozenset(key for key in granted if key in AVAILABLE_PERMISSIONS)

    def has_permission(self, action: str) -> bool:
        return action in self._granted


class CustomerCapabilities(Capabilities):
    def has_permission(self, action: str) -> bool:
        return False


def capabilities_for(user) -> Capabilities:
    if user is None or not getattr(user, "is_active", True):
        return CustomerCapabilities()
    role = (user.role or "user").lower()
    if role == "admin":
        return AdminCapabilities()
    if role in STAFF_ROLES:
        return StaffCapabilities(role, [p.permission_key for p in user.permissions])
    return CustomerCapabilities()
