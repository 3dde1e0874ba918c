# storefront/routers/__init__.py

from .admin import router as admin_router
from .checkout_router import router as checkout_router
from .orders_router import router as orders_router

__all__ = [
    "admin_router",
    "checkout_router",
    "orders_router",
]
