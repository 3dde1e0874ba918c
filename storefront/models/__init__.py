# storefront/models/__init__.py
from storefront.models.user_models import User, WorkerPermission
from storefront.models.activity_models import UserActivity
from storefront.models.catalog_models import Category, Product, ProductVariant, VariantType
from storefront.models.promotion_models import Discount, Coupon, DiscountType, AppliesTo
from storefront.models.order_models import Order, OrderStatus, TERMINAL_STATUSES
