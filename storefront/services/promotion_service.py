# storefront/services/promotion_service.py
import logging
import secrets
import string
from datetime import datetime
from decimal import Decimal
from typing import List

from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import MAX_PERCENTAGE_DISCOUNT
from storefront.core.exceptions import NotFoundError, ValidationError
from storefront.models.auditable import SYSTEM_ACTOR, admin_actor
from storefront.models.promotion_models import AppliesTo, Coupon, Discount, DiscountType
from storefront.repositories.catalog_repository import CatalogRepository
from storefront.repositories.promotion_repository import PromotionRepository
from storefront.schemas.promotion_schemas import (
    CouponCreate, CouponUpdate, DiscountCreate, DiscountUpdate, ExpirySweepResult,
)
from storefront.services.pricing_services.coupon_validator import normalize_code
from storefront.utils.activity_helpers import log_user_activity
from storefront.utils.datetime_utils import as_utc

logger = logging.getLogger(__name__)

CODE_ALPHABET = string.ascii_uppercase + string.digits
CODE_LENGTH = 10


# -----------------------
# Shared validation
# -----------------------
def _validate_value(discount_type: DiscountType, value: Decimal):
    # The cap is checked per record; stacking across sources is not capped
    if discount_type == DiscountType.PERCENTAGE and value > MAX_PERCENTAGE_DISCOUNT:
        raise ValidationError(f"Percentage discount cannot exceed {MAX_PERCENTAGE_DISCOUNT}%")
    if value <= 0:
        raise ValidationError("Discount value must be greater than 0")


def _normalize_dates(fields: dict, *keys):
    # Stored as UTC; SQLite keeps no offset
    for key in keys:
        if fields.get(key) is not None:
            fields[key] = as_utc(fields[key])


NON_NULL_DISCOUNT_FIELDS = ("name", "discount_type", "discount_value", "applies_to", "active")
NON_NULL_COUPON_FIELDS = (
    "discount_type", "discount_value", "min_purchase", "applies_to", "usage_limit_per_user", "active",
)


def _reject_nulls(update_data: dict, keys):
    # Omit a field to keep it; these columns cannot be cleared
    cleared = [key for key in keys if key in update_data and update_data[key] is None]
    if cleared:
        raise ValidationError(f"{', '.join(cleared)} cannot be null")


def _validate_window(start, end, start_label="start_date", end_label="end_date"):
    if start is not None and end is not None and as_utc(start) >= as_utc(end):
        raise ValidationError(f"{start_label} must be before {end_label}")


async def _validate_target(db: AsyncSession, applies_to: AppliesTo, target_id):
    if applies_to == AppliesTo.CART_VALUE:
        return
    if target_id is None:
        raise ValidationError(f"target_id is required for {applies_to.value} promotions")
    catalog = CatalogRepository(db)
    if applies_to == AppliesTo.PRODUCT and not await catalog.product_exists(target_id):
        raise ValidationError("Target product not found")
    if applies_to == AppliesTo.CATEGORY and not await catalog.category_exists(target_id):
        raise ValidationError("Target category not found")


async def _validate_discount_fields(db: AsyncSession, fields: dict):
    _normalize_dates(fields, "start_date", "end_date")
    _validate_value(fields["discount_type"], fields["discount_value"])
    _validate_window(fields.get("start_date"), fields.get("end_date"))
    await _validate_target(db, fields["applies_to"], fields.get("target_id"))
    if fields["applies_to"] == AppliesTo.CART_VALUE:
        fields["target_id"] = None
    else:
        fields["min_cart_value"] = None


async def _validate_coupon_fields(db: AsyncSession, fields: dict):
    _normalize_dates(fields, "starts_at", "expires_at")
    _validate_value(fields["discount_type"], fields["discount_value"])
    _validate_window(fields.get("starts_at"), fields.get("expires_at"), "starts_at", "expires_at")
    await _validate_target(db, fields["applies_to"], fields.get("target_id"))
    if fields["applies_to"] == AppliesTo.CART_VALUE:
        fields["target_id"] = None


# -----------------------
# DISCOUNTS
# -----------------------
async def create_discount(db: AsyncSession, payload: DiscountCreate, _user) -> Discount:
    fields = payload.model_dump()
    await _validate_discount_fields(db, fields)

    discount = Discount(**fields, active=True, created_by=getattr(_user, "id", None))
    try:
        db.add(discount)
        await db.flush()

        await log_user_activity(
            db,
            user=_user,
            entity_type="discount",
            entity_id=discount.id,
            message=f"Created discount '{discount.name}' ({discount.applies_to.value})",
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(discount)
    return discount


async def get_discount(db: AsyncSession, discount_id: int) -> Discount:
    discount = await PromotionRepository(db).get_discount(discount_id)
    if not discount:
        raise NotFoundError("Discount not found")
    return discount


async def list_discounts(db: AsyncSession, include_deleted: bool = False) -> List[Discount]:
    return await PromotionRepository(db).list_discounts(include_deleted=include_deleted)


async def update_discount(db: AsyncSession, discount_id: int, payload: DiscountUpdate, _user) -> Discount:
    discount = await get_discount(db, discount_id)

    update_data = payload.model_dump(exclude_unset=True)
    _reject_nulls(update_data, NON_NULL_DISCOUNT_FIELDS)
    merged = {
        key: update_data.get(key, getattr(discount, key))
        for key in ("discount_type", "discount_value", "applies_to", "target_id",
                    "min_cart_value", "start_date", "end_date")
    }
    await _validate_discount_fields(db, merged)
    update_data.update(merged)

    try:
        for key, value in update_data.items():
            setattr(discount, key, value)

        await log_user_activity(
            db,
            user=_user,
            entity_type="discount",
            entity_id=discount.id,
            message=f"Updated discount '{discount.name}' (ID: {discount.id})",
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(discount)
    return discount


async def delete_discount(db: AsyncSession, discount_id: int, reason: str, now: datetime, _user) -> Discount:
    discount = await get_discount(db, discount_id)
    if not (reason or "").strip():
        raise ValidationError("A deletion reason is required")

    discount.active = False
    discount.mark_deleted(admin_actor(_user.id), reason.strip(), as_utc(now))

    try:
        await log_user_activity(
            db,
            user=_user,
            entity_type="discount",
            entity_id=discount.id,
            message=f"Soft-deleted discount '{discount.name}' (ID: {discount.id})",
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(discount)
    return discount


# -----------------------
# COUPONS
# -----------------------
def generate_coupon_code() -> str:
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(CODE_LENGTH))


async def create_coupon(db: AsyncSession, payload: CouponCreate, _user) -> Coupon:
    repo = PromotionRepository(db)
    fields = payload.model_dump()
    await _validate_coupon_fields(db, fields)

    code = normalize_code(fields.pop("code"))
    if code:
        if await repo.code_taken(code):
            raise ValidationError("Coupon code already exists")
    else:
        code = generate_coupon_code()
        while await repo.code_taken(code):
            code = generate_coupon_code()

    coupon = Coupon(**fields, code=code, uses=0, active=True, created_by=getattr(_user, "id", None))
    try:
        db.add(coupon)
        await db.flush()

        await log_user_activity(
            db,
            user=_user,
            entity_type="coupon",
            entity_id=coupon.id,
            message=f"Created coupon {coupon.code}",
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(coupon)
    return coupon


async def get_coupon(db: AsyncSession, coupon_id: int) -> Coupon:
    coupon = await PromotionRepository(db).get_coupon_by_id(coupon_id)
    if not coupon:
        raise NotFoundError("Coupon not found")
    return coupon


async def list_coupons(db: AsyncSession, include_deleted: bool = False) -> List[Coupon]:
    return await PromotionRepository(db).list_coupons(include_deleted=include_deleted)


async def update_coupon(db: AsyncSession, coupon_id: int, payload: CouponUpdate, _user) -> Coupon:
    coupon = await get_coupon(db, coupon_id)

    update_data = payload.model_dump(exclude_unset=True)
    _reject_nulls(update_data, NON_NULL_COUPON_FIELDS)
    merged = {
        key: update_data.get(key, getattr(coupon, key))
        for key in ("discount_type", "discount_value", "applies_to", "target_id", "starts_at", "expires_at")
    }
    await _validate_coupon_fields(db, merged)
    update_data.update(merged)

    max_uses = update_data.get("max_uses", coupon.max_uses)
    if max_uses is not None and max_uses < coupon.uses:
        raise ValidationError(f"max_uses cannot be below the {coupon.uses} uses already recorded")

    try:
        for key, value in update_data.items():
            setattr(coupon, key, value)

        await log_user_activity(
            db,
            user=_user,
            entity_type="coupon",
            entity_id=coupon.id,
            message=f"Updated coupon {coupon.code}",
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(coupon)
    return coupon


async def delete_coupon(db: AsyncSession, coupon_id: int, reason: str, now: datetime, _user) -> Coupon:
    """Soft delete: the row and its ``uses`` stay for audit, the code stops validating."""
    coupon = await get_coupon(db, coupon_id)
    if not (reason or "").strip():
        raise ValidationError("A deletion reason is required")

    coupon.active = False
    coupon.mark_deleted(admin_actor(_user.id), reason.strip(), as_utc(now))

    try:
        await log_user_activity(
            db,
            user=_user,
            entity_type="coupon",
            entity_id=coupon.id,
            message=f"Soft-deleted coupon {coupon.code}",
        )
        await db.commit()
    except Exception:
        await db.rollback()
        raise
    await db.refresh(coupon)
    return coupon


# -----------------------
# EXPIRY SWEEP
# -----------------------
async def expire_promotions(db: AsyncSession, now: datetime) -> ExpirySweepResult:
    """
    Retire coupons and discounts whose window has closed. Invoked on demand
    (e.g. by an external cron hitting the admin endpoint).
    """
    repo = PromotionRepository(db)
    now = as_utc(now)

    coupons = await repo.list_expired_coupons(now)
    discounts = await repo.list_expired_discounts(now)

    for entity in (*coupons, *discounts):
        entity.active = False
        entity.mark_deleted(SYSTEM_ACTOR, "expired", now)

    try:
        if coupons or discounts:
            await log_user_activity(
                db,
                entity_type="promotion",
                message=f"Expired {len(coupons)} coupon(s) and {len(discounts)} discount(s)",
            )
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Expiry sweep: %d coupons, %d discounts", len(coupons), len(discounts))
    return ExpirySweepResult(coupons=len(coupons), discounts=len(discounts), timestamp=now)
