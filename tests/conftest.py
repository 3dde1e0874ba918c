"""
Shared pytest fixtures.

Every test gets its own SQLite file so that concurrent sessions (one
connection each) can be exercised the same way the API runs them.
"""

import os
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from typing import AsyncGenerator

# Configuration is read at import time
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("DB_TYPE", "sqlite")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from jose import jwt
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from storefront.core.config import JWT_ALGORITHM, JWT_SECRET
from storefront.core.db import Base, enable_sqlite_foreign_keys, get_db
from storefront.models import (
    AppliesTo, Category, Coupon, Discount, DiscountType, Product, ProductVariant,
    User, VariantType, WorkerPermission,
)

# Fixed "now": a Tuesday afternoon in Lima
NOW = datetime(2025, 3, 18, 20, 0, tzinfo=timezone.utc)


@pytest.fixture
def now() -> datetime:
    return NOW


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest_asyncio.fixture
async def async_engine(tmp_path):
    """Async engine on a throwaway SQLite file with the full schema."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'storefront_test.db'}", echo=False)
    event.listen(engine.sync_engine, "connect", enable_sqlite_foreign_keys)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def async_session_factory(async_engine) -> async_sessionmaker:
    return async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture
async def db_session(async_session_factory) -> AsyncGenerator[AsyncSession, None]:
    async with async_session_factory() as session:
        yield session


# ============================================================================
# DATA FACTORIES
# ============================================================================


@pytest.fixture
def make_category(db_session):
    async def _make(name="Iluminación"):
        category = Category(name=name)
        db_session.add(category)
        await db_session.commit()
        return category

    return _make


@pytest.fixture
def make_product(db_session):
    async def _make(
        name="Lámpara de mesa",
        price="100.00",
        stock=10,
        category=None,
        flash_percentage="0",
        flash_end=None,
        variants=None,
    ):
        product = Product(
            name=name,
            list_price=Decimal(price),
            stock=stock,
            category_id=category.id if category is not None else None,
            flash_discount_percentage=Decimal(flash_percentage),
            flash_discount_end_date=flash_end,
            has_variants=bool(variants),
        )
        for variant in variants or []:
            product.variants.append(ProductVariant(
                variant_type=variant.get("variant_type", VariantType.SIZE),
                label=variant["label"],
                price=Decimal(variant["price"]),
                stock=variant.get("stock", 10),
                is_default=variant.get("is_default", False),
            ))
        db_session.add(product)
        await db_session.commit()
        await db_session.refresh(product)
        return product

    return _make


@pytest.fixture
def make_discount(db_session):
    async def _make(
        name="Promo",
        discount_type=DiscountType.PERCENTAGE,
        value="10",
        applies_to=AppliesTo.PRODUCT,
        target_id=None,
        min_cart_value=None,
        start_date=None,
        end_date=None,
        active=True,
    ):
        discount = Discount(
            name=name,
            discount_type=discount_type,
            discount_value=Decimal(value),
            applies_to=applies_to,
            target_id=target_id,
            min_cart_value=Decimal(min_cart_value) if min_cart_value is not None else None,
            start_date=start_date,
            end_date=end_date,
            active=active,
        )
        db_session.add(discount)
        await db_session.commit()
        return discount

    return _make


@pytest.fixture
def make_coupon(db_session):
    async def _make(
        code="BIENVENIDO10",
        discount_type=DiscountType.PERCENTAGE,
        value="10",
        min_purchase="0",
        applies_to=AppliesTo.CART_VALUE,
        target_id=None,
        max_uses=None,
        uses=0,
        usage_limit_per_user=0,
        starts_at=None,
        expires_at=None,
    ):
        coupon = Coupon(
            code=code,
            discount_type=discount_type,
            discount_value=Decimal(value),
            min_purchase=Decimal(min_purchase),
            applies_to=applies_to,
            target_id=target_id,
            max_uses=max_uses,
            uses=uses,
            usage_limit_per_user=usage_limit_per_user,
            starts_at=starts_at,
            expires_at=expires_at,
        )
        db_session.add(coupon)
        await db_session.commit()
        return coupon

    return _make


@pytest.fixture
def make_user(db_session):
    async def _make(username="admin", role="admin", permissions=(), is_active=True):
        user = User(username=username, email=f"{username}@example.com", role=role, is_active=is_active)
        for key in permissions:
            user.permissions.append(WorkerPermission(permission_key=key))
        db_session.add(user)
        await db_session.commit()
        await db_session.refresh(user)
        return user

    return _make


# ============================================================================
# API FIXTURES
# ============================================================================


def token_for(user: User) -> str:
    payload = {
        "sub": user.username,
        "token_version": user.token_version,
        "type": "access",
        "exp": datetime.now(timezone.utc) + timedelta(hours=1),
    }
    return jwt.encode(payload, JWT_SECRET, algorithm=JWT_ALGORITHM)


@pytest.fixture
def auth_headers():
    def _headers(user: User) -> dict:
        return {"Authorization": f"Bearer {token_for(user)}"}

    return _headers


@pytest_asyncio.fixture
async def client(async_session_factory) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, with ``get_db`` bound to the test database."""
    from main import app

    async def _override_get_db():
        async with async_session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = _override_get_db
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
    app.dependency_overrides.clear()
