# storefront/repositories/catalog_repository.py
"""
Catalog Repository - read access to products, variants and categories,
plus the conditional stock updates used at order commit.

Usage:
    repository = CatalogRepository(db)
    products = await repository.get_products([1, 2, 3])
"""
import logging
from typing import Dict, Iterable, Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.models.catalog_models import Category, Product, ProductVariant

logger = logging.getLogger(__name__)


class CatalogRepository:
    def __init__(self, db: AsyncSession) -> None:
        self._db = db

    # =========================================================================
    # Read Operations
    # =========================================================================

    async def get_products(self, product_ids: Iterable[int]) -> Dict[int, Product]:
        """Live (non-deleted) products keyed by id; variants load eagerly."""
        ids = set(product_ids)
        if not ids:
            return {}
        result = await self._db.execute(
            select(Product).where(Product.id.in_(ids), Product.deleted_at.is_(None))
        )
        return {p.id: p for p in result.scalars().all()}

    async def get_product(self, product_id: int) -> Optional[Product]:
        products = await self.get_products([product_id])
        return products.get(product_id)

    async def exists(self, model, entity_id: int) -> bool:
        result = await self._db.execute(select(model.id).where(model.id == entity_id))
        return result.scalar_one_or_none() is not None

    async def product_exists(self, product_id: int) -> bool:
        return await self.exists(Product, product_id)

    async def category_exists(self, category_id: int) -> bool:
        return await self.exists(Category, category_id)

    # =========================================================================
    # Stock (conditional updates, safe under concurrent commits)
    # =========================================================================

    async def decrement_stock(self, product_id: int, variant_id: Optional[int], quantity: int) -> bool:
        """
        Take ``quantity`` units only if that many are left. Returns False when a
        concurrent commit (or a stale cart) already consumed the stock.
        """
        if variant_id is not None:
            stmt = (
                update(ProductVariant)
                .where(
                    ProductVariant.id == variant_id,
                    ProductVariant.product_id == product_id,
                    ProductVariant.stock >= quantity,
                )
                .values(stock=ProductVariant.stock - quantity)
            )
        else:
            stmt = (
                update(Product)
                .where(Product.id == product_id, Product.stock >= quantity)
                .values(stock=Product.stock - quantity)
            )
        result = await self._db.execute(stmt.execution_options(synchronize_session=False))
        return result.rowcount == 1

    async def restore_stock(self, product_id: int, variant_id: Optional[int], quantity: int) -> None:
        if variant_id is not None:
            stmt = (
                update(ProductVariant)
                .where(ProductVariant.id == variant_id)
                .values(stock=ProductVariant.stock + quantity)
            )
        else:
            stmt = update(Product).where(Product.id == product_id).values(stock=Product.stock + quantity)
        result = await self._db.execute(stmt.execution_options(synchronize_session=False))
        if result.rowcount != 1:
            logger.warning(
                "Stock restore skipped: product %s variant %s no longer exists", product_id, variant_id
            )
