# storefront/services/pricing_services/variant_stock.py
from typing import Optional

from storefront.core.exceptions import NotFoundError, StockError
from storefront.models.catalog_models import Product, ProductVariant


def default_variant(product: Product) -> Optional[ProductVariant]:
    for variant in product.variants:
        if variant.is_default:
            return variant
    # Fall back to the first one so a product never becomes unpriceable
    return product.variants[0] if product.variants else None


def effective_variant(product: Product, variant_id: Optional[int] = None) -> Optional[ProductVariant]:
    """
    The variant a cart line refers to. Explicit ids must belong to the product;
    a variant product without an explicit id resolves to its default.
    """
    if variant_id is not None:
        for variant in product.variants:
            if variant.id == variant_id:
                return variant
        raise NotFoundError(f"Variant {variant_id} not found for product {product.id}")
    if product.has_variants:
        return default_variant(product)
    return None


def available_stock(product: Product, variant: Optional[ProductVariant] = None) -> int:
    if variant is not None:
        return variant.stock or 0
    return product.stock or 0


def ensure_in_stock(product: Product, variant: Optional[ProductVariant], quantity: int) -> None:
    """Soft check used while pricing a cart; commit repeats it with a conditional update."""
    available = available_stock(product, variant)
    if quantity > available:
        raise StockError(
            product_id=product.id,
            variant_id=variant.id if variant is not None else None,
            requested=quantity,
            available=available,
        )
