# storefront/models/catalog_models.py
import enum
from decimal import Decimal
from sqlalchemy import (
    Column, Integer, String, Numeric, Boolean, CheckConstraint, ForeignKey, DateTime, Enum, Index, func
)
from sqlalchemy.orm import relationship
from storefront.core.db import Base


class VariantType(str, enum.Enum):
    SIZE = "size"
    CAPACITY = "capacity"
    DIMENSIONS = "dimensions"


class Category(Base):
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), unique=True, nullable=False)

    products = relationship("Product", back_populates="category", lazy="selectin")

    def __repr__(self):
        return f"<Category(id={self.id}, name='{self.name}')>"


class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), index=True, nullable=False)
    list_price = Column(Numeric(10, 2), nullable=False, default=Decimal("0.00"))
    stock = Column(Integer, default=0, nullable=False)

    # Flash discount lives on the product row itself
    flash_discount_percentage = Column(Numeric(5, 2), nullable=False, default=Decimal("0"))
    flash_discount_end_date = Column(DateTime(timezone=True), nullable=True)

    category_id = Column(Integer, ForeignKey("categories.id"), nullable=True, index=True)
    has_variants = Column(Boolean, default=False, nullable=False)
    deleted_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now(), nullable=False)
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())

    category = relationship("Category", back_populates="products", lazy="selectin")
    variants = relationship(
        "ProductVariant",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="ProductVariant.id",
        lazy="selectin",
    )

    __table_args__ = (
        CheckConstraint(list_price >= 0, name="check_product_price_non_negative"),
        CheckConstraint(stock >= 0, name="check_product_stock_non_negative"),
        CheckConstraint(
            "flash_discount_percentage >= 0 AND flash_discount_percentage <= 100",
            name="check_flash_discount_range",
        ),
    )

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}')>"


class ProductVariant(Base):
    __tablename__ = "product_variants"

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey("products.id", ondelete="CASCADE"), nullable=False, index=True)
    variant_type = Column(Enum(VariantType, name="variant_type"), nullable=False)
    label = Column(String(100), nullable=False)
    price = Column(Numeric(10, 2), nullable=False)
    stock = Column(Integer, default=0, nullable=False)
    is_default = Column(Boolean, default=False, nullable=False)

    product = relationship("Product", back_populates="variants")

    __table_args__ = (
        CheckConstraint(price >= 0, name="check_variant_price_non_negative"),
        CheckConstraint(stock >= 0, name="check_variant_stock_non_negative"),
        Index("ix_variant_product_label", "product_id", "label"),
    )

    def __repr__(self):
        return f"<ProductVariant(id={self.id}, product_id={self.product_id}, label='{self.label}')>"
