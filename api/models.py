"""SQLAlchemy ORM models for the catalog.

Brand ─< Product >─ Category (adjacency list)
            │
            └─< ProductVariant ─< Listing

A product is a phone model from one brand. Its variants are the purchasable
configurations (RAM, storage, color). Listings are the offers individual
stores publish for a variant, which is what prices are compared across.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from shared.normalize import format_price
from shared.types import ProductStatus, StockStatus

# JSONB on PostgreSQL, plain JSON elsewhere (SQLite in tests)
JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def Price(precision: int = 10, scale: int = 2) -> Numeric:
    return Numeric(precision, scale, asdecimal=False)


class Base(DeclarativeBase):
    pass


class TimestampMixin:
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )


class Brand(TimestampMixin, Base):
    __tablename__ = "brands"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    logo_url: Mapped[str | None] = mapped_column(Text)
    website_url: Mapped[str | None] = mapped_column(Text)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    products: Mapped[list[Product]] = relationship(back_populates="brand")

    def __repr__(self) -> str:
        return f"<Brand {self.slug}>"


class Category(TimestampMixin, Base):
    __tablename__ = "categories"
    __table_args__ = (Index("categories_sort_order_idx", "parent_id", "sort_order"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100))
    slug: Mapped[str] = mapped_column(String(100), unique=True, index=True)
    parent_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("categories.id"), index=True
    )
    # 0 for roots; path is "/<root-slug>/.../<slug>"
    level: Mapped[int] = mapped_column(Integer, default=0, index=True)
    path: Mapped[str | None] = mapped_column(Text, index=True)
    description: Mapped[str | None] = mapped_column(Text)
    icon: Mapped[str | None] = mapped_column(String(100))
    image_url: Mapped[str | None] = mapped_column(Text)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    product_count: Mapped[int] = mapped_column(Integer, default=0)

    parent: Mapped[Category | None] = relationship(
        back_populates="children", remote_side="Category.id"
    )
    children: Mapped[list[Category]] = relationship(back_populates="parent")
    products: Mapped[list[Product]] = relationship(back_populates="category")

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": str(self.id),
            "name": self.name,
            "slug": self.slug,
            "parent_id": str(self.parent_id) if self.parent_id else None,
            "level": self.level,
            "path": self.path,
            "description": self.description,
            "icon": self.icon,
            "image_url": self.image_url,
            "sort_order": self.sort_order,
            "is_active": self.is_active,
            "is_featured": self.is_featured,
            "product_count": self.product_count,
        }

    def __repr__(self) -> str:
        return f"<Category {self.path}>"


class Product(TimestampMixin, Base):
    __tablename__ = "products"
    __table_args__ = (
        Index("products_brand_model_number_idx", "brand_id", "model_number"),
        Index("products_brand_model_name_idx", "brand_id", "model_name"),
        Index("products_price_range_idx", "min_price", "max_price"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    # Stored lowercased so matching is case-insensitive
    model_name: Mapped[str] = mapped_column(String(255))
    slug: Mapped[str] = mapped_column(String(255), unique=True, index=True)
    brand_id: Mapped[uuid.UUID] = mapped_column(ForeignKey("brands.id"), index=True)
    category_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("categories.id"), index=True
    )
    model_number: Mapped[str | None] = mapped_column(String(100))
    description: Mapped[str | None] = mapped_column(Text)
    specifications: Mapped[dict[str, Any] | None] = mapped_column(JSONType)
    launch_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    status: Mapped[ProductStatus] = mapped_column(
        Enum(ProductStatus, native_enum=False, length=20),
        default=ProductStatus.active,
        index=True,
    )
    variant_count: Mapped[int] = mapped_column(Integer, default=0)
    min_price: Mapped[float | None] = mapped_column(Price())
    max_price: Mapped[float | None] = mapped_column(Price())
    avg_price: Mapped[float | None] = mapped_column(Price())
    rating: Mapped[float | None] = mapped_column(Price(3, 2), index=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, index=True)

    brand: Mapped[Brand] = relationship(back_populates="products")
    category: Mapped[Category] = relationship(back_populates="products")
    variants: Mapped[list[ProductVariant]] = relationship(back_populates="product")

    def __repr__(self) -> str:
        return f"<Product {self.slug}>"


class ProductVariant(TimestampMixin, Base):
    __tablename__ = "product_variants"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    product_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("products.id"), index=True
    )
    sku: Mapped[str | None] = mapped_column(String(100), unique=True)
    name: Mapped[str] = mapped_column(String(255))
    # {"ram_gb": ..., "storage_gb": ..., "color": ...}
    attributes: Mapped[dict[str, Any]] = mapped_column(JSONType, default=dict)
    # [{"url": ..., "type": "main", "source": ..., "scraped_at": ...}]
    images: Mapped[list[dict[str, Any]] | None] = mapped_column(JSONType)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)

    product: Mapped[Product] = relationship(back_populates="variants")
    listings: Mapped[list[Listing]] = relationship(back_populates="variant")

    def __repr__(self) -> str:
        return f"<ProductVariant {self.name!r}>"


class Listing(TimestampMixin, Base):
    __tablename__ = "listings"
    __table_args__ = (
        Index("listings_composite_idx", "variant_id", "store_name", "is_active"),
        Index("listings_price_range_idx", "price", "stock_status", "is_active"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    variant_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("product_variants.id"), index=True
    )
    store_name: Mapped[str] = mapped_column(String(100), index=True)
    store_product_id: Mapped[str | None] = mapped_column(String(255), index=True)
    title: Mapped[str] = mapped_column(Text)
    url: Mapped[str] = mapped_column(Text)
    price: Mapped[float] = mapped_column(Price(), index=True)
    original_price: Mapped[float | None] = mapped_column(Price())
    discount_percentage: Mapped[float | None] = mapped_column(Price(5, 2), index=True)
    currency: Mapped[str] = mapped_column(String(3), default="INR")
    stock_status: Mapped[StockStatus] = mapped_column(
        Enum(StockStatus, native_enum=False, length=20),
        default=StockStatus.unknown,
        index=True,
    )
    stock_quantity: Mapped[int | None] = mapped_column(Integer)
    seller_name: Mapped[str | None] = mapped_column(String(100))
    seller_rating: Mapped[float | None] = mapped_column(Price(3, 2))
    shipping_info: Mapped[dict[str, Any] | None] = mapped_column(JSONType)
    rating: Mapped[float | None] = mapped_column(Price(3, 2), index=True)
    review_count: Mapped[int] = mapped_column(Integer, default=0)
    features: Mapped[dict[str, Any] | None] = mapped_column(JSONType)
    scraped_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    is_sponsored: Mapped[bool] = mapped_column(Boolean, default=False)
    affiliate_url: Mapped[str | None] = mapped_column(Text)
    # [{"price": ..., "date": ...}], oldest first
    price_history: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, default=list)
    last_seen_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, index=True
    )

    variant: Mapped[ProductVariant] = relationship(back_populates="listings")

    def calculate_discount(self) -> float:
        """Percent off the original price, rounded to 2 decimals."""
        if self.original_price and self.price:
            discount = (self.original_price - self.price) / self.original_price * 100
            return round(discount, 2)
        return 0.0

    def is_good_deal(self, threshold: float = 20) -> bool:
        return self.calculate_discount() >= threshold

    def is_in_stock(self) -> bool:
        return self.stock_status in (StockStatus.in_stock, StockStatus.limited_stock)

    def shipping_cost(self) -> float:
        if self.shipping_info and self.shipping_info.get("cost"):
            return float(self.shipping_info["cost"])
        return 0.0

    def total_cost(self) -> float:
        return float(self.price) + self.shipping_cost()

    def formatted_price(self) -> str:
        return format_price(self.price, self.currency)

    def __repr__(self) -> str:
        return f"<Listing {self.store_name} {self.price}>"
