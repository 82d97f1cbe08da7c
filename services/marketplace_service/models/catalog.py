"""Catalog models: stores, products and product reviews."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from libs.common.datetime_utils import utc_now
from libs.db.base import Base
from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship


class Store(Base):
    """A seller's storefront. Products belong to exactly one store."""

    __tablename__ = "marketplace_stores"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    owner_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    products = relationship("Product", back_populates="store")

    def __repr__(self):
        return f"<Store {self.name}>"


class Product(Base):
    """Sellable product with its on-hand stock."""

    __tablename__ = "marketplace_products"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    store_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("marketplace_stores.id", ondelete="CASCADE"), nullable=False
    )

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    price: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # in_stock mirrors stock > 0 and is rewritten by every stock mutation
    stock: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    in_stock: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    is_featured: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    average_rating: Mapped[Optional[Decimal]] = mapped_column(
        Numeric(2, 1), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        CheckConstraint("stock >= 0", name="product_stock_non_negative"),
        CheckConstraint("price >= 0", name="product_price_non_negative"),
    )

    store = relationship("Store", back_populates="products")
    reviews = relationship("Review", back_populates="product")

    def __repr__(self):
        return f"<Product {self.name} stock={self.stock}>"


class Review(Base):
    """A buyer's rating of a product from one of their completed orders."""

    __tablename__ = "marketplace_reviews"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id: Mapped[str] = mapped_column(String(255), index=True, nullable=False)
    product_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("marketplace_products.id", ondelete="CASCADE"), nullable=False
    )
    order_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("marketplace_orders.id", ondelete="CASCADE"), nullable=False
    )

    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    comment: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "product_id", "order_id", name="unique_review_per_order_item"
        ),
        CheckConstraint("rating BETWEEN 1 AND 5", name="review_rating_range"),
    )

    product = relationship("Product", back_populates="reviews")

    def __repr__(self):
        return f"<Review product={self.product_id} rating={self.rating}>"
