"""Pydantic schemas for the marketplace service.

Records are the shapes repositories hand to the workflow; request/response
schemas are what the HTTP layer validates and renders.
"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from services.marketplace_service.models import OrderStatus, PaymentStatus

# ============================================================================
# RECORDS
# ============================================================================


class StoreRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    name: str
    owner_id: str


class ProductRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    store_id: uuid.UUID
    name: str
    description: Optional[str] = None
    price: Decimal
    stock: int
    in_stock: bool
    is_featured: bool = False
    average_rating: Optional[Decimal] = None


class OrderItemRecord(BaseModel):
    id: uuid.UUID
    product_id: uuid.UUID
    quantity: int
    price_at_purchase: Decimal
    product_name: Optional[str] = None
    store_id: Optional[uuid.UUID] = None
    store_name: Optional[str] = None


class OrderRecord(BaseModel):
    id: uuid.UUID
    user_id: str
    customer_email: Optional[str] = None
    total: Decimal
    status: OrderStatus
    status_message: Optional[str] = None
    payment_status: Optional[PaymentStatus] = None
    payment_reference: Optional[str] = None
    payment_provider: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: list[OrderItemRecord] = []

    def store_ids(self) -> set[uuid.UUID]:
        return {item.store_id for item in self.items if item.store_id is not None}


class CachedOrder(OrderRecord):
    """Read-optimized projection stored under ``order:<id>``."""

    cached_at: datetime

    def to_record(self) -> OrderRecord:
        return OrderRecord.model_validate(self.model_dump(exclude={"cached_at"}))


class OrderStatusHistoryRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    order_id: uuid.UUID
    status: OrderStatus
    comment: Optional[str] = None
    created_at: Optional[datetime] = None


class CartItemRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    product_id: uuid.UUID
    quantity: int


class CartRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: str
    items: list[CartItemRecord] = []


class ReviewRecord(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    user_id: str
    product_id: uuid.UUID
    order_id: uuid.UUID
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class NewOrderItem(BaseModel):
    product_id: uuid.UUID
    quantity: int
    price_at_purchase: Decimal


class NewOrder(BaseModel):
    user_id: str
    customer_email: Optional[str] = None
    total: Decimal
    items: list[NewOrderItem]


# ============================================================================
# ORDER SCHEMAS
# ============================================================================


class OrderItemRequest(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(..., gt=0)


class CreateOrderRequest(BaseModel):
    items: list[OrderItemRequest] = Field(..., min_length=1)


class UpdateOrderStatusRequest(BaseModel):
    status: OrderStatus
    comment: Optional[str] = Field(None, max_length=500)


class PaginatedOrders(BaseModel):
    items: list[OrderRecord]
    total: int
    page: int
    limit: int
    total_pages: int


# ============================================================================
# CATALOG SCHEMAS
# ============================================================================


class ProductUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    price: Optional[Decimal] = Field(None, ge=0, max_digits=12, decimal_places=2)
    stock: Optional[int] = Field(None, ge=0)
    is_featured: Optional[bool] = None


# ============================================================================
# CART / CHECKOUT SCHEMAS
# ============================================================================


class AddCartItemRequest(BaseModel):
    product_id: uuid.UUID
    quantity: int = Field(1, gt=0)


class CheckoutRequest(BaseModel):
    cart_id: uuid.UUID
    phone: str = Field(..., min_length=9, max_length=15)


# ============================================================================
# PAYMENT SCHEMAS
# ============================================================================


class PaymentRequest(BaseModel):
    order_id: uuid.UUID
    phone: str = Field(..., min_length=9, max_length=15)


class PaymentResponse(BaseModel):
    order_id: uuid.UUID
    transaction_id: str
    status: str
    amount: Decimal
    provider: str


class CheckoutResponse(BaseModel):
    order: OrderRecord
    payment: Optional[PaymentResponse] = None
    payment_error: Optional[str] = None


# ============================================================================
# REVIEW SCHEMAS
# ============================================================================


class ReviewCreate(BaseModel):
    order_id: uuid.UUID
    rating: int = Field(..., ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)


class ReviewUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    comment: Optional[str] = Field(None, max_length=2000)
