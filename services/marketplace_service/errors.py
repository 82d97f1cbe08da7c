"""Error taxonomy for the order workflow.

Every failure a client can observe maps to one stable ``code``. Store and
transport details stay in the logs.
"""

import uuid
from typing import Optional


class MarketplaceError(Exception):
    """Base exception for workflow errors."""

    code = "marketplace_error"
    status_code = 400

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class NotFound(MarketplaceError):
    code = "not_found"
    status_code = 404


class ProductNotFound(NotFound):
    code = "product_not_found"

    def __init__(self, product_id: Optional[uuid.UUID] = None):
        self.product_id = product_id
        if product_id is None:
            super().__init__("One or more products not found")
        else:
            super().__init__(f"Product {product_id} not found")


class InvalidTransition(MarketplaceError):
    code = "invalid_transition"
    status_code = 409


class InsufficientStock(MarketplaceError):
    code = "insufficient_stock"
    status_code = 409

    def __init__(self, product_id: uuid.UUID, requested: int, available: int):
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id}: "
            f"requested {requested}, available {available}"
        )


class InvalidOrder(MarketplaceError):
    code = "invalid_order"
    status_code = 400


class PaymentInitiationFailed(MarketplaceError):
    code = "payment_initiation_failed"
    status_code = 502


class OrderCreationFailed(MarketplaceError):
    code = "order_creation_failed"
    status_code = 409


class StockConflict(Exception):
    """A conditional stock decrement matched no row inside a transaction.

    Raised by repositories to abort the surrounding transaction; the workflow
    reports it as :class:`OrderCreationFailed`.
    """

    def __init__(self, product_id: uuid.UUID, quantity: int):
        self.product_id = product_id
        self.quantity = quantity
        super().__init__(f"Stock changed concurrently for product {product_id}")
