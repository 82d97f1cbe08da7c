"""Repository contracts and their SQLAlchemy implementation.

The workflow only sees the protocols below. Every call happens inside
``Database.transaction()``, which commits on normal exit and rolls back on
any exception, so a sequence of repository calls is atomic.
"""

import uuid
from contextlib import asynccontextmanager
from datetime import datetime
from decimal import Decimal
from typing import AsyncContextManager, AsyncIterator, Iterable, Optional, Protocol

from libs.common.datetime_utils import utc_now
from services.marketplace_service.errors import StockConflict
from services.marketplace_service.models import (
    Cart,
    CartItem,
    Order,
    OrderItem,
    OrderStatus,
    OrderStatusHistory,
    PaymentStatus,
    Product,
    Review,
    Store,
)
from services.marketplace_service.schemas import (
    CartRecord,
    NewOrder,
    OrderItemRecord,
    OrderRecord,
    OrderStatusHistoryRecord,
    ProductRecord,
    ReviewRecord,
    StoreRecord,
)
from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import selectinload

# ============================================================================
# CONTRACTS
# ============================================================================


class ProductRepository(Protocol):
    async def get(
        self, product_id: uuid.UUID, *, for_update: bool = False
    ) -> Optional[ProductRecord]: ...

    async def get_many(self, product_ids: Iterable[uuid.UUID]) -> list[ProductRecord]: ...

    async def list_featured(self, limit: int) -> list[ProductRecord]: ...

    async def decrement_stock(self, product_id: uuid.UUID, quantity: int) -> None:
        """Take ``quantity`` units only if that many are on hand.

        Raises StockConflict when the guard matches no row.
        """
        ...

    async def increment_stock(self, product_id: uuid.UUID, quantity: int) -> None: ...

    async def set_average_rating(
        self, product_id: uuid.UUID, rating: Optional[Decimal]
    ) -> None: ...

    async def update(self, product_id: uuid.UUID, **values) -> ProductRecord:
        """Apply seller edits. Callers keep ``in_stock`` consistent with ``stock``."""
        ...


class StoreRepository(Protocol):
    async def get(self, store_id: uuid.UUID) -> Optional[StoreRecord]: ...


class OrderRepository(Protocol):
    async def create(self, new_order: NewOrder) -> OrderRecord: ...

    async def get(
        self, order_id: uuid.UUID, *, for_update: bool = False
    ) -> Optional[OrderRecord]: ...

    async def get_by_payment_reference(
        self, reference: str, *, for_update: bool = False
    ) -> Optional[OrderRecord]: ...

    async def update(self, order_id: uuid.UUID, **values) -> OrderRecord: ...

    async def mark_payment_pending(
        self, order_id: uuid.UUID, reference: str, provider: str
    ) -> bool:
        """Record an initiated payment on a pending order that has none yet."""
        ...

    async def add_history(
        self, order_id: uuid.UUID, status: OrderStatus, comment: Optional[str]
    ) -> None: ...

    async def list_history(self, order_id: uuid.UUID) -> list[OrderStatusHistoryRecord]: ...

    async def list_for_user(
        self,
        user_id: str,
        *,
        status: Optional[OrderStatus] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[OrderRecord], int]: ...

    async def list_for_store(
        self,
        store_id: uuid.UUID,
        *,
        status: Optional[OrderStatus] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[OrderRecord], int]: ...

    async def list_pending_payments(
        self, *, updated_before: datetime, limit: int = 200
    ) -> list[OrderRecord]: ...


class CartRepository(Protocol):
    async def get(self, cart_id: uuid.UUID) -> Optional[CartRecord]: ...

    async def get_for_user(self, user_id: str) -> Optional[CartRecord]: ...

    async def create(self, user_id: str) -> CartRecord: ...

    async def set_item(
        self, cart_id: uuid.UUID, product_id: uuid.UUID, quantity: int
    ) -> None: ...

    async def remove_item(self, cart_id: uuid.UUID, product_id: uuid.UUID) -> None: ...

    async def delete(self, cart_id: uuid.UUID) -> None: ...


class ReviewRepository(Protocol):
    async def create(
        self,
        *,
        user_id: str,
        product_id: uuid.UUID,
        order_id: uuid.UUID,
        rating: int,
        comment: Optional[str],
    ) -> ReviewRecord: ...

    async def get(self, review_id: uuid.UUID) -> Optional[ReviewRecord]: ...

    async def exists(
        self, *, user_id: str, product_id: uuid.UUID, order_id: uuid.UUID
    ) -> bool: ...

    async def update(self, review_id: uuid.UUID, **values) -> ReviewRecord: ...

    async def delete(self, review_id: uuid.UUID) -> None: ...

    async def ratings_for_product(self, product_id: uuid.UUID) -> list[int]: ...

    async def list_for_product(self, product_id: uuid.UUID) -> list[ReviewRecord]: ...


class Repositories(Protocol):
    products: ProductRepository
    stores: StoreRepository
    orders: OrderRepository
    carts: CartRepository
    reviews: ReviewRepository


class Database(Protocol):
    def transaction(self) -> AsyncContextManager[Repositories]: ...


# ============================================================================
# SQLALCHEMY IMPLEMENTATION
# ============================================================================


def _order_record(order: Order) -> OrderRecord:
    items = []
    for item in order.items:
        product = item.product
        items.append(
            OrderItemRecord(
                id=item.id,
                product_id=item.product_id,
                quantity=item.quantity,
                price_at_purchase=item.price_at_purchase,
                product_name=product.name if product else None,
                store_id=product.store_id if product else None,
                store_name=product.store.name if product and product.store else None,
            )
        )
    return OrderRecord(
        id=order.id,
        user_id=order.user_id,
        customer_email=order.customer_email,
        total=order.total,
        status=order.status,
        status_message=order.status_message,
        payment_status=order.payment_status,
        payment_reference=order.payment_reference,
        payment_provider=order.payment_provider,
        created_at=order.created_at,
        updated_at=order.updated_at,
        completed_at=order.completed_at,
        cancelled_at=order.cancelled_at,
        items=items,
    )


def _order_query():
    return select(Order).options(
        selectinload(Order.items)
        .selectinload(OrderItem.product)
        .selectinload(Product.store)
    )


class SqlProductRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(
        self, product_id: uuid.UUID, *, for_update: bool = False
    ) -> Optional[ProductRecord]:
        product = await self.session.get(
            Product, product_id, with_for_update=for_update, populate_existing=True
        )
        return ProductRecord.model_validate(product) if product else None

    async def get_many(self, product_ids: Iterable[uuid.UUID]) -> list[ProductRecord]:
        ids = list(product_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(Product)
            .where(Product.id.in_(ids))
            .execution_options(populate_existing=True)
        )
        return [ProductRecord.model_validate(p) for p in result.scalars().all()]

    async def list_featured(self, limit: int) -> list[ProductRecord]:
        result = await self.session.execute(
            select(Product)
            .where(Product.is_featured.is_(True), Product.in_stock.is_(True))
            .order_by(Product.created_at.desc())
            .limit(limit)
        )
        return [ProductRecord.model_validate(p) for p in result.scalars().all()]

    async def decrement_stock(self, product_id: uuid.UUID, quantity: int) -> None:
        # Guarded UPDATE: the row lock taken by the write serializes concurrent
        # decrements, and the WHERE clause re-reads the committed stock.
        result = await self.session.execute(
            update(Product)
            .where(Product.id == product_id, Product.stock >= quantity)
            .values(
                stock=Product.stock - quantity,
                in_stock=(Product.stock - quantity) > 0,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise StockConflict(product_id, quantity)

    async def increment_stock(self, product_id: uuid.UUID, quantity: int) -> None:
        await self.session.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(
                stock=Product.stock + quantity,
                in_stock=True,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )

    async def set_average_rating(
        self, product_id: uuid.UUID, rating: Optional[Decimal]
    ) -> None:
        await self.session.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(average_rating=rating, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )

    async def update(self, product_id: uuid.UUID, **values) -> ProductRecord:
        await self.session.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(**values, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        product = await self.session.get(Product, product_id, populate_existing=True)
        return ProductRecord.model_validate(product)


class SqlStoreRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, store_id: uuid.UUID) -> Optional[StoreRecord]:
        store = await self.session.get(Store, store_id)
        return StoreRecord.model_validate(store) if store else None


class SqlOrderRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def _load(self, order_id: uuid.UUID, *, for_update: bool = False) -> Optional[Order]:
        query = _order_query().where(Order.id == order_id)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(
            query.execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def create(self, new_order: NewOrder) -> OrderRecord:
        order = Order(
            user_id=new_order.user_id,
            customer_email=new_order.customer_email,
            total=new_order.total,
            status=OrderStatus.PENDING,
            items=[
                OrderItem(
                    product_id=item.product_id,
                    quantity=item.quantity,
                    price_at_purchase=item.price_at_purchase,
                )
                for item in new_order.items
            ],
        )
        self.session.add(order)
        await self.session.flush()
        return _order_record(await self._load(order.id))

    async def get(
        self, order_id: uuid.UUID, *, for_update: bool = False
    ) -> Optional[OrderRecord]:
        order = await self._load(order_id, for_update=for_update)
        return _order_record(order) if order else None

    async def get_by_payment_reference(
        self, reference: str, *, for_update: bool = False
    ) -> Optional[OrderRecord]:
        query = _order_query().where(Order.payment_reference == reference)
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(
            query.execution_options(populate_existing=True)
        )
        order = result.scalar_one_or_none()
        return _order_record(order) if order else None

    async def update(self, order_id: uuid.UUID, **values) -> OrderRecord:
        await self.session.execute(
            update(Order)
            .where(Order.id == order_id)
            .values(**values, updated_at=utc_now())
            .execution_options(synchronize_session=False)
        )
        return _order_record(await self._load(order_id))

    async def mark_payment_pending(
        self, order_id: uuid.UUID, reference: str, provider: str
    ) -> bool:
        result = await self.session.execute(
            update(Order)
            .where(
                Order.id == order_id,
                Order.status == OrderStatus.PENDING,
                Order.payment_status.is_(None),
            )
            .values(
                payment_status=PaymentStatus.PENDING,
                payment_reference=reference,
                payment_provider=provider,
                updated_at=utc_now(),
            )
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    async def add_history(
        self, order_id: uuid.UUID, status: OrderStatus, comment: Optional[str]
    ) -> None:
        self.session.add(
            OrderStatusHistory(order_id=order_id, status=status, comment=comment)
        )
        await self.session.flush()

    async def list_history(self, order_id: uuid.UUID) -> list[OrderStatusHistoryRecord]:
        result = await self.session.execute(
            select(OrderStatusHistory)
            .where(OrderStatusHistory.order_id == order_id)
            .order_by(OrderStatusHistory.created_at)
        )
        return [
            OrderStatusHistoryRecord.model_validate(row)
            for row in result.scalars().all()
        ]

    async def _paginate(
        self, filters: list, offset: int, limit: int
    ) -> tuple[list[OrderRecord], int]:
        total = await self.session.scalar(
            select(func.count()).select_from(Order).where(*filters)
        )
        result = await self.session.execute(
            _order_query()
            .where(*filters)
            .order_by(Order.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        return [_order_record(o) for o in result.scalars().all()], total or 0

    async def list_for_user(
        self,
        user_id: str,
        *,
        status: Optional[OrderStatus] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[OrderRecord], int]:
        filters = [Order.user_id == user_id]
        if status:
            filters.append(Order.status == status)
        return await self._paginate(filters, offset, limit)

    async def list_for_store(
        self,
        store_id: uuid.UUID,
        *,
        status: Optional[OrderStatus] = None,
        offset: int = 0,
        limit: int = 10,
    ) -> tuple[list[OrderRecord], int]:
        filters = [Order.items.any(OrderItem.product.has(Product.store_id == store_id))]
        if status:
            filters.append(Order.status == status)
        return await self._paginate(filters, offset, limit)

    async def list_pending_payments(
        self, *, updated_before: datetime, limit: int = 200
    ) -> list[OrderRecord]:
        result = await self.session.execute(
            _order_query()
            .where(
                Order.payment_status == PaymentStatus.PENDING,
                Order.updated_at <= updated_before,
            )
            .order_by(Order.updated_at.asc())
            .limit(limit)
        )
        return [_order_record(o) for o in result.scalars().all()]


class SqlCartRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get(self, cart_id: uuid.UUID) -> Optional[CartRecord]:
        result = await self.session.execute(
            select(Cart)
            .where(Cart.id == cart_id)
            .options(selectinload(Cart.items))
            .execution_options(populate_existing=True)
        )
        cart = result.scalar_one_or_none()
        return CartRecord.model_validate(cart) if cart else None

    async def get_for_user(self, user_id: str) -> Optional[CartRecord]:
        result = await self.session.execute(
            select(Cart)
            .where(Cart.user_id == user_id)
            .options(selectinload(Cart.items))
            .order_by(Cart.created_at.desc())
            .limit(1)
            .execution_options(populate_existing=True)
        )
        cart = result.scalar_one_or_none()
        return CartRecord.model_validate(cart) if cart else None

    async def create(self, user_id: str) -> CartRecord:
        cart = Cart(user_id=user_id)
        self.session.add(cart)
        await self.session.flush()
        return CartRecord(id=cart.id, user_id=user_id, items=[])

    async def set_item(
        self, cart_id: uuid.UUID, product_id: uuid.UUID, quantity: int
    ) -> None:
        result = await self.session.execute(
            select(CartItem).where(
                CartItem.cart_id == cart_id, CartItem.product_id == product_id
            )
        )
        item = result.scalar_one_or_none()
        if item:
            item.quantity = quantity
        else:
            self.session.add(
                CartItem(cart_id=cart_id, product_id=product_id, quantity=quantity)
            )
        await self.session.flush()

    async def remove_item(self, cart_id: uuid.UUID, product_id: uuid.UUID) -> None:
        await self.session.execute(
            delete(CartItem).where(
                CartItem.cart_id == cart_id, CartItem.product_id == product_id
            )
        )

    async def delete(self, cart_id: uuid.UUID) -> None:
        await self.session.execute(delete(CartItem).where(CartItem.cart_id == cart_id))
        await self.session.execute(delete(Cart).where(Cart.id == cart_id))


class SqlReviewRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        *,
        user_id: str,
        product_id: uuid.UUID,
        order_id: uuid.UUID,
        rating: int,
        comment: Optional[str],
    ) -> ReviewRecord:
        review = Review(
            user_id=user_id,
            product_id=product_id,
            order_id=order_id,
            rating=rating,
            comment=comment,
        )
        self.session.add(review)
        await self.session.flush()
        return ReviewRecord.model_validate(review)

    async def get(self, review_id: uuid.UUID) -> Optional[ReviewRecord]:
        review = await self.session.get(Review, review_id)
        return ReviewRecord.model_validate(review) if review else None

    async def exists(
        self, *, user_id: str, product_id: uuid.UUID, order_id: uuid.UUID
    ) -> bool:
        found = await self.session.scalar(
            select(Review.id).where(
                Review.user_id == user_id,
                Review.product_id == product_id,
                Review.order_id == order_id,
            )
        )
        return found is not None

    async def update(self, review_id: uuid.UUID, **values) -> ReviewRecord:
        review = await self.session.get(Review, review_id)
        for key, value in values.items():
            setattr(review, key, value)
        review.updated_at = utc_now()
        await self.session.flush()
        return ReviewRecord.model_validate(review)

    async def delete(self, review_id: uuid.UUID) -> None:
        await self.session.execute(delete(Review).where(Review.id == review_id))

    async def ratings_for_product(self, product_id: uuid.UUID) -> list[int]:
        result = await self.session.execute(
            select(Review.rating).where(Review.product_id == product_id)
        )
        return list(result.scalars().all())

    async def list_for_product(self, product_id: uuid.UUID) -> list[ReviewRecord]:
        result = await self.session.execute(
            select(Review)
            .where(Review.product_id == product_id)
            .order_by(Review.created_at.desc())
        )
        return [ReviewRecord.model_validate(r) for r in result.scalars().all()]


class SqlRepositories:
    """All repositories bound to one session (one transaction)."""

    def __init__(self, session: AsyncSession):
        self.session = session
        self.products = SqlProductRepository(session)
        self.stores = SqlStoreRepository(session)
        self.orders = SqlOrderRepository(session)
        self.carts = SqlCartRepository(session)
        self.reviews = SqlReviewRepository(session)


class SqlAlchemyDatabase:
    """:class:`Database` backed by an async SQLAlchemy session factory."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[SqlRepositories]:
        async with self._session_factory() as session:
            async with session.begin():
                yield SqlRepositories(session)
