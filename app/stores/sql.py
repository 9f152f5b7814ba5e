import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import wraps
from typing import List

from sqlalchemy import case, or_, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from app.exceptions import NotFoundError, StorageError
from app.models.order import Order
from app.models.product import Product
from app.stores.base import CatalogStore, OrderStore, clean_product_fields

logger = logging.getLogger(__name__)

# Kept in Session.info so the catalog and order stores sharing one session
# also share one transaction.
_DEPTH_KEY = "store_transaction_depth"


def storage_errors(func):
    """Translate SQLAlchemy errors raised by a store method into StorageError."""
    @wraps(func)
    def wrapper(self, *args, **kwargs):
        try:
            return func(self, *args, **kwargs)
        except SQLAlchemyError as e:
            if not self._depth:
                self.db.rollback()
            logger.error(f"Storage error in {func.__qualname__}: {e}")
            raise StorageError(str(e)) from e
    return wrapper


class SqlStore:
    """
    Shared session handling for the SQLAlchemy stores.

    Outside transaction() every mutating call commits on its own. Inside it,
    calls only flush and the outermost block commits, or rolls back if
    anything raised.
    """

    def __init__(self, db: Session):
        self.db = db

    @property
    def _depth(self) -> int:
        return self.db.info.get(_DEPTH_KEY, 0)

    @contextmanager
    def transaction(self):
        outermost = self._depth == 0
        self.db.info[_DEPTH_KEY] = self._depth + 1
        try:
            yield
            if outermost:
                self.db.commit()
        except SQLAlchemyError as e:
            if outermost:
                self.db.rollback()
            logger.error(f"Transaction failed: {e}")
            raise StorageError(str(e)) from e
        except Exception:
            if outermost:
                self.db.rollback()
            raise
        finally:
            self.db.info[_DEPTH_KEY] = self._depth - 1

    def _commit(self) -> None:
        if self._depth:
            self.db.flush()
        else:
            self.db.commit()


class SqlCatalogStore(SqlStore, CatalogStore):
    """Catalog store backed by the products table."""

    @storage_errors
    def list(self) -> List[Product]:
        return self.db.query(Product).all()

    @storage_errors
    def get(self, product_id: int, for_update: bool = False) -> Product:
        query = self.db.query(Product).filter(Product.id == product_id)
        if for_update:
            # Pessimistic row lock until the surrounding transaction ends
            query = query.with_for_update()
        product = query.populate_existing().first()

        if not product:
            raise NotFoundError(f"Product with ID {product_id} not found")
        return product

    @storage_errors
    def create(self, fields: dict) -> Product:
        product = Product(**clean_product_fields(fields))
        self.db.add(product)
        self._commit()
        self.db.refresh(product)
        return product

    @storage_errors
    def update(self, product_id: int, fields: dict) -> Product:
        product = self.get(product_id)

        for field, value in clean_product_fields(fields, partial=True).items():
            setattr(product, field, value)

        self._commit()
        self.db.refresh(product)
        return product

    @storage_errors
    def delete(self, product_id: int) -> None:
        product = self.get(product_id)
        self.db.delete(product)
        self._commit()

    @storage_errors
    def adjust_stock(self, product_id: int, delta: int) -> int:
        """
        Add delta to the product's stock in a single UPDATE statement.

        The clamp is evaluated by the database, so two concurrent adjustments
        can never leave stock below zero.
        """
        new_stock = case(
            (Product.stock + delta < 0, 0),
            else_=Product.stock + delta,
        )
        result = self.db.execute(
            update(Product)
            .where(Product.id == product_id)
            .values(stock=new_stock)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise NotFoundError(f"Product with ID {product_id} not found")

        stock = self.db.get(Product, product_id, populate_existing=True).stock
        self._commit()
        return stock


class SqlOrderStore(SqlStore, OrderStore):
    """Order store backed by the orders and order_lines tables."""

    def _query(self):
        return self.db.query(Order).options(selectinload(Order.lines))

    @storage_errors
    def create(self, order: Order) -> Order:
        if order.created_at is None:
            order.created_at = datetime.now(timezone.utc)

        self.db.add(order)
        self._commit()
        return order

    @storage_errors
    def get(self, order_id: int) -> Order:
        order = self._query().filter(Order.id == order_id).first()

        if not order:
            raise NotFoundError(f"Order with ID {order_id} not found")
        return order

    @storage_errors
    def list_all(self) -> List[Order]:
        return self._query().all()

    @storage_errors
    def list_by_customer(self, customer: str) -> List[Order]:
        return self._query().filter(
            or_(Order.customer == customer, Order.account_id == customer)
        ).all()

    @storage_errors
    def delete(self, order_id: int) -> None:
        order = self.get(order_id)
        self.db.delete(order)
        self._commit()
