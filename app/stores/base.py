from abc import ABC, abstractmethod
from contextlib import contextmanager
from decimal import Decimal, InvalidOperation
from typing import Iterator, List

from app.exceptions import ValidationError
from app.models.order import Order
from app.models.product import Product

CENT = Decimal("0.01")


class CatalogStore(ABC):
    """
    Durable mapping from product id to Product.

    Implementations must make adjust_stock a single atomic read-modify-write:
    it is what keeps concurrent orders from selling the same unit twice.
    """

    @abstractmethod
    def list(self) -> List[Product]:
        """Return every product. No ordering is guaranteed."""

    @abstractmethod
    def get(self, product_id: int, for_update: bool = False) -> Product:
        """
        Return a product or raise NotFoundError.

        for_update asks the store to lock the product until the surrounding
        transaction ends, where the storage engine supports it.
        """

    @abstractmethod
    def create(self, fields: dict) -> Product:
        """Store a new product under a fresh id. Requires name and price."""

    @abstractmethod
    def update(self, product_id: int, fields: dict) -> Product:
        """Overwrite only the given fields of an existing product."""

    @abstractmethod
    def delete(self, product_id: int) -> None:
        """Remove a product or raise NotFoundError."""

    @abstractmethod
    def adjust_stock(self, product_id: int, delta: int) -> int:
        """Add delta to stock, never going below zero. Returns the new stock."""

    @contextmanager
    def transaction(self) -> Iterator[None]:
        """Group several store calls into one unit of work."""
        yield


class OrderStore(ABC):
    """Durable mapping from order id to Order. Orders are never patched."""

    @abstractmethod
    def create(self, order: Order) -> Order:
        """Persist a new order, assigning its id and created_at if unset."""

    @abstractmethod
    def get(self, order_id: int) -> Order:
        """Return an order or raise NotFoundError."""

    @abstractmethod
    def list_all(self) -> List[Order]:
        """Return every order. No ordering is guaranteed."""

    @abstractmethod
    def list_by_customer(self, customer: str) -> List[Order]:
        """Return orders whose customer or linked account matches."""

    @abstractmethod
    def delete(self, order_id: int) -> None:
        """Remove an order or raise NotFoundError."""


PRODUCT_FIELDS = ("name", "price", "category", "stock", "image_ref")

# Field names used by the legacy storefront's productos.json
LEGACY_PRODUCT_KEYS = {
    "nombre": "name",
    "precio": "price",
    "categoria": "category",
    "imagen": "image_ref",
}


def clean_product_fields(fields: dict, partial: bool = False) -> dict:
    """
    Validate and normalize product fields.

    Unknown keys (including "id") are dropped. With partial=False, name and
    price are required and stock defaults to 0.

    Raises:
        ValidationError: If a required field is missing or a value is invalid
    """
    data = {key: fields[key] for key in PRODUCT_FIELDS if key in fields}

    if not partial:
        if not data.get("name") or data.get("price") is None:
            raise ValidationError("Product name and price are required")
        data.setdefault("stock", 0)

    if "name" in data and not data["name"]:
        raise ValidationError("Product name cannot be empty")

    if "price" in data:
        try:
            data["price"] = Decimal(str(data["price"])).quantize(CENT)
        except (InvalidOperation, TypeError, ValueError):
            raise ValidationError(f"Invalid price: {data['price']!r}")
        if data["price"] < 0:
            raise ValidationError("Price must be non-negative")

    if "stock" in data:
        if data["stock"] is None:
            data["stock"] = 0
        try:
            data["stock"] = int(data["stock"])
        except (TypeError, ValueError):
            raise ValidationError(f"Invalid stock: {data['stock']!r}")
        if data["stock"] < 0:
            raise ValidationError("Stock must be non-negative")

    return data
