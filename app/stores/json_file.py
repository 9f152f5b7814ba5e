import json
import logging
import threading
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import List, Optional

from app.exceptions import NotFoundError, StorageError
from app.models.order import Order, OrderLine
from app.models.product import Product
from app.stores.base import CENT, LEGACY_PRODUCT_KEYS, CatalogStore, OrderStore, clean_product_fields

logger = logging.getLogger(__name__)


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class JsonFileStore:
    """
    In-memory records snapshotted to a JSON file on every write.

    Records are kept as plain dicts keyed by id; callers always receive fresh
    model instances, never the cached dicts. All access goes through a
    re-entrant lock that can be shared between stores, so a transaction()
    block on one store also serializes writes on the other.
    """

    def __init__(self, path: str, lock: Optional[threading.RLock] = None):
        self.path = Path(path)
        self.lock = lock or threading.RLock()
        self._records: dict[int, dict] = {}
        self._next_id = 1
        self._load()

    def _load(self) -> None:
        if not self.path.exists():
            return
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Could not read {self.path}: {e}")
            raise StorageError(f"Could not read {self.path}") from e

        records = {}
        for position, record in enumerate(data, start=1):
            try:
                record = self._normalize(record)
                records[int(record["id"])] = record
            except (KeyError, TypeError, ValueError, InvalidOperation) as e:
                logger.error(f"Invalid record {position} in {self.path}: {e!r}")
                raise StorageError(f"Invalid record {position} in {self.path}") from e

        self._records = records
        if self._records:
            self._next_id = max(self._records) + 1

    @staticmethod
    def _normalize(record: dict) -> dict:
        return record

    def _save(self) -> None:
        tmp_path = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path.write_text(
                json.dumps(list(self._records.values()), indent=2, default=str),
                encoding="utf-8",
            )
            tmp_path.replace(self.path)
        except OSError as e:
            logger.error(f"Could not write {self.path}: {e}")
            raise StorageError(f"Could not write {self.path}") from e

    def _allocate_id(self) -> int:
        new_id = self._next_id
        self._next_id += 1
        return new_id

    @contextmanager
    def transaction(self):
        # No rollback: a failed write leaves earlier writes of the block in place.
        with self.lock:
            yield


class JsonCatalogStore(JsonFileStore, CatalogStore):
    """
    Catalog store kept in a productos.json style file.

    Files written by the legacy storefront (nombre, precio, categoria, imagen)
    are read as well; they are saved back with the current field names.
    """

    @staticmethod
    def _normalize(record: dict) -> dict:
        record = {LEGACY_PRODUCT_KEYS.get(key, key): value for key, value in record.items()}
        if not record["name"]:
            raise ValueError("product without a name")
        record["price"] = str(Decimal(str(record["price"])).quantize(CENT))
        record["stock"] = int(record.get("stock") or 0)
        record["image_ref"] = record.get("image_ref") or None
        return record

    @staticmethod
    def _to_product(record: dict) -> Product:
        return Product(
            id=record["id"],
            name=record["name"],
            price=Decimal(str(record["price"])),
            category=record.get("category"),
            stock=int(record.get("stock") or 0),
            image_ref=record.get("image_ref"),
            created_at=_parse_datetime(record.get("created_at")),
            updated_at=_parse_datetime(record.get("updated_at")),
        )

    def _record(self, product_id: int) -> dict:
        record = self._records.get(product_id)
        if record is None:
            raise NotFoundError(f"Product with ID {product_id} not found")
        return record

    def list(self) -> List[Product]:
        with self.lock:
            return [self._to_product(record) for record in self._records.values()]

    def get(self, product_id: int, for_update: bool = False) -> Product:
        with self.lock:
            return self._to_product(self._record(product_id))

    def create(self, fields: dict) -> Product:
        data = clean_product_fields(fields)
        with self.lock:
            now = _now()
            record = {
                "id": self._allocate_id(),
                "name": data["name"],
                "price": str(data["price"]),
                "category": data.get("category"),
                "stock": data["stock"],
                "image_ref": data.get("image_ref"),
                "created_at": now,
                "updated_at": now,
            }
            self._records[record["id"]] = record
            self._save()
            return self._to_product(record)

    def update(self, product_id: int, fields: dict) -> Product:
        with self.lock:
            record = self._record(product_id)
            data = clean_product_fields(fields, partial=True)
            if "price" in data:
                data["price"] = str(data["price"])
            record.update(data, updated_at=_now())
            self._save()
            return self._to_product(record)

    def delete(self, product_id: int) -> None:
        with self.lock:
            self._record(product_id)
            del self._records[product_id]
            self._save()

    def adjust_stock(self, product_id: int, delta: int) -> int:
        with self.lock:
            record = self._record(product_id)
            record["stock"] = max(int(record.get("stock") or 0) + delta, 0)
            record["updated_at"] = _now()
            self._save()
            return record["stock"]


class JsonOrderStore(JsonFileStore, OrderStore):
    """Order store kept in a pedidos.json style file."""

    @staticmethod
    def _to_order(record: dict) -> Order:
        return Order(
            id=record["id"],
            customer=record["customer"],
            account_id=record.get("account_id"),
            contact=record.get("contact"),
            total=Decimal(str(record["total"])),
            created_at=_parse_datetime(record.get("created_at")),
            lines=[
                OrderLine(
                    position=position,
                    product_id=line["product_id"],
                    product_name=line["product_name"],
                    quantity=line["quantity"],
                    unit_price=Decimal(str(line["unit_price"])),
                    subtotal=Decimal(str(line["subtotal"])),
                )
                for position, line in enumerate(record.get("lines", []))
            ],
        )

    @staticmethod
    def _to_record(order: Order) -> dict:
        return {
            "id": order.id,
            "customer": order.customer,
            "account_id": order.account_id,
            "contact": order.contact,
            "total": str(order.total),
            "created_at": order.created_at.isoformat(),
            "lines": [
                {
                    "product_id": line.product_id,
                    "product_name": line.product_name,
                    "quantity": line.quantity,
                    "unit_price": str(line.unit_price),
                    "subtotal": str(line.subtotal),
                }
                for line in order.lines
            ],
        }

    def _record(self, order_id: int) -> dict:
        record = self._records.get(order_id)
        if record is None:
            raise NotFoundError(f"Order with ID {order_id} not found")
        return record

    def create(self, order: Order) -> Order:
        with self.lock:
            if order.id is None:
                order.id = self._allocate_id()
            self._next_id = max(self._next_id, order.id + 1)
            if order.created_at is None:
                order.created_at = datetime.now(timezone.utc)

            self._records[order.id] = self._to_record(order)
            self._save()
            return self._to_order(self._records[order.id])

    def get(self, order_id: int) -> Order:
        with self.lock:
            return self._to_order(self._record(order_id))

    def list_all(self) -> List[Order]:
        with self.lock:
            return [self._to_order(record) for record in self._records.values()]

    def list_by_customer(self, customer: str) -> List[Order]:
        with self.lock:
            return [
                self._to_order(record)
                for record in self._records.values()
                if customer in (record["customer"], record.get("account_id"))
            ]

    def delete(self, order_id: int) -> None:
        with self.lock:
            self._record(order_id)
            del self._records[order_id]
            self._save()
