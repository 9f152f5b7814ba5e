import threading
from functools import lru_cache

from fastapi import Depends
from sqlalchemy.orm import Session

from app.config import get_settings
from app.database import get_db
from app.services.fulfillment import FulfillmentEngine
from app.services.product_service import ProductService
from app.stores.base import CatalogStore, OrderStore
from app.stores.json_file import JsonCatalogStore, JsonOrderStore
from app.stores.sql import SqlCatalogStore, SqlOrderStore


@lru_cache
def json_stores() -> tuple[JsonCatalogStore, JsonOrderStore]:
    """Process-wide JSON stores sharing one lock."""
    settings = get_settings()
    lock = threading.RLock()
    return (
        JsonCatalogStore(settings.PRODUCTS_FILE, lock),
        JsonOrderStore(settings.ORDERS_FILE, lock),
    )


def build_stores(db: Session) -> tuple[CatalogStore, OrderStore]:
    """Catalog and order stores for the configured backend."""
    if get_settings().STORE_BACKEND == "json":
        return json_stores()
    return SqlCatalogStore(db), SqlOrderStore(db)


def get_catalog_store(db: Session = Depends(get_db)) -> CatalogStore:
    return build_stores(db)[0]


def get_order_store(db: Session = Depends(get_db)) -> OrderStore:
    return build_stores(db)[1]


def get_product_service(catalog: CatalogStore = Depends(get_catalog_store)) -> ProductService:
    return ProductService(catalog)


def get_fulfillment_engine(
    catalog: CatalogStore = Depends(get_catalog_store),
    orders: OrderStore = Depends(get_order_store),
) -> FulfillmentEngine:
    return FulfillmentEngine(catalog, orders)
