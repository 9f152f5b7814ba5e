import os
import tempfile
import threading

# Settings are read once at import time, so point every file location at a
# scratch directory and the engine at in-memory SQLite before importing app.
_scratch = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("STORE_BACKEND", "sql")
os.environ.setdefault("IMAGE_DIR", os.path.join(_scratch, "imagenes"))
os.environ.setdefault("RECEIPT_DIR", os.path.join(_scratch, "pedidos"))
os.environ.setdefault("PRODUCTS_FILE", os.path.join(_scratch, "productos.json"))
os.environ.setdefault("ORDERS_FILE", os.path.join(_scratch, "pedidos", "pedidos.json"))

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.database import Base, get_db
from app.dependencies import get_catalog_store, get_fulfillment_engine, get_order_store, get_product_service
from app.services.fulfillment import FulfillmentEngine
from app.services.product_service import ProductService
from app.stores.json_file import JsonCatalogStore, JsonOrderStore
from app.stores.base import CatalogStore, OrderStore
from app.stores.sql import SqlCatalogStore, SqlOrderStore
from app.utils.images import ImageStorage


# Create test database (SQLite in-memory for testing)
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    """Override database dependency for testing."""
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


# Override the dependency
app.dependency_overrides[get_db] = override_get_db


class FakeCache:
    """In-process stand-in for the Redis cache service."""

    def __init__(self):
        self.data = {}
        self.deleted = []

    def get(self, prefix, key):
        return self.data.get(f"{prefix}:{key}")

    def set(self, prefix, key, value, ttl=None):
        self.data[f"{prefix}:{key}"] = value
        return True

    def delete(self, prefix, key):
        self.deleted.append(f"{prefix}:{key}")
        self.data.pop(f"{prefix}:{key}", None)
        return True


@pytest.fixture
def cache():
    return FakeCache()


@pytest.fixture
def images(tmp_path):
    return ImageStorage(directory=str(tmp_path / "imagenes"), url_prefix="/imagenes")


@pytest.fixture(scope="function")
def client(cache, images):
    """Create test client with fresh database for each test."""
    # Create tables
    Base.metadata.create_all(bind=engine)

    # Stores still come from get_db, so they run on the test engine
    def override_product_service(catalog: CatalogStore = Depends(get_catalog_store)):
        return ProductService(catalog, images=images, cache=cache)

    def override_fulfillment_engine(
        catalog: CatalogStore = Depends(get_catalog_store),
        orders: OrderStore = Depends(get_order_store),
    ):
        return FulfillmentEngine(catalog, orders, markup="1", cache=cache)

    app.dependency_overrides[get_product_service] = override_product_service
    app.dependency_overrides[get_fulfillment_engine] = override_fulfillment_engine

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.pop(get_product_service, None)
    app.dependency_overrides.pop(get_fulfillment_engine, None)

    # Drop tables after test
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    """Create database session for direct database access in tests."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(params=["sql", "json"])
def stores(request, tmp_path):
    """Catalog and order stores for each storage backend."""
    if request.param == "sql":
        session = request.getfixturevalue("db_session")
        return SqlCatalogStore(session), SqlOrderStore(session)

    lock = threading.RLock()
    return (
        JsonCatalogStore(str(tmp_path / "productos.json"), lock),
        JsonOrderStore(str(tmp_path / "pedidos.json"), lock),
    )


@pytest.fixture
def catalog(stores):
    return stores[0]


@pytest.fixture
def order_store(stores):
    return stores[1]


@pytest.fixture
def fulfillment(catalog, order_store, cache):
    return FulfillmentEngine(catalog, order_store, markup="1", cache=cache)
