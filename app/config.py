from decimal import Decimal
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables (or a .env file).
    """
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    APP_NAME: str = "Storefront Orders"
    APP_VERSION: str = "1.0.0"
    LOG_LEVEL: str = "INFO"

    # Storage
    STORE_BACKEND: Literal["sql", "json"] = "sql"
    DATABASE_URL: str = "sqlite:///./storefront.db"
    PRODUCTS_FILE: str = "./productos.json"
    ORDERS_FILE: str = "./pedidos/pedidos.json"

    # Pricing: multiplicative factor applied to the stored price at order time.
    # Known deployments: 1 (none), 1.10, 1.122 (1.10 x 1.02).
    PRICE_MARKUP: Decimal = Decimal("1")
    GUEST_CUSTOMER: str = "guest"

    # Cache
    REDIS_URL: str = "redis://localhost:6379/0"
    CACHE_TTL: int = 300

    # Background tasks
    CELERY_BROKER_URL: str = "redis://localhost:6379/1"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/2"

    # Files
    IMAGE_DIR: str = "./public/imagenes"
    IMAGE_URL_PREFIX: str = "/imagenes"
    RECEIPT_DIR: str = "./pedidos"


@lru_cache
def get_settings() -> Settings:
    """Return the process-wide settings instance."""
    return Settings()
