from typing import BinaryIO, List, Optional
import logging
import math

from app.exceptions import NotFoundError
from app.models.product import Product
from app.schemas.product import ProductResponse
from app.services.fulfillment import PRODUCT_CACHE_PREFIX
from app.stores.base import CatalogStore
from app.utils.cache import CacheService, cache_service
from app.utils.images import ImageStorage

logger = logging.getLogger(__name__)


class ProductService:
    """
    Service class for Product operations on top of a catalog store.

    This service handles:
    - Product CRUD (delegated to the catalog store)
    - Listing with search, category filter and pagination
    - Cached product reads and cache invalidation
    - Product image upload and cleanup
    """

    CACHE_PREFIX = PRODUCT_CACHE_PREFIX

    def __init__(
        self,
        catalog: CatalogStore,
        images: Optional[ImageStorage] = None,
        cache: Optional[CacheService] = None,
    ):
        self.catalog = catalog
        self.images = images or ImageStorage()
        self.cache = cache or cache_service

    def create(self, fields: dict) -> Product:
        """
        Create a new product.

        Products created without an image reference get the conventional
        /imagenes/<id>.jpg reference of their future upload.

        Raises:
            ValidationError: If name or price is missing or invalid
        """
        product = self.catalog.create(fields)
        if not product.image_ref:
            product = self.catalog.update(product.id, {"image_ref": self.images.url_for(product.id)})

        logger.info(f"Product #{product.id} created")
        return product

    def get_by_id(self, product_id: int) -> Product:
        """Get a product by ID. Raises NotFoundError."""
        return self.catalog.get(product_id)

    def get_by_id_cached(self, product_id: int) -> dict:
        """
        Get product details from cache or the catalog.

        Returns:
            Product data as a JSON-ready dictionary
        """
        cached = self.cache.get(self.CACHE_PREFIX, str(product_id))
        if cached:
            return cached

        product_dict = self._to_dict(self.catalog.get(product_id))
        self.cache.set(self.CACHE_PREFIX, str(product_id), product_dict)
        return product_dict

    def get_all(
        self,
        page: int = 1,
        page_size: int = 10,
        search: str = None,
        category: str = None,
    ) -> tuple[List[Product], int, int]:
        """
        Get paginated list of products, newest first.

        Args:
            page: Page number (1-indexed)
            page_size: Number of items per page
            search: Optional case-insensitive search term for product name
            category: Optional category (case-insensitive exact match)

        Returns:
            Tuple of (products list, total count, total pages)
        """
        products = self.catalog.list()

        if search:
            term = search.lower()
            products = [p for p in products if term in p.name.lower()]
        if category:
            wanted = category.lower()
            products = [p for p in products if (p.category or "").lower() == wanted]

        products.sort(key=lambda p: p.id, reverse=True)

        total = len(products)
        total_pages = math.ceil(total / page_size) if total > 0 else 1

        offset = (page - 1) * page_size
        return products[offset:offset + page_size], total, total_pages

    def update(self, product_id: int, fields: dict) -> Product:
        """
        Update an existing product. Only the given fields are changed.

        Raises:
            NotFoundError: If the product doesn't exist
            ValidationError: If a value is invalid
        """
        product = self.catalog.update(product_id, fields)
        self._invalidate_cache(product_id)
        return product

    def delete(self, product_id: int) -> None:
        """
        Delete a product together with its image and cache entry.

        Raises:
            NotFoundError: If the product doesn't exist
        """
        self.catalog.delete(product_id)
        self.images.delete(product_id)
        self._invalidate_cache(product_id)
        logger.info(f"Product #{product_id} deleted")

    def upload_image(self, product_id: int, source: BinaryIO) -> Product:
        """Store the image of an existing product."""
        product = self.catalog.get(product_id)
        self.images.save(product_id, source)

        if not product.image_ref:
            product = self.catalog.update(product_id, {"image_ref": self.images.url_for(product_id)})
        self._invalidate_cache(product_id)
        return product

    def delete_image(self, product_id: int) -> None:
        """Delete the image of a product. Raises NotFoundError if there is none."""
        if not self.images.delete(product_id):
            raise NotFoundError(f"No image stored for product {product_id}")
        self._invalidate_cache(product_id)

    def _to_dict(self, product: Product) -> dict:
        return ProductResponse.model_validate(product).model_dump(mode="json")

    def _invalidate_cache(self, product_id: int) -> None:
        """Invalidate cache for a product."""
        self.cache.delete(self.CACHE_PREFIX, str(product_id))
