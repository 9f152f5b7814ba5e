import logging
import shutil
from pathlib import Path
from typing import BinaryIO

from app.config import get_settings
from app.exceptions import StorageError

logger = logging.getLogger(__name__)


class ImageStorage:
    """
    Stores one image per product as <IMAGE_DIR>/<product_id>.jpg.

    Image bytes are copied as-is; nothing here inspects or converts them.
    """

    def __init__(self, directory: str = None, url_prefix: str = None):
        settings = get_settings()
        self.directory = Path(directory or settings.IMAGE_DIR)
        self.url_prefix = (url_prefix or settings.IMAGE_URL_PREFIX).rstrip("/")

    def path_for(self, product_id: int) -> Path:
        return self.directory / f"{product_id}.jpg"

    def url_for(self, product_id: int) -> str:
        """Public reference stored as the product's image_ref."""
        return f"{self.url_prefix}/{product_id}.jpg"

    def exists(self, product_id: int) -> bool:
        return self.path_for(product_id).exists()

    def save(self, product_id: int, source: BinaryIO) -> Path:
        """Write (or replace) the image of a product from a file-like object."""
        path = self.path_for(product_id)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            with path.open("wb") as target:
                shutil.copyfileobj(source, target)
        except OSError as e:
            logger.error(f"Could not save image for product #{product_id}: {e}")
            raise StorageError(f"Could not save image for product {product_id}") from e

        logger.info(f"Image stored for product #{product_id}")
        return path

    def delete(self, product_id: int) -> bool:
        """
        Delete the image of a product.

        Returns:
            True if an image was removed, False if there was none
        """
        path = self.path_for(product_id)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as e:
            logger.error(f"Could not delete image for product #{product_id}: {e}")
            raise StorageError(f"Could not delete image for product {product_id}") from e
        return True
