from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from typing import Optional

from app.dependencies import get_product_service
from app.services.product_service import ProductService
from app.schemas.product import (
    ProductCreate,
    ProductUpdate,
    ProductResponse,
    ProductListResponse
)

router = APIRouter(prefix="/products", tags=["Products"])

# NotFoundError and ValidationError raised by the service are turned into
# 404 and 400 responses by the handlers registered in app.main.


@router.post(
    "/",
    response_model=ProductResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Create a new product",
    description="Create a new product with name, price, category and initial stock."
)
def create_product(
    product_data: ProductCreate,
    service: ProductService = Depends(get_product_service)
):
    """
    Create a new product.

    - **name**: Product name (required)
    - **price**: Unit price, must be non-negative (required)
    - **category**: Free-text category (optional)
    - **stock**: Initial stock quantity, defaults to 0
    """
    return service.create(product_data.model_dump(exclude_none=True))


@router.get(
    "/",
    response_model=ProductListResponse,
    summary="List all products",
    description="Get a paginated list of all products with optional search and category filter."
)
def list_products(
    page: int = Query(1, ge=1, description="Page number"),
    page_size: int = Query(10, ge=1, le=100, description="Items per page"),
    search: Optional[str] = Query(None, description="Search by product name"),
    category: Optional[str] = Query(None, description="Filter by category"),
    service: ProductService = Depends(get_product_service)
):
    """Get paginated list of products."""
    products, total, total_pages = service.get_all(page, page_size, search, category)

    return ProductListResponse(
        items=[ProductResponse.model_validate(p) for p in products],
        total=total,
        page=page,
        page_size=page_size,
        total_pages=total_pages
    )


@router.get(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Get product by ID",
    description="Get detailed information about a specific product."
)
def get_product(
    product_id: int,
    service: ProductService = Depends(get_product_service)
):
    """Get a product by ID."""
    return service.get_by_id(product_id)


@router.get(
    "/{product_id}/cached",
    summary="Get product from cache",
    description="Get product details from Redis cache (or the catalog if not cached)."
)
def get_product_cached(
    product_id: int,
    service: ProductService = Depends(get_product_service)
):
    """
    Get product from cache.

    Returns cached data if available, otherwise reads the catalog
    and caches the result.
    """
    return service.get_by_id_cached(product_id)


@router.put(
    "/{product_id}",
    response_model=ProductResponse,
    summary="Update a product",
    description="Update product details. Only provided fields will be updated."
)
def update_product(
    product_id: int,
    product_data: ProductUpdate,
    service: ProductService = Depends(get_product_service)
):
    """
    Update a product.

    Partial updates are supported - only include fields you want to change.
    Fields sent as null are ignored, so category and image_ref cannot be
    cleared through this endpoint.
    Cache is automatically invalidated after update.
    """
    update_data = {
        field: value
        for field, value in product_data.model_dump(exclude_unset=True).items()
        if value is not None
    }
    return service.update(product_id, update_data)


@router.delete(
    "/{product_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete a product",
    description="Delete a product by ID. Its image and cache entry are removed too."
)
def delete_product(
    product_id: int,
    service: ProductService = Depends(get_product_service)
):
    """Delete a product."""
    service.delete(product_id)
    return None


@router.post(
    "/{product_id}/image",
    response_model=ProductResponse,
    summary="Upload product image",
    description="Store the image of a product, replacing any previous one."
)
def upload_product_image(
    product_id: int,
    image: UploadFile = File(..., description="Image file"),
    service: ProductService = Depends(get_product_service)
):
    """Upload an image for a product. The bytes are stored unchanged."""
    return service.upload_image(product_id, image.file)


@router.delete(
    "/{product_id}/image",
    status_code=status.HTTP_204_NO_CONTENT,
    summary="Delete product image",
    description="Delete the stored image of a product."
)
def delete_product_image(
    product_id: int,
    service: ProductService = Depends(get_product_service)
):
    """Delete a product image."""
    service.delete_image(product_id)
    return None
