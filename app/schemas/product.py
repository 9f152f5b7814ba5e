from decimal import Decimal
from pydantic import BaseModel, Field, ConfigDict, PlainSerializer
from datetime import datetime
from typing import Annotated, Optional

# Decimal internally, plain JSON number on the wire
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]


class ProductBase(BaseModel):
    """Base schema for Product with common attributes."""
    name: str = Field(..., min_length=1, max_length=255, description="Product name")
    price: Money = Field(..., ge=0, description="Unit price (must be non-negative)")
    category: Optional[str] = Field(None, max_length=120, description="Category label")
    stock: int = Field(0, ge=0, description="Available stock (must be non-negative)")


class ProductCreate(ProductBase):
    """Schema for creating a new product."""
    image_ref: Optional[str] = Field(None, max_length=512, description="Image path or URL")


class ProductUpdate(BaseModel):
    """Schema for updating an existing product. All fields are optional."""
    name: Optional[str] = Field(None, min_length=1, max_length=255, description="Product name")
    price: Optional[Money] = Field(None, ge=0, description="Unit price")
    category: Optional[str] = Field(None, max_length=120, description="Category label")
    stock: Optional[int] = Field(None, ge=0, description="Available stock")
    image_ref: Optional[str] = Field(None, max_length=512, description="Image path or URL")


class ProductResponse(ProductBase):
    """Schema for product response including all fields."""
    id: int
    image_ref: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProductListResponse(BaseModel):
    """Schema for paginated product list response."""
    items: list[ProductResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
