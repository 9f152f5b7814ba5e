from pydantic import AliasChoices, BaseModel, Field, ConfigDict
from datetime import datetime
from typing import Optional

from app.schemas.product import Money


class OrderLineRequest(BaseModel):
    """A requested cart line. Accepts either "id" or "product_id"."""
    product_id: int = Field(
        ...,
        validation_alias=AliasChoices("id", "product_id"),
        description="ID of the product to purchase",
    )
    quantity: int = Field(default=1, description="Requested quantity")


class OrderContact(BaseModel):
    """Customer contact details printed on the receipt."""
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    phone: Optional[str] = Field(None, max_length=50)
    email: Optional[str] = Field(None, max_length=255)


class OrderCreate(BaseModel):
    """Schema for submitting a cart as an order."""
    customer: Optional[str] = Field(None, max_length=255, description="Customer identifier (defaults to guest)")
    account_id: Optional[str] = Field(None, max_length=255, description="Linked account identifier")
    contact: Optional[OrderContact] = Field(None, description="Contact details for the receipt")
    lines: list[OrderLineRequest] = Field(..., description="Requested lines, in cart order")


class OrderLineResponse(BaseModel):
    """Schema for a fulfilled order line."""
    product_id: int
    product_name: str
    quantity: int
    unit_price: Money
    subtotal: Money

    model_config = ConfigDict(from_attributes=True)


class OrderResponse(BaseModel):
    """Schema for order response."""
    id: int
    customer: str
    account_id: Optional[str] = None
    contact: Optional[OrderContact] = None
    created_at: datetime
    lines: list[OrderLineResponse]
    total: Money

    model_config = ConfigDict(from_attributes=True)


class OrderListResponse(BaseModel):
    """Schema for paginated order list response."""
    items: list[OrderResponse]
    total: int
    page: int
    page_size: int
    total_pages: int
