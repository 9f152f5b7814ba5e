from sqlalchemy import Column, Integer, String, Numeric, DateTime, CheckConstraint
from sqlalchemy.sql import func

from app.database import Base


class Product(Base):
    """
    Product model representing items available for sale.

    Attributes:
        id: Unique identifier for the product
        name: Product name
        price: Unit price before any order-time markup (non-negative)
        category: Free-text category label
        stock: Quantity on hand (never negative)
        image_ref: Opaque path or URL of the product image
        created_at: Timestamp when product was created
        updated_at: Timestamp when product was last updated
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False, index=True)
    price = Column(Numeric(12, 2), nullable=False)
    category = Column(String(120), nullable=True, index=True)
    stock = Column(Integer, nullable=False, default=0)
    image_ref = Column(String(512), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __table_args__ = (
        CheckConstraint('price >= 0', name='check_price_non_negative'),
        CheckConstraint('stock >= 0', name='check_stock_non_negative'),
    )

    def __repr__(self):
        return f"<Product(id={self.id}, name='{self.name}', stock={self.stock})>"
