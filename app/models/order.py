from sqlalchemy import JSON, Column, Integer, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from app.database import Base


class Order(Base):
    """
    Order model representing a committed cart.

    An order is written once by the fulfillment engine and afterwards only
    read or deleted as a whole.

    Attributes:
        id: Unique identifier for the order
        customer: Customer identifier ("guest" when none was supplied)
        account_id: Optional linked account identifier
        contact: Optional contact details (first_name, last_name, phone, email)
        total: Sum of the line subtotals
        created_at: Timestamp when order was created
        lines: Order lines in submission order
    """
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    customer = Column(String(255), nullable=False, index=True)
    account_id = Column(String(255), nullable=True, index=True)
    contact = Column(JSON, nullable=True)
    total = Column(Numeric(12, 2), nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    lines = relationship(
        "OrderLine",
        back_populates="order",
        order_by="OrderLine.position",
        cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Order(id={self.id}, customer='{self.customer}', total={self.total})>"


class OrderLine(Base):
    """
    A fulfilled line of an order.

    product_id is a weak reference (no foreign key): the line keeps a snapshot
    of the product name and the charged price so it stays readable after the
    product is renamed or deleted.
    """
    __tablename__ = "order_lines"

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False, default=0)
    product_id = Column(Integer, nullable=False, index=True)
    product_name = Column(String(255), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(12, 2), nullable=False)
    subtotal = Column(Numeric(12, 2), nullable=False)

    order = relationship("Order", back_populates="lines")

    def __repr__(self):
        return f"<OrderLine(product_id={self.product_id}, quantity={self.quantity})>"
