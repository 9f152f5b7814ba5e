from collections.abc import Mapping, Sequence
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Tuple
import logging

from app.config import get_settings
from app.exceptions import EmptyOrderError, NotFoundError, ValidationError
from app.models.order import Order, OrderLine
from app.stores.base import CENT, CatalogStore, OrderStore
from app.utils.cache import CacheService, cache_service

logger = logging.getLogger(__name__)

PRODUCT_CACHE_PREFIX = "product"


class FulfillmentEngine:
    """
    Turns a requested cart into a committed order while keeping stock consistent.

    FULFILLMENT POLICY:
    ===================
    Line-level problems never fail the order. Each requested line is resolved
    on its own, in submission order:

    1. Unknown product ids are dropped
    2. The quantity is clamped to the stock on hand; lines clamped to zero are dropped
    3. The unit price is the stored price times the configured markup
    4. Stock is decremented by exactly the fulfilled quantity

    Only whole-order problems are errors: a malformed cart (ValidationError),
    nothing left to fulfill (EmptyOrderError) and storage failures
    (StorageError). Callers must read the returned lines to learn what was
    actually fulfilled.

    Lines are processed one at a time inside a single store transaction, so a
    product listed twice in a cart sees the decrement of its earlier line.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        orders: OrderStore,
        markup: Optional[Decimal] = None,
        guest_customer: Optional[str] = None,
        cache: Optional[CacheService] = None,
    ):
        settings = get_settings()
        self.catalog = catalog
        self.orders = orders
        self.markup = Decimal(str(markup)) if markup is not None else settings.PRICE_MARKUP
        self.guest_customer = guest_customer or settings.GUEST_CUSTOMER
        self.cache = cache or cache_service

    def unit_price(self, price: Decimal) -> Decimal:
        """Price charged per unit: stored price times markup, rounded to cents."""
        return (Decimal(str(price)) * self.markup).quantize(CENT, rounding=ROUND_HALF_UP)

    def submit_order(
        self,
        customer: Optional[str],
        requested_lines: Sequence,
        account_id: Optional[str] = None,
        contact: Optional[Mapping] = None,
    ) -> Order:
        """
        Fulfill a cart and persist the resulting order.

        Args:
            customer: Customer identifier; blank means the guest customer
            requested_lines: Sequence of {"id" | "product_id", "quantity"}
                mappings or objects with product_id and quantity attributes
            account_id: Optional linked account identifier
            contact: Optional contact details; blank values are dropped

        Returns:
            The committed order with the lines actually fulfilled

        Raises:
            ValidationError: If requested_lines is not a non-empty sequence
            EmptyOrderError: If no line could be fulfilled (stock untouched)
            StorageError: If the stores fail
        """
        requests = self._parse_lines(requested_lines)
        customer = (customer or "").strip() or self.guest_customer
        contact = {key: value for key, value in (contact or {}).items() if value} or None

        with self.catalog.transaction():
            lines: List[OrderLine] = []
            touched = []
            total = Decimal("0.00")

            for product_id, quantity in requests:
                if product_id is None:
                    logger.warning("Skipping cart line without a valid product id")
                    continue

                try:
                    product = self.catalog.get(product_id, for_update=True)
                except NotFoundError:
                    logger.warning(f"Skipping unknown product #{product_id}")
                    continue

                fulfilled = min(quantity, product.stock)
                if fulfilled <= 0:
                    logger.info(f"Skipping product #{product_id}: requested {quantity}, in stock {product.stock}")
                    continue

                unit_price = self.unit_price(product.price)
                subtotal = unit_price * fulfilled
                total += subtotal

                self.catalog.adjust_stock(product_id, -fulfilled)
                touched.append(product_id)

                lines.append(OrderLine(
                    position=len(lines),
                    product_id=product.id,
                    product_name=product.name,
                    quantity=fulfilled,
                    unit_price=unit_price,
                    subtotal=subtotal,
                ))

            if not lines:
                raise EmptyOrderError("Nothing to fulfill: none of the requested products is available")

            order = self.orders.create(Order(
                customer=customer,
                account_id=account_id,
                contact=contact,
                total=total,
                lines=lines,
            ))

        self._invalidate_products(touched)
        logger.info(f"Order #{order.id} committed for '{customer}': {len(touched)} line(s), total {total}")

        return order

    def cancel_order(self, order_id: int) -> None:
        """
        Cancel an order: restore its stock and delete it.

        Lines whose product has since been deleted are not restored.

        Raises:
            NotFoundError: If the order doesn't exist (nothing is changed)
            StorageError: If the stores fail
        """
        restored = []

        with self.catalog.transaction():
            order = self.orders.get(order_id)

            for line in order.lines:
                try:
                    self.catalog.adjust_stock(line.product_id, line.quantity)
                except NotFoundError:
                    logger.warning(
                        f"Order #{order_id}: product #{line.product_id} no longer exists, stock not restored"
                    )
                    continue
                restored.append(line.product_id)

            self.orders.delete(order_id)

        self._invalidate_products(restored)
        logger.info(f"Order #{order_id} cancelled")

    def get_order(self, order_id: int) -> Order:
        return self.orders.get(order_id)

    def list_orders(self) -> List[Order]:
        return self.orders.list_all()

    def list_customer_orders(self, customer: str) -> List[Order]:
        return self.orders.list_by_customer(customer)

    @staticmethod
    def _parse_lines(requested_lines) -> List[Tuple[Optional[int], int]]:
        if isinstance(requested_lines, (str, bytes, Mapping)) or not isinstance(requested_lines, Sequence):
            raise ValidationError("Order lines must be a list")
        if not requested_lines:
            raise ValidationError("Order must contain at least one line")

        requests = []
        for line in requested_lines:
            if isinstance(line, Mapping):
                product_id = line.get("product_id", line.get("id"))
                quantity = line.get("quantity")
            else:
                product_id = getattr(line, "product_id", None)
                quantity = getattr(line, "quantity", None)

            try:
                product_id = int(product_id)
            except (TypeError, ValueError):
                product_id = None
            try:
                quantity = int(quantity)
            except (TypeError, ValueError):
                quantity = 0

            requests.append((product_id, quantity))
        return requests

    def _invalidate_products(self, product_ids: Iterable[int]) -> None:
        for product_id in set(product_ids):
            self.cache.delete(PRODUCT_CACHE_PREFIX, str(product_id))
