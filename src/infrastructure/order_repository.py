import threading
from typing import Any

from loguru import logger

from src.domain.errors import (
    OrderCancelledError,
    OrderNotFoundError,
    StaleShipmentStateError,
)
from src.domain.order import Order, OrderStatus, ShipmentStatus


class InMemoryOrderRepository:
    """Document-store stand-in holding orders and product stock.

    Reads return deep copies so callers never share state with the store;
    every write goes through a field-level update under one lock.
    """

    def __init__(self, stock: dict[str, int] | None = None) -> None:
        self._orders: dict[str, Order] = {}
        self._stock: dict[str, int] = dict(stock or {})
        self._lock = threading.Lock()

    def add(self, order: Order) -> None:
        with self._lock:
            self._orders[order.id] = order.model_copy(deep=True)

    def get(self, ref: str) -> Order:
        """Load by id, falling back to the human-readable order number."""
        with self._lock:
            order = self._orders.get(ref) or next(
                (o for o in self._orders.values() if o.order_number == ref), None
            )
            if order is None:
                raise OrderNotFoundError(ref)
            return order.model_copy(deep=True)

    def delete(self, order_id: str) -> None:
        with self._lock:
            self._orders.pop(order_id, None)

    def update_order(self, order_id: str, **fields: Any) -> Order:
        with self._lock:
            current = self._require(order_id)
            updated = current.model_copy(update=fields, deep=True)
            self._orders[order_id] = updated
            return updated.model_copy(deep=True)

    def update_shipment(
        self,
        order_id: str,
        expected_status: ShipmentStatus | None,
        **fields: Any,
    ) -> Order:
        """Set shipment ``fields`` only if the stored status is ``expected_status``.

        Raises:
            OrderCancelledError: if the order was cancelled in the meantime.
            StaleShipmentStateError: if another writer moved the shipment first.
        """
        with self._lock:
            current = self._require(order_id)
            if current.status == OrderStatus.cancelled:
                raise OrderCancelledError(current.order_number)
            if current.shipment.status != expected_status:
                raise StaleShipmentStateError(
                    order_id, expected_status, current.shipment.status
                )
            shipment = current.shipment.model_copy(update=fields)
            updated = current.model_copy(update={"shipment": shipment}, deep=True)
            self._orders[order_id] = updated
            logger.debug(f"Order {order_id} shipment updated: {sorted(fields)}")
            return updated.model_copy(deep=True)

    def decrement_stock(self, product_id: str, quantity: int) -> bool:
        """Atomically take ``quantity`` units; False if not enough are left."""
        with self._lock:
            available = self._stock.get(product_id, 0)
            if available < quantity:
                return False
            self._stock[product_id] = available - quantity
            return True

    def increment_stock(self, product_id: str, quantity: int) -> None:
        with self._lock:
            self._stock[product_id] = self._stock.get(product_id, 0) + quantity

    def stock_level(self, product_id: str) -> int:
        with self._lock:
            return self._stock.get(product_id, 0)

    def _require(self, order_id: str) -> Order:
        order = self._orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order
