from typing import Any, Protocol

from .order import Order, ShipmentStatus
from .shiprocket_order import ShiprocketOrder


class IOrderRepository(Protocol):
    def add(self, order: Order) -> None: ...

    def get(self, ref: str) -> Order: ...

    def delete(self, order_id: str) -> None: ...

    def update_order(self, order_id: str, **fields: Any) -> Order: ...

    def update_shipment(
        self, order_id: str, expected_status: ShipmentStatus | None, **fields: Any
    ) -> Order:
        """Compare-and-swap on the shipment status, then set ``fields``.

        Cancelled orders reject every shipment write.
        """
        ...

    def decrement_stock(self, product_id: str, quantity: int) -> bool: ...

    def increment_stock(self, product_id: str, quantity: int) -> None: ...


class ICarrierClient(Protocol):
    def serviceability(
        self,
        pickup_postcode: str,
        delivery_postcode: str,
        weight: float,
        cod: bool,
        declared_value: float,
        mode: str = "Surface",
    ) -> dict: ...

    def create_adhoc_order(self, payload: ShiprocketOrder) -> dict: ...

    def assign_awb(self, shipment_id: str, courier_id: int | None = None) -> dict: ...

    def generate_pickup(self, shipment_id: str) -> dict: ...

    def generate_label(self, shipment_id: str) -> dict: ...

    def print_invoice(self, shipment_id: str) -> dict: ...

    def generate_manifest(self, shipment_id: str) -> dict: ...

    def print_manifest(self, shipment_id: str) -> dict: ...

    def track_awb(self, awb_code: str) -> dict: ...


class IShipmentService(Protocol):
    def create_shipment(self, order_ref: str) -> dict: ...
