"""Shipment orchestration: the NONE -> ORDER_CREATED -> AWB_ASSIGNED state machine.

Every step re-reads the order from the repository, holds a per-order lock
while it talks to Shiprocket and persists only the fields it produced via a
compare-and-swap on the prior shipment status.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import UTC, datetime
from typing import Any

from loguru import logger

from src.application.order_mapper import map_order_to_shiprocket, parcel_weight
from src.application.payload_validator import validate_payload
from src.domain.errors import (
    AddressSufficiencyError,
    CarrierLogicalError,
    CarrierTransportError,
    MissingPrerequisiteError,
    OrderCancelledError,
    PayloadValidationError,
    ShipmentStateError,
)
from src.domain.interfaces import ICarrierClient, IOrderRepository
from src.domain.order import Order, OrderStatus, ShipmentStatus
from src.domain.shiprocket_order import ShiprocketOrder
from src.infrastructure.shiprocket_client import (
    AWB_CODE_PATHS,
    CARRIER_ORDER_ID_PATHS,
    CHANNEL_ID_PATHS,
    COURIER_NAME_PATHS,
    INVOICE_URL_PATHS,
    LABEL_URL_PATHS,
    MANIFEST_URL_PATHS,
    ORDER_STATUS_PATHS,
    RECOMMENDED_COURIER_PATHS,
    SHIPMENT_ID_PATHS,
    TRACKING_DATA_PATHS,
    CarrierConfig,
    first_non_empty,
)
from src.shared.address import digits_only, is_sufficient


def _as_text(value: Any) -> str | None:
    return None if value is None else str(value)


class _OrderLock:
    def __init__(self) -> None:
        self.lock = threading.Lock()
        self.holders = 0


class ShipmentService:
    """Drives one order through the Shiprocket workflow, one admin step at a time."""

    def __init__(
        self,
        repository: IOrderRepository,
        carrier: ICarrierClient,
        config: CarrierConfig,
    ) -> None:
        self._repository = repository
        self._carrier = carrier
        self._config = config
        self._locks: dict[str, _OrderLock] = {}
        self._locks_guard = threading.Lock()

    # ---- guards -----------------------------------------------------------

    @contextmanager
    def _order_lock(self, order_id: str) -> Iterator[None]:
        """Hold the per-order lock; the entry is dropped once nobody holds or waits on it."""
        with self._locks_guard:
            entry = self._locks.setdefault(order_id, _OrderLock())
            entry.holders += 1
        try:
            with entry.lock:
                yield
        finally:
            with self._locks_guard:
                entry.holders -= 1
                if entry.holders == 0:
                    del self._locks[order_id]

    @contextmanager
    def _transition(self, order_ref: str) -> Iterator[Order]:
        """Yield a freshly loaded, non-cancelled order while holding its lock."""
        order_id = self._repository.get(order_ref).id
        with self._order_lock(order_id):
            order = self._repository.get(order_id)
            if order.status == OrderStatus.cancelled:
                raise OrderCancelledError(order.order_number)
            yield order

    @staticmethod
    def _require_awb(order: Order) -> str:
        if not order.shipment.shipment_id:
            raise MissingPrerequisiteError(
                f"No shipment on order {order.order_number}. Create Shiprocket order first."
            )
        if order.shipment.status != ShipmentStatus.AWB_ASSIGNED:
            raise MissingPrerequisiteError(
                f"AWB not assigned for order {order.order_number}. Assign AWB first."
            )
        return order.shipment.shipment_id

    @staticmethod
    def _check_addresses(order: Order) -> None:
        ship, bill = order.shipping_address, order.billing_address
        if not is_sufficient(ship.address_line_1, ship.address_line_2) and not is_sufficient(
            bill.address_line_1, bill.address_line_2
        ):
            raise AddressSufficiencyError(
                (ship.address_line_1, ship.address_line_2),
                (bill.address_line_1, bill.address_line_2),
            )

    # ---- payload ----------------------------------------------------------

    def build_payload(self, order: Order) -> ShiprocketOrder:
        self._check_addresses(order)
        return map_order_to_shiprocket(
            order,
            pickup_location=self._config.pickup_location,
            channel_id=self._config.channel_id,
        )

    def preview_payload(self, order_ref: str) -> dict:
        """Build and validate without calling the carrier."""
        payload = self.build_payload(self._repository.get(order_ref))
        return {
            "payload": payload.model_dump(mode="json", exclude_none=True),
            "errors": validate_payload(payload),
        }

    # ---- transitions ------------------------------------------------------

    def create_shipment(self, order_ref: str) -> dict:
        with self._transition(order_ref) as order:
            if order.shipment.status is not None:
                raise ShipmentStateError(
                    f"Shipment {order.shipment.shipment_id} already exists for "
                    f"order {order.order_number}"
                )

            payload = self.build_payload(order)
            if violations := validate_payload(payload):
                raise PayloadValidationError(
                    violations, payload.model_dump(mode="json", exclude_none=True)
                )

            response = self._carrier.create_adhoc_order(payload)
            shipment_id = first_non_empty(response, SHIPMENT_ID_PATHS)
            if shipment_id is None:
                raise CarrierLogicalError("Shiprocket did not return shipment_id", response)

            self._repository.update_shipment(
                order.id,
                expected_status=None,
                status=ShipmentStatus.ORDER_CREATED,
                shipment_id=str(shipment_id),
                carrier_order_id=_as_text(first_non_empty(response, CARRIER_ORDER_ID_PATHS)),
                channel_id=_as_text(
                    first_non_empty(response, CHANNEL_ID_PATHS) or self._config.channel_id
                ),
                carrier_status=_as_text(first_non_empty(response, ORDER_STATUS_PATHS)),
            )
            logger.info(
                f"[Shipment] {order.order_number} ORDER_CREATED — shipment {shipment_id}"
            )
            return {"shipment_id": str(shipment_id), "shiprocket": response}

    def assign_awb(self, order_ref: str, courier_id: int | None = None) -> dict:
        with self._transition(order_ref) as order:
            shipment = order.shipment
            if shipment.status is None or not shipment.shipment_id:
                raise MissingPrerequisiteError(
                    f"No shipment on order {order.order_number}. Create Shiprocket order first."
                )
            if shipment.status == ShipmentStatus.AWB_ASSIGNED:
                raise ShipmentStateError(
                    f"AWB {shipment.awb_code} already assigned to order {order.order_number}"
                )

            try:
                response = self._carrier.assign_awb(shipment.shipment_id, courier_id)
            except CarrierTransportError as exc:
                if courier_id is not None or "courier" not in exc.message.lower():
                    raise
                fallback_id = self.recommend_courier(order)
                if fallback_id is None:
                    raise
                logger.warning(
                    f"[Shipment] {order.order_number} assign-AWB rejected ({exc.message}); "
                    f"retrying with courier {fallback_id}"
                )
                response = self._carrier.assign_awb(shipment.shipment_id, fallback_id)

            awb = first_non_empty(response, AWB_CODE_PATHS)
            if awb is None:
                raise CarrierLogicalError("AWB not returned by Shiprocket", response)
            courier_name = _as_text(first_non_empty(response, COURIER_NAME_PATHS))

            self._repository.update_shipment(
                order.id,
                expected_status=ShipmentStatus.ORDER_CREATED,
                status=ShipmentStatus.AWB_ASSIGNED,
                awb_code=str(awb).upper(),
                courier_name=courier_name,
            )
            logger.info(f"[Shipment] {order.order_number} AWB_ASSIGNED — {str(awb).upper()}")
            return {
                "awb_code": str(awb).upper(),
                "courier_name": courier_name,
                "shiprocket": response,
            }

    def _serviceability(self, order: Order) -> dict:
        return self._carrier.serviceability(
            pickup_postcode=self._config.pickup_postcode,
            delivery_postcode=digits_only(order.shipping_address.postal_code),
            weight=parcel_weight(order),
            cod=order.is_cod,
            # declared value excludes shipping and COD fees
            declared_value=max(1, order.subtotal),
        )

    def recommend_courier(self, order: Order) -> int | None:
        """Ask serviceability for a courier: the recommended one, else the first available."""
        response = self._serviceability(order)
        courier_id = first_non_empty(response, RECOMMENDED_COURIER_PATHS)
        if courier_id is None:
            return None
        try:
            return int(courier_id)
        except (TypeError, ValueError):
            raise CarrierLogicalError(
                f"Serviceability returned a non-numeric courier id: {courier_id!r}", response
            ) from None

    def check_serviceability(self, order_ref: str) -> dict:
        return self._serviceability(self._repository.get(order_ref))

    def request_pickup(self, order_ref: str) -> dict:
        with self._transition(order_ref) as order:
            shipment_id = self._require_awb(order)
            response = self._carrier.generate_pickup(shipment_id)
            requested_at = datetime.now(UTC)
            self._repository.update_shipment(
                order.id,
                expected_status=ShipmentStatus.AWB_ASSIGNED,
                pickup_requested_at=requested_at,
            )
            logger.info(f"[Shipment] {order.order_number} pickup requested")
            return {"pickup_requested_at": requested_at.isoformat(), "shiprocket": response}

    def generate_label(self, order_ref: str) -> dict:
        with self._transition(order_ref) as order:
            response = self._carrier.generate_label(self._require_awb(order))
            url = self._persist_url(order, "label_url", LABEL_URL_PATHS, response)
            return {"label_url": url, "shiprocket": response}

    def generate_invoice(self, order_ref: str) -> dict:
        with self._transition(order_ref) as order:
            response = self._carrier.print_invoice(self._require_awb(order))
            url = self._persist_url(order, "invoice_url", INVOICE_URL_PATHS, response)
            return {"invoice_url": url, "shiprocket": response}

    def generate_manifest(self, order_ref: str) -> dict:
        with self._transition(order_ref) as order:
            shipment_id = self._require_awb(order)
            self._carrier.generate_manifest(shipment_id)
            response = self._carrier.print_manifest(shipment_id)
            url = self._persist_url(order, "manifest_url", MANIFEST_URL_PATHS, response)
            return {"manifest_url": url, "shiprocket": response}

    def track(self, awb_code: str) -> dict:
        awb_code = (awb_code or "").strip()
        if not awb_code:
            raise MissingPrerequisiteError("AWB code is required for tracking")
        response = self._carrier.track_awb(awb_code)
        return {
            "awb_code": awb_code,
            "tracking": first_non_empty(response, TRACKING_DATA_PATHS) or response,
        }

    def _persist_url(self, order: Order, field: str, paths: tuple, response: Any) -> str:
        url = first_non_empty(response, paths)
        if url is None:
            raise CarrierLogicalError(f"{field} not returned by Shiprocket", response)
        self._repository.update_shipment(
            order.id, expected_status=ShipmentStatus.AWB_ASSIGNED, **{field: str(url)}
        )
        logger.info(f"[Shipment] {order.order_number} {field} stored")
        return str(url)
