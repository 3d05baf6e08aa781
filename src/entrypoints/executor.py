from collections.abc import Callable
from typing import Any

from loguru import logger

from src.application.shipment_service import ShipmentService
from src.domain.errors import FulfillmentError, PayloadValidationError


def _parse_courier_id(raw: Any) -> int | None:
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise PayloadValidationError(["courier_id must be a number"]) from None


class Executor:
    """Runs admin shipment actions and shapes their outcome for the HTTP layer.

    Every call returns ``{"ok": True, ...}`` or ``{"ok": False, "error": {...}}``;
    fulfillment errors never escape.
    """

    def __init__(self, shipment_service: ShipmentService) -> None:
        self._shipments = shipment_service
        self._actions: dict[str, Callable[..., dict]] = {
            "create-shipment": lambda ref, **_: self._shipments.create_shipment(ref),
            "assign-awb": lambda ref, courier_id=None: self._shipments.assign_awb(
                ref, _parse_courier_id(courier_id)
            ),
            "pickup": lambda ref, **_: self._shipments.request_pickup(ref),
            "label": lambda ref, **_: self._shipments.generate_label(ref),
            "invoice": lambda ref, **_: self._shipments.generate_invoice(ref),
            "manifest": lambda ref, **_: self._shipments.generate_manifest(ref),
            "track": lambda ref, **_: self._shipments.track(ref),
            "serviceability": lambda ref, **_: self._shipments.check_serviceability(ref),
            "payload": lambda ref, **_: self._shipments.preview_payload(ref),
        }

    @property
    def actions(self) -> list[str]:
        return list(self._actions)

    def run(self, action: str, ref: str, courier_id: Any = None) -> dict:
        handler = self._actions.get(action)
        if handler is None:
            raise ValueError(f"Unknown action '{action}'. Available: {', '.join(self._actions)}")

        logger.info(f"Running '{action}' for {ref}")
        try:
            result = handler(ref, courier_id=courier_id)
        except FulfillmentError as exc:
            logger.warning(f"'{action}' failed for {ref}: {exc.message}")
            return {"ok": False, "error": exc.to_dict()}
        return {"ok": True, **result}
