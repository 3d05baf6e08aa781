"""Error taxonomy for the fulfillment core.

Every error carries enough detail for the admin surface to render it
without a traceback; ``to_dict`` is the structured form returned to callers.
"""

from typing import Any

LOCKOUT_PATTERN = "too many failed login attempts"
LOCKOUT_MESSAGE = (
    "Shiprocket temporarily locked due to repeated login failures. "
    "Try again in ~30 minutes."
)


class FulfillmentError(Exception):
    kind = "fulfillment"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "message": self.message}


class PayloadValidationError(FulfillmentError):
    """The carrier payload failed the pre-flight checklist. No call was made."""

    kind = "validation"

    def __init__(self, violations: list[str], payload: dict | None = None) -> None:
        super().__init__("Validation failed")
        self.violations = violations
        self.payload = payload

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "errors": self.violations, "payload": self.payload}


class AddressSufficiencyError(FulfillmentError):
    kind = "address"

    def __init__(self, shipping: tuple[str, str], billing: tuple[str, str]) -> None:
        super().__init__("Validation failed: address1+address2 must be >= 3 chars")
        self.shipping = shipping
        self.billing = billing

    def to_dict(self) -> dict[str, Any]:
        return {
            **super().to_dict(),
            "debug": {
                "sa1": self.shipping[0],
                "sa2": self.shipping[1],
                "ba1": self.billing[0],
                "ba2": self.billing[1],
            },
        }


class CarrierTransportError(FulfillmentError):
    """The carrier call itself failed: network, auth, rate limiting, 4xx/5xx."""

    kind = "carrier"

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        details: Any = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.details = details

    @property
    def user_message(self) -> str:
        if LOCKOUT_PATTERN in self.message.lower():
            return LOCKOUT_MESSAGE
        return self.message

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "status": self.status_code,
            "message": self.user_message,
            "details": self.details,
        }


class CarrierLogicalError(FulfillmentError):
    """The carrier answered 2xx but the expected field is missing."""

    kind = "carrier_logical"

    def __init__(self, message: str, response: Any = None) -> None:
        super().__init__(message)
        self.response = response

    def to_dict(self) -> dict[str, Any]:
        return {**super().to_dict(), "shiprocket": self.response}


class ShipmentStateError(FulfillmentError):
    kind = "state"


class OrderCancelledError(ShipmentStateError):
    def __init__(self, order_number: str) -> None:
        super().__init__(f"Order {order_number} is cancelled")


class MissingPrerequisiteError(ShipmentStateError):
    pass


class StaleShipmentStateError(ShipmentStateError):
    """A conditional update found a different shipment state than expected."""

    def __init__(self, order_id: str, expected: Any, actual: Any) -> None:
        super().__init__(
            f"Shipment state for order {order_id} changed concurrently: "
            f"expected {expected}, found {actual}"
        )
        self.expected = expected
        self.actual = actual


class OrderNotFoundError(FulfillmentError):
    kind = "not_found"

    def __init__(self, ref: str) -> None:
        super().__init__(f"Order not found: {ref}")


class CheckoutError(FulfillmentError):
    kind = "checkout"


class StockConflictError(CheckoutError):
    def __init__(self, product_id: str) -> None:
        super().__init__("Stock changed. Please try again.")
        self.product_id = product_id
