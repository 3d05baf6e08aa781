import re
from typing import Any

from src.domain.shiprocket_order import ShiprocketOrder

REQUIRED_FIELDS = (
    "order_id",
    "order_date",
    "pickup_location",
    "billing_customer_name",
    "billing_address",
    "billing_city",
    "billing_state",
    "billing_country",
    "billing_email",
    "billing_phone",
    "billing_pincode",
    "payment_method",
    "sub_total",
    "tax",
    "shipping_charges",
    "total",
    "declared_value",
    "collectable_amount",
    "length",
    "breadth",
    "height",
    "weight",
)

_PINCODE = re.compile(r"^\d{6}$")
_PHONE = re.compile(r"^\d{10}$")


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def _is_positive_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and value > 0


def validate_payload(payload: ShiprocketOrder | dict) -> list[str]:
    """Return human-readable violations; an empty list means the payload is sendable."""
    p = payload.model_dump() if isinstance(payload, ShiprocketOrder) else payload
    errors: list[str] = []

    for key in REQUIRED_FIELDS:
        if _is_blank(p.get(key)):
            errors.append(f"Missing/empty: {key}")

    if not _PINCODE.match(str(p.get("billing_pincode") or "")):
        errors.append("Invalid billing_pincode")
    if not _PHONE.match(str(p.get("billing_phone") or "")):
        errors.append("Invalid billing_phone")

    items = p.get("order_items") or []
    if not items:
        errors.append("order_items empty")

    for i, item in enumerate(items):
        if _is_blank(item.get("sku")):
            errors.append(f"order_items[{i}].sku missing")
        if _is_blank(item.get("hsn")):
            errors.append(f"order_items[{i}].hsn missing")
        if not _is_positive_number(item.get("units")):
            errors.append(f"order_items[{i}].units invalid")
        if not _is_positive_number(item.get("selling_price")):
            errors.append(f"order_items[{i}].selling_price invalid")

    if p.get("payment_method") == "COD" and not _is_positive_number(
        p.get("collectable_amount")
    ):
        errors.append("collectable_amount must be > 0 for COD")

    return errors
