from datetime import datetime, timedelta, timezone

from src.domain.order import Address, Order, OrderLineItem
from src.domain.shiprocket_order import ShiprocketOrder, ShiprocketOrderItem
from src.shared.address import (
    digits_only,
    ensure_minimum_address,
    is_sufficient,
    normalize_phone10,
)

IST = timezone(timedelta(hours=5, minutes=30), "IST")

DEFAULT_HSN = "851762"
DEFAULT_GST_PERCENT = 18.0
DEFAULT_EMAIL = "no-reply@example.com"

# Static parcel defaults; an admin-set package on the order overrides them
DEFAULT_LENGTH_CM = 12.0
DEFAULT_BREADTH_CM = 10.0
DEFAULT_HEIGHT_CM = 4.0
WEIGHT_PER_UNIT_KG = 0.25


def _split_name(full_name: str) -> tuple[str, str]:
    first, _, rest = full_name.strip().partition(" ")
    return first or "Customer", rest.strip()


def _format_order_date(created_at: datetime) -> str:
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=timezone.utc)
    return created_at.astimezone(IST).strftime("%Y-%m-%d %H:%M")


def _resolve_sku(item: OrderLineItem) -> str:
    for candidate in (item.sku, item.product_sku, item.product_id):
        if candidate and candidate.strip():
            return candidate.strip()
    return f"SKU-{item.product_id or 'N/A'}"


def _map_order_items(items: list[OrderLineItem]) -> list[ShiprocketOrderItem]:
    return [
        ShiprocketOrderItem(
            name=item.name or "Item",
            sku=_resolve_sku(item),
            units=item.quantity,
            selling_price=float(item.unit_price),
            hsn=(item.hsn or "").strip() or DEFAULT_HSN,
            tax=item.tax_percent if item.tax_percent is not None else DEFAULT_GST_PERCENT,
        )
        for item in items
    ]


def parcel_weight(order: Order) -> float:
    """Admin-set weight, else 0.25 kg per unit (never below 0.25 kg)."""
    if order.package and order.package.weight_kg:
        return order.package.weight_kg
    return round(max(WEIGHT_PER_UNIT_KG, WEIGHT_PER_UNIT_KG * order.unit_count), 2)


def _parcel(order: Order) -> dict[str, float]:
    pkg = order.package
    return {
        "length": (pkg and pkg.length_cm) or DEFAULT_LENGTH_CM,
        "breadth": (pkg and pkg.breadth_cm) or DEFAULT_BREADTH_CM,
        "height": (pkg and pkg.height_cm) or DEFAULT_HEIGHT_CM,
        "weight": parcel_weight(order),
    }


def map_order_to_shiprocket(
    order: Order, pickup_location: str, channel_id: str | None = None
) -> ShiprocketOrder:
    """Convert an ``Order`` to a Shiprocket adhoc-order payload.

    Billing fields carry the delivery address (``shipping_is_billing``). Both
    the billing and shipping address slots are forced to the carrier's minimum
    length; a short shipping slot is filled from the billing text.
    """
    addr: Address = order.shipping_address
    first_name, last_name = _split_name(addr.full_name)

    billing_1, billing_2 = ensure_minimum_address(
        addr.address_line_1, addr.address_line_2, addr.landmark or addr.city
    )
    shipping_1 = addr.address_line_1.strip()
    shipping_2 = addr.address_line_2.strip()
    if not shipping_1 or not is_sufficient(shipping_1, shipping_2):
        shipping_1, shipping_2 = billing_1, billing_2

    # Carrier totals exclude the online-payment fee: items + shipping + COD.
    sub_total = order.subtotal
    total = sub_total + order.shipping_fee + order.cod_surcharge
    taxable_base = order.subtotal - order.tax

    return ShiprocketOrder(
        order_id=order.order_number or order.id,
        order_date=_format_order_date(order.created_at),
        pickup_location=pickup_location,
        channel_id=channel_id or None,
        billing_customer_name=first_name,
        billing_last_name=last_name,
        billing_address=billing_1,
        billing_address_2=billing_2,
        billing_city=addr.city.strip(),
        billing_pincode=digits_only(addr.postal_code),
        billing_state=addr.state.strip(),
        billing_email=addr.email.strip() or DEFAULT_EMAIL,
        billing_phone=normalize_phone10(addr.phone),
        shipping_is_billing=True,
        shipping_address=shipping_1,
        shipping_address_2=shipping_2,
        order_items=_map_order_items(order.line_items),
        payment_method="COD" if order.is_cod else "Prepaid",
        sub_total=float(sub_total),
        tax=float(order.tax),
        shipping_charges=float(order.shipping_fee),
        cod_charges=float(order.cod_surcharge),
        total=float(total),
        collectable_amount=float(total) if order.is_cod else 0.0,
        declared_value=float(taxable_base + order.tax),
        comment=order.customer_notes,
        **_parcel(order),
    )
