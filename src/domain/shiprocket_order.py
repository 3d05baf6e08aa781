"""DTO for the Shiprocket adhoc create-order API payload."""

from pydantic import BaseModel, Field


class ShiprocketOrderItem(BaseModel):
    name: str
    sku: str
    units: int
    selling_price: float  # GST-inclusive unit price
    discount: float = 0
    hsn: str
    tax: float  # GST percent, not an amount


class ShiprocketOrder(BaseModel):
    """Top-level DTO sent to ``/orders/create/adhoc``.

    Field names follow the carrier's schema exactly. Billing fields carry the
    delivery address because ``shipping_is_billing`` is always set.
    """

    order_id: str
    order_date: str  # IST, "YYYY-MM-DD HH:MM"
    pickup_location: str
    channel_id: str | None = None

    billing_customer_name: str
    billing_last_name: str = ""
    billing_address: str
    billing_address_2: str = ""
    billing_city: str
    billing_pincode: str
    billing_state: str
    billing_country: str = "India"
    billing_email: str
    billing_phone: str
    shipping_is_billing: bool = True
    shipping_address: str = ""
    shipping_address_2: str = ""

    order_items: list[ShiprocketOrderItem] = Field(default_factory=list)
    payment_method: str  # "COD" | "Prepaid"

    sub_total: float
    tax: float
    shipping_charges: float
    discount: float = 0
    cod_charges: float = 0
    total: float
    collectable_amount: float
    declared_value: float

    length: float
    breadth: float
    height: float
    weight: float

    comment: str | None = None
