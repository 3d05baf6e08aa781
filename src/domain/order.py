from datetime import datetime
from enum import StrEnum
from typing import List

from pydantic import BaseModel, Field


class PaymentMethod(StrEnum):
    cod = "cod"
    prepaid = "prepaid"


class OrderStatus(StrEnum):
    pending = "pending"
    confirmed = "confirmed"
    processing = "processing"
    shipped = "shipped"
    delivered = "delivered"
    cancelled = "cancelled"


class PaymentStatus(StrEnum):
    cod_pending = "cod_pending"
    awaiting_payment = "awaiting_payment"
    paid = "paid"


class ShipmentStatus(StrEnum):
    ORDER_CREATED = "ORDER_CREATED"
    AWB_ASSIGNED = "AWB_ASSIGNED"


class Address(BaseModel):
    """Shipping or billing address captured at checkout."""

    full_name: str = ""
    phone: str = ""
    email: str = ""
    address_line_1: str = ""
    address_line_2: str = ""
    city: str = ""
    state: str = ""
    postal_code: str = ""
    landmark: str | None = None


class OrderLineItem(BaseModel):
    product_id: str
    name: str
    unit_price: int  # tax-inclusive, whole rupees
    quantity: int = Field(..., ge=1)
    sku: str | None = None  # explicit SKU on the line
    product_sku: str | None = None  # SKU from the catalogue snapshot
    hsn: str | None = None
    tax_percent: float | None = None  # e.g. 18 for 18%


class GstDisclosure(BaseModel):
    """GST invoice block stored with the order."""

    requested: bool = False
    gstin: str | None = None
    legal_name: str | None = None
    place_of_supply: str | None = None
    tax_rate: float = 0  # percent, display only
    taxable_base: int = 0
    tax_amount: int = 0
    email: str | None = None
    requested_at: datetime | None = None


class PackageDimensions(BaseModel):
    length_cm: float | None = None
    breadth_cm: float | None = None
    height_cm: float | None = None
    weight_kg: float | None = None
    notes: str | None = None


class Shipment(BaseModel):
    """Carrier-side state, filled in step by step by the shipment service."""

    status: ShipmentStatus | None = None
    shipment_id: str | None = None  # carrier shipment id
    carrier_order_id: str | None = None
    channel_id: str | None = None
    courier_name: str | None = None
    awb_code: str | None = None
    carrier_status: str | None = None
    pickup_requested_at: datetime | None = None
    label_url: str | None = None
    invoice_url: str | None = None
    manifest_url: str | None = None


class Order(BaseModel):
    """Aggregate root: a confirmed checkout plus its shipment sub-record."""

    id: str
    order_number: str  # human-readable, e.g. "ORD-20250201-4F2A9C"
    created_at: datetime
    line_items: List[OrderLineItem] = Field(default_factory=list)
    shipping_address: Address
    billing_address: Address
    payment_method: PaymentMethod
    subtotal: int
    tax: int
    shipping_fee: int
    cod_surcharge: int = 0
    online_fee: int = 0
    online_fee_tax: int = 0
    total: int
    status: OrderStatus = OrderStatus.pending
    payment_status: PaymentStatus
    gst: GstDisclosure = Field(default_factory=GstDisclosure)
    package: PackageDimensions | None = None
    shipment: Shipment = Field(default_factory=Shipment)
    # e.g. "shipping_from_billing"; set when checkout substituted an address
    address_substitution: str | None = None
    customer_notes: str | None = None
    # admin-entered tracking details, independent of the carrier shipment
    tracking_number: str | None = None
    carrier_name: str | None = None
    tracking_url: str | None = None
    admin_notes: str | None = None
    paid_at: datetime | None = None
    shipped_at: datetime | None = None
    delivered_at: datetime | None = None
    cancelled_at: datetime | None = None

    @property
    def is_cod(self) -> bool:
        return self.payment_method == PaymentMethod.cod

    @property
    def unit_count(self) -> int:
        return sum(item.quantity for item in self.line_items)
