"""Tax-inclusive pricing and the GST disclosure block.

All amounts are whole rupees. Product prices already include GST, so the
tax is extracted from the subtotal rather than added on top.
"""

import re
from datetime import UTC, datetime
from decimal import ROUND_HALF_UP, Decimal

from pydantic import BaseModel

from src.domain.order import Address, GstDisclosure, OrderLineItem, PaymentMethod


class PricingConfig(BaseModel):
    free_shipping_threshold: int = 2000
    flat_shipping_fee: int = 150
    cod_fee: int = 25
    online_fee_rate: Decimal = Decimal("0.02")
    online_fee_tax_rate: Decimal = Decimal("0.18")
    gst_rate: Decimal = Decimal("0.18")


class PriceBreakdown(BaseModel):
    subtotal: int
    tax: int
    taxable_base: int
    shipping_fee: int
    cod_surcharge: int
    online_fee: int
    online_fee_tax: int
    total: int


class GstRequest(BaseModel):
    """What the customer asked for at checkout."""

    want_invoice: bool = False
    gstin: str | None = None
    legal_name: str | None = None
    place_of_supply: str | None = None
    tax_rate: float | None = None  # percent
    email: str | None = None
    requested_at: datetime | None = None


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def inclusive_tax(amount: int, rate: Decimal) -> int:
    """GST portion of a tax-inclusive amount: ``round(amount * r / (1 + r))``."""
    return round_half_up(Decimal(amount) * rate / (1 + rate))


class PricingEngine:
    """Computes order totals from a cart snapshot. Pure; no I/O."""

    def __init__(self, config: PricingConfig) -> None:
        self._config = config

    def price(
        self, items: list[OrderLineItem], payment_method: PaymentMethod
    ) -> PriceBreakdown:
        cfg = self._config
        subtotal = sum(item.unit_price * item.quantity for item in items)
        shipping_fee = 0 if subtotal >= cfg.free_shipping_threshold else cfg.flat_shipping_fee

        # Tax is rounded first and the base derived by subtraction so that
        # taxable_base + tax == subtotal exactly.
        tax = inclusive_tax(subtotal, cfg.gst_rate)
        taxable_base = subtotal - tax

        base_before_fee = subtotal + shipping_fee
        is_cod = payment_method == PaymentMethod.cod
        if is_cod:
            online_fee = online_fee_tax = 0
            cod_surcharge = cfg.cod_fee
        else:
            online_fee = round_half_up(Decimal(base_before_fee) * cfg.online_fee_rate)
            online_fee_tax = round_half_up(Decimal(online_fee) * cfg.online_fee_tax_rate)
            cod_surcharge = 0

        return PriceBreakdown(
            subtotal=subtotal,
            tax=tax,
            taxable_base=taxable_base,
            shipping_fee=shipping_fee,
            cod_surcharge=cod_surcharge,
            online_fee=online_fee,
            online_fee_tax=online_fee_tax,
            total=base_before_fee + cod_surcharge + online_fee + online_fee_tax,
        )


def clean_gstin(value: str | None) -> str:
    return re.sub(r"[^0-9A-Z]", "", (value or "").upper())[:15]


def _first_text(*values: str | None) -> str | None:
    for value in values:
        if value and value.strip():
            return value.strip()
    return None


def build_gst_disclosure(
    request: GstRequest | None,
    breakdown: PriceBreakdown,
    shipping_address: Address | None = None,
) -> GstDisclosure:
    """Build the GST block stored on the order.

    A GSTIN forces ``requested`` on. When the caller gives no rate it is
    back-computed from the breakdown for display; ``tax_amount`` is always the
    pricing engine's figure.
    """
    request = request or GstRequest()
    addr = shipping_address or Address()
    gstin = clean_gstin(request.gstin)
    requested = request.want_invoice or bool(gstin)

    if request.tax_rate:
        tax_rate = request.tax_rate
    elif breakdown.taxable_base > 0:
        tax_rate = round_half_up(
            Decimal(breakdown.tax) / Decimal(breakdown.taxable_base) * 100
        )
    else:
        tax_rate = 0

    requested_at = request.requested_at
    if requested_at is None and requested:
        requested_at = datetime.now(UTC)

    return GstDisclosure(
        requested=requested,
        gstin=gstin or None,
        legal_name=_first_text(request.legal_name, addr.full_name),
        place_of_supply=_first_text(request.place_of_supply, addr.state),
        tax_rate=tax_rate,
        taxable_base=breakdown.taxable_base,
        tax_amount=breakdown.tax,
        email=_first_text(request.email, addr.email),
        requested_at=requested_at,
    )
