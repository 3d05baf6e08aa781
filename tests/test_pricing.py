"""Tests for the pricing engine and the GST disclosure block."""

from decimal import Decimal

import pytest

from src.application.pricing import (
    GstRequest,
    PricingConfig,
    PricingEngine,
    build_gst_disclosure,
    clean_gstin,
    inclusive_tax,
)
from src.domain.order import Address, OrderLineItem, PaymentMethod


def _items(*prices_and_qty: tuple[int, int]) -> list[OrderLineItem]:
    return [
        OrderLineItem(product_id=f"p-{i}", name=f"Item {i}", unit_price=price, quantity=qty)
        for i, (price, qty) in enumerate(prices_and_qty)
    ]


@pytest.fixture
def engine() -> PricingEngine:
    return PricingEngine(PricingConfig())


# ---------------------------------------------------------------------------
# Worked scenarios
# ---------------------------------------------------------------------------


def test_cod_order_below_threshold(engine: PricingEngine) -> None:
    """₹870 COD cart: tax 133, base 737, shipping 150, COD fee 25, total 1045."""
    result = engine.price(_items((435, 2)), PaymentMethod.cod)

    assert result.subtotal == 870
    assert result.tax == 133
    assert result.taxable_base == 737
    assert result.shipping_fee == 150
    assert result.cod_surcharge == 25
    assert result.online_fee == 0
    assert result.online_fee_tax == 0
    assert result.total == 1045


def test_prepaid_order_adds_online_fee_and_its_tax(engine: PricingEngine) -> None:
    """Prepaid ₹870: fee = round(1020 * 2%) = 20, fee tax = round(20 * 18%) = 4."""
    result = engine.price(_items((435, 2)), PaymentMethod.prepaid)

    assert result.cod_surcharge == 0
    assert result.online_fee == 20
    assert result.online_fee_tax == 4
    assert result.total == 870 + 150 + 20 + 4


def test_online_fee_rounds_half_up(engine: PricingEngine) -> None:
    """1025 * 2% = 20.5 rounds to 21, not to the even 20."""
    result = engine.price(_items((875, 1)), PaymentMethod.prepaid)

    assert result.online_fee == 21
    assert result.online_fee_tax == 4  # 3.78


# ---------------------------------------------------------------------------
# Invariants
# ---------------------------------------------------------------------------


def test_taxable_base_plus_tax_equals_subtotal(engine: PricingEngine) -> None:
    for subtotal in range(1, 6000, 7):
        result = engine.price(_items((subtotal, 1)), PaymentMethod.cod)
        assert result.taxable_base + result.tax == result.subtotal


@pytest.mark.parametrize(
    ("subtotal", "expected_fee"),
    [(1999, 150), (2000, 0), (2500, 0), (1, 150)],
)
def test_shipping_fee_threshold(engine: PricingEngine, subtotal: int, expected_fee: int) -> None:
    result = engine.price(_items((subtotal, 1)), PaymentMethod.cod)
    assert result.shipping_fee == expected_fee


def test_total_is_sum_of_components(engine: PricingEngine) -> None:
    for method in PaymentMethod:
        r = engine.price(_items((499, 3), (1200, 1)), method)
        assert r.total == (
            r.subtotal + r.shipping_fee + r.cod_surcharge + r.online_fee + r.online_fee_tax
        )


def test_pricing_is_deterministic(engine: PricingEngine) -> None:
    items = _items((333, 3), (17, 5))
    assert engine.price(items, PaymentMethod.prepaid) == engine.price(items, PaymentMethod.prepaid)


def test_custom_config_is_respected() -> None:
    """Constants come from the injected config, not from module globals."""
    engine = PricingEngine(
        PricingConfig(free_shipping_threshold=500, flat_shipping_fee=60, cod_fee=40)
    )
    result = engine.price(_items((300, 1)), PaymentMethod.cod)

    assert result.shipping_fee == 60
    assert result.cod_surcharge == 40


def test_inclusive_tax_with_other_rate() -> None:
    assert inclusive_tax(1120, Decimal("0.12")) == 120


# ---------------------------------------------------------------------------
# GST disclosure
# ---------------------------------------------------------------------------


def test_gstin_forces_invoice_requested(engine: PricingEngine) -> None:
    breakdown = engine.price(_items((435, 2)), PaymentMethod.cod)
    block = build_gst_disclosure(GstRequest(gstin=" 29abcde1234f1z5 "), breakdown)

    assert block.requested is True
    assert block.gstin == "29ABCDE1234F1Z5"
    assert block.requested_at is not None


def test_tax_rate_back_computed_from_base(engine: PricingEngine) -> None:
    """133 / 737 * 100 = 18.05 -> 18; the amount stays the engine's value."""
    breakdown = engine.price(_items((435, 2)), PaymentMethod.cod)
    block = build_gst_disclosure(None, breakdown)

    assert block.tax_rate == 18
    assert block.tax_amount == 133
    assert block.taxable_base == 737
    assert block.requested is False
    assert block.requested_at is None


def test_explicit_tax_rate_kept(engine: PricingEngine) -> None:
    breakdown = engine.price(_items((435, 2)), PaymentMethod.cod)
    block = build_gst_disclosure(GstRequest(want_invoice=True, tax_rate=12), breakdown)

    assert block.tax_rate == 12


def test_disclosure_falls_back_to_shipping_address(engine: PricingEngine) -> None:
    breakdown = engine.price(_items((435, 2)), PaymentMethod.cod)
    addr = Address(full_name="Asha Verma", state="Karnataka", email="asha@example.com")
    block = build_gst_disclosure(GstRequest(want_invoice=True), breakdown, addr)

    assert block.legal_name == "Asha Verma"
    assert block.place_of_supply == "Karnataka"
    assert block.email == "asha@example.com"


def test_clean_gstin_truncates_and_strips() -> None:
    assert clean_gstin("27-aapfu0939f1zv-extra") == "27AAPFU0939F1ZV"
    assert clean_gstin(None) == ""
