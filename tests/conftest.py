"""Shared builders for orders and configs used across the test modules."""

from collections.abc import Callable
from datetime import UTC, datetime
from unittest.mock import MagicMock

import pytest

from src.domain.order import (
    Address,
    Order,
    OrderLineItem,
    PaymentMethod,
    PaymentStatus,
)
from src.infrastructure.order_repository import InMemoryOrderRepository
from src.infrastructure.shiprocket_client import CarrierConfig, ShiprocketClient


def _address(**kwargs) -> Address:
    defaults = dict(
        full_name="Asha Rani Verma",
        phone="+91 98765 43210",
        email="asha@example.com",
        address_line_1="12 MG Road",
        address_line_2="Near Metro",
        city="Bengaluru",
        state="Karnataka",
        postal_code="560001",
    )
    return Address(**{**defaults, **kwargs})


@pytest.fixture
def make_address() -> Callable[..., Address]:
    return _address


@pytest.fixture
def make_order() -> Callable[..., Order]:
    """Factory for a priced ₹870 COD order (tax 133, shipping 150, COD fee 25)."""

    def build(**kwargs) -> Order:
        defaults = dict(
            id="order-1",
            order_number="ORD-20250201-ABC123",
            created_at=datetime(2025, 2, 1, 10, 0, 0, tzinfo=UTC),
            line_items=[
                OrderLineItem(
                    product_id="p-1", name="USB Charger", unit_price=435, quantity=2, sku="CHG-01"
                )
            ],
            shipping_address=_address(),
            billing_address=_address(),
            payment_method=PaymentMethod.cod,
            subtotal=870,
            tax=133,
            shipping_fee=150,
            cod_surcharge=25,
            total=1045,
            payment_status=PaymentStatus.cod_pending,
        )
        return Order(**{**defaults, **kwargs})

    return build


@pytest.fixture
def carrier_config() -> CarrierConfig:
    return CarrierConfig(
        base_url="https://sr.test/v1/external",
        email="ops@example.com",
        password="secret",
        pickup_location="Sales Office",
        pickup_postcode="110001",
        timeout_seconds=5.0,
    )


@pytest.fixture
def repository() -> InMemoryOrderRepository:
    return InMemoryOrderRepository(stock={"p-1": 10, "p-2": 3})


@pytest.fixture
def carrier() -> MagicMock:
    return MagicMock(spec=ShiprocketClient)
