import argparse
import json

import httpx
from loguru import logger

from src.application.order_service import CheckoutRequest, OrderService
from src.application.pricing import PricingEngine
from src.application.shipment_service import ShipmentService
from src.domain.order import Address, OrderLineItem, PaymentMethod
from src.entrypoints.executor import Executor
from src.entrypoints.settings import Config
from src.infrastructure.order_repository import InMemoryOrderRepository
from src.infrastructure.shiprocket_client import ShiprocketClient

ADMIN_STEPS = ("assign-awb", "pickup", "label", "invoice", "manifest")

_MOCK_RESPONSES: dict[str, dict] = {
    "/auth/login": {"token": "mock-token"},
    "/orders/create/adhoc": {"order_id": 1001, "shipment_id": 2001, "status": "NEW"},
    "/courier/serviceability/": {
        "data": {
            "recommended_courier_company_id": 10,
            "available_courier_companies": [{"courier_company_id": 10}],
        }
    },
    "/courier/assign/awb": {
        "awb_assign_status": 1,
        "response": {"data": {"awb_code": "mk0001", "courier_name": "Mock Express"}},
    },
    "/courier/generate/pickup": {"pickup_status": 1},
    "/courier/generate/label": {"label_url": "https://mock.local/label.pdf"},
    "/orders/print/invoice": {"invoice_url": "https://mock.local/invoice.pdf"},
    "/manifests/generate": {"status": 1},
    "/manifests/print": {"manifest_url": "https://mock.local/manifest.pdf"},
}


def _mock_shiprocket_handler(request: httpx.Request) -> httpx.Response:
    """Mock transport handler: logs the call and returns a canned Shiprocket body."""
    path = request.url.path.split("/v1/external", 1)[-1]
    logger.info(f"[Shiprocket] MOCK {request.method} {path}")
    if path.startswith("/courier/track/awb/"):
        return httpx.Response(200, json={"tracking_data": {"track_status": 1}})
    if path == "/courier/assign/awb" and "courier_id" not in json.loads(request.content):
        return httpx.Response(400, json={"message": "Please select a courier"})
    if path in _MOCK_RESPONSES:
        return httpx.Response(200, json=_MOCK_RESPONSES[path])
    return httpx.Response(404, json={"message": f"No mock for {path}"})


def _sample_checkout() -> CheckoutRequest:
    return CheckoutRequest(
        items=[
            OrderLineItem(product_id="p-1", name="USB Charger", unit_price=435, quantity=2, sku="CHG-01"),
        ],
        shipping_address=Address(
            full_name="Asha Verma",
            phone="+91 98765 43210",
            email="asha@example.com",
            address_line_1="12 MG Road",
            city="Bengaluru",
            state="Karnataka",
            postal_code="560001",
        ),
        payment_method=PaymentMethod.cod,
    )


def main() -> None:
    parser = argparse.ArgumentParser(description="Run a checkout through the Shiprocket workflow.")
    parser.add_argument("--live", action="store_true", help="call the real Shiprocket API")
    args = parser.parse_args()

    config = Config()  # type: ignore[call-arg]

    # --- Shiprocket layer ---
    transport = None if args.live else httpx.MockTransport(_mock_shiprocket_handler)
    http_client = httpx.Client(transport=transport, timeout=config.SHIPROCKET_TIMEOUT_SECONDS)
    carrier = ShiprocketClient(http_client, config.carrier())

    # --- Order layer ---
    repository = InMemoryOrderRepository(stock={"p-1": 10})
    shipment_service = ShipmentService(repository, carrier, config.carrier())
    order_service = OrderService(
        repository,
        PricingEngine(config.pricing()),
        shipment_service,
        auto_create_shipment=config.AUTO_CREATE_SHIPMENT,
    )
    executor = Executor(shipment_service)

    # --- Run workflow ---
    with http_client:
        order = order_service.place_order(_sample_checkout())
        logger.info(f"Placed {order.order_number}: total {order.total}, shipment {order.shipment.status}")
        for step in ADMIN_STEPS:
            logger.info(f"{step}: {executor.run(step, order.order_number)}")
        awb = repository.get(order.id).shipment.awb_code
        if awb:
            logger.info(f"track: {executor.run('track', awb)}")


if __name__ == "__main__":
    main()
