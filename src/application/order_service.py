from datetime import UTC, datetime
from uuid import uuid4

from loguru import logger
from pydantic import BaseModel, Field

from src.application.pricing import GstRequest, PricingEngine, build_gst_disclosure
from src.domain.errors import (
    AddressSufficiencyError,
    CheckoutError,
    FulfillmentError,
    StockConflictError,
)
from src.domain.interfaces import IOrderRepository, IShipmentService
from src.domain.order import (
    Address,
    Order,
    OrderLineItem,
    OrderStatus,
    PackageDimensions,
    PaymentMethod,
    PaymentStatus,
)
from src.shared.address import is_sufficient

CANCELLABLE_STATUSES = (OrderStatus.pending, OrderStatus.confirmed)
FINAL_STATUSES = (OrderStatus.delivered, OrderStatus.cancelled)


class CheckoutRequest(BaseModel):
    """Confirmed cart snapshot handed over by the checkout flow."""

    items: list[OrderLineItem]
    shipping_address: Address
    billing_address: Address = Field(default_factory=Address)
    payment_method: PaymentMethod
    gst: GstRequest | None = None
    customer_notes: str | None = None


def normalize_address(addr: Address) -> Address:
    return addr.model_copy(
        update={
            name: value.strip()
            for name, value in addr.model_dump().items()
            if isinstance(value, str)
        }
    )


def _sufficient(addr: Address) -> bool:
    return is_sufficient(addr.address_line_1, addr.address_line_2)


def reconcile_addresses(
    shipping: Address, billing: Address
) -> tuple[Address, Address, str | None]:
    """Cross-fill a too-short address from the other one.

    Returns the two addresses plus a note naming the substitution made, if any.

    Raises:
        AddressSufficiencyError: if neither address reaches the minimum length.
    """
    note = None
    if not _sufficient(shipping) and _sufficient(billing):
        shipping, note = billing.model_copy(), "shipping_from_billing"
    if not _sufficient(shipping):
        raise AddressSufficiencyError(
            (shipping.address_line_1, shipping.address_line_2),
            (billing.address_line_1, billing.address_line_2),
        )
    if not _sufficient(billing):
        billing, note = shipping.model_copy(), "billing_from_shipping"
    return shipping, billing, note


def _new_order_number(created_at: datetime) -> str:
    return f"ORD-{created_at:%Y%m%d}-{uuid4().hex[:6].upper()}"


class OrderService:
    """Application service for checkout and admin order operations."""

    def __init__(
        self,
        repository: IOrderRepository,
        pricing: PricingEngine,
        shipment_service: IShipmentService | None = None,
        auto_create_shipment: bool = True,
    ) -> None:
        self._repository = repository
        self._pricing = pricing
        self._shipment_service = shipment_service
        self._auto_create_shipment = auto_create_shipment

    def place_order(self, request: CheckoutRequest) -> Order:
        """Price, persist and reserve stock for a checkout; then try to ship it.

        The order commit is the transaction boundary: a stock conflict deletes
        the order again, a shipment failure afterwards only gets logged.
        """
        if not request.items:
            raise CheckoutError("Cart is empty")

        shipping, billing, substitution = reconcile_addresses(
            normalize_address(request.shipping_address),
            normalize_address(request.billing_address),
        )
        if substitution:
            logger.warning(f"Checkout address substituted: {substitution}")

        breakdown = self._pricing.price(request.items, request.payment_method)
        created_at = datetime.now(UTC)
        order = Order(
            id=uuid4().hex,
            order_number=_new_order_number(created_at),
            created_at=created_at,
            line_items=request.items,
            shipping_address=shipping,
            billing_address=billing,
            payment_method=request.payment_method,
            subtotal=breakdown.subtotal,
            tax=breakdown.tax,
            shipping_fee=breakdown.shipping_fee,
            cod_surcharge=breakdown.cod_surcharge,
            online_fee=breakdown.online_fee,
            online_fee_tax=breakdown.online_fee_tax,
            total=breakdown.total,
            payment_status=(
                PaymentStatus.cod_pending
                if request.payment_method == PaymentMethod.cod
                else PaymentStatus.awaiting_payment
            ),
            gst=build_gst_disclosure(request.gst, breakdown, shipping),
            address_substitution=substitution,
            customer_notes=request.customer_notes,
        )

        self._repository.add(order)
        self._reserve_stock(order)
        logger.info(
            f"Order {order.order_number} placed — total {order.total} "
            f"({order.payment_method})"
        )

        if self._auto_create_shipment:
            self.create_shipment_best_effort(order.id)
        return self._repository.get(order.id)

    def _reserve_stock(self, order: Order) -> None:
        reserved: list[OrderLineItem] = []
        for item in order.line_items:
            if not self._repository.decrement_stock(item.product_id, item.quantity):
                for done in reserved:
                    self._repository.increment_stock(done.product_id, done.quantity)
                self._repository.delete(order.id)
                logger.warning(
                    f"Order {order.order_number} rolled back — stock changed for "
                    f"{item.product_id}"
                )
                raise StockConflictError(item.product_id)
            reserved.append(item)

    def create_shipment_best_effort(self, order_id: str) -> dict | None:
        """Attempt shipment creation; failures are logged, never raised."""
        if self._shipment_service is None:
            return None
        try:
            return self._shipment_service.create_shipment(order_id)
        except FulfillmentError as exc:
            logger.error(
                f"Shipment creation failed for order {order_id}: {exc.to_dict()}"
            )
        except Exception:
            logger.exception(f"Shipment creation crashed for order {order_id}")
        return None

    def cancel_order(self, order_ref: str, reason: str | None = None) -> Order:
        order = self._repository.get(order_ref)
        if order.status not in CANCELLABLE_STATUSES:
            raise CheckoutError("Order cannot be cancelled at this stage")
        return self._cancel(order, reason or "Cancelled by customer")

    def _cancel(self, order: Order, reason: str) -> Order:
        updated = self._repository.update_order(
            order.id,
            status=OrderStatus.cancelled,
            cancelled_at=datetime.now(UTC),
            customer_notes=reason,
        )
        for item in order.line_items:
            self._repository.increment_stock(item.product_id, item.quantity)
        logger.info(f"Order {order.order_number} cancelled (was {order.status})")
        return updated

    def update_status(
        self,
        order_ref: str,
        status: OrderStatus,
        tracking_number: str | None = None,
        carrier_name: str | None = None,
        tracking_url: str | None = None,
        notes: str | None = None,
    ) -> Order:
        """Admin status change. Delivered and cancelled orders are final.

        Stamps ``paid_at`` on confirming a paid order, ``shipped_at`` and
        ``delivered_at`` on those transitions. Cancelling here also returns
        the stock.
        """
        order = self._repository.get(order_ref)
        if order.status in FINAL_STATUSES:
            raise CheckoutError(f"Order already {order.status}")
        if status == OrderStatus.cancelled:
            return self._cancel(order, notes or "Cancelled by admin")

        now = datetime.now(UTC)
        fields: dict = {"status": status}
        if status == OrderStatus.confirmed:
            if order.payment_status == PaymentStatus.paid and order.paid_at is None:
                fields["paid_at"] = now
        elif status == OrderStatus.shipped:
            fields["shipped_at"] = now
        elif status == OrderStatus.delivered:
            fields["delivered_at"] = now

        optional = {
            "tracking_number": tracking_number,
            "carrier_name": carrier_name,
            "tracking_url": tracking_url,
            "admin_notes": notes,
        }
        fields.update({k: v for k, v in optional.items() if v})

        updated = self._repository.update_order(order.id, **fields)
        logger.info(f"Order {order.order_number} status {order.status} -> {status}")
        return updated

    def set_package(self, order_ref: str, package: PackageDimensions) -> Order:
        order = self._repository.get(order_ref)
        return self._repository.update_order(order.id, package=package)
