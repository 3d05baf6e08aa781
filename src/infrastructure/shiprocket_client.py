import threading
import time
from collections.abc import Callable, Sequence
from typing import Any

import httpx
from loguru import logger
from pydantic import BaseModel

from src.domain.errors import CarrierTransportError
from src.domain.shiprocket_order import ShiprocketOrder
from src.shared.decorators import log_errors

Accessor = Callable[[Any], Any]


class ShiprocketAPIError(CarrierTransportError):
    """Raised when a Shiprocket call fails at the HTTP or network level."""


class CarrierConfig(BaseModel):
    base_url: str = "https://apiv2.shiprocket.in/v1/external"
    email: str
    password: str
    channel_id: str | None = None
    pickup_location: str = "Sales Office"
    pickup_postcode: str = ""
    timeout_seconds: float = 30.0


# ---------------------------------------------------------------------------
# Response-shape tolerant extraction
# ---------------------------------------------------------------------------
#
# Shiprocket nests the same value differently depending on endpoint and API
# version. Each *_PATHS tuple lists accessors in priority order; add new
# shapes here.


def at(*path: str | int) -> Accessor:
    """Accessor that walks ``path`` through dicts/lists, returning None on a miss."""

    def get(body: Any) -> Any:
        node = body
        for key in path:
            if isinstance(key, int):
                if not isinstance(node, list) or len(node) <= key:
                    return None
                node = node[key]
            else:
                if not isinstance(node, dict):
                    return None
                node = node.get(key)
        return node

    return get


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return not value
    return False


def first_non_empty(body: Any, accessors: Sequence[Accessor]) -> Any:
    for accessor in accessors:
        value = accessor(body)
        if not _is_empty(value):
            return value
    return None


SHIPMENT_ID_PATHS = (
    at("shipment_id"),
    at("response", "shipment_id"),
    at("data", "shipment_id"),
    at("payload", "shipment_id"),
)
CARRIER_ORDER_ID_PATHS = (
    at("order_id"),
    at("orderId"),
    at("response", "order_id"),
    at("data", "order_id"),
)
CHANNEL_ID_PATHS = (at("channel_id"), at("response", "channel_id"))
ORDER_STATUS_PATHS = (at("status"), at("response", "status"))
AWB_CODE_PATHS = (
    at("awb_code"),
    at("response", "awb_code"),
    at("response", "data", "awb_code"),
    at("data", "awb_code"),
    at("awb_data", 0, "awb_code"),
    at("response", "data", "awb_data", 0, "awb_code"),
    at("data", "response", "awb_data", 0, "awb_code"),
)
COURIER_NAME_PATHS = (
    at("courier_name"),
    at("response", "courier_name"),
    at("response", "data", "courier_name"),
    at("data", "courier_name"),
    at("awb_data", 0, "courier_name"),
    at("response", "data", "awb_data", 0, "courier_name"),
    at("data", "response", "awb_data", 0, "courier_name"),
)
LABEL_URL_PATHS = (
    at("label_url"),
    at("response", "data", "label_url"),
    at("data", "label_url"),
)
INVOICE_URL_PATHS = (
    at("invoice_url"),
    at("response", "data", "invoice_url"),
    at("data", "invoice_url"),
)
MANIFEST_URL_PATHS = (
    at("manifest_url"),
    at("response", "data", "manifest_url"),
    at("data", "manifest_url"),
)
RECOMMENDED_COURIER_PATHS = (
    at("data", "recommended_courier_company_id"),
    at("recommended_courier_company_id"),
    at("courier_company_id"),
    at("data", "available_courier_companies", 0, "courier_company_id"),
    at("available_courier_companies", 0, "courier_company_id"),
)
TRACKING_DATA_PATHS = (at("tracking_data"), at("data", "tracking_data"), at("data"))


def _error_message(body: Any, fallback: str) -> str:
    if isinstance(body, dict):
        for key in ("message", "error"):
            if value := body.get(key):
                return str(value)
    return fallback


class ShiprocketClient:
    """Thin httpx wrapper for the Shiprocket external REST API.

    One method per endpoint. Each attaches the bearer token, applies the
    configured timeout and returns the decoded JSON body. Nothing is retried
    here.
    """

    # Tokens are valid ~10 days; refresh a day early
    TOKEN_TTL_SECONDS = 9 * 24 * 60 * 60

    def __init__(self, client: httpx.Client, config: CarrierConfig) -> None:
        self._client = client
        self._config = config
        self._base_url = config.base_url.rstrip("/")
        self._timeout = config.timeout_seconds
        self._token: str | None = None
        self._token_expires_at = 0.0
        self._token_lock = threading.Lock()

    # ---- transport -------------------------------------------------------

    def _send(
        self,
        method: str,
        path: str,
        *,
        json: Any = None,
        params: dict | None = None,
        headers: dict | None = None,
    ) -> Any:
        try:
            response = self._client.request(
                method,
                self._base_url + path,
                json=json,
                params=params,
                headers=headers,
                timeout=self._timeout,
            )
        except httpx.HTTPError as exc:
            raise ShiprocketAPIError(
                f"Shiprocket unreachable: {type(exc).__name__}: {exc}"
            ) from exc

        try:
            body = response.json() if response.content else {}
        except ValueError:
            body = {"raw": response.text}

        if not response.is_success:
            if response.status_code == 401:
                self._token = None
            raise ShiprocketAPIError(
                _error_message(body, f"Shiprocket API error {response.status_code}"),
                status_code=response.status_code,
                details=body,
            )
        return body

    def _get_token(self) -> str:
        with self._token_lock:
            if self._token and time.monotonic() < self._token_expires_at:
                return self._token
            body = self._send(
                "POST",
                "/auth/login",
                json={"email": self._config.email, "password": self._config.password},
            )
            token = body.get("token") if isinstance(body, dict) else None
            if not token:
                raise ShiprocketAPIError("Shiprocket login failed", details=body)
            self._token = str(token)
            self._token_expires_at = time.monotonic() + self.TOKEN_TTL_SECONDS
            logger.debug("[Shiprocket] Obtained new API token")
            return self._token

    def _call(self, method: str, path: str, **kwargs: Any) -> Any:
        headers = {
            "Authorization": f"Bearer {self._get_token()}",
            "Content-Type": "application/json",
        }
        return self._send(method, path, headers=headers, **kwargs)

    # ---- endpoints ------------------------------------------------------

    @log_errors
    def serviceability(
        self,
        pickup_postcode: str,
        delivery_postcode: str,
        weight: float,
        cod: bool,
        declared_value: float,
        mode: str = "Surface",
    ) -> dict:
        return self._call(
            "GET",
            "/courier/serviceability/",
            params={
                "pickup_postcode": pickup_postcode,
                "delivery_postcode": delivery_postcode,
                "weight": weight,
                "cod": 1 if cod else 0,
                "declared_value": declared_value,
                "mode": mode,
            },
        )

    @log_errors
    def create_adhoc_order(self, payload: ShiprocketOrder) -> dict:
        """POST the payload to ``/orders/create/adhoc``.

        Raises:
            ShiprocketAPIError: on transport failures and non-2xx responses.
        """
        body = self._call(
            "POST",
            "/orders/create/adhoc",
            json=payload.model_dump(mode="json", exclude_none=True),
        )
        logger.info(f"[Shiprocket] Order {payload.order_id} submitted")
        return body

    @log_errors
    def assign_awb(self, shipment_id: str, courier_id: int | None = None) -> dict:
        body: dict[str, Any] = {"shipment_id": shipment_id}
        if courier_id is not None:
            body["courier_id"] = courier_id
        return self._call("POST", "/courier/assign/awb", json=body)

    @log_errors
    def generate_pickup(self, shipment_id: str) -> dict:
        return self._call("POST", "/courier/generate/pickup", json={"shipment_id": [shipment_id]})

    @log_errors
    def generate_label(self, shipment_id: str) -> dict:
        return self._call("POST", "/courier/generate/label", json={"shipment_id": [shipment_id]})

    @log_errors
    def print_invoice(self, shipment_id: str) -> dict:
        return self._call("POST", "/orders/print/invoice", json={"ids": [shipment_id]})

    @log_errors
    def generate_manifest(self, shipment_id: str) -> dict:
        return self._call("POST", "/manifests/generate", json={"shipment_id": [shipment_id]})

    @log_errors
    def print_manifest(self, shipment_id: str) -> dict:
        return self._call("POST", "/manifests/print", json={"shipment_id": [shipment_id]})

    @log_errors
    def track_awb(self, awb_code: str) -> dict:
        return self._call("GET", f"/courier/track/awb/{awb_code}")
