"""Tests for ShiprocketClient using httpx.MockTransport."""

import json

import httpx
import pytest

from src.application.order_mapper import map_order_to_shiprocket
from src.domain.errors import LOCKOUT_MESSAGE
from src.infrastructure.shiprocket_client import (
    AWB_CODE_PATHS,
    RECOMMENDED_COURIER_PATHS,
    ShiprocketAPIError,
    ShiprocketClient,
    at,
    first_non_empty,
)


class _Recorder:
    """MockTransport handler that records requests and replays queued responses per path."""

    def __init__(self, routes: dict[str, list[tuple[int, dict]]]) -> None:
        self.routes = routes
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/v1/external")
        queue = self.routes[path]
        status, body = queue.pop(0) if len(queue) > 1 else queue[0]
        return httpx.Response(status, json=body)

    def paths(self) -> list[str]:
        return [r.url.path.removeprefix("/v1/external") for r in self.requests]


def _login_ok() -> tuple[int, dict]:
    return 200, {"token": "tok-1"}


def _client(handler, carrier_config) -> ShiprocketClient:
    return ShiprocketClient(httpx.Client(transport=httpx.MockTransport(handler)), carrier_config)


# ---------------------------------------------------------------------------
# Authentication
# ---------------------------------------------------------------------------


def test_bearer_token_attached_and_cached(carrier_config) -> None:
    """Login happens once; every call carries the bearer token."""
    recorder = _Recorder(
        {
            "/auth/login": [_login_ok()],
            "/courier/generate/label": [(200, {"label_url": "u"})],
        }
    )
    client = _client(recorder, carrier_config)

    client.generate_label("2001")
    client.generate_label("2001")

    assert recorder.paths() == ["/auth/login", "/courier/generate/label", "/courier/generate/label"]
    login_body = json.loads(recorder.requests[0].content)
    assert login_body == {"email": "ops@example.com", "password": "secret"}
    assert recorder.requests[1].headers["Authorization"] == "Bearer tok-1"


def test_login_without_token_fails(carrier_config) -> None:
    recorder = _Recorder({"/auth/login": [(200, {})]})

    with pytest.raises(ShiprocketAPIError, match="login failed"):
        _client(recorder, carrier_config).track_awb("AWB1")


def test_unauthorized_drops_cached_token(carrier_config) -> None:
    """A 401 forces a fresh login on the next call; the failed call is not retried."""
    recorder = _Recorder(
        {
            "/auth/login": [_login_ok()],
            "/courier/generate/pickup": [
                (401, {"message": "Token expired"}),
                (200, {"pickup_status": 1}),
            ],
        }
    )
    client = _client(recorder, carrier_config)

    with pytest.raises(ShiprocketAPIError) as exc_info:
        client.generate_pickup("2001")
    assert exc_info.value.status_code == 401

    client.generate_pickup("2001")
    assert recorder.paths().count("/auth/login") == 2


def test_lockout_message_rewritten(carrier_config) -> None:
    recorder = _Recorder(
        {
            "/auth/login": [
                (400, {"message": "Too many failed login attempts. Retry later"})
            ]
        }
    )

    with pytest.raises(ShiprocketAPIError) as exc_info:
        _client(recorder, carrier_config).generate_label("2001")

    assert exc_info.value.user_message == LOCKOUT_MESSAGE
    assert exc_info.value.to_dict()["message"] == LOCKOUT_MESSAGE


# ---------------------------------------------------------------------------
# Transport behaviour
# ---------------------------------------------------------------------------


def test_error_response_surfaces_status_and_body(carrier_config) -> None:
    body = {"message": "Courier not selected", "status_code": 400}
    recorder = _Recorder(
        {"/auth/login": [_login_ok()], "/courier/assign/awb": [(400, body)]}
    )

    with pytest.raises(ShiprocketAPIError) as exc_info:
        _client(recorder, carrier_config).assign_awb("2001")

    err = exc_info.value
    assert err.status_code == 400
    assert err.message == "Courier not selected"
    assert err.details == body


def test_network_failure_wrapped(carrier_config) -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(ShiprocketAPIError) as exc_info:
        _client(handler, carrier_config).track_awb("AWB1")

    assert exc_info.value.status_code is None
    assert "ConnectError" in exc_info.value.message


def test_configured_timeout_applied(carrier_config) -> None:
    recorder = _Recorder(
        {"/auth/login": [_login_ok()], "/courier/track/awb/AWB1": [(200, {})]}
    )
    _client(recorder, carrier_config).track_awb("AWB1")

    assert recorder.requests[1].extensions["timeout"]["read"] == 5.0


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------


def test_create_adhoc_order_posts_payload_without_nulls(carrier_config, make_order) -> None:
    recorder = _Recorder(
        {
            "/auth/login": [_login_ok()],
            "/orders/create/adhoc": [(200, {"shipment_id": 2001})],
        }
    )
    payload = map_order_to_shiprocket(make_order(), pickup_location="Sales Office")

    result = _client(recorder, carrier_config).create_adhoc_order(payload)

    sent = json.loads(recorder.requests[1].content)
    assert result == {"shipment_id": 2001}
    assert sent["order_id"] == "ORD-20250201-ABC123"
    assert "channel_id" not in sent


def test_assign_awb_sends_courier_only_when_given(carrier_config) -> None:
    recorder = _Recorder(
        {"/auth/login": [_login_ok()], "/courier/assign/awb": [(200, {})]}
    )
    client = _client(recorder, carrier_config)

    client.assign_awb("2001")
    client.assign_awb("2001", courier_id=42)

    assert json.loads(recorder.requests[1].content) == {"shipment_id": "2001"}
    assert json.loads(recorder.requests[2].content) == {"shipment_id": "2001", "courier_id": 42}


def test_serviceability_query_params(carrier_config) -> None:
    recorder = _Recorder(
        {"/auth/login": [_login_ok()], "/courier/serviceability/": [(200, {})]}
    )
    _client(recorder, carrier_config).serviceability("110001", "560001", 0.5, True, 870)

    params = recorder.requests[1].url.params
    assert recorder.requests[1].method == "GET"
    assert params["pickup_postcode"] == "110001"
    assert params["delivery_postcode"] == "560001"
    assert params["cod"] == "1"
    assert params["mode"] == "Surface"


# ---------------------------------------------------------------------------
# Shape-tolerant extraction
# ---------------------------------------------------------------------------


@pytest.mark.parametrize(
    "body",
    [
        {"awb_code": "AWB9"},
        {"response": {"data": {"awb_code": "AWB9"}}},
        {"awb_data": [{"awb_code": "AWB9"}]},
        {"data": {"response": {"awb_data": [{"awb_code": "AWB9"}]}}},
        {"awb_code": "", "response": {"data": {"awb_code": "AWB9"}}},
    ],
)
def test_awb_found_at_any_depth(body: dict) -> None:
    assert first_non_empty(body, AWB_CODE_PATHS) == "AWB9"


def test_recommended_courier_preferred_over_first_available() -> None:
    body = {
        "data": {
            "recommended_courier_company_id": 7,
            "available_courier_companies": [{"courier_company_id": 3}],
        }
    }
    assert first_non_empty(body, RECOMMENDED_COURIER_PATHS) == 7

    body["data"]["recommended_courier_company_id"] = None
    assert first_non_empty(body, RECOMMENDED_COURIER_PATHS) == 3


def test_accessor_tolerates_wrong_shapes() -> None:
    assert at("a", 0, "b")({"a": "not-a-list"}) is None
    assert at("a", 2)({"a": [1]}) is None
    assert first_non_empty(None, AWB_CODE_PATHS) is None
