"""Tests for the SMS gateway client."""

from __future__ import annotations

from urllib.parse import parse_qs

import httpx
import pytest

from dispatch_service.core.exceptions import (
    DeliveryRejectedError,
    GatewayProtocolError,
    GatewayTransportError,
    RecipientValidationError,
)
from dispatch_service.infra.metrics import REGISTRY
from dispatch_service.infra.ratelimit import ChannelRateLimiter
from dispatch_service.infra.sms import (
    SmsCredentials,
    SmsGatewayClient,
    clean_phone_number,
    parse_gateway_response,
)

GATEWAY_URL = "https://sms.example.com/send"
CREDENTIALS = SmsCredentials(username="acme", password="pw", sender_id="ACME")


def _client(handler, **kwargs) -> SmsGatewayClient:
    http_client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return SmsGatewayClient(GATEWAY_URL, http_client=http_client, **kwargs)


class TestCleanPhoneNumber:
    def test_strips_formatting(self) -> None:
        assert clean_phone_number("+233 (24) 123-4567") == "233241234567"

    @pytest.mark.parametrize("raw", ["", "12345", "abc-def-ghij", "024 123"])
    def test_rejects_short_numbers(self, raw: str) -> None:
        with pytest.raises(RecipientValidationError):
            clean_phone_number(raw)


class TestParseGatewayResponse:
    """Interpretation of gateway reply bodies."""

    def test_code_zero_is_success(self) -> None:
        result = parse_gateway_response(200, '{"code": 0, "messageId": "abc", "cost": 0.03}')

        assert result.success
        assert result.message_id == "abc"
        assert result.cost == pytest.approx(0.03)

    def test_non_zero_code_is_rejection(self) -> None:
        result = parse_gateway_response(200, '{"code": 2, "message": "Insufficient balance"}')

        assert not result.success
        assert result.error == "Insufficient balance"
        assert result.error_code == "rejected"
        assert isinstance(result.to_exception(), DeliveryRejectedError)

    @pytest.mark.parametrize("body", ['{"code": false}', '{"code": "0"}', '{"code": 0.0}', '{"message": "ok"}'])
    def test_only_integer_zero_is_success(self, body: str) -> None:
        result = parse_gateway_response(200, body)

        assert not result.success
        assert result.error_code == "rejected"

    def test_server_error_with_json_body_is_transport_failure(self) -> None:
        result = parse_gateway_response(503, '{"code": 9, "message": "busy"}')

        assert result.error_code == "transport"
        assert isinstance(result.to_exception(), GatewayTransportError)

    def test_html_body_is_protocol_failure_with_snippet(self) -> None:
        body = "<html><body>" + "x" * 200 + "</body></html>"

        result = parse_gateway_response(502, body)

        assert not result.success
        assert result.error == f"SMS provider returned non-JSON response: 502 - {body[:100]}..."
        exc = result.to_exception()
        assert isinstance(exc, GatewayProtocolError)
        assert exc.snippet == body[:100]

    def test_json_array_is_protocol_failure(self) -> None:
        assert parse_gateway_response(200, "[1, 2]").error_code == "protocol"


class TestSmsGatewayClient:
    """HTTP exchange with the gateway."""

    async def test_posts_form_encoded_credentials(self) -> None:
        captured: dict[str, list[str]] = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured.update(parse_qs(request.content.decode()))
            return httpx.Response(200, json={"code": 0, "messageId": "m-1"})

        async with _client(handler) as client:
            result = await client.send("024 123 4567", "Hello", CREDENTIALS)

        assert result.success
        assert result.message_id == "m-1"
        assert result.duration_ms is not None
        assert captured == {
            "username": ["acme"],
            "password": ["pw"],
            "destination": ["0241234567"],
            "source": ["ACME"],
            "message": ["Hello"],
        }

    async def test_non_json_reply_returns_protocol_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(502, text="<html>Bad Gateway</html>")

        async with _client(handler) as client:
            result = await client.send("0241234567", "Hello", CREDENTIALS)

        assert not result.success
        assert result.error_code == "protocol"
        assert result.status_code == 502
        assert "<html>Bad Gateway</html>" in (result.error or "")

    async def test_invalid_phone_makes_no_request(self) -> None:
        calls: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            calls.append(request)
            return httpx.Response(200, json={"code": 0})

        async with _client(handler) as client:
            result = await client.send("12345", "Hello", CREDENTIALS)

        assert calls == []
        assert result.error_code == "invalid_recipient"
        assert isinstance(result.to_exception(), RecipientValidationError)

    async def test_network_error_is_transport_failure(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with _client(handler) as client:
            result = await client.send("0241234567", "Hello", CREDENTIALS)

        assert result.error_code == "transport"
        with pytest.raises(GatewayTransportError):
            result.raise_for_failure()

    async def test_acquires_limiter_before_each_send(self) -> None:
        acquired: list[float] = []

        async def fake_sleep(seconds: float) -> None:
            acquired.append(seconds)

        limiter = ChannelRateLimiter("sms", 2, clock=lambda: 0.0, sleep=fake_sleep)

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"code": 0})

        async with _client(handler, limiter=limiter) as client:
            await client.send("0241234567", "one", CREDENTIALS)
            await client.send("0241234567", "two", CREDENTIALS)

        assert acquired == [pytest.approx(0.5)]

    async def test_gateway_failures_are_counted_by_error_code(self) -> None:
        labels = {"channel": "sms", "provider": "deywuro"}
        sends = REGISTRY.get_sample_value("provider_send_total", {**labels, "status": "failed"}) or 0.0
        errors = REGISTRY.get_sample_value("provider_send_errors_total", {**labels, "error_code": "rejected"}) or 0.0

        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(200, json={"code": 2, "message": "Insufficient balance"})

        async with _client(handler) as client:
            await client.send("0241234567", "Hello", CREDENTIALS)

        assert REGISTRY.get_sample_value("provider_send_total", {**labels, "status": "failed"}) == sends + 1
        assert (
            REGISTRY.get_sample_value("provider_send_errors_total", {**labels, "error_code": "rejected"})
            == errors + 1
        )
