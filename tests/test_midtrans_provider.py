from __future__ import annotations

import base64
import json

import httpx
import pytest

from app.providers.config import MidtransConfig, ProviderConfigError, midtrans_config, validate_provider_config
from app.providers.http import HttpClient
from app.providers.midtrans import MidtransProvider
from settings import Settings


def _config(**overrides) -> MidtransConfig:
    base = dict(
        mode="sandbox",
        snap_url="https://app.sandbox.midtrans.com/snap/v1/transactions",
        api_base_url="https://api.sandbox.midtrans.com",
        server_key="SB-Mid-server-abc",
        client_key="SB-Mid-client-abc",
        merchant_id="G000000",
        timeout_s=5.0,
    )
    base.update(overrides)
    return MidtransConfig(**base)


def _provider(handler, **overrides) -> MidtransProvider:
    return MidtransProvider(config=_config(**overrides), http=HttpClient(transport=httpx.MockTransport(handler)))


def test_create_transaction_posts_with_basic_auth():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"token": "snap-1", "redirect_url": "https://pay/snap-1"})

    result = _provider(handler).create_transaction({"transaction_details": {"order_id": "ORD-1", "gross_amount": 1000}})

    assert result.ok is True
    assert result.token == "snap-1"
    assert result.redirect_url == "https://pay/snap-1"
    assert seen["url"] == "https://app.sandbox.midtrans.com/snap/v1/transactions"
    expected = base64.b64encode(b"SB-Mid-server-abc:").decode()
    assert seen["auth"] == f"Basic {expected}"
    assert seen["body"]["transaction_details"]["order_id"] == "ORD-1"


def test_create_transaction_reports_provider_errors():
    def handler(request):
        return httpx.Response(400, json={"error_messages": ["gross_amount is required"]})

    result = _provider(handler).create_transaction({"transaction_details": {"order_id": "ORD-1"}})

    assert result.ok is False
    assert result.http_status == 400
    assert result.error == "gross_amount is required"
    assert result.retryable is False


def test_create_transaction_network_error_is_retryable():
    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    result = _provider(handler).create_transaction({"transaction_details": {"order_id": "ORD-1"}})

    assert result.ok is False
    assert result.retryable is True


def test_get_status_found():
    def handler(request):
        assert request.url.path == "/v2/ORD-1/status"
        return httpx.Response(
            200,
            json={"status_code": "200", "order_id": "ORD-1", "transaction_status": "settlement", "fraud_status": "accept"},
        )

    result = _provider(handler).get_status("ORD-1")

    assert result.found is True
    assert result.transaction_status == "settlement"
    assert result.fraud_status == "accept"
    assert not result.failed


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(404, json={"status_code": "404", "status_message": "Transaction doesn't exist."}),
        httpx.Response(200, json={"status_code": "404", "status_message": "Transaction doesn't exist."}),
    ],
)
def test_get_status_not_found(response):
    result = _provider(lambda request: response).get_status("ORD-404")

    assert result.found is False
    assert not result.failed


def test_get_status_server_error_is_failure():
    result = _provider(lambda request: httpx.Response(503, text="unavailable")).get_status("ORD-1")

    assert result.failed
    assert result.http_status == 503
    assert result.retryable is True


def test_missing_server_key_short_circuits():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={})

    result = _provider(handler, server_key="").get_status("ORD-1")

    assert result.error == "MIDTRANS_CONFIG_MISSING"
    assert calls == []


def test_config_derives_urls_from_mode():
    cfg = midtrans_config(Settings(MIDTRANS_MODE="production", MIDTRANS_SERVER_KEY="k"))
    assert cfg.snap_url == "https://app.midtrans.com/snap/v1/transactions"
    assert cfg.api_base_url == "https://api.midtrans.com"


def test_strict_startup_validation_rejects_missing_keys():
    cfg = Settings(
        PAYMENT_PROVIDER="midtrans",
        MIDTRANS_STRICT_STARTUP_VALIDATION=True,
        MIDTRANS_SERVER_KEY="",
        MIDTRANS_CLIENT_KEY="",
        MIDTRANS_MERCHANT_ID="",
    )
    with pytest.raises(ProviderConfigError):
        validate_provider_config(cfg)

    relaxed = Settings(PAYMENT_PROVIDER="midtrans", MIDTRANS_SERVER_KEY="", MIDTRANS_CLIENT_KEY="", MIDTRANS_MERCHANT_ID="")
    assert "MIDTRANS_SERVER_KEY" in validate_provider_config(relaxed)
