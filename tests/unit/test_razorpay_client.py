"""Unit tests for the Razorpay client using httpx.MockTransport."""

import hashlib
import hmac
import json

import httpx
import pytest
from services.ledger_service.errors import ProviderTimeout, ProviderUnavailable
from services.ledger_service.razorpay_client import (
    RazorpayClient,
    RazorpayError,
    verify_webhook_signature,
)


def _client(handler):
    return RazorpayClient(
        "rzp_test_key",
        "rzp_test_secret",
        "2323230000000001",
        base_url="https://api.razorpay.test",
        timeout=2,
        transport=httpx.MockTransport(handler),
    )


# ---------------------------------------------------------------------------
# Webhook signatures
# ---------------------------------------------------------------------------


@pytest.mark.unit
def test_verify_webhook_signature():
    body = b'{"event":"payout.processed"}'
    signature = hmac.new(b"whsec_abc", body, hashlib.sha256).hexdigest()

    assert verify_webhook_signature(body, signature, "whsec_abc") is True
    assert verify_webhook_signature(body + b" ", signature, "whsec_abc") is False
    assert verify_webhook_signature(body, None, "whsec_abc") is False
    assert verify_webhook_signature(body, signature, "other") is False


# ---------------------------------------------------------------------------
# Payouts
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
@pytest.mark.unit
async def test_create_payout_sends_idempotency_key():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["headers"] = request.headers
        seen["body"] = json.loads(request.content)
        return httpx.Response(
            200,
            json={
                "id": "pout_00000000000001",
                "status": "processing",
                "amount": 90_000,
                "reference_id": seen["body"]["reference_id"],
            },
        )

    result = await _client(handler).create_payout(
        destination_account="fa_123",
        amount=90_000,
        reference_id="3b241101-e2bb-4255-8caf-4136c566a962",
        narration="Creator payout 3b241101 for summer campaign",
        mode="IMPS",
    )

    assert seen["url"] == "https://api.razorpay.test/v1/payouts"
    assert seen["headers"]["X-Payout-Idempotency"] == "3b241101-e2bb-4255-8caf-4136c566a962"
    assert seen["body"]["fund_account_id"] == "fa_123"
    assert seen["body"]["account_number"] == "2323230000000001"
    assert seen["body"]["mode"] == "IMPS"
    assert len(seen["body"]["narration"]) <= 30
    assert result.transfer_id == "pout_00000000000001"
    assert result.failed is False


@pytest.mark.asyncio
@pytest.mark.unit
async def test_rejected_request_raises_razorpay_error():
    def handler(request):
        return httpx.Response(
            400, json={"error": {"description": "The fund account id is invalid"}}
        )

    with pytest.raises(RazorpayError) as exc_info:
        await _client(handler).create_payout(
            destination_account="fa_bad",
            amount=10_000,
            reference_id="ref-1",
            narration="x",
        )
    assert exc_info.value.status_code == 400
    assert "fund account" in exc_info.value.message


@pytest.mark.asyncio
@pytest.mark.unit
async def test_timeout_maps_to_provider_timeout():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ProviderTimeout):
        await _client(handler).create_payout(
            destination_account="fa_123", amount=10_000, reference_id="ref-1", narration="x"
        )


@pytest.mark.asyncio
@pytest.mark.unit
async def test_server_error_maps_to_provider_unavailable():
    def handler(request):
        return httpx.Response(502, text="bad gateway")

    with pytest.raises(ProviderUnavailable):
        await _client(handler).fetch_payout("pout_1")


@pytest.mark.unit
def test_client_requires_credentials(monkeypatch):
    from libs.common.config import get_settings

    settings = get_settings()
    monkeypatch.setattr(settings, "RAZORPAY_KEY_ID", "")
    monkeypatch.setattr(settings, "RAZORPAY_KEY_SECRET", "")

    with pytest.raises(ValueError):
        RazorpayClient(account_number="2323230000000001")
