"""
Razorpay API client for payouts and webhook verification.

Provides async methods for:
- Creating payouts to registered fund accounts (RazorpayX)
- Fetching a payout's current state
- Verifying webhook signatures
"""

import hashlib
import hmac
from dataclasses import dataclass
from typing import Optional

import httpx
from libs.common.config import get_settings
from libs.common.logging import get_logger
from services.ledger_service.errors import ProviderTimeout, ProviderUnavailable

logger = get_logger(__name__)

# Payout states that mean the transfer will not happen
FAILED_PAYOUT_STATES = {"failed", "rejected", "cancelled", "reversed"}


@dataclass
class TransferResult:
    """Result of submitting a payout."""

    transfer_id: str
    status: str  # queued, pending, processing, processed, ...
    amount: int  # in paise
    reference_id: str

    @property
    def failed(self) -> bool:
        return self.status in FAILED_PAYOUT_STATES


class RazorpayError(Exception):
    """Razorpay rejected the request."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response_data: Optional[dict] = None,
    ):
        self.message = message
        self.status_code = status_code
        self.response_data = response_data or {}
        super().__init__(message)


class RazorpayClient:
    """Async client for the RazorpayX Payouts API."""

    def __init__(
        self,
        key_id: Optional[str] = None,
        key_secret: Optional[str] = None,
        account_number: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.key_id = key_id or settings.RAZORPAY_KEY_ID
        self.key_secret = key_secret or settings.RAZORPAY_KEY_SECRET
        self.account_number = account_number or settings.RAZORPAY_ACCOUNT_NUMBER
        if not (self.key_id and self.key_secret and self.account_number):
            raise ValueError(
                "RAZORPAY_KEY_ID, RAZORPAY_KEY_SECRET and RAZORPAY_ACCOUNT_NUMBER are required"
            )
        self.base_url = (base_url or settings.RAZORPAY_BASE_URL).rstrip("/")
        self.timeout = timeout or settings.PAYOUT_PROVIDER_TIMEOUT_SECONDS
        self._transport = transport

    async def _request(
        self,
        method: str,
        endpoint: str,
        json_data: Optional[dict] = None,
        headers: Optional[dict] = None,
    ) -> dict:
        """Make an async request to the Razorpay API."""
        url = f"{self.base_url}{endpoint}"

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout,
                auth=(self.key_id, self.key_secret),
                transport=self._transport,
            ) as client:
                response = await client.request(
                    method=method,
                    url=url,
                    json=json_data,
                    headers=headers,
                )
        except httpx.TimeoutException as exc:
            raise ProviderTimeout(
                f"Razorpay did not respond within {self.timeout}s; the payout may have been applied"
            ) from exc
        except httpx.TransportError as exc:
            raise ProviderUnavailable(f"Razorpay unreachable: {exc}") from exc

        if response.status_code >= 500:
            raise ProviderUnavailable(f"Razorpay error {response.status_code}")

        data = response.json()
        if not response.is_success:
            error = data.get("error", {}) if isinstance(data, dict) else {}
            logger.error("Razorpay API error: %s - %s", response.status_code, data)
            raise RazorpayError(
                message=error.get("description", "Unknown Razorpay error"),
                status_code=response.status_code,
                response_data=data,
            )
        return data

    # =========================================================================
    # Payouts
    # =========================================================================

    async def create_payout(
        self,
        *,
        destination_account: str,
        amount: int,
        reference_id: str,
        narration: str,
        mode: str = "UPI",
    ) -> TransferResult:
        """
        Submit a payout to a registered fund account.

        ``reference_id`` doubles as the idempotency key, so resubmitting the
        same payout never moves money twice.

        Args:
            destination_account: Razorpay fund account id
            amount: Amount in paise
            reference_id: Ledger payout id
            narration: Shown on the recipient's statement (max 30 chars)
            mode: UPI, IMPS or NEFT
        """
        data = await self._request(
            "POST",
            "/v1/payouts",
            json_data={
                "account_number": self.account_number,
                "fund_account_id": destination_account,
                "amount": amount,
                "currency": "INR",
                "mode": mode,
                "purpose": "payout",
                "queue_if_low_balance": True,
                "reference_id": reference_id,
                "narration": narration[:30],
            },
            headers={"X-Payout-Idempotency": reference_id},
        )
        return TransferResult(
            transfer_id=data.get("id", ""),
            status=data.get("status", "processing"),
            amount=data.get("amount", amount),
            reference_id=data.get("reference_id", reference_id),
        )

    async def fetch_payout(self, transfer_id: str) -> TransferResult:
        data = await self._request("GET", f"/v1/payouts/{transfer_id}")
        return TransferResult(
            transfer_id=data.get("id", transfer_id),
            status=data.get("status", ""),
            amount=data.get("amount", 0),
            reference_id=data.get("reference_id", ""),
        )


# =============================================================================
# Webhooks
# =============================================================================


def verify_webhook_signature(
    body: bytes, signature: Optional[str], secret: Optional[str] = None
) -> bool:
    """Check ``X-Razorpay-Signature`` (hex HMAC-SHA256 of the raw body)."""
    secret = secret or get_settings().RAZORPAY_WEBHOOK_SECRET
    if not signature or not secret:
        return False
    expected = hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature)


def get_razorpay_client() -> RazorpayClient:
    """Get a RazorpayClient instance."""
    return RazorpayClient()
