import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import requests

from app.config import settings
from app.errors import ConfigurationError, GatewayError

logger = logging.getLogger(__name__)

NETWORK_NAME = "Pi Network"

ALREADY_APPROVED_MARKERS = ("already_approved", "already approved")
ALREADY_COMPLETED_MARKERS = ("already_completed", "already completed")
ALREADY_CANCELLED_MARKERS = ("already_cancelled", "already cancelled")


@dataclass(frozen=True)
class PaymentStatus:
    """Snapshot of a payment as reported by the Pi Platform."""

    payment_id: str
    amount: Decimal | None = None
    recipient: str | None = None
    approved: bool = False
    completed: bool = False
    transaction_verified: bool = False
    cancelled: bool = False
    txid: str | None = None
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    @property
    def is_settled(self) -> bool:
        return bool(self.txid) and (self.transaction_verified or self.completed)

    @property
    def is_open(self) -> bool:
        return not self.completed and not self.cancelled

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "PaymentStatus":
        flags = payload.get("status") or {}
        transaction = payload.get("transaction") or {}
        amount = payload.get("amount")
        return cls(
            payment_id=str(payload.get("identifier") or ""),
            amount=Decimal(str(amount)) if amount is not None else None,
            recipient=payload.get("user_uid"),
            approved=bool(flags.get("developer_approved")),
            completed=bool(flags.get("developer_completed")),
            transaction_verified=bool(flags.get("transaction_verified") or transaction.get("verified")),
            cancelled=bool(flags.get("cancelled") or flags.get("user_cancelled")),
            txid=transaction.get("txid"),
            raw=payload,
        )


class PiGatewayClient:
    """Synchronous client for the Pi Platform payments API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.minepi.com/v2",
        timeout: float = 10.0,
        wallet_secret: str | None = None,
        session: requests.Session | None = None,
    ):
        if not api_key:
            raise ConfigurationError("PI_API_KEY is not configured")
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.wallet_secret = wallet_secret
        self.session = session or requests.Session()
        self.session.headers.update(
            {
                "Authorization": f"Key {api_key}",
                "Content-Type": "application/json",
                "Accept": "application/json",
            }
        )

    @classmethod
    def from_settings(cls) -> "PiGatewayClient":
        return cls(
            api_key=settings.PI_API_KEY,
            base_url=settings.PI_API_BASE_URL,
            timeout=settings.PI_API_TIMEOUT_SECONDS,
            wallet_secret=settings.APP_WALLET_SECRET,
        )

    def _request(
        self,
        method: str,
        path: str,
        payload: dict | None = None,
        tolerated_markers: tuple[str, ...] = (),
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        logger.debug("Pi API %s %s", method, path)
        try:
            response = self.session.request(method, url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            logger.warning("Pi API %s %s unreachable: %s", method, path, exc)
            raise GatewayError(f"Pi API unreachable: {exc}") from exc

        if response.ok:
            try:
                return response.json()
            except ValueError:
                return {}

        body = response.text or ""
        if tolerated_markers and any(marker in body.lower() for marker in tolerated_markers):
            logger.info("Pi API %s %s reported %s, treating as success", method, path, response.status_code)
            return {}

        logger.warning("Pi API %s %s failed: %s %s", method, path, response.status_code, body[:500])
        raise GatewayError(
            f"Pi API error: {response.status_code} - {body[:200]}",
            upstream_status=response.status_code,
            upstream_body=body,
        )

    def create_outbound_payment(
        self,
        amount: Decimal,
        memo: str,
        metadata: dict[str, Any],
        recipient_external_id: str,
    ) -> str:
        data = self._request(
            "POST",
            "/payments",
            {
                "payment": {
                    "amount": float(amount),
                    "memo": memo,
                    "metadata": metadata,
                    "uid": recipient_external_id,
                }
            },
        )
        identifier = data.get("identifier")
        if not identifier:
            raise GatewayError("Pi API create response is missing payment identifier", upstream_body=str(data))
        return identifier

    def approve_payment(self, payment_id: str) -> None:
        self._request("POST", f"/payments/{payment_id}/approve", {}, ALREADY_APPROVED_MARKERS)

    def complete_payment(self, payment_id: str, txid: str) -> None:
        payload: dict[str, Any] = {"txid": txid}
        if self.wallet_secret:
            payload["app_wallet_secret"] = self.wallet_secret
        self._request("POST", f"/payments/{payment_id}/complete", payload, ALREADY_COMPLETED_MARKERS)

    def cancel_payment(self, payment_id: str) -> None:
        self._request("POST", f"/payments/{payment_id}/cancel", {}, ALREADY_CANCELLED_MARKERS)

    def get_payment_status(self, payment_id: str) -> PaymentStatus:
        data = self._request("GET", f"/payments/{payment_id}")
        status = PaymentStatus.from_payload(data)
        if not status.payment_id:
            status = PaymentStatus.from_payload({**data, "identifier": payment_id})
        return status

    def list_incomplete_outbound_payments(self) -> list[PaymentStatus]:
        data = self._request("GET", "/payments/incomplete_server_payments")
        return [PaymentStatus.from_payload(item) for item in data.get("incomplete_server_payments") or []]
