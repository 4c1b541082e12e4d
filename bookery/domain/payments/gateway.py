"""Paystack gateway - transaction initialization and verification over the REST API"""

import json
import logging
from typing import Optional

import httpx

from ...config import PAYSTACK_BASE_URL, PAYSTACK_SECRET_KEY, PAYSTACK_TIMEOUT_SECONDS
from ...errors import ExternalServiceError
from .schemas import GatewaySession, GatewayVerification

logger = logging.getLogger(__name__)

# Paystack transaction status -> our verification outcome
STATUS_MAP = {
    "success": "complete",
    "failed": "failed",
    "abandoned": "failed",
    "reversed": "failed",
}


def normalize_gateway_status(status: Optional[str]) -> str:
    """Map a Paystack transaction status to complete, failed or pending"""
    return STATUS_MAP.get((status or "").lower(), "pending")


class PaystackGateway:
    """Client for Paystack transaction endpoints"""

    def __init__(
        self,
        secret_key: Optional[str] = PAYSTACK_SECRET_KEY,
        base_url: str = PAYSTACK_BASE_URL,
        timeout: float = PAYSTACK_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.secret_key = secret_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.transport = transport

        if not self.secret_key:
            logger.warning("PAYSTACK_SECRET_KEY not set; payment endpoints will fail until configured")

    def is_available(self) -> bool:
        return bool(self.secret_key)

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=self.timeout,
            transport=self.transport,
            headers={
                "Authorization": f"Bearer {self.secret_key}",
                "Content-Type": "application/json",
            },
        )

    async def create_session(
        self,
        amount_minor: int,
        currency: str,
        metadata: dict,
        email: str,
        callback_url: str,
    ) -> GatewaySession:
        """Initialize a transaction and return the hosted checkout URL"""
        if not self.is_available():
            raise ExternalServiceError("Payment gateway not configured", code="GATEWAY_NOT_CONFIGURED")

        payload = {
            "email": email,
            "amount": amount_minor,
            "currency": currency,
            "callback_url": callback_url,
            "metadata": metadata,
        }

        try:
            async with self._client() as client:
                response = await client.post("/transaction/initialize", json=payload)
        except httpx.HTTPError as e:
            logger.error(f"❌ Paystack initialize request failed: {e}")
            raise ExternalServiceError("Payment gateway unreachable", code="GATEWAY_UNREACHABLE") from e

        body = self._json(response)
        if response.status_code >= 400 or not body.get("status"):
            logger.error(f"❌ Paystack initialize rejected ({response.status_code}): {body.get('message')}")
            raise ExternalServiceError(
                body.get("message") or "Payment gateway rejected the request",
                code="GATEWAY_REJECTED",
            )

        data = body.get("data") or {}
        logger.info(f"✅ Paystack transaction initialized: {data.get('reference')}")
        return GatewaySession(
            url=data["authorization_url"],
            session_id=data["access_code"],
            reference=data["reference"],
        )

    async def verify(self, reference: str) -> GatewayVerification:
        """Look up the transaction outcome for a reference"""
        if not self.is_available():
            raise ExternalServiceError("Payment gateway not configured", code="GATEWAY_NOT_CONFIGURED")

        try:
            async with self._client() as client:
                response = await client.get(f"/transaction/verify/{reference}")
        except httpx.HTTPError as e:
            logger.error(f"❌ Paystack verify request failed for {reference}: {e}")
            raise ExternalServiceError("Payment gateway unreachable", code="GATEWAY_UNREACHABLE") from e

        body = self._json(response)

        # Unknown references come back as 400/404 with status false
        if response.status_code in (400, 404) and not body.get("status"):
            logger.warning(f"⚠️ Paystack has no transaction for {reference}: {body.get('message')}")
            return GatewayVerification(reference=reference, status="failed")

        if response.status_code >= 400:
            logger.error(f"❌ Paystack verify error ({response.status_code}) for {reference}")
            raise ExternalServiceError("Payment verification failed", code="GATEWAY_REJECTED")

        data = body.get("data") or {}
        metadata = data.get("metadata")
        if isinstance(metadata, str):
            try:
                metadata = json.loads(metadata)
            except ValueError:
                metadata = None

        customer = data.get("customer") or {}
        status = normalize_gateway_status(data.get("status"))
        logger.info(f"🔍 Paystack verify {reference}: {data.get('status')} -> {status}")

        return GatewayVerification(
            reference=reference,
            status=status,
            payer_email=customer.get("email"),
            amount=data.get("amount"),
            currency=data.get("currency"),
            metadata=metadata if isinstance(metadata, dict) else None,
        )

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            body = response.json()
        except ValueError:
            return {}
        return body if isinstance(body, dict) else {}


paystack_gateway = PaystackGateway()
