"""
Webhook Security Module

Signature verification for payment gateway webhooks. Paystack signs the raw
request body with HMAC-SHA512 keyed by the account secret key and sends the
hex digest in the x-paystack-signature header.
"""

import hashlib
import hmac
import logging
from typing import Optional

from fastapi import HTTPException, Request

logger = logging.getLogger(__name__)

PAYSTACK_SIGNATURE_HEADER = "x-paystack-signature"


class WebhookSignatureError(Exception):
    """Raised when webhook signature verification fails"""

    pass


def constant_time_compare(a: str, b: str) -> bool:
    """Compare two strings in constant time"""
    if not a or not b:
        return False
    return hmac.compare_digest(a, b)


def compute_hmac_sha512(secret: str, payload: bytes) -> str:
    """Compute hex HMAC-SHA512 signature of payload"""
    return hmac.new(secret.encode("utf-8"), payload, hashlib.sha512).hexdigest()


def verify_paystack_signature(secret: Optional[str], payload: bytes, signature: Optional[str]) -> None:
    """Raise WebhookSignatureError unless signature matches the payload"""
    if not secret:
        raise WebhookSignatureError("Webhook secret not configured")
    if not signature:
        raise WebhookSignatureError("Missing webhook signature")

    expected = compute_hmac_sha512(secret, payload)
    if not constant_time_compare(expected, signature.strip().lower()):
        raise WebhookSignatureError("Invalid webhook signature")


async def verify_paystack_webhook(request: Request, secret: Optional[str]) -> bytes:
    """
    Verify a Paystack webhook request and return the raw body.

    Raises HTTPException(401) when the signature is missing or wrong.
    """
    raw_body = await request.body()
    signature = request.headers.get(PAYSTACK_SIGNATURE_HEADER)

    try:
        verify_paystack_signature(secret, raw_body, signature)
    except WebhookSignatureError as e:
        logger.error(f"🚫 Paystack webhook rejected: {e}")
        raise HTTPException(status_code=401, detail=str(e)) from e

    logger.info(f"✅ Paystack webhook signature verified ({len(raw_body)} bytes)")
    return raw_body
