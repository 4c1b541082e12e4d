"""Human-readable order references, e.g. APT-20261019-4F9A1C"""

import logging
import secrets
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy.orm import Session

from ...errors import ConflictError
from .repository import BookingRepository

logger = logging.getLogger(__name__)

REFERENCE_PREFIXES = {
    "appointment": "APT",
    "laundry_order": "LDR",
    "cleaning_order": "CLN",
}

MAX_ATTEMPTS = 5


def build_reference(prefix: str) -> str:
    today = datetime.now(timezone.utc).strftime("%Y%m%d")
    return f"{prefix}-{today}-{secrets.token_hex(3).upper()}"


def generate_order_reference(
    db: Session,
    resource_type: str,
    exists: Callable[[Session, str], bool] = BookingRepository.reference_exists,
) -> str:
    """Generate an order reference not used by any booking yet"""
    prefix = REFERENCE_PREFIXES[resource_type]
    for attempt in range(1, MAX_ATTEMPTS + 1):
        reference = build_reference(prefix)
        if not exists(db, reference):
            return reference
        logger.warning(f"⚠️ Order reference collision on {reference} (attempt {attempt})")
    raise ConflictError("Could not allocate an order reference", code="REFERENCE_EXHAUSTED")
