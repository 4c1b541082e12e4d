"""
Pending booking hints
What the client was booking when checkout started, kept in Redis until the
payment return page has used it
"""

import json
import logging
from typing import Optional

from .config import PENDING_BOOKING_TTL_SECONDS
from .redis_client import get_redis_client

logger = logging.getLogger(__name__)


class PendingBookingStore:
    """
    Per-user hint saved when checkout starts, read and cleared on return.

    Redis being down only loses the hint: every method logs and returns a
    falsy value instead of raising.
    """

    def __init__(self, redis_client=None, ttl: int = PENDING_BOOKING_TTL_SECONDS):
        self._redis = redis_client
        self.ttl = ttl

    @staticmethod
    def _key(user_id: str) -> str:
        return f"pending_booking:{user_id}"

    def _client(self):
        if self._redis is None:
            try:
                self._redis = get_redis_client()
            except Exception as e:
                logger.warning(f"⚠️ Pending booking hints unavailable: {e}")
                return None
        return self._redis

    def save(self, user_id: str, hint: dict) -> bool:
        client = self._client()
        if client is None:
            return False
        try:
            client.setex(self._key(user_id), self.ttl, json.dumps(hint, default=str))
            return True
        except Exception as e:
            logger.error(f"❌ Could not save pending booking for {user_id}: {e}")
            return False

    def get(self, user_id: str) -> Optional[dict]:
        client = self._client()
        if client is None:
            return None
        try:
            raw = client.get(self._key(user_id))
        except Exception as e:
            logger.error(f"❌ Could not read pending booking for {user_id}: {e}")
            return None
        return json.loads(raw) if raw else None

    def clear(self, user_id: str) -> bool:
        client = self._client()
        if client is None:
            return False
        try:
            client.delete(self._key(user_id))
            return True
        except Exception as e:
            logger.error(f"❌ Could not clear pending booking for {user_id}: {e}")
            return False


pending_bookings = PendingBookingStore()
