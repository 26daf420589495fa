"""Redis client for session lookup

Sessions are created by the identity service (login flow); this service only
resolves a session id to the buyer id it belongs to.
"""
import redis
import logging
from typing import Optional
from trackstore.core.config import settings

logger = logging.getLogger(__name__)

# Lazy initialization - no connection at import time
_client = None

# Session TTL (30 days)
SESSION_TTL = 30 * 24 * 60 * 60


def get_redis_client():
    """Get or create Redis client (lazy initialization)

    This prevents connection attempts during import, allowing mocks to be applied first.
    """
    global _client
    if _client is None:
        _client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return _client


def set_session(session_id: str, buyer_id: str) -> None:
    """Store session in Redis"""
    key = f"session:{session_id}"
    get_redis_client().setex(key, SESSION_TTL, buyer_id)


def get_session(session_id: str) -> Optional[str]:
    """Get buyer_id from session"""
    key = f"session:{session_id}"
    buyer_id = get_redis_client().get(key)
    return str(buyer_id) if buyer_id else None
