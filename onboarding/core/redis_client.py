from typing import Optional
import threading
from redis import Redis, ConnectionPool
from onboarding.core.config import settings

_pool: Optional[ConnectionPool] = None
_client: Optional[Redis] = None
_lock = threading.Lock()


def get_client() -> Redis:
    """Shared client for the waitlist store and the rate limiter."""
    global _pool, _client
    if _client is None:
        with _lock:
            if _client is None:
                _pool = ConnectionPool.from_url(settings.REDIS_URL, decode_responses=True)
                _client = Redis(connection_pool=_pool)
    return _client
