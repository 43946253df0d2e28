from onboarding.core.redis_client import get_client


def allow(key: str, limit: int, window_seconds: int) -> bool:
    """Return True if action under key is allowed within window, else False.

    Uses INCR + EXPIRE (nx) for a fixed window per key.
    """
    r = get_client()
    with r.pipeline() as pipe:
        pipe.incr(key, 1)
        pipe.expire(key, window_seconds, nx=True)
        count, _ = pipe.execute()
    return int(count) <= limit


def allow_for_ip(ip: str, limit: int, window_seconds: int = 60) -> bool:
    key = f"ratelimit:ip:{ip or 'unknown'}"
    return allow(key, limit, window_seconds)
