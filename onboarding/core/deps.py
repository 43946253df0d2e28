from fastapi import Depends, HTTPException, status, Request
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from typing import Optional
import secrets
import threading

from onboarding.core.config import settings
from onboarding.core.redis_client import get_client
from onboarding.services.redis_waitlist_store import RedisWaitlistStore
from onboarding.services.registration_service import RegistrationService
from onboarding.services.registry import DatabaseRegistry, HttpRegistry, Registry
from onboarding.services.waitlist_store import InMemoryWaitlistStore, WaitlistStore
from onboarding.utils.rate_limiter import allow_for_ip

security = HTTPBearer(auto_error=False)

_store: Optional[WaitlistStore] = None
_registry: Optional[Registry] = None
# Sync dependencies run in the threadpool; first requests may race on creation
_singleton_lock = threading.Lock()


def get_waitlist_store() -> WaitlistStore:
    """Process-wide waitlist store selected by WAITLIST_BACKEND."""
    global _store
    if _store is None:
        with _singleton_lock:
            if _store is None:
                if settings.WAITLIST_BACKEND == "memory":
                    _store = InMemoryWaitlistStore()
                elif settings.WAITLIST_BACKEND == "redis":
                    _store = RedisWaitlistStore(get_client(), prefix=settings.WAITLIST_KEY_PREFIX)
                else:
                    raise ValueError(f"Unknown WAITLIST_BACKEND: {settings.WAITLIST_BACKEND}")
    return _store


def get_registry() -> Registry:
    """Process-wide registry selected by REGISTRY_BACKEND."""
    global _registry
    if _registry is None:
        with _singleton_lock:
            if _registry is None:
                if settings.REGISTRY_BACKEND == "database":
                    _registry = DatabaseRegistry()
                elif settings.REGISTRY_BACKEND == "http":
                    _registry = HttpRegistry()
                else:
                    raise ValueError(f"Unknown REGISTRY_BACKEND: {settings.REGISTRY_BACKEND}")
    return _registry


async def close_registry() -> None:
    global _registry
    if _registry is not None:
        await _registry.close()
        _registry = None


def get_registration_service(
    store: WaitlistStore = Depends(get_waitlist_store),
    registry: Registry = Depends(get_registry),
) -> RegistrationService:
    return RegistrationService(store, registry, default_region=settings.DEFAULT_PHONE_REGION)


async def verify_api_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> None:
    """Require the configured bearer token; no-op when API_TOKEN is unset."""
    if not settings.API_TOKEN:
        return
    if credentials is None or not secrets.compare_digest(credentials.credentials, settings.API_TOKEN):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or missing API token",
            headers={"WWW-Authenticate": "Bearer"},
        )


def enforce_ip_rate_limit(request: Request) -> None:
    if not settings.RATE_LIMIT_ENABLED:
        return
    ip = request.client.host if request.client else "unknown"
    if not allow_for_ip(ip, settings.IP_CALL_LIMIT, settings.IP_CALL_WINDOW_SECONDS):
        raise HTTPException(status_code=429, detail="Too many requests, slow down.")
