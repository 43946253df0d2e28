from abc import ABC, abstractmethod
from typing import Optional
import logging

import httpx
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from fastapi.concurrency import run_in_threadpool

from onboarding.core.config import settings
from onboarding.core.database import SessionLocal
from onboarding.core.exceptions import RegistryUnavailableError
from onboarding.models.onboarding_settings import OnboardingSettings
from onboarding.models.registered_user import RegisteredUser
from onboarding.schemas.onboarding import PolicySnapshot
from onboarding.services.identity import Identity

logger = logging.getLogger(__name__)


class Registry(ABC):
    """Source of onboarding policy and of completed registrations.

    Every method raises RegistryUnavailableError when the backing service
    cannot answer.
    """

    @abstractmethod
    async def get_policy(self) -> PolicySnapshot:
        ...

    @abstractmethod
    async def identity_is_registered(self, identity: Identity) -> bool:
        ...

    @abstractmethod
    async def commit_registration(self, identity: Identity) -> bool:
        """Register identity. Idempotent: an already registered identity returns True."""

    async def close(self) -> None:
        pass


class DatabaseRegistry(Registry):
    """Registry backed by the onboarding_settings and registered_users tables."""

    def __init__(self, session_factory=SessionLocal):
        self.session_factory = session_factory

    async def get_policy(self):
        return await run_in_threadpool(self._load_policy)

    async def identity_is_registered(self, identity):
        return await run_in_threadpool(self._is_registered, identity)

    async def commit_registration(self, identity):
        return await run_in_threadpool(self._commit, identity)

    def _load_policy(self) -> PolicySnapshot:
        db = self.session_factory()
        try:
            row = db.query(OnboardingSettings).order_by(OnboardingSettings.id).first()
            if row is None:
                raise RegistryUnavailableError("No onboarding settings found")
            return PolicySnapshot(
                capacity=row.waitlist_limit,
                registered_count=row.signed_up_users,
                registration_cap=row.signed_up_user_limit,
                signup_cutoff=row.signup_cutoff,
                registration_mode=row.allowed_registrations,
            )
        except ValidationError as e:
            raise RegistryUnavailableError("Invalid onboarding settings", details=str(e)) from e
        except SQLAlchemyError as e:
            logger.error(f"Loading onboarding settings failed: {str(e)}")
            raise RegistryUnavailableError("Failed to load onboarding settings", details=str(e)) from e
        finally:
            db.close()

    def _is_registered(self, identity: Identity) -> bool:
        db = self.session_factory()
        try:
            found = db.query(RegisteredUser.id).filter(RegisteredUser.identity == identity.value).first()
            return found is not None
        except SQLAlchemyError as e:
            logger.error(f"Registered-user lookup failed: {str(e)}")
            raise RegistryUnavailableError("Failed to check registered users", details=str(e)) from e
        finally:
            db.close()

    def _commit(self, identity: Identity) -> bool:
        db = self.session_factory()
        try:
            if db.query(RegisteredUser.id).filter(RegisteredUser.identity == identity.value).first():
                return True
            db.add(RegisteredUser(identity=identity.value, identity_kind=identity.kind.value))
            settings_id = db.query(OnboardingSettings.id).order_by(OnboardingSettings.id).scalar()
            if settings_id is None:
                db.rollback()
                raise RegistryUnavailableError("No onboarding settings found")
            db.query(OnboardingSettings).filter(OnboardingSettings.id == settings_id).update(
                {OnboardingSettings.signed_up_users: OnboardingSettings.signed_up_users + 1},
                synchronize_session=False,
            )
            db.commit()
            return True
        except IntegrityError:
            db.rollback()
            # identity registered concurrently; the other commit counted it
            return True
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Registration commit failed: {str(e)}")
            raise RegistryUnavailableError("Failed to commit registration", details=str(e)) from e
        finally:
            db.close()


class HttpRegistry(Registry):
    """Registry served by a remote onboarding API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        headers = {"Content-Type": "application/json"}
        api_key = api_key if api_key is not None else settings.REGISTRY_API_KEY
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.REGISTRY_URL,
            headers=headers,
            timeout=timeout or settings.REGISTRY_TIMEOUT_SECONDS,
            transport=transport,
        )

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        try:
            resp = await self._client.request(method, url, **kwargs)
            resp.raise_for_status()
            return resp
        except httpx.HTTPStatusError as e:
            logger.error(f"Registry error status={e.response.status_code} url={url} response={e.response.text}")
            raise RegistryUnavailableError(
                f"Registry returned {e.response.status_code}", details=e.response.text
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"Registry request failed url={url}: {str(e)}")
            raise RegistryUnavailableError("Registry request failed", details=str(e)) from e

    async def get_policy(self):
        resp = await self._request("GET", "/onboarding/settings")
        try:
            return PolicySnapshot.model_validate(resp.json())
        except (ValueError, ValidationError) as e:
            raise RegistryUnavailableError("Malformed onboarding settings", details=str(e)) from e

    async def identity_is_registered(self, identity):
        resp = await self._request("GET", "/users/exists", params={"username": identity.value})
        try:
            return bool(resp.json().get("exists"))
        except (ValueError, AttributeError) as e:
            raise RegistryUnavailableError("Malformed user-exists response", details=str(e)) from e

    async def commit_registration(self, identity):
        resp = await self._request(
            "POST", "/users/register", json={"username": identity.value, "kind": identity.kind.value}
        )
        try:
            return bool(resp.json().get("success"))
        except (ValueError, AttributeError) as e:
            raise RegistryUnavailableError("Malformed registration response", details=str(e)) from e

    async def close(self):
        await self._client.aclose()
