import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from onboarding import models  # noqa: F401
from onboarding.core.database import Base
from onboarding.core.exceptions import RegistryUnavailableError
from onboarding.models.onboarding_settings import RegistrationMode
from onboarding.schemas.onboarding import PolicySnapshot
from onboarding.services.registration_service import RegistrationService
from onboarding.services.registry import Registry
from onboarding.services.waitlist_store import InMemoryWaitlistStore


def make_policy(**overrides) -> PolicySnapshot:
    values = {
        "capacity": 100,
        "registered_count": 0,
        "registration_cap": 0,
        "signup_cutoff": 5,
        "registration_mode": RegistrationMode.OPEN,
    }
    values.update(overrides)
    return PolicySnapshot(**values)


class StubRegistry(Registry):
    """In-process registry recording every call."""

    def __init__(
        self, policy: PolicySnapshot, registered=(), commit_result=True, commit_error=False,
        policy_error=False, lookup_error=False,
    ):
        self.policy = policy
        self.registered = set(registered)
        self.commit_result = commit_result
        self.commit_error = commit_error
        self.policy_error = policy_error
        self.lookup_error = lookup_error
        self.policy_calls = 0
        self.commit_calls = []

    async def get_policy(self):
        self.policy_calls += 1
        if self.policy_error:
            raise RegistryUnavailableError("registry down")
        return self.policy

    async def identity_is_registered(self, identity):
        if self.lookup_error:
            raise RegistryUnavailableError("registry down")
        return identity.value in self.registered

    async def commit_registration(self, identity):
        self.commit_calls.append(identity.value)
        if self.commit_error:
            raise RegistryUnavailableError("registry down")
        if not self.commit_result:
            return False
        if identity.value not in self.registered:
            self.registered.add(identity.value)
            self.policy = self.policy.model_copy(update={"registered_count": self.policy.registered_count + 1})
        return True


@pytest.fixture
def memory_store():
    return InMemoryWaitlistStore()


@pytest.fixture
def service_factory(memory_store):
    def _build(registry: Registry, store=None) -> RegistrationService:
        return RegistrationService(store if store is not None else memory_store, registry)
    return _build


@pytest.fixture
def db_session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    Base.metadata.drop_all(bind=engine)
    engine.dispose()
