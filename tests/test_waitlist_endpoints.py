import pytest
from httpx import ASGITransport, AsyncClient

from onboarding.core.config import settings
from onboarding.core.deps import enforce_ip_rate_limit, get_registration_service
from onboarding.main import app
from onboarding.models.onboarding_settings import RegistrationMode
from onboarding.services.registration_service import RegistrationService

from conftest import StubRegistry, make_policy


@pytest.fixture
def client_factory(memory_store):
    def _build(registry: StubRegistry) -> AsyncClient:
        app.dependency_overrides[get_registration_service] = lambda: RegistrationService(memory_store, registry)
        app.dependency_overrides[enforce_ip_rate_limit] = lambda: None
        return AsyncClient(transport=ASGITransport(app=app), base_url="http://test")

    yield _build
    app.dependency_overrides.clear()


@pytest.mark.asyncio
async def test_health():
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        resp = await ac.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "healthy"}


@pytest.mark.asyncio
async def test_add_to_waitlist_is_idempotent(client_factory):
    async with client_factory(StubRegistry(make_policy(capacity=2))) as ac:
        first = await ac.post("/api/v1/waitlist/add", json={"username": "a@x.com", "metadata": {"ref": "x"}})
        again = await ac.post("/api/v1/waitlist/add", json={"username": "A@x.com"})

    assert first.status_code == 200
    body = first.json()
    assert body["success"] is True
    assert body["position"] == 1
    assert body["already_existed"] is False
    assert body["metadata"]["request_id"].startswith("req_")
    assert again.json()["position"] == 1
    assert again.json()["already_existed"] is True


@pytest.mark.asyncio
async def test_full_waitlist_returns_409(client_factory):
    async with client_factory(StubRegistry(make_policy(capacity=1))) as ac:
        await ac.post("/api/v1/waitlist/add", json={"username": "a@x.com"})
        resp = await ac.post("/api/v1/waitlist/add", json={"username": "b@x.com"})

    assert resp.status_code == 409
    assert resp.json() == {"detail": "Waitlist is full (limit: 1)", "limit": 1}


@pytest.mark.asyncio
async def test_invalid_username_returns_400(client_factory):
    async with client_factory(StubRegistry(make_policy())) as ac:
        resp = await ac.post("/api/v1/waitlist/add", json={"username": "hello world"})
        missing = await ac.get("/api/v1/waitlist/exists", params={"username": " "})

    assert resp.status_code == 400
    assert resp.json()["error_code"] == "invalid_identity"
    assert missing.status_code == 400
    assert missing.json()["error_code"] == "missing_username"


@pytest.mark.asyncio
async def test_can_sign_up_and_exists(client_factory):
    async with client_factory(StubRegistry(make_policy(signup_cutoff=1))) as ac:
        await ac.post("/api/v1/waitlist/add", json={"username": "+16502530000"})
        status = await ac.get("/api/v1/waitlist/can-sign-up", params={"username": "+1 650 253 0000"})
        exists = await ac.get("/api/v1/waitlist/exists", params={"username": "+16502530000"})
        absent = await ac.get("/api/v1/waitlist/exists", params={"username": "b@x.com"})

    body = status.json()
    assert (body["on_waitlist"], body["can_sign_up"], body["position"]) == (True, True, 1)
    assert body["already_registered"] is False
    assert exists.json()["on_waitlist"] is True
    assert absent.json()["on_waitlist"] is False


@pytest.mark.asyncio
async def test_register_then_already_registered(client_factory):
    async with client_factory(StubRegistry(make_policy())) as ac:
        first = await ac.post("/api/v1/register", json={"username": "a@x.com"})
        second = await ac.post("/api/v1/register", json={"username": "a@x.com"})

    assert first.status_code == 200
    assert first.json()["status"] == "registered"
    assert first.json()["registered_signup"] is True
    assert first.json()["on_waitlist"] is False
    assert first.json()["metadata"]["message"] == "User successfully registered"
    assert second.json()["status"] == "already_registered"
    assert second.json()["outcome"] == "already_registered"


@pytest.mark.asyncio
async def test_register_falls_back_to_waitlist(client_factory):
    registry = StubRegistry(make_policy(registration_mode=RegistrationMode.WAITLIST_ONLY))
    async with client_factory(registry) as ac:
        resp = await ac.post("/api/v1/register", json={"username": "a@x.com"})

    body = resp.json()
    assert resp.status_code == 200
    assert body["status"] == "waitlisted"
    assert body["registered_signup"] is False
    assert body["waitlist_position"] == 1
    assert body["already_existed_on_waitlist"] is False
    assert body["outcome"] == "waitlist_only_ineligible"


@pytest.mark.asyncio
async def test_register_when_waitlist_full_returns_409(client_factory):
    registry = StubRegistry(make_policy(capacity=0, registration_mode=RegistrationMode.WAITLIST_ONLY))
    async with client_factory(registry) as ac:
        resp = await ac.post("/api/v1/register", json={"username": "a@x.com"})

    assert resp.status_code == 409
    assert resp.json()["status"] == "waitlist_full"


@pytest.mark.asyncio
async def test_register_commit_failure_returns_502(client_factory):
    async with client_factory(StubRegistry(make_policy(), commit_result=False)) as ac:
        resp = await ac.post("/api/v1/register", json={"username": "a@x.com"})

    assert resp.status_code == 502
    assert resp.json()["status"] == "registry_error"
    assert resp.json()["registered_signup"] is False


@pytest.mark.asyncio
async def test_registry_down_returns_503(client_factory):
    async with client_factory(StubRegistry(make_policy(), policy_error=True)) as ac:
        resp = await ac.post("/api/v1/register", json={"username": "a@x.com"})

    assert resp.status_code == 503
    assert resp.json() == {"detail": "Onboarding registry unavailable"}


@pytest.mark.asyncio
async def test_api_token_required_when_configured(client_factory, monkeypatch):
    monkeypatch.setattr(settings, "API_TOKEN", "s3cret")
    async with client_factory(StubRegistry(make_policy())) as ac:
        missing = await ac.get("/api/v1/waitlist/exists", params={"username": "a@x.com"})
        wrong = await ac.get(
            "/api/v1/waitlist/exists", params={"username": "a@x.com"}, headers={"Authorization": "Bearer nope"}
        )
        ok = await ac.get(
            "/api/v1/waitlist/exists", params={"username": "a@x.com"}, headers={"Authorization": "Bearer s3cret"}
        )

    assert missing.status_code == 401
    assert wrong.status_code == 401
    assert ok.status_code == 200


@pytest.mark.asyncio
async def test_rate_limit_rejects_with_429(client_factory, monkeypatch):
    monkeypatch.setattr(settings, "RATE_LIMIT_ENABLED", True)
    monkeypatch.setattr("onboarding.core.deps.allow_for_ip", lambda ip, limit, window: False)
    async with client_factory(StubRegistry(make_policy())) as ac:
        app.dependency_overrides.pop(enforce_ip_rate_limit)
        resp = await ac.get("/api/v1/waitlist/exists", params={"username": "a@x.com"})

    assert resp.status_code == 429
    assert resp.json()["detail"] == "Too many requests, slow down."
