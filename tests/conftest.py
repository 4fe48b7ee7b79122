"""Shared test fixtures for Vanguard-Engine."""

import json
import time
from typing import Any

import pytest
from httpx import ASGITransport, AsyncClient

from vanguard_engine.common.cache import Cache
from vanguard_engine.common.config import VanguardSettings
from vanguard_engine.users.models import UserModel


SECRET_KEY = "test-session-secret-for-unit-tests"
QR_SECRET = "test-qr-secret-for-unit-tests"
PASSWORD = "correct-horse-battery"


class MemoryCache(Cache):
    """In-process Cache with TTLs, standing in for Redis in tests.

    Values round-trip through JSON like they do in Redis.
    """

    def __init__(self):
        self._data: dict[str, tuple[str, float]] = {}

    def _live(self, key: str) -> tuple[str, float] | None:
        entry = self._data.get(key)
        if entry is None:
            return None
        if entry[1] <= time.monotonic():
            del self._data[key]
            return None
        return entry

    def keys(self) -> list[str]:
        return [k for k in list(self._data) if self._live(k) is not None]

    async def get(self, key: str) -> Any | None:
        entry = self._live(key)
        return None if entry is None else json.loads(entry[0])

    async def set(self, key: str, value: Any, ttl: int) -> None:
        self._data[key] = (json.dumps(value, default=str), time.monotonic() + ttl)

    async def delete(self, *keys: str) -> None:
        for key in keys:
            self._data.pop(key, None)

    async def incr(self, key: str, ttl: int) -> int:
        entry = self._live(key)
        if entry is None:
            count, expires = 1, time.monotonic() + ttl
        else:
            count, expires = json.loads(entry[0]) + 1, entry[1]
        self._data[key] = (json.dumps(count), expires)
        return count


def _make_settings(**overrides) -> VanguardSettings:
    defaults = {
        "secret_key": SECRET_KEY,
        "qr_secret": QR_SECRET,
        "db_url": "sqlite+aiosqlite://",
        "bcrypt_rounds": 4,
        "app_url": "https://visits.example.com",
    }
    defaults.update(overrides)
    return VanguardSettings(**defaults)


@pytest.fixture
def settings():
    return _make_settings()


@pytest.fixture
def password():
    return PASSWORD


@pytest.fixture
def cache():
    return MemoryCache()


@pytest.fixture
async def db(settings):
    from vanguard_engine.common.database import DatabaseManager

    manager = DatabaseManager(settings)
    await manager.init()
    await manager.create_all()
    yield manager
    await manager.close()


@pytest.fixture
def role_store(settings, cache):
    from vanguard_engine.rbac.service import RoleStore
    return RoleStore(settings, cache)


@pytest.fixture
def issuer(settings):
    from vanguard_engine.auth.service import SessionIssuer
    return SessionIssuer(settings)


@pytest.fixture
def validator(settings, cache):
    from vanguard_engine.auth.service import SessionValidator
    return SessionValidator(settings, cache)


@pytest.fixture
def user_service(settings, role_store, validator):
    from vanguard_engine.users.service import UserService
    return UserService(settings, role_store, validator)


@pytest.fixture
def tenant_service(role_store, validator):
    from vanguard_engine.tenants.service import TenantService
    return TenantService(role_store, validator)


@pytest.fixture
def visitor_service():
    from vanguard_engine.visitors.service import VisitorService
    return VisitorService()


@pytest.fixture
def visit_service(settings, cache):
    from vanguard_engine.visits.service import VisitService
    return VisitService(settings, cache)


@pytest.fixture
async def seeded(db, role_store, tenant_service, user_service):
    """Two tenants; tenant A has one principal per default role.

    Returns a dict of ids keyed by role name plus ``tenant_a``/``tenant_b``
    and ``other_owner`` (the owner in tenant B).
    """
    async with db.get_session() as session:
        await role_store.ensure_catalog(session)
        tenant_a = await tenant_service.ensure_tenant(session, "Acme Towers", "acme")
        tenant_b = await tenant_service.ensure_tenant(session, "Beta Plaza", "beta")
        ids = {"tenant_a": tenant_a.id, "tenant_b": tenant_b.id}
        for role_key in ("tenant_owner", "receptionist", "security", "resident"):
            user = await user_service.create_user(
                session, tenant_a.id, f"{role_key}@acme.com", PASSWORD,
                first_name=role_key.title(), last_name="Acme", role_key=role_key,
            )
            ids[role_key] = user.id
        other = await user_service.create_user(
            session, tenant_b.id, "owner@beta.com", PASSWORD,
            first_name="Olive", last_name="Beta", role_key="tenant_owner",
        )
        ids["other_owner"] = other.id
    return ids


@pytest.fixture
async def claims_for(db, issuer):
    """Factory: fresh session claims for a principal id."""

    async def _claims(principal_id: str):
        async with db.get_session() as session:
            user = await session.get(UserModel, principal_id)
            return issuer.issue(user).claims

    return _claims


# ── HTTP fixtures ──


@pytest.fixture
def app(monkeypatch):
    """Create a test app with in-memory DB and an in-process cache."""
    monkeypatch.setenv("VANGUARD_DB_URL", "sqlite+aiosqlite://")
    monkeypatch.setenv("VANGUARD_SECRET_KEY", SECRET_KEY)
    monkeypatch.setenv("VANGUARD_QR_SECRET", QR_SECRET)
    monkeypatch.setenv("VANGUARD_BCRYPT_ROUNDS", "4")

    # Clear caches and singletons so new env vars take effect
    from vanguard_engine.common.config import get_settings
    get_settings.cache_clear()

    from vanguard_engine.deps import reset_singletons, set_cache
    reset_singletons()
    set_cache(MemoryCache())

    from vanguard_engine.app import create_app
    return create_app()


@pytest.fixture
async def client(app):
    # Manually init DB since ASGITransport doesn't run lifespan
    from vanguard_engine.deps import get_db, get_role_store
    db = get_db()
    await db.init()
    await db.create_all()
    async with db.get_session() as session:
        await get_role_store().ensure_catalog(session)

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    await db.close()


@pytest.fixture
async def api_seed(client):
    """Tenant with owner, receptionist and security accounts, created through the services."""
    from vanguard_engine.deps import get_db, get_tenant_service, get_user_service

    db = get_db()
    ids = {}
    async with db.get_session() as session:
        tenant = await get_tenant_service().ensure_tenant(session, "Acme Towers", "acme")
        ids["tenant"] = tenant.id
        for role_key in ("tenant_owner", "receptionist", "security"):
            user = await get_user_service().create_user(
                session, tenant.id, f"{role_key}@acme.com", PASSWORD,
                first_name=role_key.title(), last_name="Acme", role_key=role_key,
            )
            ids[role_key] = user.id
    return ids


@pytest.fixture
def login(client):
    """Factory: log in and return Authorization headers."""

    async def _login(email: str, password: str = PASSWORD) -> dict[str, str]:
        resp = await client.post("/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.text
        return {"Authorization": f"Bearer {resp.json()['access_token']}"}

    return _login
