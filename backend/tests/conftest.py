import os

# Settings are read at import time: point the app at SQLite and give it a signing secret first.
os.environ.setdefault("JWT_SECRET", "test_jwt_secret")
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("COOKIE_SECURE", "true")
os.environ.setdefault("COOKIE_SAMESITE", "none")

import asyncio
from typing import Any

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from capital.core.base import Base
from capital.core.cache import RedisCache
from capital.core.database import get_db
from capital.core.security import hash_password, sign_token
from capital.dependencies.services import get_cache, get_economy_service
from capital.models.user import User
from capital.services.economy import EconomyService, EconomyStore

TEST_PASSWORD = "Password123"

ECONOMY_SNAPSHOT: dict[str, Any] = {
    "news": {"response": {"restResults": 0, "data": [], "totalResults": 0}},
    "trends": {
        "Stocks": {
            "metadata": "movers",
            "last_updated": "2025-01-01",
            "top_gainers": [],
            "top_losers": [],
            "most_actively_traded": [],
        },
        "GDP": [{"date": "2024-07-01", "value": 23400.294}],
    },
}


class FakeRedis:
    """In-memory stand-in for redis.asyncio.Redis (decode_responses=True)."""

    def __init__(self) -> None:
        self.store: dict[str, str] = {}
        self.ttls: dict[str, int] = {}

    async def get(self, key: str):
        return self.store.get(key)

    async def set(self, key: str, value: str, ex: int | None = None):
        self.store[key] = value
        if ex is not None:
            self.ttls[key] = ex
        return True

    async def delete(self, *keys: str) -> int:
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
            self.ttls.pop(key, None)
        return removed

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        return None


class StubFetcher:
    def __init__(self, result: dict[str, Any] | None = None) -> None:
        self.result = result if result is not None else ECONOMY_SNAPSHOT
        self.calls = 0

    async def fetch_all(self) -> dict[str, Any]:
        self.calls += 1
        return self.result


@pytest.fixture()
def db_engine(tmp_path):
    # File-backed SQLite with NullPool: tests drive the engine from more than one event loop.
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}", poolclass=NullPool)

    async def _create_schema():
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)

    asyncio.run(_create_schema())
    yield engine
    asyncio.run(engine.dispose())


@pytest.fixture()
def session_factory(db_engine):
    return async_sessionmaker(bind=db_engine, autoflush=False, expire_on_commit=False)


@pytest.fixture()
def run_db(session_factory):
    """
    Run a coroutine function against a fresh session, e.g. run_db(lambda db: ...).
    """

    def _run(fn):
        async def _inner():
            async with session_factory() as db:
                return await fn(db)

        return asyncio.run(_inner())

    return _run


@pytest.fixture()
def fake_redis():
    return FakeRedis()


@pytest.fixture()
def cache(fake_redis):
    return RedisCache(client=fake_redis)


@pytest.fixture()
def fetcher():
    return StubFetcher()


@pytest.fixture()
def economy_service(cache, session_factory, fetcher):
    return EconomyService(cache, EconomyStore(session_factory), fetcher)


@pytest.fixture()
def app(session_factory, cache, economy_service):
    from capital.main import app as fastapi_app

    async def override_get_db():
        async with session_factory() as db:
            yield db

    fastapi_app.dependency_overrides[get_db] = override_get_db
    fastapi_app.dependency_overrides[get_cache] = lambda: cache
    fastapi_app.dependency_overrides[get_economy_service] = lambda: economy_service
    yield fastapi_app
    fastapi_app.dependency_overrides.clear()


@pytest.fixture()
def users(session_factory):
    """
    Two distinct users for ownership / isolation tests.
    """

    async def _seed():
        user_a = User(
            username="test_user",
            name="Test User",
            email="test@example.com",
            password=hash_password(TEST_PASSWORD),
        )
        user_b = User(
            username="other_user",
            name="Other User",
            email="other@example.com",
            password=hash_password(TEST_PASSWORD),
        )
        async with session_factory() as db:
            db.add_all([user_a, user_b])
            await db.commit()
        return user_a, user_b

    return asyncio.run(_seed())


@pytest.fixture()
def anon_client(app):
    # https so Secure cookies are stored and sent back
    with TestClient(app, base_url="https://testserver") as c:
        yield c


@pytest.fixture()
def client(anon_client, users):
    """
    Client holding a valid session for user_a.
    """
    user_a, _ = users
    authenticate(anon_client, user_a.user_id)
    return anon_client


def authenticate(c: TestClient, user_id: str) -> None:
    c.cookies.set("access_token", sign_token(user_id, "60min"))
    c.cookies.set("refresh_token", sign_token(user_id, "7d"))


def set_cookie_headers(res) -> dict[str, str]:
    """Last Set-Cookie header per cookie name."""
    out: dict[str, str] = {}
    headers = res.headers
    values = headers.get_list("set-cookie") if hasattr(headers, "get_list") else headers.getlist("set-cookie")
    for header in values:
        out[header.split("=", 1)[0]] = header
    return out


def is_cleared(header: str) -> bool:
    return "max-age=0" in header.lower()


def cookie_attribute(header: str, name: str) -> str | None:
    for part in header.split(";")[1:]:
        key, _, value = part.strip().partition("=")
        if key.lower() == name.lower():
            return value
    return None
