"""
Pytest fixtures for test database, fake booking provider, client, and
authentication.

Each test gets its own SQLite file database and a fresh in-memory TiQR
stand-in served through httpx.MockTransport, so no network or Postgres is
needed.
"""

import itertools
import json
from typing import AsyncGenerator, Callable, Optional

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncEngine

from festreg.context import AppContext, build_context
from festreg.core.config import Settings
from festreg.core.security import create_access_token
from festreg.db.base import Base
from festreg.db.session import make_engine
from festreg.main import create_app
from festreg.models.registration import Domain, Registration
from festreg.services.store import RegistrationRepository

WEBHOOK_TOKEN = "test-webhook-secret"


class FakeTiqr:
    """
    In-memory TiQR API. Records every call and keeps a fetchable view of each
    booking it has created.
    """

    def __init__(self):
        self.calls: list[tuple[str, str, Optional[dict]]] = []
        self.bookings: dict[str, dict] = {}
        self.fail_status: Optional[int] = None
        self.create_status = "pending"
        self.omit_payment_url = False
        self._ids = itertools.count(1)

    def handler(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content) if request.content else None
        path = request.url.path
        self.calls.append((request.method, path, body))

        if self.fail_status is not None:
            return httpx.Response(self.fail_status, json={"detail": "provider failure"})

        if request.method == "POST" and path == "/booking/":
            return httpx.Response(200, json=self._create(body))
        if request.method == "POST" and path == "/booking/bulk/":
            return httpx.Response(200, json=self._create_bulk(body))
        if request.method == "GET" and path.startswith("/booking/"):
            uid = path.strip("/").split("/")[-1]
            if uid not in self.bookings:
                return httpx.Response(404, json={"detail": "not found"})
            return httpx.Response(200, json=self.bookings[uid])
        return httpx.Response(404, json={"detail": "unknown route"})

    def _store(self, uid: str, ticket: int, meta_data: Optional[dict]) -> str:
        payment_id = f"pay_{uid}"
        self.bookings[uid] = {
            "status": self.create_status,
            "payment": {"payment_id": payment_id},
            "ticket": {"id": ticket},
            "meta_data": meta_data,
            "checksum": f"chk_{uid}",
        }
        return payment_id

    def _payment(self, payment_id: str) -> dict:
        if self.omit_payment_url:
            return {}
        return {"url_to_redirect": f"https://pay.test/{payment_id}"}

    def _create(self, body: dict) -> dict:
        uid = f"bk_{next(self._ids)}"
        payment_id = self._store(uid, body["ticket"], body.get("meta_data"))
        return {
            "booking": {"uid": uid, "status": self.create_status},
            "payment": self._payment(payment_id),
            "ticket": {"id": body["ticket"]},
        }

    def _create_bulk(self, body: dict) -> dict:
        parent = f"grp_{next(self._ids)}"
        bookings = body["bookings"]
        payment_id = self._store(parent, bookings[0]["ticket"], bookings[0].get("meta_data"))
        children = []
        for entry in bookings:
            child = f"bk_{next(self._ids)}"
            self._store(child, entry["ticket"], entry.get("meta_data"))
            children.append({
                "uid": child,
                "status": self.create_status,
                "meta_data": {"uid": entry["meta_data"]["uid"]},
            })
        return {
            "booking": {"uid": parent, "status": self.create_status, "child_bookings": children},
            "payment": self._payment(payment_id),
        }

    def set_status(self, uid: str, status: Optional[str]) -> None:
        self.bookings[uid]["status"] = status

    def requests_to(self, method: str, path_prefix: str) -> list[Optional[dict]]:
        return [body for m, p, body in self.calls if m == method and p.startswith(path_prefix)]

    @property
    def creates(self) -> list[dict]:
        return [body for m, p, body in self.calls if m == "POST" and p == "/booking/"]

    @property
    def bulk_creates(self) -> list[dict]:
        return [body for m, p, body in self.calls if m == "POST" and p == "/booking/bulk/"]

    @property
    def fetches(self) -> list[str]:
        return [p for m, p, _ in self.calls if m == "GET"]


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        _env_file=None,
        ENVIRONMENT="test",
        DATABASE_URL=f"sqlite+aiosqlite:///{tmp_path}/test.db",
        REDIS_ENABLED=False,
        TIQR_BASE_URL="https://tiqr.test",
        TIQR_API_TOKEN="tiqr-test-token",
        PAYMENT_BASE_URL="https://pay.test/",
        FRONTEND_BASE_URL="https://fest.test",
        WEBHOOK_TOKEN=WEBHOOK_TOKEN,
        FREE_EVENT_IDS=[7],
    )


@pytest_asyncio.fixture(scope="function")
async def engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """Create tables, yield the engine, then dispose of it."""
    engine = make_engine(settings.DATABASE_URL, settings)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def fake_tiqr() -> FakeTiqr:
    return FakeTiqr()


@pytest_asyncio.fixture(scope="function")
async def context(settings: Settings, engine: AsyncEngine, fake_tiqr: FakeTiqr) -> AsyncGenerator[AppContext, None]:
    ctx = await build_context(
        settings,
        engine=engine,
        provider_transport=httpx.MockTransport(fake_tiqr.handler),
    )
    yield ctx
    await ctx.provider.aclose()


@pytest_asyncio.fixture(scope="function")
async def client(context: AppContext) -> AsyncGenerator[AsyncClient, None]:
    app = create_app(context)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def auth_for() -> Callable[..., dict]:
    """Authorization headers for an arbitrary uid/email."""

    def make(uid: str, email: Optional[str] = None) -> dict:
        token = create_access_token(uid, email=email or f"{uid}@example.com")
        return {"Authorization": f"Bearer {token}"}

    return make


@pytest.fixture
def auth_headers(auth_for) -> dict:
    return auth_for("user-1", "user1@example.com")


@pytest.fixture
def webhook_headers() -> dict:
    return {"x-webhook-token": WEBHOOK_TOKEN}


async def load_registration(
    context: AppContext,
    domain: Domain,
    owner_uid: str,
    item_id: str = "",
) -> Optional[Registration]:
    return await context.store.read(lambda repo: repo.get(domain, owner_uid, item_id))


async def count_registrations(context: AppContext) -> int:
    async def work(repo: RegistrationRepository) -> int:
        result = await repo.session.execute(select(func.count()).select_from(Registration))
        return result.scalar_one()

    return await context.store.read(work)


async def insert_registration(context: AppContext, **fields) -> Registration:
    fields.setdefault("item_id", "")
    fields.setdefault("members", {})
    fields.setdefault("details", {})

    async def work(repo: RegistrationRepository) -> Registration:
        return repo.add(Registration(**fields))

    return await context.store.run_in_transaction(work, name="test_insert")
