"""Test fixtures: a fresh SQLite database file per test.

Testing pattern for async SQLAlchemy + FastAPI:

1. Each test gets its own database file under tmp_path with the schema
   created from the models. NullPool hands every session its own
   connection, so concurrent sessions are separate transactions and
   serialise on SQLite's write lock like they would on a real server.
2. get_db is overridden to hand each request its own session from that
   engine, so concurrent requests really are concurrent sessions.
3. app.state.metrics_hub is swapped for a hub bound to the same engine.

Nothing persists across tests.
"""

import os

os.environ.setdefault("SMARTSELL_DATABASE_URL", "sqlite+aiosqlite://")

import asyncio
import json
from decimal import Decimal

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.pool import NullPool

from smartsell.db.engine import build_engine, get_db
from smartsell.db.models import Base, Listing
from smartsell.main import app
from smartsell.realtime.hub import MetricsHub


class FakeSubscriber:
    """In-memory stand-in for a WebSocket connection."""

    def __init__(self, fail: bool = False, delay: float = 0.0):
        self.open = True
        self.fail = fail
        self.delay = delay
        self.messages: list[dict] = []

    @property
    def is_open(self) -> bool:
        return self.open

    async def send_text(self, data: str) -> None:
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise RuntimeError("socket went away")
        self.messages.append(json.loads(data))

    def close(self) -> None:
        self.open = False

    @property
    def updates(self) -> list[dict]:
        return [m for m in self.messages if m["type"] == "metrics_update"]


@pytest_asyncio.fixture()
async def engine(tmp_path):
    engine = build_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'metrics.db'}", poolclass=NullPool
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def hub(session_factory):
    return MetricsHub(session_factory, send_timeout=0.2, max_subscribers_per_listing=5)


@pytest.fixture
def make_subscriber():
    return FakeSubscriber


@pytest.fixture
def make_listing(session_factory):
    """Insert a listing directly; pass listing_id to pin its primary key."""

    async def _make(listing_id: int | None = None, **overrides) -> Listing:
        fields = {
            "title": "Vintage camera",
            "description": "Film SLR, works great",
            "price": Decimal("120.00"),
            "image_url": "data:image/png;base64,AAAA",
            "weight": Decimal("2"),
            "width": Decimal("10"),
            "height": Decimal("10"),
            "length": Decimal("10"),
            "shipping_from_zip": "10001",
        }
        fields.update(overrides)
        if listing_id is not None:
            fields["id"] = listing_id
        async with session_factory() as session:
            listing = Listing(**fields)
            session.add(listing)
            await session.commit()
            return listing

    return _make


@pytest_asyncio.fixture()
async def client(session_factory, hub):
    """HTTP client with get_db and the metrics hub bound to the test database."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    previous_hub = app.state.metrics_hub
    app.state.metrics_hub = hub
    app.dependency_overrides[get_db] = override_get_db

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
    app.state.metrics_hub = previous_hub
