"""Shared fixtures: in-memory database, controllable clock, fake email channel."""

import os

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")
os.environ.setdefault("TRACING_ENABLED", "false")
os.environ.setdefault("API_KEY", "test-key")
os.environ.setdefault("EMAIL_API_KEY", "")

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from storefront.common.db import Base
from storefront.common.site_settings import SiteSettingsSnapshot, StaticSiteSettings
from storefront.services.notification import models as notification_models  # noqa: F401
from storefront.services.notification.channel import ChannelError
from storefront.services.notification.service import NotificationDispatcher
from storefront.services.orders import models as order_models  # noqa: F401
from storefront.services.orders.service import OrderAdmin, OrderLookup, OrderMaterializer
from storefront.services.verification import models as verification_models  # noqa: F401
from storefront.services.verification.service import PasscodeIssuer, PasscodeVerifier


class FakeClock:
    """Callable clock that only moves when a test advances it."""

    def __init__(self, start: datetime) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


class FakeChannel:
    """Records delivered messages; set `fail` to simulate a provider outage."""

    def __init__(self) -> None:
        self.messages = []
        self.fail = False

    async def deliver(self, message) -> None:
        if self.fail:
            raise ChannelError("provider down")
        self.messages.append(message)

    def last_code(self) -> str:
        html = self.messages[-1].html
        marker = "letter-spacing:6px;font-weight:bold\">"
        start = html.index(marker) + len(marker)
        return html[start : start + 6]


class FakeRedis:
    """Just enough of the redis hash API for the token bucket."""

    def __init__(self) -> None:
        self.hashes: dict[str, dict[str, str]] = {}

    def hmget(self, key, *fields):
        data = self.hashes.get(key, {})
        return [data.get(field) for field in fields]

    def hset(self, key, mapping):
        self.hashes.setdefault(key, {}).update({k: str(v) for k, v in mapping.items()})

    def expire(self, key, seconds):
        return True


@pytest.fixture
def clock():
    return FakeClock(datetime(2026, 10, 18, 12, 0, 0, tzinfo=timezone.utc))


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)
    engine.dispose()


@pytest.fixture
def channel():
    return FakeChannel()


@pytest.fixture
def site_settings():
    return StaticSiteSettings(
        SiteSettingsSnapshot(
            store_name="Test Store",
            support_email="help@test.store",
            tracking_prefix="TS",
            currency="PKR",
            bank_account_details="Test Bank 0001-2345",
        )
    )


@pytest.fixture
def dispatcher(session_factory, channel, site_settings):
    return NotificationDispatcher(session_factory, channel, site_settings, sender="Test <no-reply@test.store>")


@pytest.fixture
def issuer(session_factory, dispatcher, clock):
    return PasscodeIssuer(session_factory, dispatcher, clock=clock)


@pytest.fixture
def verifier(session_factory, clock):
    return PasscodeVerifier(session_factory, clock=clock)


@pytest.fixture
def materializer(session_factory, dispatcher, site_settings, clock):
    return OrderMaterializer(session_factory, dispatcher, site_settings, clock=clock)


@pytest.fixture
def lookup(session_factory):
    return OrderLookup(session_factory)


@pytest.fixture
def admin(session_factory, dispatcher, clock):
    return OrderAdmin(session_factory, dispatcher, clock=clock)


@pytest.fixture
def fake_redis():
    return FakeRedis()
