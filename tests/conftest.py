"""
Shared fixtures: settings env, in-memory SQLite session, fake processor and clocks.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("REDIS_URL", "redis://localhost:6379/15")

from datetime import date, datetime, timedelta, timezone  # noqa: E402

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import app.models  # noqa: E402,F401
from app.core.errors import InitiationError  # noqa: E402
from app.db.base import Base  # noqa: E402
from app.services.payments.models import ProcessorStatus  # noqa: E402
from app.services.payments.processor import PaymentProcessor  # noqa: E402


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


class FakeClock:
    """Settable UTC clock: now() for datetimes, today() for the quota day."""

    def __init__(self, now: datetime | None = None):
        self.current = now or datetime(2025, 3, 10, 9, 0, tzinfo=timezone.utc)

    def now(self) -> datetime:
        return self.current

    def today(self) -> date:
        return self.current.date()

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FakeClock()


class FakeProcessor(PaymentProcessor):
    """Scripted processor: statuses are returned in order, the last one repeats."""

    def __init__(self, statuses=None, reference="ref_123", initiate_error: str | None = None):
        self.statuses = list(statuses or [ProcessorStatus("pending")])
        self.reference = reference
        self.initiate_error = initiate_error
        self.initiated = []
        self.queries = []

    def initiate(self, request) -> str:
        self.initiated.append(request)
        if self.initiate_error:
            raise InitiationError(self.initiate_error)
        return self.reference

    def get_status(self, reference: str) -> ProcessorStatus:
        self.queries.append(reference)
        index = min(len(self.queries), len(self.statuses)) - 1
        status = self.statuses[index]
        if isinstance(status, Exception):
            raise status
        return status


@pytest.fixture
def make_processor():
    return FakeProcessor


class RecordingSleep:
    """Replaces asyncio.sleep in the poller; records requested delays."""

    def __init__(self):
        self.calls: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.calls.append(delay)


@pytest.fixture
def recording_sleep():
    return RecordingSleep()
