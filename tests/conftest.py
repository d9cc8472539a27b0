from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401  registers the tables on Base
from database import Base, Settings, build_engine
from core.broadcast_hub import BroadcastHub
from core.round_coordinator import RoundCoordinator
from core.wallet_manager import WalletManager
from services.outcome_service import outcome_for_number

# 13:06:00 is the start of bucket 782
T0 = datetime(2024, 3, 5, 13, 6, 0)


class FakeClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return now


class ManualTimer:
    """Timer driver that only fires when the test says so."""

    def __init__(self):
        self.pending = None
        self.scheduled = []

    def schedule(self, delay_seconds, callback, name="timer"):
        delay = max(0.0, delay_seconds)
        self.pending = (name, delay, callback)
        self.scheduled.append((name, delay))

    def cancel(self):
        self.pending = None

    @property
    def pending_name(self):
        return self.pending[0] if self.pending else None

    @property
    def pending_delay(self):
        return self.pending[1] if self.pending else None

    def fire(self):
        assert self.pending is not None, "no timer armed"
        name, _, callback = self.pending
        self.pending = None
        callback()
        return name


class FixedDraw:
    """Outcome source returning the given numbers in order (last one repeats)."""

    def __init__(self, *numbers):
        self.numbers = list(numbers)
        self.calls = 0

    def __call__(self):
        number = self.numbers[min(self.calls, len(self.numbers) - 1)]
        self.calls += 1
        return outcome_for_number(number, 100.0)


@pytest.fixture
def engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def clock():
    return FakeClock(T0)


@pytest.fixture
def timer():
    return ManualTimer()


@pytest.fixture
def draw():
    return FixedDraw(4)


@pytest.fixture
def settings():
    return Settings(database_url="sqlite://")


@pytest.fixture
def hub():
    return BroadcastHub()


@pytest.fixture
def coordinator(session_factory, hub, timer, settings, clock, draw):
    return RoundCoordinator(
        session_factory=session_factory,
        hub=hub,
        timer=timer,
        settings=settings,
        clock=clock,
        draw=draw
    )


@pytest.fixture
def make_user(session_factory):
    """Create a user, optionally funded by a deposit; returns the user id."""
    counter = {"n": 0}

    def _make_user(balance=0.0, username=None):
        counter["n"] += 1
        with session_factory() as session:
            user = WalletManager.register_user(session, username or f"player{counter['n']}")
            user_id = user.id
            if balance:
                WalletManager.apply_transaction(session, user_id, "deposit", balance)
        return user_id

    return _make_user


@pytest.fixture
def balance_of(session_factory):
    def _balance_of(user_id):
        with session_factory() as session:
            return WalletManager.get_user(session, user_id).balance

    return _balance_of
