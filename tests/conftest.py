"""Shared fixtures: controllable clock and a stub guard contract."""

from datetime import datetime, timedelta, timezone

import pytest

from wallet_protection.alerts import AlertDispatcher
from wallet_protection.monitors import EventIndexer
from wallet_protection.protection import LockStatus, WalletProtectionService
from wallet_protection.rpc import RpcError
from wallet_protection.scoring import RiskScorer


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, start: datetime = datetime(2024, 1, 1, tzinfo=timezone.utc)):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class FakeGuard:
    """In-memory guard contract that records calls."""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.locked: list[tuple[str, str]] = []
        self.scores: list[tuple[str, int]] = []
        self.closed = False

    async def lock_wallet(self, wallet, reason):
        if self.fail:
            raise RpcError("execution reverted")
        self.locked.append((wallet, reason))
        return "0xlock"

    async def update_risk_score(self, wallet, score):
        if self.fail:
            raise RpcError("execution reverted")
        self.scores.append((wallet, score))
        return "0xscore"

    async def get_lock_status(self, wallet):
        if self.fail:
            raise RpcError("contract not deployed")
        is_locked = any(w == wallet for w, _ in self.locked)
        return LockStatus(is_locked=is_locked, reason_code=1 if is_locked else 0,
                          case_hash="0x" + "00" * 32, locked_at=1704067200 if is_locked else 0)

    async def close(self):
        self.closed = True


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def scorer(clock):
    return RiskScorer(clock=clock)


@pytest.fixture
def dispatcher(clock):
    return AlertDispatcher(clock=clock)


@pytest.fixture
def indexer(clock):
    return EventIndexer(clock=clock)


@pytest.fixture
def guard():
    return FakeGuard()


@pytest.fixture
def service(indexer, scorer, dispatcher, guard):
    return WalletProtectionService(indexer, scorer, dispatcher, guard)
