from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Tuple

import pytest

from chorematrix.config import Settings
from chorematrix.ops import StructuredLogger
from chorematrix.persistence import MemoryKeyValueStore
from chorematrix.service import ChoreService

FIXED_NOW = datetime(2024, 3, 1, 9, 30, tzinfo=timezone.utc)


class RecordingLedger:
    """Ledger double that remembers every credit it receives."""

    def __init__(self, *, fail_for: Tuple[str, ...] = ()) -> None:
        self.calls: List[Tuple[str, Decimal, str]] = []
        self.fail_for = fail_for

    def credit_reward(self, kid_id: str, amount: Decimal, label: str) -> None:
        if kid_id in self.fail_for:
            raise RuntimeError(f"ledger offline for {kid_id}")
        self.calls.append((kid_id, amount, label))


class FailingStore(MemoryKeyValueStore):
    """Memory store whose writes can be switched off."""

    def __init__(self) -> None:
        super().__init__()
        self.broken = False

    def set_many(self, items) -> None:
        if self.broken:
            raise OSError("disk full")
        super().set_many(items)


@pytest.fixture
def clock():
    return lambda: FIXED_NOW


@pytest.fixture
def settings() -> Settings:
    return Settings(database_url="sqlite://", storage_prefix="", log_path=None, default_category="TO_DO")


@pytest.fixture
def ledger() -> RecordingLedger:
    return RecordingLedger()


@pytest.fixture
def store() -> MemoryKeyValueStore:
    return MemoryKeyValueStore()


@pytest.fixture
def logger(clock) -> StructuredLogger:
    return StructuredLogger(clock=clock)


@pytest.fixture
def service(store, ledger, logger, settings, clock) -> ChoreService:
    return ChoreService(store, ledger=ledger, logger=logger, settings=settings, clock=clock)


@pytest.fixture
def failing_store() -> FailingStore:
    return FailingStore()


@pytest.fixture
def flaky_ledger() -> RecordingLedger:
    return RecordingLedger(fail_for=("kid-b",))
