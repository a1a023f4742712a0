"""Shared fixtures: a fixed clock and a ledger over in-memory storage."""

from datetime import datetime
from zoneinfo import ZoneInfo

import pytest

from fiado_ledger.audit import AuditLogger
from fiado_ledger.config import LedgerSettings
from fiado_ledger.ledger import LedgerStore
from fiado_ledger.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage


SAO_PAULO = ZoneInfo("America/Sao_Paulo")


class FakeClock:
    """Settable clock so tests control 'now'."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def clock():
    return FakeClock(datetime(2024, 1, 15, 10, 30, tzinfo=SAO_PAULO))


@pytest.fixture
def ledger_settings():
    return LedgerSettings(_env_file=None)


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def ledger(storage, audit_storage, ledger_settings, clock):
    return LedgerStore(
        storage,
        audit_logger=AuditLogger(audit_storage),
        settings=ledger_settings,
        clock=clock,
    )
