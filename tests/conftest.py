"""Shared fixtures: in-memory stores, a controllable clock, a repository."""

from datetime import datetime, timedelta, timezone

import pytest

from debt_manager.audit import AuditLogger
from debt_manager.repository import EntityRepository
from debt_manager.services.storage import InMemoryAuditStorage, InMemoryStore


class FixedClock:
    """A clock that only moves when told to."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float = 60) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FixedClock(datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return InMemoryStore()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def repo(store, audit_logger, clock):
    return EntityRepository(store, audit_logger=audit_logger, clock=clock)


@pytest.fixture
def cohen(repo):
    """A family in Room A with a debt of 500."""
    repo.create_location("Room A")
    return repo.create_family({
        "familyCode": "C-1",
        "familyName": "Cohen",
        "fatherName": "David",
        "motherName": "Sara",
        "phone": "050-123-4567",
        "location": "Room A",
        "debtAmount": 500,
    })
