"""
Shared fixtures.

No real API calls in tests: the remote store, audit storage and identity
provider are in-memory fakes.
"""

import asyncio
from datetime import datetime
from typing import Optional
from uuid import UUID, uuid4

import pytest

from finvoice.audit import AuditLogger
from finvoice.config import AppSettings
from finvoice.models.audit import AuditEvent, AuditEventType
from finvoice.services.storage import (
    AuditStorageInterface,
    DuplicateError,
    Filters,
    NotFoundError,
    Record,
    RemoteStore,
)
from finvoice.session import IdentityProvider, SessionManager, VerificationResult


UNIQUE_KEYS = {
    "profiles": ("phone",),
    "budgets": ("user_id", "month_year"),
}


class InMemoryRemoteStore(RemoteStore):
    """
    RemoteStore fake with the same unique keys as the Sheets store.

    failures maps (operation, collection) to an exception raised
    instead of running the call. delay makes every call sleep first.
    """

    def __init__(self):
        self.tables: dict[str, list[Record]] = {
            "expenses": [],
            "budgets": [],
            "profiles": [],
        }
        self.failures: dict[tuple[str, str], Exception] = {}
        self.delay: float = 0.0
        self.calls: list[tuple[str, str]] = []

    async def _enter(self, operation: str, collection: str) -> None:
        self.calls.append((operation, collection))
        if self.delay:
            await asyncio.sleep(self.delay)
        failure = self.failures.get((operation, collection))
        if failure is not None:
            raise failure

    def count(self, operation: str, collection: str) -> int:
        return self.calls.count((operation, collection))

    @staticmethod
    def _matches(record: Record, filters: Filters) -> bool:
        return all(record.get(k) == v for k, v in filters.items())

    def _check_unique(self, collection: str, record: Record) -> None:
        keys = UNIQUE_KEYS.get(collection)
        if not keys:
            return
        for existing in self.tables[collection]:
            if existing["id"] != record.get("id") and all(
                existing.get(k) == record.get(k) for k in keys
            ):
                raise DuplicateError(f"duplicate {collection} {keys}")

    def seed(self, collection: str, **fields) -> Record:
        """Put a row in place without going through insert()."""
        now = datetime.utcnow()
        record = {"id": str(uuid4()), "created_at": now, "updated_at": now, **fields}
        self.tables[collection].append(record)
        return dict(record)

    async def insert(self, collection: str, payload: Record) -> Record:
        await self._enter("insert", collection)
        now = datetime.utcnow()
        record = {"created_at": now, "updated_at": now, **payload, "id": str(uuid4())}
        self._check_unique(collection, record)
        self.tables[collection].append(record)
        return dict(record)

    async def select_one(self, collection: str, filters: Filters) -> Record:
        await self._enter("select_one", collection)
        for record in self.tables[collection]:
            if self._matches(record, filters):
                return dict(record)
        raise NotFoundError(f"no {collection} matching {filters}")

    async def select(
        self,
        collection: str,
        filters: Optional[Filters] = None,
        order_by: Optional[str] = None,
        descending: bool = False,
    ) -> list[Record]:
        await self._enter("select", collection)
        rows = [dict(r) for r in self.tables[collection] if self._matches(r, filters or {})]
        if order_by:
            rows.sort(key=lambda r: r[order_by], reverse=descending)
        return rows

    async def update(self, collection: str, filters: Filters, payload: Record) -> Record:
        await self._enter("update", collection)
        for idx, record in enumerate(self.tables[collection]):
            if self._matches(record, filters):
                updated = {**record, **payload, "id": record["id"]}
                self._check_unique(collection, updated)
                self.tables[collection][idx] = updated
                return dict(updated)
        raise NotFoundError(f"no {collection} matching {filters}")

    async def delete(self, collection: str, filters: Filters) -> Record:
        await self._enter("delete", collection)
        for idx, record in enumerate(self.tables[collection]):
            if self._matches(record, filters):
                return self.tables[collection].pop(idx)
        raise NotFoundError(f"no {collection} matching {filters}")


class RecordingAuditStorage(AuditStorageInterface):
    """Keeps audit events in a list."""

    def __init__(self):
        self.events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self.events.append(event)
        return True

    async def get_events_by_correlation_id(self, correlation_id: UUID) -> list[AuditEvent]:
        return [e for e in self.events if e.correlation_id == correlation_id]

    async def get_recent_events(self, limit: int = 100) -> list[AuditEvent]:
        return list(reversed(self.events))[:limit]

    def types(self) -> list[AuditEventType]:
        return [e.event_type for e in self.events]


class FakeIdentityProvider(IdentityProvider):
    """Accepts exactly one token."""

    def __init__(self, valid_token: str = "good-token", uid: str = "firebase-uid-1"):
        self.valid_token = valid_token
        self.uid = uid

    async def verify_credential(self, token: str) -> VerificationResult:
        if token == self.valid_token:
            return VerificationResult(success=True, identity=self.uid)
        return VerificationResult(success=False, error="Invalid token")


class FakeClock:
    """Settable replacement for datetime.utcnow."""

    def __init__(self, now: Optional[datetime] = None):
        self.now = now or datetime(2024, 5, 10, 9, 0, 0)

    def __call__(self) -> datetime:
        return self.now


@pytest.fixture
def store() -> InMemoryRemoteStore:
    return InMemoryRemoteStore()


@pytest.fixture
def audit_storage() -> RecordingAuditStorage:
    return RecordingAuditStorage()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def app_settings() -> AppSettings:
    return AppSettings(
        remote_timeout_seconds=0.2,
        foreground_refresh_delay_seconds=0.0,
    )


@pytest.fixture
def manager(store, audit_storage, clock, app_settings) -> SessionManager:
    return SessionManager(
        store=store,
        audit_logger=AuditLogger(audit_storage),
        settings=app_settings,
        clock=clock,
    )


@pytest.fixture
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture
def run():
    """Drive a coroutine to completion on a fresh event loop."""
    return asyncio.run
