"""
Session and write models.

A Session is owned by one SessionManager and passed down to whoever
needs it. There is no process-wide session.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field, model_validator

from finvoice.models.expense import UserProfile


class SessionKind(str, Enum):
    """Where writes for this session are allowed to go."""
    UNAUTHENTICATED = "unauthenticated"
    REMOTE = "remote"
    LOCAL_ONLY = "local_only"


class EntityType(str, Enum):
    EXPENSE = "expense"
    BUDGET = "budget"
    PROFILE = "profile"


class WriteAction(str, Enum):
    CREATE = "create"
    UPDATE = "update"
    DELETE = "delete"


class CommitOutcome(str, Enum):
    """What actually happened to a committed write."""
    CREATED = "created"
    UPDATED = "updated"
    DELETED = "deleted"
    RECONCILED = "reconciled"          # Duplicate budget folded into the existing row
    CACHED_LOCALLY = "cached_locally"  # Local-only session, not synced


class RefreshTrigger(str, Enum):
    """Why a profile refresh was requested."""
    COLD_START = "cold_start"
    FOREGROUND = "foreground"
    MANUAL = "manual"


# Remote store collection for each entity
COLLECTIONS: dict[EntityType, str] = {
    EntityType.EXPENSE: "expenses",
    EntityType.BUDGET: "budgets",
    EntityType.PROFILE: "profiles",
}


class Session(BaseModel):
    """
    The active session.

    kind and identity are fixed for the lifetime of a Session.
    A refresh may replace the cached profile, nothing else.
    """

    kind: SessionKind = SessionKind.UNAUTHENTICATED
    identity: Optional[str] = None
    profile: Optional[UserProfile] = None
    started_at: datetime = Field(default_factory=datetime.utcnow)
    last_refreshed_at: Optional[datetime] = None

    @model_validator(mode='after')
    def identity_matches_kind(self) -> 'Session':
        from finvoice.session.identity import is_local_only

        if self.kind == SessionKind.UNAUTHENTICATED:
            if self.identity is not None:
                raise ValueError("Unauthenticated session cannot carry an identity")
        elif not self.identity:
            raise ValueError(f"{self.kind.value} session requires an identity")
        elif is_local_only(self.identity) != (self.kind == SessionKind.LOCAL_ONLY):
            raise ValueError(
                f"Identity {self.identity!r} does not match session kind {self.kind.value}"
            )
        return self

    @property
    def is_authenticated(self) -> bool:
        return self.kind != SessionKind.UNAUTHENTICATED

    @property
    def can_use_remote(self) -> bool:
        """Whether writes may reach the remote store."""
        from finvoice.session.identity import is_local_only

        return self.identity is not None and not is_local_only(self.identity)


class PendingWrite(BaseModel):
    """A write waiting to be routed by the session manager."""

    entity: EntityType
    action: WriteAction
    record_id: Optional[str] = None
    payload: dict[str, Any] = Field(default_factory=dict)

    @model_validator(mode='after')
    def record_id_for_mutations(self) -> 'PendingWrite':
        if (
            self.action in (WriteAction.UPDATE, WriteAction.DELETE)
            and self.entity != EntityType.PROFILE
            and not self.record_id
        ):
            raise ValueError(f"{self.action.value} of {self.entity.value} requires record_id")
        return self


class StoredRecord(BaseModel):
    """Canonical result of a successful commit."""

    entity: EntityType
    action: WriteAction
    outcome: CommitOutcome
    record: dict[str, Any] = Field(default_factory=dict)
    is_local: bool = False

    @property
    def record_id(self) -> Optional[str]:
        return self.record.get("id")


class CachedCredentials(BaseModel):
    """
    What the front end keeps between runs.

    Used to restore a session at cold start without asking the user
    to log in again.
    """

    user_id: Optional[str] = None
    name: Optional[str] = None
    phone: Optional[str] = None
    last_profile_refresh: Optional[datetime] = None
