"""
Session / Sync Manager

Owns the active Session and decides where every write goes:
- Remote session: the remote store, under a timeout
- Local-only session: expense creation lands in the session's local cache,
  everything else is refused
- No session: refused

DESIGN DECISION: Failures are never papered over.
A failed remote write raises RemoteWriteFailedError; it does NOT fall
back to the local cache. The only automatic recovery is the budget
duplicate, which is folded into the existing month's row and reported
as CommitOutcome.RECONCILED.

Login resolves a profile in a fixed order:
1. Look up by phone (a returning user never gets a second profile)
2. Create one if the lookup found nothing
3. Fall back to a local-only identity if either step failed
"""

import asyncio
from datetime import datetime
from typing import Awaitable, Callable, Optional, TypeVar
from uuid import UUID

import structlog
from pydantic import BaseModel, ValidationError

from finvoice.audit import AuditLogger
from finvoice.config import AppSettings, get_settings
from finvoice.errors import (
    InvalidInputError,
    NotAuthenticatedError,
    RemoteOperationError,
    RemoteReadFailedError,
    RemoteUnavailableOfflineModeError,
    RemoteWriteFailedError,
)
from finvoice.models.expense import (
    Budget,
    BudgetCreate,
    BudgetUpdate,
    Expense,
    ExpenseCreate,
    ExpenseUpdate,
    ProfileUpdate,
    UserProfile,
)
from finvoice.models.session import (
    COLLECTIONS,
    CachedCredentials,
    CommitOutcome,
    EntityType,
    PendingWrite,
    RefreshTrigger,
    Session,
    SessionKind,
    StoredRecord,
    WriteAction,
)
from finvoice.services.storage import (
    NotFoundError,
    RemoteStore,
    StorageError,
)
from finvoice.session.identity import (
    IdentityProvider,
    is_local_only,
    mint_local_identity,
)
from finvoice.session.local_cache import LocalExpenseCache
from finvoice.session.refresh import RefreshPolicy, RefreshScheduler, merge_profile


logger = structlog.get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)

_OUTCOMES = {
    WriteAction.CREATE: CommitOutcome.CREATED,
    WriteAction.UPDATE: CommitOutcome.UPDATED,
    WriteAction.DELETE: CommitOutcome.DELETED,
}


class SessionManager:
    """
    Single owner of the current session.

    One instance per running app. Pass it (or its session) to whoever
    needs it; there is no module-level session.

    Usage:
        manager = SessionManager(store=GoogleSheetsRemoteStore())
        await manager.login("Asha", "9876543210")
        record = await manager.commit(PendingWrite(
            entity=EntityType.EXPENSE,
            action=WriteAction.CREATE,
            payload={"amount": "7300", "description": "dinner"},
        ))
    """

    def __init__(
        self,
        store: RemoteStore,
        audit_logger: Optional[AuditLogger] = None,
        identity_provider: Optional[IdentityProvider] = None,
        settings: Optional[AppSettings] = None,
        clock: Callable[[], datetime] = datetime.utcnow,
    ):
        self._store = store
        self._audit = audit_logger or AuditLogger()
        self._identity_provider = identity_provider
        self._settings = settings or get_settings().app
        self._timeout = self._settings.remote_timeout_seconds
        self._policy = RefreshPolicy.from_settings(self._settings)
        self._clock = clock

        self._session = Session()
        self._local_cache = LocalExpenseCache()
        self._scheduler = RefreshScheduler()

    @property
    def session(self) -> Session:
        return self._session

    @property
    def local_cache(self) -> LocalExpenseCache:
        return self._local_cache

    @property
    def audit(self) -> AuditLogger:
        return self._audit

    # =========================================================================
    # LOGIN / RESTORE / LOGOUT
    # =========================================================================

    async def login(
        self,
        name: str,
        phone: str,
        credential: Optional[str] = None,
    ) -> Session:
        """
        Start a session for the given user.

        Replaces any current session. Ends up Remote when a profile
        could be found or created, LocalOnly otherwise.

        Raises:
            InvalidInputError: If name or phone is blank
            NotAuthenticatedError: If the identity provider rejects the credential
        """
        name = (name or "").strip()
        phone = (phone or "").strip()
        if not name or not phone:
            raise InvalidInputError("Name and phone number are required")

        firebase_uid = None
        if self._identity_provider is not None and credential is not None:
            result = await self._identity_provider.verify_credential(credential)
            if not result.success:
                raise NotAuthenticatedError(result.error or "Credential rejected")
            firebase_uid = result.identity

        await self._end_current_session()

        profile, failure = await self._resolve_profile(name, phone, firebase_uid)
        now = self._clock()

        if profile is not None:
            self._session = Session(
                kind=SessionKind.REMOTE,
                identity=profile.id,
                profile=profile,
                started_at=now,
                last_refreshed_at=now,
            )
        else:
            identity = mint_local_identity()
            self._session = Session(
                kind=SessionKind.LOCAL_ONLY,
                identity=identity,
                profile=self._default_profile(identity, name, phone, now),
                started_at=now,
            )
            await self._audit.log_local_fallback(identity, failure or "unknown")

        await self._audit.log_session_started(
            self._session.kind.value, self._session.identity
        )
        return self._session

    async def _resolve_profile(
        self,
        name: str,
        phone: str,
        firebase_uid: Optional[str],
    ) -> tuple[Optional[UserProfile], Optional[str]]:
        """Lookup, then create. Returns (profile, None) or (None, reason)."""
        try:
            row = await self._timed(self._store.select_one("profiles", {"phone": phone}))
            return UserProfile.model_validate(row), None
        except NotFoundError:
            pass
        except (StorageError, asyncio.TimeoutError, ValidationError) as e:
            await self._remote_failure("select", "profiles", e, is_write=False)
            return None, f"profile lookup failed: {e}"

        payload = {
            "name": name,
            "phone": phone,
            "language": self._settings.default_language,
            "currency": self._settings.default_currency,
            "theme": self._settings.default_theme,
            "firebase_uid": firebase_uid,
        }
        try:
            row = await self._timed(self._store.insert("profiles", payload))
            return UserProfile.model_validate(row), None
        except (StorageError, asyncio.TimeoutError, ValidationError) as e:
            await self._remote_failure("insert", "profiles", e, is_write=True)
            return None, f"profile creation failed: {e}"

    def _default_profile(
        self,
        identity: str,
        name: str,
        phone: str,
        now: datetime,
    ) -> UserProfile:
        return UserProfile(
            id=identity,
            name=name,
            phone=phone,
            language=self._settings.default_language,
            currency=self._settings.default_currency,
            theme=self._settings.default_theme,
            created_at=now,
            updated_at=now,
        )

    async def restore(self, credentials: CachedCredentials) -> Session:
        """
        Rebuild a session from what the front end cached between runs.

        A remote session whose cache is older than the cold-start TTL
        gets a best-effort refresh; if that fails the cached values stay.
        """
        user_id = credentials.user_id
        name = credentials.name or ""
        phone = credentials.phone or ""

        if not user_id:
            if name and phone:
                return await self.login(name, phone)
            return self._session

        await self._end_current_session()
        now = self._clock()
        profile = self._default_profile(user_id, name, phone, now)

        if is_local_only(user_id):
            self._session = Session(
                kind=SessionKind.LOCAL_ONLY,
                identity=user_id,
                profile=profile,
                started_at=now,
            )
            await self._audit.log_session_started(
                SessionKind.LOCAL_ONLY.value, user_id, restored=True
            )
            return self._session

        self._session = Session(
            kind=SessionKind.REMOTE,
            identity=user_id,
            profile=profile,
            started_at=now,
            last_refreshed_at=credentials.last_profile_refresh,
        )
        await self._audit.log_session_started(
            SessionKind.REMOTE.value, user_id, restored=True
        )
        await self.refresh_profile(RefreshTrigger.COLD_START)
        return self._session

    async def logout(self) -> None:
        """End the session. Local-only data is discarded."""
        await self._end_current_session()
        self._session = Session()

    async def _end_current_session(self) -> None:
        self._scheduler.cancel()
        if self._session.is_authenticated:
            await self._audit.log_session_ended(
                self._session.identity, self._session.kind.value
            )
        self._local_cache.clear()

    def credentials(self) -> CachedCredentials:
        """What the front end should persist to restore this session later."""
        profile = self._session.profile
        return CachedCredentials(
            user_id=self._session.identity,
            name=profile.name if profile else None,
            phone=profile.phone if profile else None,
            last_profile_refresh=self._session.last_refreshed_at,
        )

    # =========================================================================
    # WRITES
    # =========================================================================

    async def commit(
        self,
        write: PendingWrite,
        correlation_id: Optional[UUID] = None,
    ) -> StoredRecord:
        """
        Route a write according to the session kind.

        Raises:
            NotAuthenticatedError: No session
            RemoteUnavailableOfflineModeError: Local-only session, write needs the remote store
            InvalidInputError: Payload failed validation, or unsupported write
            RemoteWriteFailedError: Remote store error or timeout
        """
        session = self._session
        entity, action = write.entity.value, write.action.value

        if not session.is_authenticated:
            await self._audit.log_write_refused(entity, action, "not authenticated", None)
            raise NotAuthenticatedError("Log in before saving anything")

        if not session.can_use_remote:
            if write.entity == EntityType.EXPENSE and write.action == WriteAction.CREATE:
                return await self._commit_local_expense(session, write, correlation_id)
            await self._audit.log_write_refused(
                entity, action, "local-only session", session.identity
            )
            raise RemoteUnavailableOfflineModeError(
                f"Cannot {action} {entity} while offline. Log in again to sync."
            )

        handlers = {
            (EntityType.EXPENSE, WriteAction.CREATE): self._create_expense,
            (EntityType.EXPENSE, WriteAction.UPDATE): self._update_expense,
            (EntityType.EXPENSE, WriteAction.DELETE): self._delete_owned,
            (EntityType.BUDGET, WriteAction.CREATE): self._create_budget,
            (EntityType.BUDGET, WriteAction.UPDATE): self._update_budget,
            (EntityType.BUDGET, WriteAction.DELETE): self._delete_owned,
            (EntityType.PROFILE, WriteAction.UPDATE): self._update_profile,
        }
        handler = handlers.get((write.entity, write.action))
        if handler is None:
            raise InvalidInputError(f"{entity} {action} is not supported")

        record, outcome = await handler(session, write, correlation_id)

        await self._audit.log_record_committed(
            entity=entity,
            action=action,
            record_id=record.get("id"),
            is_local=False,
            correlation_id=correlation_id,
        )
        return StoredRecord(
            entity=write.entity,
            action=write.action,
            outcome=outcome,
            record=record,
        )

    async def _commit_local_expense(
        self,
        session: Session,
        write: PendingWrite,
        correlation_id: Optional[UUID],
    ) -> StoredRecord:
        data = self._validate(ExpenseCreate, write.payload)
        expense = self._local_cache.add(session.identity, data, now=self._clock())
        await self._audit.log_record_committed(
            entity=write.entity.value,
            action=write.action.value,
            record_id=expense.id,
            is_local=True,
            correlation_id=correlation_id,
        )
        return StoredRecord(
            entity=write.entity,
            action=write.action,
            outcome=CommitOutcome.CACHED_LOCALLY,
            record=expense.model_dump(),
            is_local=True,
        )

    async def _create_expense(self, session, write, correlation_id):
        data = self._validate(ExpenseCreate, write.payload)
        payload = {
            "user_id": session.identity,
            "amount": data.amount,
            "description": data.description,
            "category": data.category.value,
            "voice_input": data.voice_input,
            "date": data.date or self._clock(),
        }
        row = await self._remote(
            "insert", "expenses",
            self._store.insert("expenses", payload),
            is_write=True, correlation_id=correlation_id,
        )
        return self._canonical(Expense, row), CommitOutcome.CREATED

    async def _update_expense(self, session, write, correlation_id):
        data = self._validate(ExpenseUpdate, write.payload)
        changes = data.model_dump(exclude_none=True, mode="json")
        changes["updated_at"] = self._clock()
        row = await self._remote(
            "update", "expenses",
            self._store.update(
                "expenses",
                {"id": write.record_id, "user_id": session.identity},
                changes,
            ),
            is_write=True, correlation_id=correlation_id,
        )
        return self._canonical(Expense, row), CommitOutcome.UPDATED

    async def _delete_owned(self, session, write, correlation_id):
        collection = COLLECTIONS[write.entity]
        await self._remote(
            "delete", collection,
            self._store.delete(
                collection,
                {"id": write.record_id, "user_id": session.identity},
            ),
            is_write=True, correlation_id=correlation_id,
        )
        return {"id": write.record_id}, CommitOutcome.DELETED

    async def _create_budget(self, session, write, correlation_id):
        data = self._validate(BudgetCreate, write.payload)
        categories = [c.model_dump(mode="json") for c in data.categories]
        payload = {
            "user_id": session.identity,
            "month_year": data.month_year,
            "total_amount": data.total_amount,
            "categories": categories,
        }

        # One budget per month: a duplicate folds the new values into the existing row
        row, created = await self._remote(
            "upsert", "budgets",
            self._store.upsert(
                "budgets",
                ("user_id", "month_year"),
                payload,
                on_conflict={
                    "total_amount": data.total_amount,
                    "categories": categories,
                    "updated_at": self._clock(),
                },
            ),
            is_write=True, correlation_id=correlation_id,
        )
        record = self._canonical(Budget, row)
        if created:
            return record, CommitOutcome.CREATED

        await self._audit.log_budget_reconciled(
            budget_id=record.get("id"),
            user_id=session.identity,
            month_year=data.month_year,
            correlation_id=correlation_id,
        )
        return record, CommitOutcome.RECONCILED

    async def _update_budget(self, session, write, correlation_id):
        data = self._validate(BudgetUpdate, write.payload)
        changes = data.model_dump(exclude_none=True, mode="json")
        if not changes:
            raise InvalidInputError("Nothing to update")
        changes["updated_at"] = self._clock()
        row = await self._remote(
            "update", "budgets",
            self._store.update(
                "budgets",
                {"id": write.record_id, "user_id": session.identity},
                changes,
            ),
            is_write=True, correlation_id=correlation_id,
        )
        return self._canonical(Budget, row), CommitOutcome.UPDATED

    async def _update_profile(self, session, write, correlation_id):
        if write.record_id and write.record_id != session.identity:
            raise InvalidInputError("Only the signed-in user's profile can be updated")
        data = self._validate(ProfileUpdate, write.payload)
        changes = data.model_dump(exclude_none=True)
        if not changes:
            raise InvalidInputError("Nothing to update")
        changes["updated_at"] = self._clock()
        row = await self._remote(
            "update", "profiles",
            self._store.update("profiles", {"id": session.identity}, changes),
            is_write=True, correlation_id=correlation_id,
        )
        record = self._canonical(UserProfile, row)

        # Only touch the cache if the session wasn't replaced meanwhile
        if self._session.identity == session.identity:
            self._session = self._session.model_copy(
                update={"profile": UserProfile.model_validate(record)}
            )
        return record, CommitOutcome.UPDATED

    # =========================================================================
    # READS
    # =========================================================================

    async def list_expenses(self) -> list[Expense]:
        """The session's expenses, newest first."""
        session = self._require_session()
        if not session.can_use_remote:
            return self._local_cache.list()

        rows = await self._remote(
            "select", "expenses",
            self._store.select(
                "expenses", {"user_id": session.identity},
                order_by="date", descending=True,
            ),
            is_write=False,
        )
        return await self._read_models(Expense, "expenses", rows)

    async def list_budgets(self) -> list[Budget]:
        """The session's budgets, latest month first. Local-only sessions have none."""
        session = self._require_session()
        if not session.can_use_remote:
            return []

        rows = await self._remote(
            "select", "budgets",
            self._store.select(
                "budgets", {"user_id": session.identity},
                order_by="month_year", descending=True,
            ),
            is_write=False,
        )
        return await self._read_models(Budget, "budgets", rows)

    def _require_session(self) -> Session:
        if not self._session.is_authenticated:
            raise NotAuthenticatedError("Log in first")
        return self._session

    # =========================================================================
    # PROFILE REFRESH
    # =========================================================================

    def schedule_refresh(self, trigger: RefreshTrigger = RefreshTrigger.FOREGROUND) -> None:
        """
        Request a debounced refresh.

        Cancels any pending refresh. Does nothing for sessions that
        can't reach the remote store. Must be called from a running loop.
        """
        if not self._session.can_use_remote:
            return
        self._scheduler.schedule(
            lambda: self.refresh_profile(trigger),
            delay=self._policy.delay_for(trigger),
        )

    async def wait_for_refresh(self) -> None:
        """Wait until the pending scheduled refresh (if any) completes."""
        await self._scheduler.wait()

    async def refresh_profile(
        self,
        trigger: RefreshTrigger = RefreshTrigger.MANUAL,
        force: bool = False,
    ) -> bool:
        """
        Re-fetch the profile and merge it into the session.

        Never raises and never changes the session kind or identity.
        Returns True if the cached profile was refreshed.
        """
        session = self._session
        if not session.can_use_remote:
            return False

        now = self._clock()
        if not force and not self._policy.is_due(session.last_refreshed_at, trigger, now):
            return False

        try:
            row = await self._timed(
                self._store.select_one("profiles", {"id": session.identity})
            )
            profile = merge_profile(session.profile, row)
        except (StorageError, asyncio.TimeoutError, ValidationError) as e:
            logger.warning(
                "profile_refresh_failed",
                identity=session.identity,
                trigger=trigger.value,
                error=str(e) or type(e).__name__,
            )
            await self._audit.log_profile_refresh_failed(
                session.identity, trigger.value, str(e) or type(e).__name__
            )
            return False

        if self._session.identity != session.identity:
            return False

        self._session = self._session.model_copy(
            update={"profile": profile, "last_refreshed_at": now}
        )
        await self._audit.log_profile_refreshed(session.identity, trigger.value)
        return True

    def clear_refresh_cache(self) -> None:
        """Forget when the profile was last refreshed, so the next check fetches."""
        if self._session.is_authenticated:
            self._session = self._session.model_copy(update={"last_refreshed_at": None})

    async def close(self) -> None:
        """Cancel background work. The session itself is left as is."""
        self._scheduler.cancel()

    # =========================================================================
    # HELPERS
    # =========================================================================

    async def _timed(self, call: Awaitable):
        return await asyncio.wait_for(call, timeout=self._timeout)

    async def _remote(
        self,
        operation: str,
        collection: str,
        call: Awaitable,
        is_write: bool,
        correlation_id: Optional[UUID] = None,
    ):
        """Await a store call under the timeout, mapping failures to typed errors."""
        try:
            return await self._timed(call)
        except (StorageError, asyncio.TimeoutError) as e:
            raise await self._remote_failure(
                operation, collection, e, is_write, correlation_id
            ) from e

    async def _remote_failure(
        self,
        operation: str,
        collection: str,
        error: Exception,
        is_write: bool,
        correlation_id: Optional[UUID] = None,
    ) -> RemoteOperationError:
        """Audit a failed store call and build the error to raise."""
        if isinstance(error, asyncio.TimeoutError):
            code = "timeout"
            message = f"Remote {operation} on {collection} timed out after {self._timeout}s"
        elif isinstance(error, ValidationError):
            code = "invalid_record"
            message = f"Remote {operation} on {collection} returned an unreadable record: {error}"
        else:
            code = getattr(error, "code", "storage_error")
            message = str(error)

        await self._audit.log_remote_failure(
            operation=operation,
            collection=collection,
            error_code=code,
            error_message=message,
            is_write=is_write,
            correlation_id=correlation_id,
        )
        error_cls = RemoteWriteFailedError if is_write else RemoteReadFailedError
        return error_cls(message, code=code)

    async def _read_models(self, model: type[ModelT], collection: str, rows: list) -> list[ModelT]:
        """Validate fetched rows; one unreadable row fails the whole read."""
        try:
            return [model.model_validate(row) for row in rows]
        except ValidationError as e:
            raise await self._remote_failure("select", collection, e, is_write=False) from e

    @staticmethod
    def _validate(model: type[ModelT], payload: dict) -> ModelT:
        try:
            return model.model_validate(payload)
        except ValidationError as e:
            raise InvalidInputError(str(e)) from e

    @staticmethod
    def _canonical(model: type[BaseModel], row: dict) -> dict:
        """Normalize a stored row through its model."""
        try:
            return model.model_validate(row).model_dump()
        except ValidationError as e:
            raise RemoteWriteFailedError(
                f"Remote store returned an unreadable {model.__name__}: {e}",
                code="invalid_record",
            ) from e
