"""
Audit Logger

DESIGN DECISION: Every session transition and every write is logged.
This provides:
1. Traceability of where each expense actually landed (remote or local)
2. Debugging capability when the remote store misbehaves
3. Visibility into offline fallbacks and budget reconciliations

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

from typing import Optional
from uuid import UUID, uuid4

import structlog

from finvoice.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from finvoice.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, when configured (for persistence and user visibility)
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("finvoice.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_voice_parsed(
        self,
        amount: Optional[str],
        category: str,
        is_valid: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a parsed (or rejected) voice input."""
        await self.log(AuditEventBuilder.voice_parsed(
            amount=amount,
            category=category,
            is_valid=is_valid,
            correlation_id=correlation_id,
        ))

    async def log_session_started(
        self,
        kind: str,
        identity: str,
        restored: bool = False,
    ) -> None:
        await self.log(AuditEventBuilder.session_started(kind, identity, restored))

    async def log_local_fallback(self, identity: str, reason: str) -> None:
        """Log a login that could not resolve a remote profile."""
        await self.log(AuditEventBuilder.local_fallback(identity, reason))

    async def log_session_ended(self, identity: Optional[str], kind: str) -> None:
        await self.log(AuditEventBuilder.session_ended(identity, kind))

    async def log_profile_refreshed(self, identity: str, trigger: str) -> None:
        await self.log(AuditEventBuilder.profile_refreshed(identity, trigger))

    async def log_profile_refresh_failed(
        self,
        identity: str,
        trigger: str,
        error_message: str,
    ) -> None:
        await self.log(AuditEventBuilder.profile_refresh_failed(
            identity, trigger, error_message
        ))

    async def log_record_committed(
        self,
        entity: str,
        action: str,
        record_id: Optional[str],
        is_local: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a write that reached the remote store or the local cache."""
        await self.log(AuditEventBuilder.record_committed(
            entity=entity,
            action=action,
            record_id=record_id,
            is_local=is_local,
            correlation_id=correlation_id,
        ))

    async def log_budget_reconciled(
        self,
        budget_id: Optional[str],
        user_id: str,
        month_year: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a duplicate budget folded into the existing row."""
        await self.log(AuditEventBuilder.budget_reconciled(
            budget_id=budget_id,
            user_id=user_id,
            month_year=month_year,
            correlation_id=correlation_id,
        ))

    async def log_write_refused(
        self,
        entity: str,
        action: str,
        reason: str,
        identity: Optional[str],
    ) -> None:
        await self.log(AuditEventBuilder.write_refused(entity, action, reason, identity))

    async def log_remote_failure(
        self,
        operation: str,
        collection: str,
        error_code: Optional[str],
        error_message: str,
        is_write: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log a failed or timed out remote store call."""
        await self.log(AuditEventBuilder.remote_failure(
            operation=operation,
            collection=collection,
            error_code=error_code,
            error_message=error_message,
            is_write=is_write,
            correlation_id=correlation_id,
        ))

    async def log_ai_response_parse_failed(
        self,
        feature: str,
        error_message: str,
    ) -> None:
        await self.log(AuditEventBuilder.ai_response_parse_failed(feature, error_message))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        event = AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    # -------------------------------------------------------------------------
    # Reading the trail back
    # -------------------------------------------------------------------------

    async def trail(self, correlation_id: UUID) -> list[AuditEvent]:
        """
        Everything recorded for one voice entry, oldest first.

        Empty when no storage is configured. Storage errors propagate.
        """
        if not self._storage:
            return []
        return await self._storage.get_events_by_correlation_id(correlation_id)

    async def recent(self, limit: int = 20) -> list[AuditEvent]:
        """Most recent persisted events, newest first."""
        if not self._storage:
            return []
        return await self._storage.get_recent_events(limit)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., a voice entry).
    Pass it through all subsequent operations.
    """
    return uuid4()
