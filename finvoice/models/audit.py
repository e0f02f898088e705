"""
Audit Models for FinVoice

Every session transition and every write is logged for audit purposes.
This provides:
1. Traceability of where each expense actually landed
2. Debugging information when the remote store misbehaves
3. Visibility into offline fallbacks and budget reconciliations

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Voice input
    VOICE_PARSED = "voice_parsed"
    VOICE_REJECTED = "voice_rejected"

    # Session lifecycle
    SESSION_STARTED = "session_started"
    SESSION_RESTORED = "session_restored"
    LOCAL_FALLBACK = "local_fallback"
    SESSION_ENDED = "session_ended"
    PROFILE_REFRESHED = "profile_refreshed"
    PROFILE_REFRESH_FAILED = "profile_refresh_failed"

    # Persistence
    RECORD_COMMITTED = "record_committed"
    RECORD_CACHED_LOCALLY = "record_cached_locally"
    DUPLICATE_RESOURCE_RECONCILED = "duplicate_resource_reconciled"
    WRITE_REFUSED = "write_refused"
    REMOTE_WRITE_FAILED = "remote_write_failed"
    REMOTE_READ_FAILED = "remote_read_failed"

    # AI assistant
    AI_RESPONSE_PARSE_FAILED = "ai_response_parse_failed"

    # System events
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    """

    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    event_type: AuditEventType
    severity: AuditSeverity = AuditSeverity.INFO

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'budget', 'session')"
    )
    entity_id: Optional[str] = Field(
        default=None,
        description="Record id or session identity"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(default_factory=dict)

    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = False

    def to_log_dict(self) -> dict:
        """Convert to a dictionary suitable for structured logging."""
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, entity_type, entity_id,
         correlation_id, description, details_json, error_message, is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.entity_type or "",
            self.entity_id or "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.session_started("remote", profile_id)
        event = AuditEventBuilder.budget_reconciled(budget_id, user_id, "2024-05")
    """

    @staticmethod
    def voice_parsed(
        amount: Optional[str],
        category: str,
        is_valid: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.VOICE_PARSED if is_valid else AuditEventType.VOICE_REJECTED
            ),
            severity=AuditSeverity.INFO if is_valid else AuditSeverity.WARNING,
            entity_type="voice_input",
            correlation_id=correlation_id,
            description=(
                f"Voice input parsed: {amount} ({category})"
                if is_valid else "Voice input had no recognizable amount"
            ),
            details={"amount": amount, "category": category},
            is_user_action=True,
        )

    @staticmethod
    def session_started(
        kind: str,
        identity: str,
        restored: bool = False,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.SESSION_RESTORED if restored else AuditEventType.SESSION_STARTED
            ),
            entity_type="session",
            entity_id=identity,
            description=f"{'Restored' if restored else 'Started'} {kind} session",
            details={"kind": kind},
            is_user_action=not restored,
        )

    @staticmethod
    def local_fallback(
        identity: str,
        reason: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LOCAL_FALLBACK,
            severity=AuditSeverity.WARNING,
            entity_type="session",
            entity_id=identity,
            description="Profile could not be resolved remotely, continuing local-only",
            error_message=reason,
        )

    @staticmethod
    def session_ended(identity: Optional[str], kind: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SESSION_ENDED,
            entity_type="session",
            entity_id=identity,
            description=f"Ended {kind} session",
            is_user_action=True,
        )

    @staticmethod
    def profile_refreshed(identity: str, trigger: str) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_REFRESHED,
            entity_type="profile",
            entity_id=identity,
            description=f"Profile refreshed ({trigger})",
            details={"trigger": trigger},
        )

    @staticmethod
    def profile_refresh_failed(
        identity: str,
        trigger: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROFILE_REFRESH_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="profile",
            entity_id=identity,
            description=f"Profile refresh failed ({trigger}), keeping cached values",
            details={"trigger": trigger},
            error_message=error_message,
        )

    @staticmethod
    def record_committed(
        entity: str,
        action: str,
        record_id: Optional[str],
        is_local: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.RECORD_CACHED_LOCALLY if is_local
                else AuditEventType.RECORD_COMMITTED
            ),
            entity_type=entity,
            entity_id=record_id,
            correlation_id=correlation_id,
            description=(
                f"{entity.capitalize()} {action} kept in local-only cache"
                if is_local else f"{entity.capitalize()} {action} committed remotely"
            ),
            details={"action": action},
            is_user_action=True,
        )

    @staticmethod
    def budget_reconciled(
        budget_id: Optional[str],
        user_id: str,
        month_year: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_RESOURCE_RECONCILED,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Budget for {month_year} already existed, updated in place",
            details={"user_id": user_id, "month_year": month_year},
        )

    @staticmethod
    def write_refused(
        entity: str,
        action: str,
        reason: str,
        identity: Optional[str],
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.WRITE_REFUSED,
            severity=AuditSeverity.WARNING,
            entity_type=entity,
            description=f"{entity.capitalize()} {action} refused: {reason}",
            details={"action": action, "identity": identity},
        )

    @staticmethod
    def remote_failure(
        operation: str,
        collection: str,
        error_code: Optional[str],
        error_message: str,
        is_write: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.REMOTE_WRITE_FAILED if is_write
                else AuditEventType.REMOTE_READ_FAILED
            ),
            severity=AuditSeverity.ERROR,
            entity_type=collection,
            correlation_id=correlation_id,
            description=f"Remote {operation} on {collection} failed",
            error_code=error_code,
            error_message=error_message,
            details={"operation": operation},
        )

    @staticmethod
    def ai_response_parse_failed(
        feature: str,
        error_message: str,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.AI_RESPONSE_PARSE_FAILED,
            severity=AuditSeverity.WARNING,
            entity_type="ai",
            description=f"Could not parse AI response for {feature}",
            error_message=error_message,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={"service": service},
            correlation_id=correlation_id,
        )
