"""
Data Models Package

This package contains all Pydantic models used in FinVoice.
All data flowing through the system must conform to these schemas.
"""

from finvoice.models.expense import (
    CATEGORY_INFO,
    Budget,
    BudgetAllocation,
    BudgetCreate,
    BudgetUpdate,
    CategoryInfo,
    Expense,
    ExpenseCandidate,
    ExpenseCategory,
    ExpenseCreate,
    ExpenseUpdate,
    ProfileUpdate,
    UserProfile,
    get_category_info,
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
from finvoice.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "CATEGORY_INFO",
    "Budget",
    "BudgetAllocation",
    "BudgetCreate",
    "BudgetUpdate",
    "CategoryInfo",
    "Expense",
    "ExpenseCandidate",
    "ExpenseCategory",
    "ExpenseCreate",
    "ExpenseUpdate",
    "ProfileUpdate",
    "UserProfile",
    "get_category_info",
    # Session models
    "COLLECTIONS",
    "CachedCredentials",
    "CommitOutcome",
    "EntityType",
    "PendingWrite",
    "RefreshTrigger",
    "Session",
    "SessionKind",
    "StoredRecord",
    "WriteAction",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
