"""
Tests for FinVoice models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (with in-memory fakes)
3. No real API calls in tests
"""

import pytest
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from pydantic import ValidationError

from finvoice.models.expense import (
    BudgetCreate,
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
    EntityType,
    PendingWrite,
    Session,
    SessionKind,
    StoredRecord,
    CommitOutcome,
    WriteAction,
)
from finvoice.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


NOW = datetime(2024, 5, 10, 9, 0, 0)


class TestExpenseModels:
    """Tests for expense-related Pydantic models."""

    def test_candidate_valid(self):
        candidate = ExpenseCandidate(
            amount=Decimal("120"),
            description="lunch",
            category=ExpenseCategory.FOOD_DINING,
            is_valid=True,
        )
        assert candidate.is_valid is True
        assert candidate.confidence == 0.85

    def test_candidate_cannot_claim_validity_without_amount(self):
        """is_valid is derived, never asserted."""
        with pytest.raises(ValidationError):
            ExpenseCandidate(amount=None, description="lunch", is_valid=True)

    def test_candidate_cannot_be_invalid_with_amount_and_description(self):
        with pytest.raises(ValidationError):
            ExpenseCandidate(amount=Decimal("5"), description="tea", is_valid=False)

    def test_candidate_is_immutable(self):
        candidate = ExpenseCandidate(description="x", is_valid=False)
        with pytest.raises(ValidationError):
            candidate.amount = Decimal("1")

    def test_expense_create_rejects_non_positive_amount(self):
        with pytest.raises(ValidationError):
            ExpenseCreate(amount=Decimal("0"), description="free")

    def test_expense_create_strips_whitespace(self):
        payload = ExpenseCreate(amount=Decimal("10"), description="  chai  ")
        assert payload.description == "chai"
        assert payload.category == ExpenseCategory.OTHER

    def test_expense_update_requires_a_field(self):
        with pytest.raises(ValidationError):
            ExpenseUpdate()

    def test_expense_update_ignores_immutable_fields(self):
        update = ExpenseUpdate(amount=Decimal("50"), user_id="someone-else")
        assert update.model_dump(exclude_none=True) == {"amount": Decimal("50")}

    def test_unknown_stored_category_reads_as_other(self):
        expense = Expense(
            id="e1",
            user_id="u1",
            amount=Decimal("10"),
            description="old row",
            category="groceries",
            date=NOW,
            created_at=NOW,
            updated_at=NOW,
        )
        assert expense.category == ExpenseCategory.OTHER

    @pytest.mark.parametrize("month_year", ["2024-13", "24-05", "2024-5", "May 2024"])
    def test_budget_month_format(self, month_year):
        with pytest.raises(ValidationError):
            BudgetCreate(
                month_year=month_year,
                total_amount=Decimal("1000"),
                categories=[{"category": "foodDining", "budgeted": "500"}],
            )

    def test_budget_needs_categories(self):
        with pytest.raises(ValidationError):
            BudgetCreate(month_year="2024-05", total_amount=Decimal("1000"), categories=[])

    def test_profile_update_phone_length(self):
        with pytest.raises(ValidationError):
            ProfileUpdate(phone="123")

    def test_profile_blank_preferences_use_defaults(self):
        profile = UserProfile(id="p1", name="Asha", phone="9876543210", language="", theme=None)
        assert profile.language == "en"
        assert profile.theme == "light"
        assert profile.currency == "INR"


class TestCategoryInfo:
    """Tests for category display metadata."""

    def test_known_category(self):
        info = get_category_info("foodDining")
        assert info.label == "Food & Dining"

    def test_unknown_category_displays_as_other(self):
        assert get_category_info("groceries").label == "Other"
        assert get_category_info("other").label == "Other"

    def test_category_values(self):
        assert ExpenseCategory.FOOD_DINING.value == "foodDining"
        assert len(ExpenseCategory) == 9


class TestSessionModels:
    """Tests for session and write models."""

    def test_unauthenticated_default(self):
        session = Session()
        assert session.kind == SessionKind.UNAUTHENTICATED
        assert session.is_authenticated is False
        assert session.can_use_remote is False

    def test_remote_session(self):
        session = Session(kind=SessionKind.REMOTE, identity="b7d5c0e2")
        assert session.can_use_remote is True

    def test_local_session(self):
        session = Session(kind=SessionKind.LOCAL_ONLY, identity="local_1715331600000")
        assert session.is_authenticated is True
        assert session.can_use_remote is False

    def test_remote_kind_rejects_local_identity(self):
        with pytest.raises(ValidationError):
            Session(kind=SessionKind.REMOTE, identity="local_1715331600000")

    def test_local_kind_rejects_remote_identity(self):
        with pytest.raises(ValidationError):
            Session(kind=SessionKind.LOCAL_ONLY, identity="b7d5c0e2")

    def test_unauthenticated_rejects_identity(self):
        with pytest.raises(ValidationError):
            Session(identity="b7d5c0e2")

    @pytest.mark.parametrize("action", [WriteAction.UPDATE, WriteAction.DELETE])
    def test_mutation_requires_record_id(self, action):
        with pytest.raises(ValidationError):
            PendingWrite(entity=EntityType.EXPENSE, action=action, payload={"amount": "5"})

    def test_profile_update_needs_no_record_id(self):
        write = PendingWrite(
            entity=EntityType.PROFILE,
            action=WriteAction.UPDATE,
            payload={"name": "Asha"},
        )
        assert write.record_id is None

    def test_stored_record_id(self):
        stored = StoredRecord(
            entity=EntityType.EXPENSE,
            action=WriteAction.CREATE,
            outcome=CommitOutcome.CREATED,
            record={"id": "e1"},
        )
        assert stored.record_id == "e1"
        assert stored.is_local is False


class TestAuditModels:
    """Tests for audit-related models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.SESSION_STARTED,
            description="Started remote session",
        )
        assert event.event_type == AuditEventType.SESSION_STARTED
        assert event.severity == AuditSeverity.INFO

    def test_audit_event_to_log_dict(self):
        event = AuditEvent(
            event_type=AuditEventType.RECORD_COMMITTED,
            description="Expense create committed remotely",
            details={"action": "create"},
        )
        log_dict = event.to_log_dict()
        assert "event_id" in log_dict
        assert log_dict["event_type"] == "record_committed"
        assert log_dict["details"]["action"] == "create"

    def test_audit_event_to_sheets_row(self):
        event = AuditEvent(
            event_type=AuditEventType.SESSION_ENDED,
            description="Ended remote session",
            is_user_action=True,
        )
        row = event.to_sheets_row()
        assert len(row) == 11
        assert row[2] == "session_ended"
        assert row[10] == "True"

    def test_builder_local_fallback(self):
        event = AuditEventBuilder.local_fallback("local_1715331600000", "connection_error")
        assert event.event_type == AuditEventType.LOCAL_FALLBACK
        assert event.severity == AuditSeverity.WARNING
        assert event.entity_id == "local_1715331600000"
        assert event.error_message == "connection_error"

    def test_builder_record_committed_local(self):
        correlation_id = uuid4()
        event = AuditEventBuilder.record_committed(
            "expense", "create", "local_1", is_local=True, correlation_id=correlation_id
        )
        assert event.event_type == AuditEventType.RECORD_CACHED_LOCALLY
        assert event.correlation_id == correlation_id
        assert event.is_user_action is True

    def test_builder_remote_failure(self):
        event = AuditEventBuilder.remote_failure(
            "insert", "expenses", "timeout", "timed out", is_write=True
        )
        assert event.event_type == AuditEventType.REMOTE_WRITE_FAILED
        assert event.error_code == "timeout"

        read = AuditEventBuilder.remote_failure(
            "select", "expenses", "connection_error", "down", is_write=False
        )
        assert read.event_type == AuditEventType.REMOTE_READ_FAILED

    def test_builder_voice_rejected(self):
        event = AuditEventBuilder.voice_parsed(None, "other", is_valid=False)
        assert event.event_type == AuditEventType.VOICE_REJECTED
        assert event.severity == AuditSeverity.WARNING


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
