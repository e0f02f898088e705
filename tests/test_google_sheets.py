"""
Tests for the Google Sheets remote store.

The gspread worksheet is replaced by an in-memory grid, so these check
row mapping and key enforcement without touching the network.
"""

import pytest
from decimal import Decimal

from finvoice.models.audit import AuditEventBuilder
from finvoice.models.expense import Expense, ExpenseCategory
from finvoice.services.storage import (
    DuplicateError,
    GoogleSheetsAuditStorage,
    GoogleSheetsRemoteStore,
    NotFoundError,
    StorageError,
)
from finvoice.services.storage.google_sheets import AUDIT_COLUMNS, COLLECTION_COLUMNS, to_cell


class FakeWorksheet:
    """Just enough of gspread.Worksheet."""

    def __init__(self, header):
        self.rows = [list(header)]
        self.broken = False

    def get_all_values(self):
        if self.broken:
            raise RuntimeError("quota exceeded")
        return [list(r) for r in self.rows]

    def append_row(self, row, value_input_option=None):
        self.rows.append(list(row))

    def update(self, range_name, values):
        self.rows[int(range_name[1:]) - 1] = list(values[0])

    def delete_rows(self, index):
        del self.rows[index - 1]


class FakeSheetsClient:
    def __init__(self):
        self.sheets = {name: FakeWorksheet(cols) for name, cols in COLLECTION_COLUMNS.items()}
        self.audit = FakeWorksheet(AUDIT_COLUMNS)

    def get_collection_sheet(self, collection):
        return self.sheets[collection]

    def get_audit_sheet(self):
        return self.audit


@pytest.fixture
def client():
    return FakeSheetsClient()


@pytest.fixture
def sheets_store(client):
    return GoogleSheetsRemoteStore(client)


def expense_payload(**overrides):
    payload = {
        "user_id": "u1",
        "amount": Decimal("500"),
        "description": "dinner",
        "category": "foodDining",
        "voice_input": "add dinner 500 rupees",
        "date": "2024-05-10T09:00:00",
    }
    payload.update(overrides)
    return payload


class TestToCell:
    """Tests for cell serialization."""

    def test_values(self):
        assert to_cell(None) == ""
        assert to_cell(Decimal("12.50")) == "12.50"
        assert to_cell(ExpenseCategory.TRAVEL) == "travel"
        assert to_cell([{"category": "travel"}]) == '[{"category": "travel"}]'


class TestGoogleSheetsRemoteStore:
    """Tests for the Sheets-backed store."""

    def test_insert_assigns_id(self, sheets_store, client, run):
        record = run(sheets_store.insert("expenses", expense_payload()))

        assert record["id"]
        assert record["amount"] == "500"
        assert len(client.sheets["expenses"].rows) == 2

    def test_rows_validate_as_models(self, sheets_store, run):
        record = run(sheets_store.insert("expenses", expense_payload(voice_input=None)))

        expense = Expense.model_validate(record)

        assert expense.amount == Decimal("500")
        assert expense.category == ExpenseCategory.FOOD_DINING
        assert expense.voice_input is None

    def test_duplicate_phone(self, sheets_store, run):
        run(sheets_store.insert("profiles", {"name": "Asha", "phone": "9876543210"}))

        with pytest.raises(DuplicateError):
            run(sheets_store.insert("profiles", {"name": "Other", "phone": "9876543210"}))

    def test_one_budget_per_month(self, sheets_store, run):
        budget = {"user_id": "u1", "total_amount": "5000", "categories": []}
        run(sheets_store.insert("budgets", {**budget, "month_year": "2024-05"}))
        run(sheets_store.insert("budgets", {**budget, "month_year": "2024-06"}))

        with pytest.raises(DuplicateError):
            run(sheets_store.insert("budgets", {**budget, "month_year": "2024-05"}))

    def test_json_columns_round_trip(self, sheets_store, run):
        categories = [{"category": "foodDining", "budgeted": "2000"}]
        run(sheets_store.insert("budgets", {
            "user_id": "u1", "month_year": "2024-05",
            "total_amount": "5000", "categories": categories,
        }))

        record = run(sheets_store.select_one("budgets", {"user_id": "u1"}))

        assert record["categories"] == categories

    def test_select_filters_and_orders(self, sheets_store, run):
        run(sheets_store.insert("expenses", expense_payload(date="2024-05-01T10:00:00")))
        run(sheets_store.insert("expenses", expense_payload(date="2024-05-09T10:00:00")))
        run(sheets_store.insert("expenses", expense_payload(user_id="u2")))

        rows = run(sheets_store.select(
            "expenses", {"user_id": "u1"}, order_by="date", descending=True
        ))

        assert [r["date"] for r in rows] == ["2024-05-09T10:00:00", "2024-05-01T10:00:00"]

    def test_select_one_missing(self, sheets_store, run):
        with pytest.raises(NotFoundError):
            run(sheets_store.select_one("profiles", {"phone": "0000000000"}))

    def test_update_in_place(self, sheets_store, client, run):
        created = run(sheets_store.insert("expenses", expense_payload()))

        updated = run(sheets_store.update(
            "expenses", {"id": created["id"], "user_id": "u1"}, {"amount": "650"}
        ))

        assert updated["amount"] == "650"
        assert updated["description"] == "dinner"
        assert len(client.sheets["expenses"].rows) == 2

    def test_update_respects_owner(self, sheets_store, run):
        created = run(sheets_store.insert("expenses", expense_payload()))

        with pytest.raises(NotFoundError):
            run(sheets_store.update(
                "expenses", {"id": created["id"], "user_id": "u2"}, {"amount": "1"}
            ))

    def test_update_cannot_create_duplicate(self, sheets_store, run):
        run(sheets_store.insert("profiles", {"name": "Asha", "phone": "9876543210"}))
        other = run(sheets_store.insert("profiles", {"name": "Ravi", "phone": "9123456780"}))

        with pytest.raises(DuplicateError):
            run(sheets_store.update("profiles", {"id": other["id"]}, {"phone": "9876543210"}))

    def test_delete(self, sheets_store, client, run):
        created = run(sheets_store.insert("expenses", expense_payload()))

        deleted = run(sheets_store.delete("expenses", {"id": created["id"]}))

        assert deleted["id"] == created["id"]
        assert len(client.sheets["expenses"].rows) == 1
        with pytest.raises(NotFoundError):
            run(sheets_store.delete("expenses", {"id": created["id"]}))

    def test_upsert_creates_then_updates_in_place(self, sheets_store, client, run):
        keys = ("user_id", "month_year")
        payload = {"user_id": "u1", "month_year": "2024-05", "total_amount": "5000", "categories": []}

        first, created = run(sheets_store.upsert("budgets", keys, payload, {"total_amount": "5000"}))
        second, reconciled = run(sheets_store.upsert(
            "budgets", keys, {**payload, "total_amount": "7000"}, {"total_amount": "7000"}
        ))

        assert created is True
        assert reconciled is False
        assert second["id"] == first["id"]
        assert second["total_amount"] == "7000"
        assert len(client.sheets["budgets"].rows) == 2

    def test_upsert_other_key_is_a_new_row(self, sheets_store, client, run):
        keys = ("user_id", "month_year")
        base = {"user_id": "u1", "total_amount": "5000", "categories": []}

        run(sheets_store.upsert("budgets", keys, {**base, "month_year": "2024-05"}, {}))
        _, created = run(sheets_store.upsert("budgets", keys, {**base, "month_year": "2024-06"}, {}))

        assert created is True
        assert len(client.sheets["budgets"].rows) == 3

    def test_sheet_errors_become_storage_errors(self, sheets_store, client, run):
        client.sheets["expenses"].broken = True

        with pytest.raises(StorageError):
            run(sheets_store.select("expenses", {"user_id": "u1"}))


class TestGoogleSheetsAuditStorage:
    """Tests for the audit worksheet."""

    def test_append_and_read_back(self, client, run):
        storage = GoogleSheetsAuditStorage(client)
        event = AuditEventBuilder.session_started("remote", "u1")

        assert run(storage.append_event(event)) is True
        events = run(storage.get_recent_events())

        assert len(events) == 1
        assert events[0].event_id == event.event_id
        assert events[0].entity_id == "u1"
        assert events[0].details == {"kind": "remote"}

    def test_malformed_rows_are_skipped(self, client, run):
        client.audit.rows.append(["not-a-uuid", "yesterday"])
        storage = GoogleSheetsAuditStorage(client)

        assert run(storage.get_recent_events()) == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
