"""
Tests for spending summaries.
"""

import pytest
from datetime import date, datetime
from decimal import Decimal

from finvoice.models.expense import Budget, Expense, ExpenseCategory
from finvoice.queries import (
    budget_snapshot,
    category_totals,
    describe_date_range,
    expenses_by_category,
    expenses_by_date_range,
    expenses_by_month,
    total_spent,
)


def make_expense(amount, category, day, month=5):
    when = datetime(2024, month, day, 12, 0, 0)
    return Expense(
        id=f"e-{month}-{day}-{amount}",
        user_id="u1",
        amount=Decimal(amount),
        description="test",
        category=category,
        date=when,
        created_at=when,
        updated_at=when,
    )


@pytest.fixture
def expenses():
    return [
        make_expense("300", ExpenseCategory.FOOD_DINING, 2),
        make_expense("150", ExpenseCategory.TRANSPORTATION, 3),
        make_expense("200", ExpenseCategory.FOOD_DINING, 15),
        make_expense("999", ExpenseCategory.SHOPPING, 28, month=4),
    ]


class TestTotals:
    """Tests for totals and grouping."""

    def test_total_spent(self, expenses):
        assert total_spent(expenses) == Decimal("1649")

    def test_total_of_nothing(self):
        assert total_spent([]) == Decimal("0")

    def test_category_totals(self, expenses):
        totals = category_totals(expenses)
        assert totals["foodDining"] == Decimal("500")
        assert totals["transportation"] == Decimal("150")
        assert "travel" not in totals

    def test_by_category(self, expenses):
        food = expenses_by_category(expenses, ExpenseCategory.FOOD_DINING)
        assert len(food) == 2

    def test_by_month(self, expenses):
        assert len(expenses_by_month(expenses, "2024-05")) == 3
        assert len(expenses_by_month(expenses, "2024-04")) == 1

    def test_by_date_range_is_inclusive(self, expenses):
        in_range = expenses_by_date_range(
            expenses,
            datetime(2024, 5, 3, 12, 0, 0),
            datetime(2024, 5, 15, 12, 0, 0),
        )
        assert [e.amount for e in in_range] == [Decimal("150"), Decimal("200")]


class TestBudgetSnapshot:
    """Tests for budget progress."""

    def test_snapshot(self, expenses):
        budget = Budget(
            id="b1",
            user_id="u1",
            month_year="2024-05",
            total_amount=Decimal("5000"),
            categories=[
                {"category": "foodDining", "budgeted": "2000"},
                {"category": "entertainment", "budgeted": "500"},
            ],
            created_at=datetime(2024, 5, 1),
            updated_at=datetime(2024, 5, 1),
        )

        snapshot = budget_snapshot(budget, expenses)

        assert snapshot.spent == Decimal("650")
        assert snapshot.remaining == Decimal("4350")
        by_name = {c.name: c for c in snapshot.categories}
        assert by_name["foodDining"].spent == Decimal("500")
        assert by_name["entertainment"].spent == Decimal("0")
        # Unbudgeted spending still shows up
        assert by_name["transportation"].budgeted == Decimal("0")
        assert by_name["transportation"].spent == Decimal("150")
        assert "shopping" not in by_name


class TestDescribeDateRange:
    """Tests for human-readable ranges."""

    @pytest.mark.parametrize("date_from,date_to,expected", [
        (date(2024, 5, 1), date(2024, 5, 1), "on 01 May 2024"),
        (date(2024, 5, 1), date(2024, 5, 31), "in May 2024"),
        (date(2024, 3, 1), date(2024, 5, 31), "from Mar to May 2024"),
        (date(2023, 12, 1), date(2024, 1, 31), "from Dec 2023 to Jan 2024"),
        (date(2024, 5, 1), None, "from 01 May 2024"),
        (None, date(2024, 5, 1), "until 01 May 2024"),
        (None, None, ""),
    ])
    def test_ranges(self, date_from, date_to, expected):
        assert describe_date_range(date_from, date_to) == expected


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
