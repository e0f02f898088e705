"""
Tests for local identities and the local-only expense cache.
"""

import pytest
from datetime import datetime, timedelta
from decimal import Decimal

from finvoice.models.expense import ExpenseCategory, ExpenseCreate
from finvoice.session import LocalExpenseCache, is_local_only, mint_local_identity


class TestIdentity:
    """Tests for the local_ prefix."""

    @pytest.mark.parametrize("identity,expected", [
        ("local_1715331600000", True),
        ("b7d5c0e2-9a41-4c55-8f0e-1d2c3b4a5968", False),
        ("LOCAL_1715331600000", False),
        ("", False),
        (None, False),
    ])
    def test_is_local_only(self, identity, expected):
        assert is_local_only(identity) is expected

    def test_minted_ids_are_local(self):
        assert is_local_only(mint_local_identity())

    def test_minted_ids_strictly_increase(self):
        ids = [mint_local_identity() for _ in range(50)]
        millis = [int(i[len("local_"):]) for i in ids]
        assert millis == sorted(set(millis))


class TestLocalExpenseCache:
    """Tests for the in-memory cache."""

    def test_add_assigns_local_id(self):
        cache = LocalExpenseCache()
        now = datetime(2024, 5, 10, 9, 0, 0)

        expense = cache.add(
            "local_1",
            ExpenseCreate(amount=Decimal("80"), description="chai", category=ExpenseCategory.FOOD_DINING),
            now=now,
        )

        assert is_local_only(expense.id)
        assert expense.user_id == "local_1"
        assert expense.date == now
        assert len(cache) == 1

    def test_list_newest_first(self):
        cache = LocalExpenseCache()
        base = datetime(2024, 5, 10, 9, 0, 0)
        for offset, description in [(0, "first"), (2, "third"), (1, "second")]:
            cache.add(
                "local_1",
                ExpenseCreate(
                    amount=Decimal("10"),
                    description=description,
                    date=base + timedelta(hours=offset),
                ),
            )

        assert [e.description for e in cache.list()] == ["third", "second", "first"]

    def test_clear(self):
        cache = LocalExpenseCache()
        cache.add("local_1", ExpenseCreate(amount=Decimal("10"), description="x"))
        cache.clear()
        assert len(cache) == 0
        assert cache.list() == []


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
