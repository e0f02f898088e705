"""Spending summaries package."""

from finvoice.queries.summaries import (
    BudgetSnapshot,
    CategorySpend,
    budget_snapshot,
    category_totals,
    describe_date_range,
    expenses_by_category,
    expenses_by_date_range,
    expenses_by_month,
    total_spent,
)

__all__ = [
    "BudgetSnapshot",
    "CategorySpend",
    "budget_snapshot",
    "category_totals",
    "describe_date_range",
    "expenses_by_category",
    "expenses_by_date_range",
    "expenses_by_month",
    "total_spent",
]
