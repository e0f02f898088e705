"""
Spending Summaries

DESIGN DECISION: Summaries are DETERMINISTIC.
Totals and budget progress are computed here from stored expenses.
The insights agent only ever sees these numbers; it never computes
or estimates them itself.
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Iterable, Optional

from pydantic import BaseModel, Field

from finvoice.models.expense import Budget, Expense, ExpenseCategory


class CategorySpend(BaseModel):
    """Budgeted vs spent for one category."""

    name: str
    budgeted: Decimal = Decimal("0")
    spent: Decimal = Decimal("0")


class BudgetSnapshot(BaseModel):
    """
    Where a month stands against its budget.

    This is the input to financial insights.
    """

    month_year: str
    total: Decimal
    spent: Decimal
    categories: list[CategorySpend] = Field(default_factory=list)

    @property
    def remaining(self) -> Decimal:
        return self.total - self.spent


def total_spent(expenses: Iterable[Expense]) -> Decimal:
    return sum((e.amount for e in expenses), Decimal("0"))


def category_totals(expenses: Iterable[Expense]) -> dict[str, Decimal]:
    """Total spent per category id, only for categories that have expenses."""
    totals: dict[str, Decimal] = {}
    for expense in expenses:
        key = expense.category.value
        totals[key] = totals.get(key, Decimal("0")) + expense.amount
    return totals


def expenses_by_category(
    expenses: Iterable[Expense],
    category: ExpenseCategory,
) -> list[Expense]:
    return [e for e in expenses if e.category == category]


def expenses_by_date_range(
    expenses: Iterable[Expense],
    start: datetime,
    end: datetime,
) -> list[Expense]:
    """Expenses dated within [start, end], inclusive."""
    return [e for e in expenses if start <= e.date <= end]


def expenses_by_month(
    expenses: Iterable[Expense],
    month_year: str,
) -> list[Expense]:
    """Expenses dated in the given YYYY-MM month."""
    return [e for e in expenses if e.date.strftime("%Y-%m") == month_year]


def budget_snapshot(budget: Budget, expenses: Iterable[Expense]) -> BudgetSnapshot:
    """
    Compare a budget with the expenses of its month.

    Categories with spending but no allocation still show up,
    with budgeted = 0.
    """
    month_expenses = expenses_by_month(expenses, budget.month_year)
    spent_by_category = category_totals(month_expenses)

    categories = []
    seen = set()
    for allocation in budget.categories:
        key = allocation.category.value
        seen.add(key)
        categories.append(CategorySpend(
            name=key,
            budgeted=allocation.budgeted,
            spent=spent_by_category.get(key, Decimal("0")),
        ))
    for key, spent in spent_by_category.items():
        if key not in seen:
            categories.append(CategorySpend(name=key, spent=spent))

    return BudgetSnapshot(
        month_year=budget.month_year,
        total=budget.total_amount,
        spent=total_spent(month_expenses),
        categories=categories,
    )


def describe_date_range(
    date_from: Optional[date],
    date_to: Optional[date],
) -> str:
    """Human-readable date range, e.g. 'in May 2024'."""
    if date_from and date_to:
        if date_from == date_to:
            return f"on {date_from.strftime('%d %b %Y')}"
        elif date_from.month == date_to.month and date_from.year == date_to.year:
            return f"in {date_from.strftime('%B %Y')}"
        elif date_from.year == date_to.year:
            return f"from {date_from.strftime('%b')} to {date_to.strftime('%b %Y')}"
        else:
            return f"from {date_from.strftime('%b %Y')} to {date_to.strftime('%b %Y')}"
    elif date_from:
        return f"from {date_from.strftime('%d %b %Y')}"
    elif date_to:
        return f"until {date_to.strftime('%d %b %Y')}"
    return ""
