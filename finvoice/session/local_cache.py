"""
Local-only expense cache.

Holds expenses created while the session has no remote identity.
The cache belongs to one session and is dropped when the session ends;
nothing in it is ever synced.
"""

from datetime import datetime
from typing import Optional

from finvoice.models.expense import Expense, ExpenseCreate
from finvoice.session.identity import mint_local_identity


class LocalExpenseCache:
    """In-memory expense list for a local-only session."""

    def __init__(self):
        self._expenses: list[Expense] = []

    def add(
        self,
        user_id: str,
        data: ExpenseCreate,
        now: Optional[datetime] = None,
    ) -> Expense:
        """Store a new expense under a freshly minted local id."""
        now = now or datetime.utcnow()
        expense = Expense(
            id=mint_local_identity(),
            user_id=user_id,
            amount=data.amount,
            description=data.description,
            category=data.category,
            voice_input=data.voice_input,
            date=data.date or now,
            created_at=now,
            updated_at=now,
        )
        self._expenses.append(expense)
        return expense

    def list(self) -> list[Expense]:
        """All cached expenses, newest first."""
        return sorted(self._expenses, key=lambda e: e.date, reverse=True)

    def clear(self) -> None:
        self._expenses.clear()

    def __len__(self) -> int:
        return len(self._expenses)
