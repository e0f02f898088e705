"""
Main Orchestrator for FinVoice

This module ties together all the components and defines the
end-to-end flows for:
1. Voice expense entry (text → parse → review → commit)
2. Insights (budgets + expenses → snapshot → Gemini)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing is committed from an invalid candidate
- Parsing and saving are separate steps so the user can review in between
- Every step is audited
"""

from decimal import Decimal
from typing import Optional
from uuid import UUID

import structlog
from pydantic import ValidationError

from finvoice.agents import FinancialInsights, InsightsAgent, InvestmentAdvice
from finvoice.audit import AuditLogger, create_correlation_id
from finvoice.config import get_settings
from finvoice.errors import InvalidInputError
from finvoice.models.expense import ExpenseCandidate, ExpenseCategory
from finvoice.models.session import EntityType, PendingWrite, StoredRecord, WriteAction
from finvoice.parsing import parse_expense_text
from finvoice.queries import budget_snapshot
from finvoice.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsRemoteStore,
    OfflineRemoteStore,
    RemoteStore,
)
from finvoice.session import SessionManager


logger = structlog.get_logger(__name__)


class VoiceExpenseFlow:
    """
    Orchestrates voice expense entry.

    Flow:
    1. Parse → ExpenseCandidate (pure, never raises)
    2. Review → The UI shows the candidate; the user may change the category
    3. Save → Commit through the session manager

    An invalid candidate is never committed.
    """

    def __init__(
        self,
        session_manager: SessionManager,
        audit_logger: Optional[AuditLogger] = None,
        confidence: Optional[float] = None,
    ):
        self._manager = session_manager
        self._audit_logger = audit_logger
        self._confidence = (
            confidence if confidence is not None
            else get_settings().app.default_voice_confidence
        )

    async def parse(
        self,
        text: str,
        correlation_id: Optional[UUID] = None,
    ) -> ExpenseCandidate:
        """Parse transcribed text into a candidate for review."""
        candidate = parse_expense_text(text, confidence=self._confidence)

        if self._audit_logger:
            await self._audit_logger.log_voice_parsed(
                amount=str(candidate.amount) if candidate.amount is not None else None,
                category=candidate.category.value,
                is_valid=candidate.is_valid,
                correlation_id=correlation_id,
            )
        return candidate

    async def save(
        self,
        candidate: ExpenseCandidate,
        category: Optional[ExpenseCategory] = None,
        description: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> StoredRecord:
        """
        Commit a reviewed candidate.

        Args:
            candidate: Output of parse()
            category: User's override of the suggested category
            description: User's override of the cleaned description

        Raises:
            InvalidInputError: If the candidate has no amount or description
            (plus anything SessionManager.commit raises)
        """
        if not candidate.is_valid:
            raise InvalidInputError(
                "Could not find an amount in what you said. "
                "Try something like 'Add dinner 500 rupees'."
            )

        write = PendingWrite(
            entity=EntityType.EXPENSE,
            action=WriteAction.CREATE,
            payload={
                "amount": candidate.amount,
                "description": description or candidate.description,
                "category": category or candidate.category,
                "voice_input": candidate.original_text,
            },
        )
        return await self._manager.commit(write, correlation_id=correlation_id)

    async def record(self, text: str) -> tuple[ExpenseCandidate, StoredRecord]:
        """Parse and save in one go, for callers that skip review."""
        correlation_id = create_correlation_id()
        candidate = await self.parse(text, correlation_id=correlation_id)
        stored = await self.save(candidate, correlation_id=correlation_id)
        return candidate, stored


class InsightsFlow:
    """
    Orchestrates the insights screen.

    Numbers come from the session's own budgets and expenses;
    Gemini only comments on them.
    """

    def __init__(
        self,
        session_manager: SessionManager,
        agent: Optional[InsightsAgent] = None,
    ):
        self._manager = session_manager
        self._agent = agent or InsightsAgent()

    def _language(self, language: Optional[str]) -> str:
        if language:
            return language
        profile = self._manager.session.profile
        return profile.language if profile else "en"

    async def financial_insights(
        self,
        month_year: Optional[str] = None,
        language: Optional[str] = None,
    ) -> FinancialInsights:
        """
        Insights for the given month, or the latest budgeted month.

        Raises:
            InvalidInputError: If there is no budget to analyze
        """
        budgets = await self._manager.list_budgets()
        if month_year:
            budgets = [b for b in budgets if b.month_year == month_year]
        if not budgets:
            raise InvalidInputError("Set a budget first to get insights")

        expenses = await self._manager.list_expenses()
        snapshot = budget_snapshot(budgets[0], expenses)
        return await self._agent.financial_insights(snapshot, self._language(language))

    async def investment_advice(
        self,
        age: int,
        future_plans: str,
        income: Decimal,
        language: Optional[str] = None,
    ) -> InvestmentAdvice:
        if age <= 0 or income <= 0 or not (future_plans or "").strip():
            raise InvalidInputError("Age, future plans, and income are required")
        return await self._agent.investment_advice(
            age, future_plans.strip(), income, self._language(language)
        )


def create_app_components(
    use_storage: bool = True,
) -> tuple[SessionManager, VoiceExpenseFlow, InsightsFlow]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Without it every login ends up local-only.

    Returns:
        (session_manager, voice_flow, insights_flow)
    """
    store: RemoteStore = OfflineRemoteStore()
    audit_logger = AuditLogger()  # Local-only logging

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            store = GoogleSheetsRemoteStore(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except ValidationError as e:
            logger.warning("storage_not_configured", error=str(e))

    session_manager = SessionManager(store=store, audit_logger=audit_logger)
    voice_flow = VoiceExpenseFlow(session_manager, audit_logger=audit_logger)
    insights_flow = InsightsFlow(
        session_manager,
        agent=InsightsAgent(audit_logger=audit_logger),
    )

    return session_manager, voice_flow, insights_flow
