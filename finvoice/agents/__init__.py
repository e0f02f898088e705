"""AI Agents package."""

from finvoice.agents.ai_agents import (
    FinancialInsights,
    InsightsAgent,
    InvestmentAdvice,
    build_advice_prompt,
    build_insights_prompt,
)
from finvoice.agents.response_parsing import (
    RECOMMENDATIONS_MARKER,
    extract_bullet_points,
    extract_json_block,
    split_insights_response,
)

__all__ = [
    "FinancialInsights",
    "InsightsAgent",
    "InvestmentAdvice",
    "RECOMMENDATIONS_MARKER",
    "build_advice_prompt",
    "build_insights_prompt",
    "extract_bullet_points",
    "extract_json_block",
    "split_insights_response",
]
