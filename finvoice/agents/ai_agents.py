"""
AI Agents for FinVoice

DESIGN DECISION: Gemini is used only for advice text.
It never sees raw storage and never produces numbers we persist.

CRITICAL BOUNDARIES:

1. FINANCIAL INSIGHTS:
   - CAN: Score and comment on a budget snapshot we computed
   - CANNOT: Compute totals itself (queries.summaries does that)
   - MUST: Return JSON we can parse, or the call fails loudly

2. INVESTMENT ADVICE:
   - CAN: Suggest 2-3 ideas from age, goals and income
   - CANNOT: Persist anything

When Gemini is not configured, both features answer with static
advice marked is_fallback=True, so the UI can say so.
"""

from decimal import Decimal
from typing import Any, Optional

import google.generativeai as genai
import structlog
from pydantic import BaseModel, Field, ValidationError

from finvoice.agents.response_parsing import (
    RECOMMENDATIONS_MARKER,
    extract_bullet_points,
    extract_json_block,
    split_insights_response,
)
from finvoice.audit import AuditLogger
from finvoice.config import GeminiSettings, get_settings
from finvoice.errors import AIResponseParseError, FinVoiceError
from finvoice.queries.summaries import BudgetSnapshot


logger = structlog.get_logger(__name__)


INSIGHTS_PROMPTS = {
    "en": "Analyze this financial data and provide insights in English:",
    "hi": "इस वित्तीय डेटा का विश्लेषण करें और हिंदी में अंतर्दृष्टि प्रदान करें:",
    "bn": "এই আর্থিক তথ্য বিশ্লেষণ করুন এবং বাংলায় অন্তর্দৃষ্টি প্রদান করুন:",
    "or": "ଏହି ଆର୍ଥିକ ତଥ୍ୟ ବିଶ୍ଳେଷଣ କରନ୍ତୁ ଏବଂ ଓଡ଼ିଆରେ ଅନ୍ତର୍ଦୃଷ୍ଟି ପ୍ରଦାନ କରନ୍ତୁ:",
    "pa": "ਇਸ ਵਿੱਤੀ ਡੇਟਾ ਦਾ ਵਿਸ਼ਲੇਸ਼ਣ ਕਰੋ ਅਤੇ ਪੰਜਾਬੀ ਵਿੱਚ ਅੰਤਰਦ੍ਰਿਸ਼ਟੀ ਪ੍ਰਦਾਨ ਕਰੋ:",
    "kn": "ಈ ಆರ್ಥಿಕ ಡೇಟಾವನ್ನು ವಿಶ್ಲೇಷಿಸಿ ಮತ್ತು ಕನ್ನಡದಲ್ಲಿ ಒಳನೋಟಗಳನ್ನು ನೀಡಿ:",
    "mar": "या आर्थिक डेटाचे विश्लेषण करा आणि मराठीत अंतर्दृष्टी द्या:",
}

ADVICE_PROMPTS = {
    "en": "Based on your details, provide investment advice in English:",
    "hi": "आपकी जानकारी के आधार पर, हिंदी में निवेश सलाह दें:",
    "bn": "আপনার বিবরণের উপর ভিত্তি করে, বাংলায় বিনিয়োগের পরামর্শ দিন:",
    "or": "ଆପଣଙ୍କ ବିବରଣୀ ଆଧାରରେ, ଓଡ଼ିଆରେ ନିବେଶ ପରାମର୍ଶ ଦିଅନ୍ତୁ:",
    "pa": "ਹੇ ਸਮਾਰਟ ਨਿਵੇਸ਼ਕ! ਤੁਹਾਡੇ ਵੇਰਵਿਆਂ ਦੇ ਆਧਾਰ 'ਤੇ, ਪੰਜਾਬੀ ਵਿੱਚ ਨਿਵੇਸ਼ ਸਲਾਹ ਦਿਓ:",
    "kn": "ನಿಮ್ಮ ವಿವರಗಳ ಆಧಾರದ ಮೇಲೆ, ಕನ್ನಡದಲ್ಲಿ ಹೂಡಿಕೆ ಸಲಹೆ ನೀಡಿ:",
    "mar": "तुमच्या तपशीलांच्या आधारे, मराठीत गुंतवणूक सल्ला द्या:",
}

FALLBACK_SCORE = 75

FALLBACK_SPENDING_ANALYSIS = {
    "foodDining": "25%",
    "transportation": "15%",
    "entertainment": "20%",
    "utilities": "10%",
    "shopping": "20%",
    "other": "10%",
}

FALLBACK_RECOMMENDATIONS = [
    "Track your daily expenses to identify spending patterns",
    "Set realistic budget limits for each category",
    "Consider using cash for discretionary spending",
    "Review and adjust your budget monthly",
]

FALLBACK_INVESTMENT_ADVICE = [
    "**Mutual Funds**: Start with SIPs in diversified equity funds for long-term wealth building",
    "**Fixed Deposits**: Consider high-yield FDs for stable returns and capital preservation",
    "**Gold ETFs**: Invest in digital gold for portfolio diversification and inflation hedge",
]


class FinancialInsights(BaseModel):
    """Health score, spending breakdown and recommendations for one budget."""

    financial_score: Optional[int] = Field(default=None, ge=0, le=100)
    spending_analysis: dict[str, Any] = Field(default_factory=dict)
    recommendations: list[str] = Field(default_factory=list)
    is_fallback: bool = False


class InvestmentAdvice(BaseModel):
    """Short investment ideas, one per bullet."""

    points: list[str] = Field(default_factory=list)
    raw_response: str = ""
    is_fallback: bool = False


class InsightsAgent:
    """
    AI agent for the insights screen.

    RESPONSIBILITIES:
    - Turn a BudgetSnapshot into a score, breakdown and recommendations
    - Turn a user's age, goals and income into investment ideas

    BOUNDARIES:
    - Only sees numbers computed by queries.summaries
    - NEVER persists data
    """

    def __init__(
        self,
        settings: Optional[GeminiSettings] = None,
        audit_logger: Optional[AuditLogger] = None,
        model: Optional[Any] = None,
    ):
        """
        Args:
            settings: Gemini settings. Read from the environment if omitted.
            audit_logger: Where parse and service failures are recorded.
            model: Pre-built model exposing generate_content_async.
        """
        self._audit = audit_logger or AuditLogger()
        self._model = model

        if self._model is None:
            if settings is None:
                try:
                    settings = get_settings().gemini
                except ValidationError:
                    logger.info("gemini_not_configured")
                    settings = None
            if settings is not None:
                self._configure_genai(settings)

    def _configure_genai(self, settings: GeminiSettings):
        """Configure Google Generative AI."""
        genai.configure(api_key=settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=settings.model_name,
            generation_config={
                "temperature": settings.temperature,
                "max_output_tokens": settings.max_tokens,
            }
        )

    @property
    def is_configured(self) -> bool:
        return self._model is not None

    async def _generate(self, feature: str, prompt: str) -> str:
        try:
            response = await self._model.generate_content_async(prompt)
            return response.text
        except Exception as e:
            await self._audit.log_external_service_error("gemini", f"{feature}: {e}")
            raise FinVoiceError(f"AI service failed to generate {feature}") from e

    async def financial_insights(
        self,
        snapshot: BudgetSnapshot,
        language: str = "en",
    ) -> FinancialInsights:
        """
        Ask Gemini to assess a budget snapshot.

        Raises:
            AIResponseParseError: If the response JSON can't be parsed
            FinVoiceError: If the Gemini call itself fails
        """
        if not self.is_configured:
            return FinancialInsights(
                financial_score=FALLBACK_SCORE,
                spending_analysis=dict(FALLBACK_SPENDING_ANALYSIS),
                recommendations=list(FALLBACK_RECOMMENDATIONS),
                is_fallback=True,
            )

        text = await self._generate("financial insights", build_insights_prompt(snapshot, language))
        json_part, recommendations = split_insights_response(text)

        try:
            data = extract_json_block(json_part)
        except AIResponseParseError as e:
            await self._audit.log_ai_response_parse_failed("financial insights", str(e))
            raise

        score = data.get("financialScore")
        try:
            return FinancialInsights(
                financial_score=int(score) if score is not None else None,
                spending_analysis=data.get("spendingAnalysis") or {},
                recommendations=recommendations,
            )
        except (ValueError, TypeError, ValidationError) as e:
            await self._audit.log_ai_response_parse_failed("financial insights", str(e))
            raise AIResponseParseError(
                f"Unexpected insights payload: {e}", raw_text=text
            ) from e

    async def investment_advice(
        self,
        age: int,
        future_plans: str,
        income: Decimal,
        language: str = "en",
    ) -> InvestmentAdvice:
        """
        Ask Gemini for 2-3 investment ideas.

        Raises:
            FinVoiceError: If the Gemini call itself fails
        """
        if not self.is_configured:
            return InvestmentAdvice(
                points=list(FALLBACK_INVESTMENT_ADVICE),
                raw_response="AI service unavailable - using fallback investment advice",
                is_fallback=True,
            )

        text = await self._generate(
            "investment advice",
            build_advice_prompt(age, future_plans, income, language),
        )
        return InvestmentAdvice(points=extract_bullet_points(text), raw_response=text)


def build_insights_prompt(snapshot: BudgetSnapshot, language: str = "en") -> str:
    intro = INSIGHTS_PROMPTS.get(language, INSIGHTS_PROMPTS["en"])
    categories = "\n".join(
        f"- {cat.name}: Budgeted ₹{cat.budgeted}, Spent ₹{cat.spent}"
        for cat in snapshot.categories
    )
    return f"""{intro}

Budget Data:
Total Budget: ₹{snapshot.total}
Total Spent: ₹{snapshot.spent}
Remaining: ₹{snapshot.remaining}

Spending Categories:
{categories}

Please provide:
1. Financial Health Score (0-100)
2. Spending Analysis with percentages
3. 3-4 actionable recommendations

Format the first two parts as a JSON object with keys "financialScore" and
"spendingAnalysis", then write '{RECOMMENDATIONS_MARKER}', then the
recommendations one per line."""


def build_advice_prompt(
    age: int,
    future_plans: str,
    income: Decimal,
    language: str = "en",
) -> str:
    intro = ADVICE_PROMPTS.get(language, ADVICE_PROMPTS["en"])
    return f"""{intro}

Age: {age}
Future Goals: {future_plans}
Annual Income: ₹{income}

Provide 2-3 exciting and concise investment ideas as bullet points starting
with '* '. For each idea, briefly explain why it could be a good fit, and make
sure to **bold** the key investment terms. Format it nicely for reading!"""
