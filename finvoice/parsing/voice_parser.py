"""
Voice Expense Parser

Turns transcribed speech (or typed text) such as "Add dinner 7300 rupees"
into an ExpenseCandidate.

DESIGN DECISION: Parsing is deterministic keyword and regex matching.
No LLM is involved, so the same text always yields the same candidate.

The parser is a pure function:
- No I/O, no shared state, safe to call concurrently
- Never raises; unusable input comes back with is_valid=False

Known quirk kept on purpose: category keywords are substring checks on
the whole lower-cased text, so a keyword inside a longer word matches too
("gas" inside "vegas" classifies as transportation).
"""

import re
from decimal import Decimal, InvalidOperation
from typing import Optional

from finvoice.models.expense import ExpenseCategory, ExpenseCandidate


DEFAULT_CONFIDENCE = 0.85

_NUMBER = r"(\d+(?:\.\d{2})?)"

# Tried in order; the first pattern matching anywhere in the text wins.
AMOUNT_PATTERNS: list[re.Pattern] = [
    re.compile(_NUMBER + r"\s*(?:rupees?|rs|₹|inr)", re.IGNORECASE),
    re.compile(_NUMBER + r"\s*(?:dollars?|\$|usd)", re.IGNORECASE),
    re.compile(_NUMBER + r"\s*(?:euros?|€|eur)", re.IGNORECASE),
    re.compile(_NUMBER),
]

# Union of every currency marker above, used when stripping the amount
CURRENCY_MARKERS = r"(?:rupees?|rs|₹|inr|dollars?|\$|usd|euros?|€|eur)"

# Evaluated in this order; first rule with any keyword present wins.
CATEGORY_RULES: list[tuple[ExpenseCategory, tuple[str, ...]]] = [
    (ExpenseCategory.FOOD_DINING, (
        "food", "dinner", "lunch", "breakfast", "restaurant", "meal",
        "coffee", "snack", "pizza", "burger", "chicken", "rice",
    )),
    (ExpenseCategory.TRANSPORTATION, (
        "transport", "uber", "taxi", "fuel", "gas", "petrol",
        "bus", "train", "metro", "parking", "toll",
    )),
    (ExpenseCategory.ENTERTAINMENT, (
        "movie", "entertainment", "game", "concert", "show", "theater",
        "party", "outing", "fun",
    )),
    (ExpenseCategory.UTILITIES, (
        "bill", "electricity", "water", "internet", "phone", "mobile",
        "gas bill", "maintenance",
    )),
    (ExpenseCategory.SHOPPING, (
        "shopping", "clothes", "book", "grocery", "store", "mall",
        "shirt", "pants", "shoes",
    )),
    (ExpenseCategory.HEALTHCARE, (
        "doctor", "medicine", "health", "medical", "hospital", "pharmacy",
        "treatment",
    )),
    (ExpenseCategory.EDUCATION, (
        "course", "book", "education", "training", "school", "college",
        "university", "study",
    )),
    (ExpenseCategory.TRAVEL, (
        "travel", "flight", "hotel", "vacation", "trip", "journey",
        "booking", "reservation",
    )),
]

FILLER_WORDS = frozenset({
    "add", "expense", "for", "of", "the", "a", "an", "and", "or", "but",
})


def extract_amount(text: str) -> tuple[Optional[Decimal], Optional[str]]:
    """
    Find the amount in the text.

    Returns (amount, literal) where literal is the matched digits as
    written, or (None, None) if no pattern matches.
    """
    lowered = text.lower()
    for pattern in AMOUNT_PATTERNS:
        match = pattern.search(lowered)
        if match:
            literal = match.group(1)
            try:
                return Decimal(literal), literal
            except InvalidOperation:
                return None, None
    return None, None


def classify_category(text: str) -> ExpenseCategory:
    """Return the first category whose keywords appear in the text."""
    lowered = text.lower()
    for category, keywords in CATEGORY_RULES:
        if any(keyword in lowered for keyword in keywords):
            return category
    return ExpenseCategory.OTHER


def clean_description(text: str, amount_literal: Optional[str]) -> str:
    """
    Strip the amount, its currency marker and filler words.

    Falls back to the untouched text if nothing is left.
    """
    cleaned = text
    if amount_literal is not None:
        cleaned = re.sub(
            re.escape(amount_literal) + r"\s*" + CURRENCY_MARKERS + "?",
            "",
            cleaned,
            count=1,
            flags=re.IGNORECASE,
        ).strip()

    cleaned = " ".join(
        word for word in cleaned.split()
        if word.lower() not in FILLER_WORDS
    ).strip()

    return cleaned or text


def parse_expense_text(
    text: str,
    confidence: float = DEFAULT_CONFIDENCE,
) -> ExpenseCandidate:
    """
    Parse free-form expense text.

    Examples:
        "add dinner 7300 rupees" -> 7300, "dinner", foodDining
        "uber ride 450"          -> 450, "uber ride", transportation
        "bought something"       -> no amount, is_valid=False
    """
    text = text or ""

    amount, literal = extract_amount(text)
    category = classify_category(text)
    description = clean_description(text, literal)

    return ExpenseCandidate(
        amount=amount,
        description=description,
        category=category,
        is_valid=amount is not None and len(description) > 0,
        confidence=confidence,
        original_text=text,
    )
