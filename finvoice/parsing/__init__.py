"""Voice expense parsing package."""

from finvoice.parsing.voice_parser import (
    AMOUNT_PATTERNS,
    CATEGORY_RULES,
    DEFAULT_CONFIDENCE,
    FILLER_WORDS,
    classify_category,
    clean_description,
    extract_amount,
    parse_expense_text,
)

__all__ = [
    "AMOUNT_PATTERNS",
    "CATEGORY_RULES",
    "DEFAULT_CONFIDENCE",
    "FILLER_WORDS",
    "classify_category",
    "clean_description",
    "extract_amount",
    "parse_expense_text",
]
