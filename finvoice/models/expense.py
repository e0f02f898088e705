"""
Core Data Models for FinVoice

These models define the strict schemas for expenses, budgets and profiles.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for the remote store and the local cache

DESIGN DECISION: Records coming back from the remote store are plain dicts.
They are validated into these models at the edges (commit payloads,
display) rather than threaded through the store interface.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    The values are the ids the mobile front end and the budgets table use,
    so they stay camelCase.
    """
    FOOD_DINING = "foodDining"
    TRANSPORTATION = "transportation"
    ENTERTAINMENT = "entertainment"
    UTILITIES = "utilities"
    SHOPPING = "shopping"
    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    TRAVEL = "travel"
    OTHER = "other"


class CategoryInfo(BaseModel):
    """Display metadata for a category."""

    label: str
    icon: str
    color: str


CATEGORY_INFO: dict[ExpenseCategory, CategoryInfo] = {
    ExpenseCategory.FOOD_DINING: CategoryInfo(label="Food & Dining", icon="food", color="#FF6B6B"),
    ExpenseCategory.TRANSPORTATION: CategoryInfo(label="Transportation", icon="car", color="#4ECDC4"),
    ExpenseCategory.ENTERTAINMENT: CategoryInfo(label="Entertainment", icon="movie", color="#45B7D1"),
    ExpenseCategory.UTILITIES: CategoryInfo(label="Utilities", icon="lightning-bolt", color="#96CEB4"),
    ExpenseCategory.SHOPPING: CategoryInfo(label="Shopping", icon="shopping", color="#FFEAA7"),
    ExpenseCategory.HEALTHCARE: CategoryInfo(label="Healthcare", icon="medical-bag", color="#DDA0DD"),
    ExpenseCategory.EDUCATION: CategoryInfo(label="Education", icon="school", color="#98D8C8"),
    ExpenseCategory.TRAVEL: CategoryInfo(label="Travel", icon="airplane", color="#F7DC6F"),
}

_OTHER_INFO = CategoryInfo(label="Other", icon="help-circle", color="#6B46C1")


def get_category_info(category: str) -> CategoryInfo:
    """Display metadata for a category id; unknown ids display as Other."""
    try:
        return CATEGORY_INFO.get(ExpenseCategory(category), _OTHER_INFO)
    except ValueError:
        return _OTHER_INFO


# =============================================================================
# PARSER OUTPUT
# =============================================================================

class ExpenseCandidate(BaseModel):
    """
    Structured expense extracted from spoken or typed text.

    CRITICAL: This is PROPOSED data, never persisted directly.
    The caller checks is_valid and then commits through the session manager.
    """
    model_config = ConfigDict(frozen=True)

    amount: Optional[Decimal] = Field(
        default=None,
        description="Parsed amount, None if no number was found"
    )
    description: str = Field(
        ...,
        description="Text with amount, currency and filler words removed"
    )
    category: ExpenseCategory = Field(
        default=ExpenseCategory.OTHER,
        description="First matching keyword category"
    )
    is_valid: bool = Field(
        ...,
        description="True iff an amount was found and the description is non-empty"
    )
    confidence: float = Field(
        default=0.85,
        ge=0.0,
        le=1.0,
        description="Static heuristic score, for display only"
    )
    original_text: str = Field(
        default="",
        description="The untouched input text"
    )

    @model_validator(mode='after')
    def validity_matches_fields(self) -> 'ExpenseCandidate':
        """A candidate is never partially valid."""
        expected = self.amount is not None and len(self.description) > 0
        if self.is_valid != expected:
            raise ValueError("is_valid must equal (amount is not None and description non-empty)")
        return self


# =============================================================================
# PERSISTED ENTITIES
# =============================================================================

class ExpenseCreate(BaseModel):
    """Payload for creating an expense."""
    model_config = ConfigDict(str_strip_whitespace=True)

    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount in the profile currency"
    )
    description: str = Field(
        ...,
        min_length=1,
        max_length=500,
    )
    category: ExpenseCategory = Field(default=ExpenseCategory.OTHER)
    voice_input: Optional[str] = Field(
        default=None,
        description="Original transcribed text, when entered by voice"
    )
    date: Optional[datetime] = Field(
        default=None,
        description="When the expense happened, defaults to now"
    )


class ExpenseUpdate(BaseModel):
    """
    Payload for updating an expense.

    Only amount, description and category are mutable.
    Anything else in the incoming payload is ignored.
    """
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    amount: Optional[Decimal] = Field(default=None, gt=0)
    description: Optional[str] = Field(default=None, min_length=1, max_length=500)
    category: Optional[ExpenseCategory] = None

    @model_validator(mode='after')
    def at_least_one_field(self) -> 'ExpenseUpdate':
        if self.amount is None and self.description is None and self.category is None:
            raise ValueError("Update must change amount, description or category")
        return self


class Expense(BaseModel):
    """
    An expense owned by exactly one user.

    Remote ids are server-assigned UUID strings. Local-only ids carry
    the local_ prefix, so the two spaces never collide.
    """

    id: str
    user_id: str
    amount: Decimal
    description: str
    category: ExpenseCategory = ExpenseCategory.OTHER
    voice_input: Optional[str] = None
    date: datetime
    created_at: datetime
    updated_at: datetime

    @field_validator('category', mode='before')
    @classmethod
    def unknown_category_is_other(cls, v):
        """Rows written by older clients may carry categories we no longer know."""
        if isinstance(v, ExpenseCategory):
            return v
        try:
            return ExpenseCategory(v)
        except ValueError:
            return ExpenseCategory.OTHER


class BudgetAllocation(BaseModel):
    """Budgeted amount for one category within a monthly budget."""

    category: ExpenseCategory
    budgeted: Decimal = Field(..., ge=0)


class BudgetCreate(BaseModel):
    """Payload for creating (or reconciling) a monthly budget."""

    month_year: str = Field(
        ...,
        pattern=r"^\d{4}-(0[1-9]|1[0-2])$",
        description="Budget month as YYYY-MM"
    )
    total_amount: Decimal = Field(..., gt=0)
    categories: list[BudgetAllocation] = Field(..., min_length=1)


class BudgetUpdate(BaseModel):
    """Payload for updating a budget."""
    model_config = ConfigDict(extra="ignore")

    total_amount: Optional[Decimal] = Field(default=None, gt=0)
    categories: Optional[list[BudgetAllocation]] = None


class Budget(BaseModel):
    """
    Monthly budget.

    At most one budget exists per (user_id, month_year).
    """

    id: str
    user_id: str
    month_year: str
    total_amount: Decimal
    categories: list[BudgetAllocation] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class ProfileUpdate(BaseModel):
    """Payload for updating a profile."""
    model_config = ConfigDict(str_strip_whitespace=True, extra="ignore")

    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    phone: Optional[str] = Field(default=None, min_length=10, max_length=20)
    language: Optional[str] = None
    currency: Optional[str] = None
    theme: Optional[str] = None


class UserProfile(BaseModel):
    """User profile as stored remotely, or minted for a local-only session."""
    model_config = ConfigDict(str_strip_whitespace=True)

    id: str
    name: str
    phone: str
    language: str = "en"
    currency: str = "INR"
    theme: str = "light"
    firebase_uid: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator('language', 'currency', 'theme', mode='before')
    @classmethod
    def blank_is_default(cls, v, info):
        """Stored blanks fall back to the defaults."""
        if v in (None, ""):
            return {"language": "en", "currency": "INR", "theme": "light"}[info.field_name]
        return v
