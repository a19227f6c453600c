from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

# Receipts scoring below this are flagged for a human to confirm.
REVIEW_THRESHOLD = 0.8


# ── Category ───────────────────────────────────────────
class Category(str, Enum):
    FOOD = "food"
    TRANSPORTATION = "transportation"
    ENTERTAINMENT = "entertainment"
    SHOPPING = "shopping"
    BILLS = "bills"
    HEALTHCARE = "healthcare"
    EDUCATION = "education"
    TRAVEL = "travel"
    GROCERIES = "groceries"
    UTILITIES = "utilities"
    RENT = "rent"
    INSURANCE = "insurance"
    OTHER = "other"

    @property
    def display_name(self) -> str:
        return _DISPLAY_NAMES[self]

    @property
    def icon(self) -> str:
        return _ICONS[self]

    @classmethod
    def parse(cls, text: Optional[str]) -> Optional["Category"]:
        """Resolve a raw value, display name or short alias.  Unknown → None."""
        if not text:
            return None
        normalized = text.strip().lower()
        try:
            return cls(normalized)
        except ValueError:
            pass
        for category, display in _DISPLAY_NAMES.items():
            if display.lower() == normalized:
                return category
        return _ALIASES.get(normalized)

    @classmethod
    def coerce(cls, text: Optional[str]) -> "Category":
        return cls.parse(text) or cls.OTHER


_DISPLAY_NAMES = {
    Category.FOOD:           "Food & Dining",
    Category.TRANSPORTATION: "Transportation",
    Category.ENTERTAINMENT:  "Entertainment",
    Category.SHOPPING:       "Shopping",
    Category.BILLS:          "Bills & Utilities",
    Category.HEALTHCARE:     "Healthcare",
    Category.EDUCATION:      "Education",
    Category.TRAVEL:         "Travel",
    Category.GROCERIES:      "Groceries",
    Category.UTILITIES:      "Utilities",
    Category.RENT:           "Rent & Housing",
    Category.INSURANCE:      "Insurance",
    Category.OTHER:          "Other",
}

_ICONS = {
    Category.FOOD:           "🍽️",
    Category.TRANSPORTATION: "🚗",
    Category.ENTERTAINMENT:  "🎬",
    Category.SHOPPING:       "🛍️",
    Category.BILLS:          "📄",
    Category.HEALTHCARE:     "🏥",
    Category.EDUCATION:      "📚",
    Category.TRAVEL:         "✈️",
    Category.GROCERIES:      "🛒",
    Category.UTILITIES:      "💡",
    Category.RENT:           "🏠",
    Category.INSURANCE:      "🛡️",
    Category.OTHER:          "📦",
}

_ALIASES = {
    "food and dining":    Category.FOOD,
    "bills and utilities": Category.BILLS,
    "rent and housing":   Category.RENT,
    "transport":          Category.TRANSPORTATION,
}


# ── Line Item ──────────────────────────────────────────
class LineItem(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str = Field(min_length=2)
    quantity: int = Field(default=1, ge=1)
    price: Optional[Decimal] = None


# ── Extracted Receipt (decode) ─────────────────────────
class ExtractedReceipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    merchant_name: Optional[str] = None
    total_amount: Optional[Decimal] = None
    purchase_date: date
    date_detected: bool = False
    category: Category = Category.OTHER
    items: Tuple[LineItem, ...] = ()
    confidence: float = Field(default=0.0, ge=0.0, le=1.0)
    raw_text: str = ""

    @property
    def needs_review(self) -> bool:
        return self.confidence < REVIEW_THRESHOLD


# ── Synthesized Receipt (encode) ───────────────────────
class SynthesizedItem(LineItem):
    price: Decimal


class SynthesizedReceipt(BaseModel):
    model_config = ConfigDict(frozen=True)

    items: Tuple[SynthesizedItem, ...]
    rendered_markup: str
    generated_at: datetime

    @property
    def total(self) -> Decimal:
        return sum((item.price for item in self.items), Decimal("0.00"))
