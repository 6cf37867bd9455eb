"""
Category taxonomy and confidence constants.

Category labels are plain strings so that import sources and the
aggregation provider can introduce new ones. KnownCategory only adds
display hints on top of that open set.
"""
from enum import Enum
from typing import Optional, Tuple

from finance_tracker.domain.models import UNCATEGORIZED

# Confidence given when nothing matches
DEFAULT_CONFIDENCE = 0.3

# Engine results never exceed this; 1.0 is kept for authoritative sources
MAX_ENGINE_CONFIDENCE = 0.99

# Manual categorizations and aggregation provider categories
AUTHORITATIVE_CONFIDENCE = 1.0

HIGH_CONFIDENCE_THRESHOLD = 0.9
MEDIUM_CONFIDENCE_THRESHOLD = 0.7


class KnownCategory(Enum):
    """Categories the UI knows how to render, with (icon, colour)."""
    GROCERIES = ("Groceries", "🛒", "green")
    TRANSPORT = ("Transport", "🚗", "blue")
    SHOPPING = ("Shopping", "🛍️", "magenta")
    FOOD_AND_DINING = ("Food & Dining", "🍽️", "bright_red")
    INCOME = ("Income", "💰", "bright_green")
    HOUSING = ("Housing", "🏠", "yellow")
    HEALTHCARE = ("Healthcare", "🏥", "red")
    BANKING_FEES = ("Banking Fees", "🏦", "bright_black")
    INSURANCE = ("Insurance", "🛡️", "cyan")
    UTILITIES = ("Utilities", "💡", "bright_yellow")
    COMMUNICATIONS = ("Communications", "📱", "bright_blue")
    ENTERTAINMENT = ("Entertainment", "🎬", "bright_magenta")
    UNCATEGORIZED = (UNCATEGORIZED, "❓", "white")

    def __init__(self, label: str, icon: str, colour: str):
        self.label = label
        self.icon = icon
        self.colour = colour

    @classmethod
    def from_label(cls, label: str) -> Optional["KnownCategory"]:
        """Look up a category by its label, or None if it isn't known"""
        for member in cls:
            if member.label == label:
                return member
        return None


FALLBACK_STYLE: Tuple[str, str] = ("🏷️", "white")


def category_style(label: str) -> Tuple[str, str]:
    """
    Return the (icon, colour) used to display a category.

    Labels outside KnownCategory get a neutral style instead of failing.
    """
    known = KnownCategory.from_label(label)
    if known is None:
        return FALLBACK_STYLE
    return known.icon, known.colour


def confidence_level(confidence: Optional[float]) -> str:
    """Bucket a confidence score into high / medium / low."""
    if confidence is None:
        return "unknown"
    if confidence >= HIGH_CONFIDENCE_THRESHOLD:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE_THRESHOLD:
        return "medium"
    return "low"
