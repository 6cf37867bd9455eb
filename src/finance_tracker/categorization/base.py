import math
import re
from dataclasses import dataclass
from numbers import Real
from decimal import Decimal
from typing import Optional, Sequence, Tuple, Union

from finance_tracker.categorization.categories import MAX_ENGINE_CONFIDENCE

Amount = Union[int, float, Decimal]

# Keyword-only matches: max(KEYWORD_FLOOR, base - KEYWORD_PENALTY + hits * KEYWORD_STEP)
KEYWORD_FLOOR = 0.4
KEYWORD_PENALTY = 0.3
KEYWORD_STEP = 0.1


class RuleConfigError(ValueError):
    """Raised when a categorization rule definition is invalid."""
    pass


@dataclass(frozen=True)
class ClassificationResult:
    """Category and confidence assigned to a description"""
    category: str
    confidence: float


@dataclass(frozen=True)
class AmountRange:
    """
    Inclusive band of absolute amounts that adds `boost` to a match.

    A missing bound is unbounded on that side.
    """
    min: Optional[float] = None
    max: Optional[float] = None
    boost: float = 0.0

    def __post_init__(self):
        if self.min is not None and self.max is not None and self.min > self.max:
            raise RuleConfigError(
                f"Amount range min ({self.min}) is greater than max ({self.max})"
            )

    def contains(self, value: float) -> bool:
        if self.min and value < self.min:
            return False
        if self.max and value > self.max:
            return False
        return True


def _as_magnitude(amount: Optional[Amount]) -> Optional[float]:
    """Absolute amount as a float, or None when it can't drive a boost"""
    if amount is None or isinstance(amount, bool):
        return None
    if not isinstance(amount, (Real, Decimal)):
        return None
    try:
        value = abs(float(amount))
    except (OverflowError, ValueError):
        return None
    if not math.isfinite(value) or value == 0:
        return None
    return value


def string_tuple(values: Sequence[str], field: str, category: str) -> Tuple[str, ...]:
    """
    Validate a list of strings from a rule definition.

    A bare string is rejected rather than split into characters.
    """
    if isinstance(values, (str, bytes)) or not isinstance(values, (list, tuple)):
        raise RuleConfigError(
            f"{field} for '{category}' must be a list of strings, got {values!r}"
        )
    if not all(isinstance(value, str) and value for value in values):
        raise RuleConfigError(f"{field} for '{category}' must only hold non-empty strings")
    return tuple(values)


class CategoryRule:
    """
    A single, immutable entry of the categorization rule table.

    Patterns are case-insensitive regular expressions and are the
    strong signal. Keywords are plain substrings, only consulted
    when no pattern matched, and score lower.

    Example:
        ```
        rule = CategoryRule(
            category="Transport",
            base_confidence=0.88,
            patterns=[r"uber|bolt"],
            keywords=["ride", "trip"],
            amount_ranges=[AmountRange(min=15, max=200, boost=0.08)],
        )
        rule.score("UBER TRIP 27/05", 45.00)  # 0.96
        ```
    """

    def __init__(
        self,
        category: str,
        base_confidence: float,
        patterns: Sequence[str] = (),
        keywords: Sequence[str] = (),
        amount_ranges: Sequence[AmountRange] = (),
        merchant_types: Sequence[str] = (),
    ):
        if not isinstance(category, str) or not category:
            raise RuleConfigError("Rule category must be a non-empty string")

        if isinstance(base_confidence, bool) or not isinstance(base_confidence, Real):
            raise RuleConfigError(
                f"base_confidence must be a number, got {base_confidence!r} for '{category}'"
            )
        if not 0 < base_confidence <= 1:
            raise RuleConfigError(
                f"base_confidence must be in (0, 1], got {base_confidence} for '{category}'"
            )

        self._category = category
        self._base_confidence = float(base_confidence)
        self._patterns = string_tuple(patterns, "patterns", category)
        self._keywords = string_tuple(keywords, "keywords", category)
        self._merchant_types = string_tuple(merchant_types, "merchant_types", category)

        if isinstance(amount_ranges, (str, bytes)) or not isinstance(amount_ranges, (list, tuple)):
            raise RuleConfigError(f"amount_ranges for '{category}' must be a list")
        if not all(isinstance(r, AmountRange) for r in amount_ranges):
            raise RuleConfigError(f"amount_ranges for '{category}' must hold AmountRange objects")
        self._amount_ranges = tuple(amount_ranges)

        try:
            self._compiled_patterns = tuple(
                re.compile(pattern, re.IGNORECASE) for pattern in self._patterns
            )
        except re.error as e:
            raise RuleConfigError(f"Invalid pattern for '{category}': {e}") from e

        # Pre-process keywords to lowercase for case-insensitive matching
        self._normalized_keywords = tuple(kw.lower() for kw in self._keywords)

    @property
    def category(self) -> str:
        return self._category

    @property
    def base_confidence(self) -> float:
        return self._base_confidence

    @property
    def patterns(self) -> Tuple[str, ...]:
        return self._patterns

    @property
    def keywords(self) -> Tuple[str, ...]:
        return self._keywords

    @property
    def amount_ranges(self) -> Tuple[AmountRange, ...]:
        return self._amount_ranges

    @property
    def merchant_types(self) -> Tuple[str, ...]:
        return self._merchant_types

    def matches_pattern(self, description: str) -> bool:
        """Check if any pattern matches the description"""
        return any(pattern.search(description) for pattern in self._compiled_patterns)

    def count_keywords(self, description: str) -> int:
        """Count how many keywords occur in the description"""
        description_lower = description.lower()
        return sum(1 for keyword in self._normalized_keywords if keyword in description_lower)

    def amount_boost(self, amount: Optional[Amount]) -> float:
        """Boost of the first range containing |amount|, or 0.0"""
        magnitude = _as_magnitude(amount)
        if magnitude is None:
            return 0.0

        for amount_range in self.amount_ranges:
            if amount_range.contains(magnitude):
                return amount_range.boost

        return 0.0

    def score(self, description: str, amount: Optional[Amount] = None) -> Optional[float]:
        """
        Confidence this rule assigns to the description.

        Args:
            description: Free-text transaction description
            amount: Optional signed amount; only its magnitude is used

        Returns:
            Confidence clamped to MAX_ENGINE_CONFIDENCE, or None if the
            rule doesn't match at all.
        """
        if self.matches_pattern(description):
            confidence = self.base_confidence
        else:
            hits = self.count_keywords(description)
            if hits == 0:
                return None
            confidence = max(
                KEYWORD_FLOOR,
                self.base_confidence - KEYWORD_PENALTY + hits * KEYWORD_STEP,
            )

        confidence += self.amount_boost(amount)

        return min(MAX_ENGINE_CONFIDENCE, confidence)

    def __repr__(self) -> str:
        return (
            f"CategoryRule('{self.category}', base={self.base_confidence}, "
            f"{len(self.patterns)} patterns, {len(self.keywords)} keywords, "
            f"{len(self.amount_ranges)} amount ranges)"
        )


RuleTable = Sequence[CategoryRule]
