"""
Categorization system for finance tracking.

Assigns a spending category and a confidence score to transaction
descriptions using an ordered, injectable table of rules.

Quick Start:
    >>> from finance_tracker.categorization import CategorizationEngine
    >>>
    >>> engine = CategorizationEngine()
    >>> result = engine.classify("WOOLWORTHS SANDTON", 1247.50)
    >>> print(f"{result.category} ({result.confidence:.2f})")
    Groceries (0.95)
"""
from finance_tracker.categorization.categorizer import CategorizationEngine, should_recategorize
from finance_tracker.categorization.base import (
    AmountRange,
    CategoryRule,
    ClassificationResult,
    RuleConfigError,
)
from finance_tracker.categorization.rules import (
    load_builtin_rules,
    rule_from_config,
    rules_from_config,
)
from finance_tracker.categorization import categories

__all__ = [
    "CategorizationEngine",
    "should_recategorize",
    "AmountRange",
    "CategoryRule",
    "ClassificationResult",
    "RuleConfigError",
    "load_builtin_rules",
    "rule_from_config",
    "rules_from_config",
    "categories",
]
