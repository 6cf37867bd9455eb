"""
Building rule tables from configuration.

Config format:
    {
        "rules": [
            {
                "category": "Transport",
                "base_confidence": 0.88,
                "patterns": ["uber|bolt|taxify", "taxi|transport"],
                "keywords": ["ride", "trip"],
                "amount_ranges": [{"min": 15, "max": 200, "boost": 0.08}],
                "merchant_types": ["transport", "ride_share"]   // optional
            }
        ]
    }
"""
from pathlib import Path
import json
from typing import Any, Dict, List

from finance_tracker.categorization.base import AmountRange, CategoryRule, RuleConfigError, string_tuple
from finance_tracker.logger import get_logger

logger = get_logger(__name__)

BUILTIN_RULES_PATH = Path(__file__).parent.parent / "config" / "defaults" / "rules.json"


def amount_range_from_config(range_def: Dict[str, Any]) -> AmountRange:
    """Create an AmountRange from its config dict"""
    if "boost" not in range_def:
        raise RuleConfigError(f"Amount range is missing 'boost': {range_def}")

    try:
        minimum = float(range_def["min"]) if range_def.get("min") is not None else None
        maximum = float(range_def["max"]) if range_def.get("max") is not None else None
        boost = float(range_def["boost"])
    except (TypeError, ValueError) as e:
        raise RuleConfigError(f"Invalid amount range {range_def}: {e}") from e

    return AmountRange(min=minimum, max=maximum, boost=boost)


def rule_from_config(rule_def: Dict[str, Any]) -> CategoryRule:
    """
    Create a CategoryRule from a single rule definition.

    Raises:
        RuleConfigError: If required fields are missing or invalid
    """
    missing = [key for key in ("category", "base_confidence") if key not in rule_def]
    if missing:
        raise RuleConfigError(f"Rule is missing required fields {missing}: {rule_def}")

    category = rule_def["category"]
    patterns = string_tuple(rule_def.get("patterns", []), "patterns", category)
    keywords = string_tuple(rule_def.get("keywords", []), "keywords", category)
    if not patterns and not keywords:
        raise RuleConfigError(
            f"Rule for '{category}' needs at least one pattern or keyword"
        )

    try:
        base_confidence = float(rule_def["base_confidence"])
    except (TypeError, ValueError) as e:
        raise RuleConfigError(
            f"Invalid base_confidence for '{rule_def['category']}': {rule_def['base_confidence']}"
        ) from e

    range_defs = rule_def.get("amount_ranges", [])
    if not isinstance(range_defs, list):
        raise RuleConfigError(f"amount_ranges for '{category}' must be a list, got {range_defs!r}")

    return CategoryRule(
        category=category,
        base_confidence=base_confidence,
        patterns=patterns,
        keywords=keywords,
        amount_ranges=[
            amount_range_from_config(range_def)
            for range_def in range_defs
        ],
        merchant_types=rule_def.get("merchant_types", []),
    )


def rules_from_config(config: Dict[str, Any]) -> List[CategoryRule]:
    """Build an ordered rule table from a config dict with a 'rules' list"""
    return [rule_from_config(rule_def) for rule_def in config.get("rules", [])]


def load_builtin_rules() -> List[CategoryRule]:
    """
    Load the rule table bundled with the package.

    Returns:
        The default rules, or an empty list if the file is absent
    """
    if not BUILTIN_RULES_PATH.exists():
        logger.warning("Built-in rules not found at %s", BUILTIN_RULES_PATH)
        return []

    with open(BUILTIN_RULES_PATH) as f:
        return rules_from_config(json.load(f))
