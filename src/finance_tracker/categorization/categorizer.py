from dataclasses import replace
from typing import Any, Dict, List, Optional, Sequence

from finance_tracker.categorization.base import (
    Amount,
    CategoryRule,
    ClassificationResult,
)
from finance_tracker.categorization.rules import load_builtin_rules, rules_from_config
from finance_tracker.categorization.categories import (
    AUTHORITATIVE_CONFIDENCE,
    DEFAULT_CONFIDENCE,
    UNCATEGORIZED,
)
from finance_tracker.config.settings import ConfigLoader
from finance_tracker.domain.models import Transaction
from finance_tracker.logger import get_logger

logger = get_logger(__name__)


def should_recategorize(transaction: Transaction, result: ClassificationResult) -> bool:
    """
    Decide whether a fresh classification may replace the stored one.

    Only a strictly more confident result wins, so a manual (1.0)
    or provider-sourced category is never clobbered by a guess.
    """
    if transaction.confidence is None:
        return True
    return result.confidence > transaction.confidence


class CategorizationEngine:
    """
    Scores a transaction description against an ordered rule table.

    Every rule is evaluated and the most confident match wins. Rules
    earlier in the table win ties, so the table is built as:
    1. User-defined rules (from config)
    2. Built-in default rules
    and nothing matching yields ("Uncategorized", 0.3).

    Usage:
        # Production - user rules from ConfigLoader + built-in table
        engine = CategorizationEngine()

        # Testing - inject custom config
        test_config = {"rules": [...]}
        engine = CategorizationEngine(config=test_config, use_defaults=False)

        # Or hand over a ready-made table
        engine = CategorizationEngine(rules=[CategoryRule(...)])

        result = engine.classify("WOOLWORTHS SANDTON", 1247.50)
        categorized = engine.categorize_many(transactions)
    """

    def __init__(
        self,
        rules: Optional[Sequence[CategoryRule]] = None,
        config: Optional[Dict[str, Any]] = None,
        use_defaults: bool = True,
    ):
        """
        Initialize categorization engine.

        Args:
            rules: Explicit rule table, used as-is when given.
            config: Optional user rules config dict. If None, loads from ConfigLoader.
                Useful for testing with custom configs.
            use_defaults: Whether to append the built-in default rules
        """
        self.use_defaults = use_defaults

        if rules is not None:
            self._rules: List[CategoryRule] = list(rules)
        else:
            self._rules = self._build_rule_table(config)

    @property
    def rules(self) -> List[CategoryRule]:
        return list(self._rules)

    def _load_user_rules_config(
        self,
        config: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """
        Load user rules configuration.

        Args:
            config: Optional config dict. If None, loads from the ConfigLoader.

        Returns:
            Config dictionary with rules
        """
        if config is not None:
            return config

        try:
            return ConfigLoader.load_config('categorization_rules.json')
        except FileNotFoundError:
            # User hasn't created custom rules yet - that's fine.
            return {"rules": []}

    def _build_rule_table(
        self,
        user_config: Optional[Dict[str, Any]] = None
    ) -> List[CategoryRule]:
        """User rules first, then the built-in table"""
        rules = rules_from_config(self._load_user_rules_config(user_config))

        if self.use_defaults:
            rules.extend(load_builtin_rules())

        logger.debug("Built rule table with %d rules", len(rules))
        return rules

    def classify(
        self,
        description: str,
        amount: Optional[Amount] = None
    ) -> ClassificationResult:
        """
        Assign a category and confidence to a description.

        Never raises: an empty or unrecognised description gets the
        Uncategorized default, and a missing or non-finite amount just
        disables the amount boosts.

        Args:
            description: Free-text transaction description
            amount: Optional signed amount, only the magnitude is used

        Returns:
            ClassificationResult with confidence in [0.3, 0.99]

        Example:
            ```
            >>> engine = CategorizationEngine()
            >>> engine.classify("UBER TRIP 27/05", 45.00)
            ClassificationResult(category='Transport', confidence=0.96)
            ```
        """
        best = ClassificationResult(UNCATEGORIZED, DEFAULT_CONFIDENCE)

        if not isinstance(description, str):
            return best

        for rule in self._rules:
            confidence = rule.score(description, amount)

            # Strictly greater: earlier rules keep ties
            if confidence is not None and confidence > best.confidence:
                best = ClassificationResult(rule.category, confidence)

        return best

    def categorize(self, transaction: Transaction) -> ClassificationResult:
        """Classify a transaction from its description and amount"""
        return self.classify(transaction.description, transaction.amount)

    def categorize_many(
        self,
        transactions: List[Transaction],
        overwrite: bool = False
    ) -> List[Transaction]:
        """
        Categorize multiple transactions.

        Args:
            transactions: List of transactions to categorize
            overwrite: If True, apply every fresh result except on
                      authoritative (confidence 1.0) transactions.
                      If False, only apply results that beat the stored confidence.

        Returns:
            New list of transactions, same order as the input. Transactions
            that keep their category are the same objects that were passed in.

        Example:
            >>> engine = CategorizationEngine()
            >>> categorized = engine.categorize_many([txn1, txn2, txn3])
        """
        categorized = []

        for txn in transactions:
            if txn.confidence is not None and txn.confidence >= AUTHORITATIVE_CONFIDENCE:
                categorized.append(txn)
                continue

            result = self.categorize(txn)

            if not overwrite and not should_recategorize(txn, result):
                categorized.append(txn)
                continue

            categorized.append(
                replace(txn, category=result.category, confidence=result.confidence)
            )

        return categorized

    def get_rule_chain_info(self) -> str:
        """
        Get information about the current rule table.

        Useful for debugging and understanding which rules are active.

        Returns:
            String description of the rules in priority order.
        """
        if not self._rules:
            return "No rules loaded"

        lines = [f"{priority}. {rule}" for priority, rule in enumerate(self._rules, start=1)]
        lines.append(f"{len(self._rules) + 1}. Default('{UNCATEGORIZED}', {DEFAULT_CONFIDENCE})")
        return "\n".join(lines)

    def __repr__(self) -> str:
        return f"CategorizationEngine({len(self._rules)} rules)"
