"""
Service layer models - DTOs for service operations.

These models represent the results of service operations, not domain entities.
"""
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Tuple

from finance_tracker.domain.models import Transaction, UNCATEGORIZED

@dataclass
class ImportResult:
    """
    Result of importing transactions from a file or the aggregation provider.

    Provides detailed feedback about what happened during import:
    - How many transactions were processed
    - Which ones were new vs duplicates
    - How many got a category from the categorization engine
    """
    total_parsed: int
    new_transactions: int
    duplicates_skipped: int
    categorized: int = 0

    imported: List[Transaction] = field(default_factory=list)
    skipped: List[Transaction] = field(default_factory=list)

    filepath: str = ""
    source: str = ""

    @property
    def success(self) -> bool:
        """Import is successful if at least one transaction is imported"""
        return self.new_transactions > 0

    def __str__(self) -> str:
        "Human-readable summary"
        return "\n".join([
            f"Import summary for {self.source}:",
            f" 📄 File: {self.filepath}",
            f" ✅ New transactions: {self.new_transactions}",
            f" 🏷️ Categorized: {self.categorized}",
            f" ⏭️ Duplicates Skipped: {self.duplicates_skipped}",
        ])

    def __post_init__(self):
        """Validate counts match lists"""
        if self.new_transactions != len(self.imported):
            raise ValueError(
                f"Count mismatch: new_transactions={self.new_transactions} "
                f"but len(imported)={len(self.imported)}"
            )
        if self.duplicates_skipped != len(self.skipped):
            raise ValueError(
                f"Count mismatch: duplicates_skipped={self.duplicates_skipped} "
                f"but len(skipped)={len(self.skipped)}"
            )


def _totals_by_category(transactions: List[Transaction]) -> Dict[str, Decimal]:
    totals: Dict[str, Decimal] = defaultdict(Decimal)
    for txn in transactions:
        totals[txn.category or UNCATEGORIZED] += txn.absolute_amount
    return dict(totals)


def spending_by_category(transactions: List[Transaction]) -> List[Tuple[str, Decimal]]:
    """Expense totals per category, largest first. Income is ignored."""
    expenses = [t for t in transactions if t.amount < 0]
    return sorted(
        _totals_by_category(expenses).items(),
        key=lambda x: x[1],
        reverse=True,
    )


@dataclass
class MonthlySummary:
    """
    Summary of transactions for a specific month.

    Aggregates income, expenses, and net flow for reporting.
    """

    year: int
    month: int

    debits: List[Transaction] = field(default_factory=list)
    credits: List[Transaction] = field(default_factory=list)

    @property
    def start_date(self) -> date:
        """First day of the month"""
        return date(self.year, self.month, 1)

    @property
    def total_debits(self) -> Decimal:
        """Total amount spent (outgoing)"""
        return sum((t.absolute_amount for t in self.debits), Decimal("0"))

    @property
    def total_credits(self) -> Decimal:
        """Total amount received (incoming)"""
        return sum((t.absolute_amount for t in self.credits), Decimal("0"))

    @property
    def net_flow(self) -> Decimal:
        """Net cash flow (credits - debits)"""
        return self.total_credits - self.total_debits

    @property
    def total_transactions(self) -> int:
        return len(self.debits) + len(self.credits)

    @property
    def top_spending_categories(self) -> List[Tuple[str, Decimal]]:
        """Categories sorted by spending amount (descending)"""
        return spending_by_category(self.debits)

    def __str__(self) -> str:
        """Human-readable summary"""
        month_name = self.start_date.strftime("%B %Y")

        lines = [
            f"📊 Monthly Summary - {month_name}",
            "",
            f"Transactions: {self.total_transactions}",
            f"  💸 Debits:  {self.total_debits:,.2f} ({len(self.debits)} transactions)",
            f"  💰 Credits: {self.total_credits:,.2f} ({len(self.credits)} transactions)",
            f"  {'📈' if self.net_flow >= 0 else '📉'} Net:     {self.net_flow:,.2f}",
        ]

        if self.debits:
            lines.append("\nTop Spending Categories:")
            for category, amount in self.top_spending_categories[:5]:
                lines.append(f"  • {category}: {amount:,.2f}")

        return "\n".join(lines)
