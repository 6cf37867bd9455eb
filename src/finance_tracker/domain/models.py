from dataclasses import dataclass
from decimal import Decimal
from datetime import date, datetime
from typing import Any, Optional
from finance_tracker.domain.enums import AccountType, TransactionType

UNCATEGORIZED = "Uncategorized"

@dataclass
class Transaction:
    """
    Core domain model representing a single transaction.

    The amount is signed: positive is money in (credit),
    negative is money out (debit).
    """
    date: date
    description: str
    amount: Decimal
    account_id: str
    category: str = UNCATEGORIZED
    merchant: Optional[str] = None
    pending: bool = False
    confidence: Optional[float] = None
    id: Optional[str] = None
    raw_data: Optional[Any] = None

    def __hash__(self):
        """Hash for duplicate detection"""
        return hash((self.date, self.description, self.amount, self.account_id))

    @property
    def type(self) -> TransactionType:
        return TransactionType.CREDIT if self.amount > 0 else TransactionType.DEBIT

    @property
    def absolute_amount(self) -> Decimal:
        return abs(self.amount)

    def __repr__(self):
        sign = "+" if self.type == TransactionType.CREDIT else "-"
        return f"Transaction({self.date}, {self.description[:30]}, {sign}{self.absolute_amount})"


@dataclass
class Account:
    """An account held at a financial institution"""
    id: str
    name: str
    type: AccountType
    balance: Decimal
    currency: str = "ZAR"
    institution: str = "Unknown"
    last_updated: Optional[datetime] = None
    account_number: Optional[str] = None
