from enum import Enum

class TransactionType(Enum):
    """Represents whether money is coming in or out"""
    DEBIT = "Debit" # out
    CREDIT = "Credit" # in


class AccountType(Enum):
    """Kinds of accounts a user can hold"""
    CHECKING = "checking"
    SAVINGS = "savings"
    CREDIT = "credit"
    INVESTMENT = "investment"
    LOAN = "loan"
    RETIREMENT = "retirement"
