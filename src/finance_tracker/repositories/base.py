from abc import ABC, abstractmethod
from datetime import date
from decimal import Decimal
from typing import List, Optional

from finance_tracker.domain.models import Transaction
from finance_tracker.domain.enums import TransactionType

class DuplicateTransactionError(Exception):
    """Raised when attempting to save a duplicate transaction."""
    pass

class TransactionNotFoundError(Exception):
    """Raised when a transaction cannot be found."""
    pass

class TransactionRepository(ABC):
    """
    Abstract repository for transaction persistence.

    Besides the transactions themselves, the store remembers which
    ones arrived through an import so they can be cleared separately
    from seeded data.
    """

    @abstractmethod
    def save(self, transaction: Transaction, imported: bool = False) -> Transaction:
        """
        Save a transaction to the repository.

        Args:
            transaction: Transaction to save. One without an ID gets
                a generated ID assigned before it is stored.
            imported: Whether the transaction came from an import

        Returns:
            The saved transaction

        Raises:
            DuplicateTransactionError: If transaction already exists
        """
        pass

    @abstractmethod
    def save_many(self, transactions: List[Transaction]) -> List[Transaction]:
        """
        Save imported transactions in a single operation, skipping duplicates.

        Args:
            transactions: List of transactions to save.

        Returns:
            The transactions that were actually saved
        """
        pass

    @abstractmethod
    def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """
        Retrieve a transaction by ID.

        Returns:
            Transaction if found, None otherwise
        """
        pass

    @abstractmethod
    def get_all(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        transaction_type: Optional[TransactionType] = None,
        category: Optional[str] = None,
        account_id: Optional[str] = None,
    ) -> List[Transaction]:
        """
        Retrieve transactions with optional filtering, newest first.

        Args:
            start_date: Filter transactions on or after this date
            end_date: Filter transactions on or before this date
            transaction_type: Filter by DEBIT or CREDIT
            category: Filter by category
            account_id: Filter by owning account

        Returns:
            List of matching transactions
        """
        pass

    @abstractmethod
    def update(self, transaction: Transaction) -> Transaction:
        """
        Update an existing transaction.

        Raises:
            TransactionNotFoundError: If transaction doesn't exist
        """
        pass

    @abstractmethod
    def update_many(self, transactions: List[Transaction]) -> List[Transaction]:
        """Update several transactions in one database transaction."""
        pass

    @abstractmethod
    def delete(self, transaction_id: str) -> bool:
        """
        Delete a transaction by ID.

        Returns:
            True if deleted, False if not found
        """
        pass

    @abstractmethod
    def exists(
        self,
        date: date,
        description: str,
        amount: Decimal,
        account_id: str,
    ) -> bool:
        """
        Check if a matching transaction already exists.

        Used for deduplication during imports.
        """
        pass

    @abstractmethod
    def imported_count(self) -> int:
        """Number of transactions that came from imports."""
        pass

    @abstractmethod
    def clear_imported(self) -> int:
        """Remove imported transactions, returning how many were removed."""
        pass

    @abstractmethod
    def clear_all(self) -> int:
        """Remove every transaction, returning how many were removed."""
        pass
