from calendar import monthrange
from dataclasses import replace
from datetime import date
from pathlib import Path
from typing import List, Optional

from finance_tracker.aggregation.yodlee import YodleeClient
from finance_tracker.categorization import CategorizationEngine
from finance_tracker.categorization.categories import AUTHORITATIVE_CONFIDENCE
from finance_tracker.domain.enums import TransactionType
from finance_tracker.domain.ids import IdGenerator
from finance_tracker.domain.models import Transaction
from finance_tracker.logger import get_logger
from finance_tracker.parsers.factory import ParserFactory
from finance_tracker.repositories.base import TransactionNotFoundError, TransactionRepository
from finance_tracker.services.models import ImportResult, MonthlySummary

logger = get_logger(__name__)


class TransactionService:

    def __init__(
        self,
        repository: TransactionRepository,
        categorization_engine: Optional[CategorizationEngine] = None,
        id_generator: Optional[IdGenerator] = None,
    ):
        self.repository = repository
        self._categorization_engine: Optional[CategorizationEngine] = categorization_engine
        self.id_generator = id_generator

    @property
    def categorization_engine(self) -> CategorizationEngine:
        """Lazy-load categorization engine"""
        if self._categorization_engine is None:
            self._categorization_engine = CategorizationEngine()
        return self._categorization_engine

    def import_statement(
        self,
        filepath: Path,
        source: str = "csv",
        dry_run: bool = False,
        categorize: bool = True,
    ) -> ImportResult:
        """
        Import transactions from a statement file.

        Args:
            filepath: The path to the statement file
            source: The import source, selects the parser
            dry_run: Preview without saving
            categorize: Run the categorization engine over the parsed
                transactions. Categories from the file are only replaced
                by a more confident result.

        Returns:
            An ImportResult.
        """
        parser_kwargs = {"id_generator": self.id_generator} if self.id_generator else {}
        parser = ParserFactory.create_parser(source, **parser_kwargs)
        transactions = parser.parse(filepath)

        categorized_count = 0
        if categorize:
            categorized = self.categorization_engine.categorize_many(transactions)
            categorized_count = sum(
                1 for before, after in zip(transactions, categorized) if before is not after
            )
            transactions = categorized

        result = self._store(transactions, dry_run)
        result.categorized = categorized_count
        result.filepath = str(filepath)
        result.source = source

        logger.info(
            "Imported %d of %d transactions from %s",
            result.new_transactions, result.total_parsed, filepath,
        )
        return result

    def import_from_aggregator(
        self,
        client: YodleeClient,
        login_name: str,
        from_date: date,
        to_date: date,
        dry_run: bool = False,
    ) -> ImportResult:
        """
        Import provider-categorized transactions.

        The provider's categories are authoritative, so the
        categorization engine is not run on these.
        """
        transactions = client.get_transactions(login_name, from_date, to_date)

        result = self._store(transactions, dry_run)
        result.source = "yodlee"
        return result

    def _store(self, transactions: List[Transaction], dry_run: bool) -> ImportResult:
        if dry_run:
            # Check duplicates WITHOUT saving
            new_transactions = []
            skipped = []
            for txn in transactions:
                if self.repository.exists(
                    date=txn.date,
                    description=txn.description,
                    amount=txn.amount,
                    account_id=txn.account_id,
                ):
                    skipped.append(txn)
                else:
                    new_transactions.append(txn)
        else:
            new_transactions = self.repository.save_many(transactions)

            # Determining which were skipped
            new_ids = {id(t) for t in new_transactions}
            skipped = [t for t in transactions if id(t) not in new_ids]

        return ImportResult(
            total_parsed=len(transactions),
            new_transactions=len(new_transactions),
            duplicates_skipped=len(skipped),
            imported=new_transactions,
            skipped=skipped,
        )

    def get_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        transaction_type: Optional[TransactionType] = None,
        account_id: Optional[str] = None,
    ) -> List[Transaction]:
        """
        Query transactions with optional filters.

        Example:
            ### Get all January 2025 expenses
            transactions = service.get_transactions(
                start_date=date(2025, 1, 1),
                end_date=date(2025, 1, 31),
                transaction_type=TransactionType.DEBIT
            )
        """
        return self.repository.get_all(
            start_date=start_date,
            end_date=end_date,
            transaction_type=transaction_type,
            account_id=account_id
        )

    def get_monthly_summary(
        self,
        year: int,
        month: int
    ) -> MonthlySummary:
        """Get summary for a specific month"""
        start_date = date(year, month, 1)
        _, last_day = monthrange(year, month)  # Gets the last day of month
        end_date = date(year, month, last_day)

        transactions = self.repository.get_all(
            start_date=start_date,
            end_date=end_date
        )

        debits = [t for t in transactions if t.type == TransactionType.DEBIT]
        credits = [t for t in transactions if t.type == TransactionType.CREDIT]

        return MonthlySummary(
            year=year,
            month=month,
            debits=debits,
            credits=credits,
        )

    def recategorize_transactions(
        self,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> int:
        """
        Re-run the categorization engine over stored transactions.

        A stored category is only replaced when the new result is
        strictly more confident, so manual and provider categories stay.

        Returns:
            Number of transactions updated
        """
        transactions = self.repository.get_all(
            start_date=start_date,
            end_date=end_date
        )

        if not transactions:
            return 0

        categorized = self.categorization_engine.categorize_many(transactions)

        to_update = [
            after for before, after in zip(transactions, categorized)
            if before is not after
        ]

        if to_update:
            self.repository.update_many(to_update)

        logger.info("Recategorized %d of %d transactions", len(to_update), len(transactions))
        return len(to_update)

    def set_category(self, transaction_id: str, category: str) -> Transaction:
        """
        Manually categorize a transaction.

        Manual choices are authoritative and get confidence 1.0.

        Raises:
            TransactionNotFoundError: If the transaction doesn't exist
            ValueError: If category is empty
        """
        if not category or not category.strip():
            raise ValueError("Category must not be empty")

        transaction = self.repository.get_by_id(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(f"Transaction with ID {transaction_id} not found")

        updated = replace(
            transaction,
            category=category.strip(),
            confidence=AUTHORITATIVE_CONFIDENCE,
        )
        return self.repository.update(updated)

    def clear_imported_data(self) -> int:
        """Remove imported transactions, keeping seeded ones"""
        return self.repository.clear_imported()

    def clear_all_data(self) -> int:
        return self.repository.clear_all()
