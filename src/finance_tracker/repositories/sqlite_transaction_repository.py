import json
import sqlite3
from datetime import date
from decimal import Decimal
from typing import Any, List, Optional, Tuple

from finance_tracker.database.connection import DatabaseManager
from finance_tracker.domain.ids import IdGenerator, uuid_id_generator
from finance_tracker.domain.models import Transaction, UNCATEGORIZED
from finance_tracker.domain.enums import TransactionType
from finance_tracker.repositories.base import TransactionRepository, DuplicateTransactionError, TransactionNotFoundError

INSERT_SQL = """
    INSERT INTO transactions (
        id, account_id, date, description, amount, category,
        merchant, pending, confidence, imported, raw_data
    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
"""

class SQLiteTransactionRepository(TransactionRepository):
    """
    SQLite implementation of the TransactionRepository.

    Handles all database operations for transactions using raw SQL.
    Transactions without an ID get one from the injected generator.
    """

    def __init__(
        self,
        db_manager: DatabaseManager,
        id_generator: Optional[IdGenerator] = None,
    ):
        self.db = db_manager
        self.id_generator = id_generator or uuid_id_generator

    def save(self, transaction: Transaction, imported: bool = False) -> Transaction:
        """Save a single transaction."""
        if self._is_duplicate(transaction):
            raise DuplicateTransactionError(
                f"Transaction already exists: {transaction.description} ({transaction.amount}) "
                f"on {transaction.date}"
            )

        with self.db.transaction() as conn:
            self._insert(conn, transaction, imported)

        return transaction

    def save_many(self, transactions: List[Transaction]) -> List[Transaction]:
        """Save imported transactions, skipping duplicates"""
        saved = []

        with self.db.transaction() as conn:
            for txn in transactions:
                if self._is_duplicate(txn):
                    continue

                self._insert(conn, txn, imported=True)
                saved.append(txn)

        return saved

    def get_by_id(self, transaction_id: str) -> Optional[Transaction]:
        """Retrieve a transaction by ID, or None if it doesn't exist"""
        conn = self.db.get_connection()
        cursor = conn.execute(
            "SELECT * FROM transactions WHERE id = ?",
            (transaction_id,)
        )
        row = cursor.fetchone()

        if row is None:
            return None

        return self._row_to_transaction(row)

    def get_all(
            self,
            start_date: Optional[date] = None,
            end_date: Optional[date] = None,
            transaction_type: Optional[TransactionType] = None,
            category: Optional[str] = None,
            account_id: Optional[str] = None,
    ) -> List[Transaction]:
        """Retrieve transactions with optional filtering."""
        query = "SELECT * FROM transactions WHERE 1=1"
        params: List[Any] = []

        if start_date:
            query += " AND date >= ?"
            params.append(start_date.isoformat())

        if end_date:
            query += " AND date <= ?"
            params.append(end_date.isoformat())

        if transaction_type == TransactionType.CREDIT:
            query += " AND CAST(amount AS REAL) > 0"
        elif transaction_type == TransactionType.DEBIT:
            query += " AND CAST(amount AS REAL) <= 0"

        if category:
            query += " AND category = ?"
            params.append(category)

        if account_id:
            query += " AND account_id = ?"
            params.append(account_id)

        query += " ORDER BY date DESC, rowid DESC"

        conn = self.db.get_connection()
        rows = conn.execute(query, params).fetchall()

        return [self._row_to_transaction(row) for row in rows]

    def update(self, transaction: Transaction) -> Transaction:
        """Update an existing transaction."""
        with self.db.transaction() as conn:
            self._update(conn, transaction)
        return transaction

    def update_many(self, transactions: List[Transaction]) -> List[Transaction]:
        """Update several transactions atomically."""
        with self.db.transaction() as conn:
            for txn in transactions:
                self._update(conn, txn)
        return transactions

    def delete(self, transaction_id: str) -> bool:
        """Delete a transaction by ID."""
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM transactions WHERE id = ?",
                (transaction_id,)
            )
            return cursor.rowcount > 0

    def exists(
            self,
            date: date,
            description: str,
            amount: Decimal,
            account_id: str,
        ) -> bool:
        """Check if a transaction exists for deduplication"""
        conn = self.db.get_connection()
        cursor = conn.execute(
            """
            SELECT 1 FROM transactions
            WHERE date = ? AND description = ? AND amount = ? AND account_id = ?
            """,
            (date.isoformat(), description, str(amount), account_id),
        )
        return cursor.fetchone() is not None

    def imported_count(self) -> int:
        conn = self.db.get_connection()
        row = conn.execute("SELECT COUNT(*) FROM transactions WHERE imported = 1").fetchone()
        return row[0]

    def clear_imported(self) -> int:
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM transactions WHERE imported = 1")
            return cursor.rowcount

    def clear_all(self) -> int:
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM transactions")
            return cursor.rowcount

    def _is_duplicate(self, transaction: Transaction) -> bool:
        if transaction.id is not None and self._id_exists(transaction.id):
            return True
        return self.exists(
            transaction.date,
            transaction.description,
            transaction.amount,
            transaction.account_id,
        )

    def _id_exists(self, transaction_id: str) -> bool:
        conn = self.db.get_connection()
        cursor = conn.execute("SELECT 1 FROM transactions WHERE id = ?", (transaction_id,))
        return cursor.fetchone() is not None

    def _insert(self, conn: sqlite3.Connection, transaction: Transaction, imported: bool) -> None:
        if transaction.id is None:
            transaction.id = self.id_generator()

        conn.execute(INSERT_SQL, self._to_params(transaction, imported))

    def _update(self, conn: sqlite3.Connection, transaction: Transaction) -> None:
        if transaction.id is None:
            raise ValueError("Cannot update transaction without ID")

        cursor = conn.execute(
            """
            UPDATE transactions
            SET description = ?, amount = ?, category = ?,
                merchant = ?, pending = ?, confidence = ?
            WHERE id = ?
            """,
            (
                transaction.description,
                str(transaction.amount),
                transaction.category,
                transaction.merchant,
                int(transaction.pending),
                transaction.confidence,
                transaction.id,
            )
        )

        if cursor.rowcount == 0:
            raise TransactionNotFoundError(
                f"Transaction with ID {transaction.id} not found"
            )

    @staticmethod
    def _to_params(transaction: Transaction, imported: bool) -> Tuple[Any, ...]:
        return (
            transaction.id,
            transaction.account_id,
            transaction.date.isoformat(),
            transaction.description,
            str(transaction.amount), # Store as string for precision
            transaction.category or UNCATEGORIZED,
            transaction.merchant,
            int(transaction.pending),
            transaction.confidence,
            int(imported),
            json.dumps(transaction.raw_data, default=str) if transaction.raw_data else None,
        )

    def _row_to_transaction(self, row: sqlite3.Row) -> Transaction:
        """Convert database row to Transaction object."""
        return Transaction(
            id=row["id"],
            account_id=row["account_id"],
            date=date.fromisoformat(row["date"]),
            description=row["description"],
            amount=Decimal(row["amount"]),
            category=row["category"] or UNCATEGORIZED,
            merchant=row["merchant"],
            pending=bool(row["pending"]),
            confidence=row["confidence"],
            raw_data=json.loads(row["raw_data"]) if row["raw_data"] else None,
        )
