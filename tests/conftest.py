import pytest
from datetime import date
from decimal import Decimal
from pathlib import Path

from finance_tracker.database.connection import DatabaseConfig, DatabaseManager
from finance_tracker.domain.ids import SequentialIdGenerator
from finance_tracker.domain.models import Transaction
from finance_tracker.parsers.csv_transactions import CSVTransactionParser

FIXTURES_DIR = Path(__file__).parent / "fixtures"

@pytest.fixture
def csv_parser() -> CSVTransactionParser:
    """Parser with predictable IDs and no category mapping"""
    return CSVTransactionParser(
        id_generator=SequentialIdGenerator("test"),
        category_map={},
    )

@pytest.fixture
def sample_csv_file() -> Path:
    """Provide a path to a sample transactions export"""
    return FIXTURES_DIR / "sample_transactions.csv"

@pytest.fixture
def test_db(tmp_path):
    """
    Create a real test database.

    Uses pytest's tmp_path fixture so the database is thrown away after each test.
    """
    db_manager = DatabaseManager(DatabaseConfig(tmp_path / "test.db"))
    db_manager.initialize_schema()

    yield db_manager

    db_manager.close()

@pytest.fixture
def sample_transaction() -> Transaction:
    """Reusable sample transaction."""
    return Transaction(
        id="txn-1",
        date=date(2025, 1, 15),
        description="TAKEALOT ONLINE",
        amount=Decimal("-899.99"),
        account_id="absa-credit",
        category="Shopping",
        confidence=0.85,
    )
