import pytest
from datetime import date
from decimal import Decimal
from pathlib import Path

from finance_tracker.categorization import CategorizationEngine
from finance_tracker.domain.ids import SequentialIdGenerator
from finance_tracker.parsers.factory import ParserFactory
from finance_tracker.repositories.sqlite_transaction_repository import SQLiteTransactionRepository
from finance_tracker.services.transaction_service import TransactionService

@pytest.fixture
def registered_parsers():
    """Register the parsers from the packaged config"""
    ParserFactory.reset()
    ParserFactory.load_parsers_from_config()
    yield
    ParserFactory.reset()

@pytest.fixture
def service(test_db, registered_parsers, mocker) -> TransactionService:
    mocker.patch(
        "finance_tracker.config.settings.ConfigLoader.load_category_map",
        return_value={},
    )
    return TransactionService(
        repository=SQLiteTransactionRepository(test_db),
        categorization_engine=CategorizationEngine(config={"rules": []}),
        id_generator=SequentialIdGenerator("imported-txn"),
    )

@pytest.mark.integration
class TestCSVImportE2E:

    def test_parser_registered_from_config(self, registered_parsers):
        """The packaged parsers.json registers the CSV parser"""
        assert "csv" in ParserFactory.get_available_sources()

    def test_import_categorizes_and_stores(self, service: TransactionService, sample_csv_file: Path):
        # Act
        result = service.import_statement(sample_csv_file, source="csv")

        # Assert
        assert result.total_parsed == 5
        assert result.new_transactions == 5
        assert result.categorized == 5

        stored = {t.description: t for t in service.get_transactions()}
        assert stored["WOOLWORTHS SANDTON"].category == "Groceries"
        assert stored["WOOLWORTHS SANDTON"].confidence == pytest.approx(0.95)
        assert stored["UBER TRIP 27/05"].category == "Transport"
        assert stored["UBER TRIP 27/05"].confidence == pytest.approx(0.96)
        assert stored["SALARY DEPOSIT"].category == "Income"
        assert stored["RANDOM MERCHANT XYZ123"].category == "Uncategorized"
        assert stored["RANDOM MERCHANT XYZ123"].confidence == pytest.approx(0.3)
        assert stored["WOOLWORTHS SANDTON"].id.startswith("imported-txn-")

    def test_engine_replaces_less_confident_csv_category(self, service: TransactionService, sample_csv_file: Path):
        service.import_statement(sample_csv_file)

        [netflix] = [t for t in service.get_transactions() if t.description == "NETFLIX.COM"]

        assert netflix.category == "Entertainment"
        assert netflix.confidence == pytest.approx(0.94)

    def test_reimport_skips_duplicates(self, service: TransactionService, sample_csv_file: Path):
        service.import_statement(sample_csv_file)

        result = service.import_statement(sample_csv_file)

        assert result.new_transactions == 0
        assert result.duplicates_skipped == 5
        assert len(service.get_transactions()) == 5

    def test_dry_run_leaves_database_empty(self, service: TransactionService, sample_csv_file: Path):
        result = service.import_statement(sample_csv_file, dry_run=True)

        assert result.new_transactions == 5
        assert service.get_transactions() == []

    def test_manual_category_survives_recategorization(self, service: TransactionService, sample_csv_file: Path):
        # Arrange
        service.import_statement(sample_csv_file)
        [uber] = [t for t in service.get_transactions() if t.description == "UBER TRIP 27/05"]
        service.set_category(uber.id, "Work Travel")

        # Act
        updated = service.recategorize_transactions()

        # Assert
        assert updated == 0
        assert service.repository.get_by_id(uber.id).category == "Work Travel"
        assert service.repository.get_by_id(uber.id).confidence == 1.0

    def test_monthly_summary(self, service: TransactionService, sample_csv_file: Path):
        service.import_statement(sample_csv_file)

        summary = service.get_monthly_summary(2025, 5)

        assert summary.total_credits == Decimal("35000.00")
        assert summary.total_debits == Decimal("1591.49")
        assert summary.top_spending_categories[0] == ("Groceries", Decimal("1247.50"))

    def test_clear_imported(self, service: TransactionService, sample_csv_file: Path):
        service.import_statement(sample_csv_file)

        assert service.clear_imported_data() == 5
        assert service.get_transactions(start_date=date(2025, 1, 1)) == []
