import pytest
from finance_tracker.domain.ids import SequentialIdGenerator
from finance_tracker.parsers.factory import ParserFactory
from finance_tracker.parsers.csv_transactions import CSVTransactionParser

@pytest.mark.unit
class TestParserFactoryConfig:

    def setup_method(self):
        """Clear registry before each test"""
        ParserFactory.reset()

    def teardown_method(self):
        ParserFactory.reset()

    def test_load_parsers_from_custom_config(self):
        """Test loading parsers with injected config (no file I/O)"""

        # Arrange
        test_config = {
            "parsers": [
                {
                    "source": "csv",
                    "class": "finance_tracker.parsers.csv_transactions.CSVTransactionParser"
                }
            ]
        }

        # Act
        ParserFactory.load_parsers_from_config(config=test_config)

        # Assert
        assert ParserFactory.get_available_sources() == ["csv"]
        assert ParserFactory._registry["csv"] == CSVTransactionParser
        assert ParserFactory._locked is True

    def test_load_parsers_from_packaged_config(self):
        ParserFactory.load_parsers_from_config()

        assert "csv" in ParserFactory.get_available_sources()

    def test_load_parsers_with_invalid_module_path(self):
        """Test error handling for invalid parser class"""
        test_config = {
            "parsers": [
                {
                    "source": "fake",
                    "class": "nonexistent.module.FakeParser"
                }
            ]
        }

        with pytest.raises(ModuleNotFoundError):
            ParserFactory.load_parsers_from_config(config=test_config)

    def test_load_parsers_with_malformed_config(self):
        """Test handling of malformed config"""
        bad_config = {
            "parsers": [
                {
                    "source": "csv"
                    # Missing 'class' key!
                }
            ]
        }

        with pytest.raises(KeyError):
            ParserFactory.load_parsers_from_config(config=bad_config)

@pytest.mark.unit
class TestParserFactoryRegistry:

    def setup_method(self):
        """Clear registry before each test"""
        ParserFactory.reset()

    def teardown_method(self):
        ParserFactory.reset()

    def test_successful_registry(self):
        ParserFactory.register('csv', CSVTransactionParser)

        assert "csv" in ParserFactory._registry
        assert ParserFactory._registry["csv"] == CSVTransactionParser
        assert ParserFactory._locked is False

    def test_failure_register_after_lock(self):
        ParserFactory.lock_registry()

        with pytest.raises(RuntimeError):
            ParserFactory.register('csv', CSVTransactionParser)

    def test_failure_register_with_same_parser(self):
        ParserFactory.register('csv', CSVTransactionParser)

        with pytest.raises(ValueError):
            ParserFactory.register('csv', CSVTransactionParser)

    def test_failure_register_with_invalid_parser(self):
        with pytest.raises(TypeError):
            ParserFactory.register('csv', ParserFactory) # Any class thats not a StatementParser

    def test_reset_unlocks_registry(self):
        ParserFactory.register('csv', CSVTransactionParser)
        ParserFactory.lock_registry()

        ParserFactory.reset()

        assert ParserFactory.get_available_sources() == []
        ParserFactory.register('csv', CSVTransactionParser)

@pytest.mark.unit
class TestParserFactoryCreateParser:

    def setup_method(self):
        """Clear registry before each test"""
        ParserFactory.reset()

    def teardown_method(self):
        ParserFactory.reset()

    def test_succesful_parser_creation(self):
        ParserFactory.register('csv', CSVTransactionParser)
        parser = ParserFactory.create_parser('csv')

        assert parser.__class__ is CSVTransactionParser

    def test_parser_creation_forwards_kwargs(self):
        ParserFactory.register('csv', CSVTransactionParser)
        id_generator = SequentialIdGenerator("imp")

        parser = ParserFactory.create_parser('csv', id_generator=id_generator)

        assert parser.id_generator is id_generator

    def test_failure_on_unregistered_parser(self):
        with pytest.raises(ValueError, match="No parser registered"):
            ParserFactory.create_parser('unregistered-parser')
