import importlib
from typing import Any, Dict, List, Optional, Type

from finance_tracker.config.settings import ConfigLoader
from finance_tracker.logger import get_logger
from finance_tracker.parsers.base import StatementParser

logger = get_logger(__name__)


class ParserFactory:
    """
    Factory for creating statement parsers.

    Maps an import source identifier (e.g. 'csv') to the parser class
    that understands that source's files.
    """

    _locked = False
    _registry: Dict[str, Type[StatementParser]] = {}

    @classmethod
    def register(cls, source: str, parser_class: Type[StatementParser]) -> None:
        """
        Register a parser for an import source.

        Args:
            source: Unique identifier of the import source (e.g. 'csv')
            parser_class: The parser class

        Raises:
            RuntimeError: If the registry is locked
            ValueError: If the source is already registered
            TypeError: If parser_class doesn't inherit from StatementParser

        Example:
            ParserFactory.register('csv', CSVTransactionParser)
        """
        if cls._locked:
            raise RuntimeError("Registry is locked, cannot add more parsers")

        if source in cls._registry:
            raise ValueError(f"Parser for '{source}' is already registered")

        if not (isinstance(parser_class, type) and issubclass(parser_class, StatementParser)):
            raise TypeError(f"{parser_class} must inherit from StatementParser")

        cls._registry[source] = parser_class

    @classmethod
    def lock_registry(cls) -> None:
        """Prevent further registration (call after app initialization)"""
        cls._locked = True

    @classmethod
    def reset(cls) -> None:
        """Empty and unlock the registry"""
        cls._registry = {}
        cls._locked = False

    @classmethod
    def create_parser(cls, source: str, **kwargs: Any) -> StatementParser:
        """
        Create a parser instance for the given import source.

        Args:
            source: Import source identifier (e.g. 'csv')
            **kwargs: Passed to the parser constructor (e.g. id_generator)

        Raises:
            ValueError: If no parser is registered for this source

        Example:
            parser = ParserFactory.create_parser('csv')
            transactions = parser.parse('statement.csv')
        """
        if source not in cls._registry:
            available = ', '.join(cls._registry.keys())
            raise ValueError(
                f"No parser registered for '{source}'. "
                f"Available parsers: {available}"
            )

        return cls._registry[source](**kwargs)

    @classmethod
    def get_available_sources(cls) -> List[str]:
        """Return list of all registered import sources"""
        return list(cls._registry.keys())

    @classmethod
    def load_parsers_from_config(
        cls,
        config: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Load and register parsers from configuration, then lock the registry.

        Args:
            config: Optional config dict. If None, loads parsers.json from ConfigLoader.

        Example (testing):
            test_config = {"parsers": [{"source": "csv", "class": "..."}]}
            ParserFactory.load_parsers_from_config(config=test_config)
        """
        if config is None:
            config = ConfigLoader.load_parsers_config()

        for parser_config in config['parsers']:
            module_path, class_name = str(parser_config['class']).rsplit('.', 1)
            module = importlib.import_module(module_path)
            parser_class = getattr(module, class_name)

            source = parser_config['source']
            cls.register(source, parser_class)
            logger.debug("Registered parser %s for '%s'", class_name, source)

        cls.lock_registry()
