from abc import ABC, abstractmethod
from pathlib import Path
from typing import ClassVar, List, Tuple, Union

from finance_tracker.domain.models import Transaction

PathLike = Union[str, Path]


class StatementParser(ABC):
    """
    Turns an exported statement file into domain transactions.

    One concrete parser per import source, selected through the
    ParserFactory. Parsers never categorize: whatever category the
    file carries is passed through and the engine decides later.
    """

    # Lower-case file suffixes this parser accepts
    extensions: ClassVar[Tuple[str, ...]] = ()

    @abstractmethod
    def parse(self, filepath: PathLike) -> List[Transaction]:
        """
        Read every usable row of the statement.

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If the file can't be read by this parser
        """

    @abstractmethod
    def validate_file(self, filepath: PathLike) -> None:
        """
        Raise if the file isn't something this parser understands.

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If file format is invalid
        """

    def accepts_extension(self, filepath: PathLike) -> bool:
        return Path(filepath).suffix.lower() in self.extensions
