"""
Transaction identifier generation.

Importers receive an ID generator as a dependency instead of
relying on a process-wide counter.
"""
import itertools
import uuid
from typing import Callable

IdGenerator = Callable[[], str]


def uuid_id_generator() -> str:
    """Return a new random identifier"""
    return str(uuid.uuid4())


class SequentialIdGenerator:
    """
    Monotonic identifiers scoped to a single instance.

    Example:
        >>> next_id = SequentialIdGenerator("imported-txn")
        >>> next_id()
        'imported-txn-1'
    """

    def __init__(self, prefix: str = "txn", start: int = 1):
        self.prefix = prefix
        self._counter = itertools.count(start)

    def __call__(self) -> str:
        return f"{self.prefix}-{next(self._counter)}"

    def __repr__(self) -> str:
        return f"SequentialIdGenerator('{self.prefix}')"
