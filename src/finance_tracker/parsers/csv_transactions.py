from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Dict, List, Optional

import pandas as pd

from finance_tracker.config.settings import ConfigLoader
from finance_tracker.domain.ids import IdGenerator, uuid_id_generator
from finance_tracker.domain.models import Transaction, UNCATEGORIZED
from finance_tracker.logger import get_logger
from finance_tracker.parsers.base import StatementParser

logger = get_logger(__name__)


class CSVTransactionParser(StatementParser):
    """
    Parser for generic transaction CSV exports.

    Expected columns (first alias found wins):
    - Date
    - Description / Memo
    - Amount (signed: negative is money out)
    - Account ID / Account (optional, defaults to 'default')
    - Category (optional)
    - Merchant (optional)

    A category supplied by the file is translated through the category
    map and kept with CSV_CATEGORY_CONFIDENCE, so the categorization
    engine only replaces it with a more confident result.
    """

    DATE_COLS = ["Date"]
    DESCRIPTION_COLS = ["Description", "Memo"]
    AMOUNT_COLS = ["Amount"]
    ACCOUNT_COLS = ["Account ID", "Account"]
    CATEGORY_COLS = ["Category"]
    MERCHANT_COLS = ["Merchant"]

    extensions = (".csv",)

    DEFAULT_ACCOUNT = "default"
    CSV_CATEGORY_CONFIDENCE = 0.85

    def __init__(
        self,
        id_generator: Optional[IdGenerator] = None,
        category_map: Optional[Dict[str, str]] = None,
    ):
        """
        Args:
            id_generator: Callable producing transaction IDs (random UUIDs by default)
            category_map: Source category label -> category. If None,
                loads category_map.json via ConfigLoader.
        """
        self.id_generator = id_generator or uuid_id_generator
        if category_map is None:
            category_map = ConfigLoader.load_category_map()
        self.category_map = category_map

    def validate_file(self, filepath):
        """
        Check the file exists, is a CSV and has amount and description columns.

        Raises:
            FileNotFoundError: If file doesn't exist
            ValueError: If the file isn't a usable transactions CSV
        """
        path = Path(filepath)

        if not path.exists():
            raise FileNotFoundError(f"File does not exist on path {path}")

        if not self.accepts_extension(path):
            raise ValueError(f"File must be .csv, got {path.suffix}")

        try:
            header = pd.read_csv(path, nrows=0, skipinitialspace=True)
        except (pd.errors.EmptyDataError, pd.errors.ParserError) as e:
            raise ValueError(f"Could not read CSV header: {e}") from e

        columns = [str(col).strip() for col in header.columns]

        if self._find_column(columns, self.AMOUNT_COLS) is None:
            raise ValueError(f"Missing amount column. Available columns: {columns}")

        if self._find_column(columns, self.DESCRIPTION_COLS) is None:
            raise ValueError(f"Missing description column. Available columns: {columns}")

    def parse(self, filepath: str) -> List[Transaction]:
        """
        Parse a transactions CSV.

        Rows without a description or with a non-numeric amount are
        skipped with a warning.
        """
        self.validate_file(filepath)

        df = pd.read_csv(filepath, dtype=str, keep_default_na=False, skipinitialspace=True)
        df.columns = [str(col).strip() for col in df.columns]

        columns = list(df.columns)
        date_col = self._find_column(columns, self.DATE_COLS)
        description_col = self._find_column(columns, self.DESCRIPTION_COLS)
        amount_col = self._find_column(columns, self.AMOUNT_COLS)
        account_col = self._find_column(columns, self.ACCOUNT_COLS)
        category_col = self._find_column(columns, self.CATEGORY_COLS)
        merchant_col = self._find_column(columns, self.MERCHANT_COLS)

        transactions = []
        for index, row in df.iterrows():
            # File line number, the header is line 1
            line = index + 2
            description = self._cell(row, description_col)
            if not description:
                logger.warning("Skipping line %d: no description", line)
                continue

            try:
                amount = self._parse_amount(self._cell(row, amount_col))
                txn_date = self._parse_date(self._cell(row, date_col))
            except ValueError as e:
                logger.warning("Skipping line %d: %s", line, e)
                continue

            category, confidence = self._map_category(self._cell(row, category_col))

            transactions.append(Transaction(
                id=self.id_generator(),
                date=txn_date,
                description=description,
                amount=amount,
                account_id=self._cell(row, account_col) or self.DEFAULT_ACCOUNT,
                category=category,
                merchant=self._cell(row, merchant_col) or None,
                pending=False,
                confidence=confidence,
                raw_data={col: row[col] for col in columns},
            ))

        if not transactions:
            logger.warning("No transactions found in %s", filepath)

        return transactions

    @staticmethod
    def _find_column(columns: List[str], aliases: List[str]) -> Optional[str]:
        for alias in aliases:
            if alias in columns:
                return alias
        return None

    @staticmethod
    def _cell(row: pd.Series, column: Optional[str]) -> str:
        if column is None:
            return ""
        return str(row[column]).strip().strip('"')

    @staticmethod
    def _parse_amount(raw: str) -> Decimal:
        cleaned = raw.replace('$', '').replace('R', '').replace(',', '').replace(' ', '')
        try:
            amount = Decimal(cleaned)
        except InvalidOperation:
            raise ValueError(f"invalid amount '{raw}'")
        if not amount.is_finite():
            raise ValueError(f"invalid amount '{raw}'")
        return amount

    @staticmethod
    def _parse_date(raw: str) -> date:
        if not raw:
            return date.today()
        parsed = pd.to_datetime(raw, errors="coerce")
        if pd.isna(parsed):
            raise ValueError(f"invalid date '{raw}'")
        return parsed.date()

    def _map_category(self, raw: str):
        """Category and confidence for a row's category cell"""
        if not raw or raw == UNCATEGORIZED:
            return UNCATEGORIZED, None
        return self.category_map.get(raw, raw), self.CSV_CATEGORY_CONFIDENCE
