"""
Bank and credit-card statement CSV parser.
Normalizes exported or pasted statement rows into candidate transactions.
"""

from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from io import StringIO
from pathlib import Path
from typing import Optional
import logging

import pandas as pd

from ..config import ReconConfig
from ..models.transaction import BankStatus, CandidateTransaction, to_cents
from ..utils.exceptions import StatementParseError

logger = logging.getLogger(__name__)


class StatementParser:
    """
    Parser for statement CSV exports.

    Amounts come either from a single signed amount column (kept as the
    statement reports it) or from separate debit/credit columns, where debits
    become negative. A row whose status column contains one of the pending
    keywords is marked pending at the bank.
    """

    def __init__(self, config: Optional[ReconConfig] = None):
        """
        Initialize the parser with configuration.

        Args:
            config: Application configuration object
        """
        self.config = config or ReconConfig()
        self.settings = self.config.input.statement
        self.columns = self.settings.column_mappings

    def parse_file(self, file_path: Path) -> list[CandidateTransaction]:
        """
        Parse a statement CSV file.

        Args:
            file_path: Path to the CSV file

        Returns:
            Candidate transactions in file order

        Raises:
            StatementParseError: If the file cannot be read or a row is malformed
        """
        logger.info(f"Parsing statement file: {file_path}")
        try:
            df = pd.read_csv(
                file_path,
                encoding=self.settings.encoding,
                delimiter=self.settings.delimiter,
                dtype=str,
                skipinitialspace=True,
            )
        except (OSError, ValueError, pd.errors.ParserError) as e:
            logger.error(f"Failed to read statement file: {e}")
            raise StatementParseError(f"Failed to read statement file: {e}") from e

        return self._process_dataframe(df)

    def parse_text(self, text: str) -> list[CandidateTransaction]:
        """Parse statement rows pasted as CSV text."""
        if not text or not text.strip():
            raise StatementParseError("Statement text is empty")
        try:
            df = pd.read_csv(
                StringIO(text),
                delimiter=self.settings.delimiter,
                dtype=str,
                skipinitialspace=True,
            )
        except (ValueError, pd.errors.ParserError) as e:
            raise StatementParseError(f"Failed to read statement text: {e}") from e
        return self._process_dataframe(df)

    def _process_dataframe(self, df: pd.DataFrame) -> list[CandidateTransaction]:
        date_col = self.columns.get("date", "Date")
        desc_col = self.columns.get("description", "Description")
        amount_col = self.columns.get("amount", "Amount")
        debit_col = self.columns.get("debit", "Debit")
        credit_col = self.columns.get("credit", "Credit")

        missing = [c for c in (date_col, desc_col) if c not in df.columns]
        has_amount = amount_col in df.columns
        has_split = debit_col in df.columns or credit_col in df.columns
        if not has_amount and not has_split:
            missing.append(f"{amount_col} (or {debit_col}/{credit_col})")
        if missing:
            raise StatementParseError(f"Statement is missing columns: {', '.join(missing)}")

        df = df.dropna(how="all")
        transactions: list[CandidateTransaction] = []
        for idx, row in df.iterrows():
            transactions.append(self._normalize_row(row, int(idx) + 2))

        pending = sum(1 for t in transactions if t.bank_status is BankStatus.PENDING)
        logger.info(
            f"Extracted {len(transactions)} statement lines ({pending} pending at bank)"
        )
        return transactions

    def _normalize_row(self, row: pd.Series, line_no: int) -> CandidateTransaction:
        """
        Convert one row to a CandidateTransaction.

        Args:
            row: Pandas Series representing a row
            line_no: Line number in the file, for error messages

        Raises:
            StatementParseError: If the date or amount cannot be parsed
        """
        txn_date = self._parse_date(row.get(self.columns.get("date", "Date")))
        if txn_date is None:
            raise StatementParseError(f"Line {line_no}: invalid or missing date")

        amount = self._row_amount(row)
        if amount is None:
            raise StatementParseError(f"Line {line_no}: no valid amount found")

        description = row.get(self.columns.get("description", "Description"))
        description = str(description).strip() if pd.notna(description) else ""

        return CandidateTransaction(
            date=txn_date,
            description=description,
            amount=to_cents(amount),
            bank_status=self._parse_status(row.get(self.columns.get("status", "Status"))),
        )

    def _row_amount(self, row: pd.Series) -> Optional[Decimal]:
        amount = self._parse_amount(row.get(self.columns.get("amount", "Amount")))
        if amount is not None:
            return amount

        debit = self._parse_amount(row.get(self.columns.get("debit", "Debit")))
        credit = self._parse_amount(row.get(self.columns.get("credit", "Credit")))
        if debit is None and credit is None:
            return None
        return (credit or Decimal("0")) - abs(debit or Decimal("0"))

    def _parse_status(self, value) -> BankStatus:
        if value is None or pd.isna(value):
            return BankStatus.POSTED
        text = str(value).lower()
        if any(keyword.lower() in text for keyword in self.settings.pending_keywords):
            return BankStatus.PENDING
        return BankStatus.POSTED

    def _parse_date(self, date_value) -> Optional[date]:
        """
        Parse a date value, trying each configured format in order.

        Args:
            date_value: Date value (string or datetime)

        Returns:
            Python date object or None
        """
        if date_value is None or pd.isna(date_value):
            return None

        if isinstance(date_value, datetime):
            return date_value.date()
        if isinstance(date_value, date):
            return date_value

        text = str(date_value).strip()
        for date_format in self.settings.date_formats:
            try:
                return datetime.strptime(text, date_format).date()
            except ValueError:
                continue
        return None

    def _parse_amount(self, amount_value) -> Optional[Decimal]:
        """
        Parse an amount value from the CSV.

        Handles currency symbols, thousands separators and accounting-style
        parentheses for negatives.

        Args:
            amount_value: Amount value (string, float, or None)

        Returns:
            Decimal amount or None
        """
        if amount_value is None or pd.isna(amount_value):
            return None

        text = str(amount_value).replace("$", "").replace(",", "").strip()
        if not text:
            return None
        negative = text.startswith("(") and text.endswith(")")
        if negative:
            text = text[1:-1]

        try:
            value = Decimal(text)
        except InvalidOperation:
            return None
        if not value.is_finite():
            return None
        return -value if negative else value
