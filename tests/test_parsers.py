"""
Tests for the statement CSV parser and the ledger directory loader.
"""

from datetime import date
from decimal import Decimal

import pytest

from conftest import CHECKING, MAPLE_ASSET
from ledger_recon.config import ReconConfig
from ledger_recon.models.transaction import BankStatus
from ledger_recon.parsers.ledger_loader import load_ledger, save_ledger
from ledger_recon.parsers.statement_parser import StatementParser
from ledger_recon.utils.exceptions import LedgerStoreError, StatementParseError


class TestStatementParser:
    """Normalization of statement rows."""

    def setup_method(self):
        self.parser = StatementParser(ReconConfig())

    def test_signed_amount_column(self):
        text = (
            "Date,Description,Amount,Status\n"
            "2025-06-01,MARIETTA DINER,-45.37,Posted\n"
            "2025-06-02,PAYROLL DEPOSIT,\"$1,250.00\",Posted\n"
        )
        rows = self.parser.parse_text(text)
        assert [(r.date, r.description, r.amount) for r in rows] == [
            (date(2025, 6, 1), "MARIETTA DINER", Decimal("-45.37")),
            (date(2025, 6, 2), "PAYROLL DEPOSIT", Decimal("1250.00")),
        ]
        assert all(r.bank_status is BankStatus.POSTED for r in rows)

    def test_pending_status_keywords(self):
        text = (
            "Date,Description,Amount,Status\n"
            "2025-06-01,A,-1.00,Processing\n"
            "2025-06-01,B,-2.00,PENDING\n"
            "2025-06-01,C,-3.00,\n"
        )
        statuses = [r.bank_status for r in self.parser.parse_text(text)]
        assert statuses == [BankStatus.PENDING, BankStatus.PENDING, BankStatus.POSTED]

    def test_debit_credit_columns(self):
        """Debits become negative, credits positive."""
        text = (
            "Date,Description,Debit,Credit\n"
            "06/02/2025,Coffee,4.50,\n"
            "06/03/2025,Deposit,,100.00\n"
        )
        rows = self.parser.parse_text(text)
        assert [r.amount for r in rows] == [Decimal("-4.50"), Decimal("100.00")]
        assert rows[0].date == date(2025, 6, 2)

    def test_parentheses_are_negative(self):
        rows = self.parser.parse_text("Date,Description,Amount\n2025-06-01,Fee,(12.00)\n")
        assert rows[0].amount == Decimal("-12.00")

    def test_missing_columns(self):
        with pytest.raises(StatementParseError, match="missing columns"):
            self.parser.parse_text("Date,Memo\n2025-06-01,Fee\n")

    def test_bad_date_rejects_whole_statement(self):
        text = (
            "Date,Description,Amount\n"
            "2025-06-01,Good,-1.00\n"
            "yesterday,Bad,-2.00\n"
        )
        with pytest.raises(StatementParseError, match="Line 3"):
            self.parser.parse_text(text)

    def test_bad_amount(self):
        with pytest.raises(StatementParseError, match="amount"):
            self.parser.parse_text("Date,Description,Amount\n2025-06-01,Fee,abc\n")

    @pytest.mark.parametrize("amount", ["Infinity", "-inf", "NaN"])
    def test_non_finite_amount(self, amount):
        with pytest.raises(StatementParseError, match="Line 2: no valid amount"):
            self.parser.parse_text(
                f"Date,Description,Amount\n2025-06-01,MARIETTA DINER,{amount}\n"
            )

    def test_empty_text(self):
        with pytest.raises(StatementParseError, match="empty"):
            self.parser.parse_text("   ")

    def test_custom_column_mappings(self):
        config = ReconConfig()
        config.input.statement.column_mappings.update(
            {"date": "Posting Date", "description": "Payee", "amount": "Value"}
        )
        parser = StatementParser(config)
        rows = parser.parse_text("Posting Date,Payee,Value\n2025-06-01,Shell,-40.00\n")
        assert rows[0].description == "Shell"

    def test_parse_file(self, tmp_path):
        path = tmp_path / "statement.csv"
        path.write_text("Date,Description,Amount\n2025-06-01,Fee,-3.00\n\n")
        rows = self.parser.parse_file(path)
        assert len(rows) == 1

    def test_missing_file(self, tmp_path):
        with pytest.raises(StatementParseError):
            self.parser.parse_file(tmp_path / "nope.csv")


class TestLedgerLoader:
    """CSV ledger directory round trip."""

    def test_save_and_load(self, seeded_store, tmp_path):
        save_ledger(seeded_store, tmp_path / "ledger")
        loaded = load_ledger(tmp_path / "ledger")

        assert len(loaded.chart_of_accounts()) == len(seeded_store.chart_of_accounts())
        assert sorted(loaded.transactions) == [1, 2]
        assert loaded.account_balance(CHECKING) == Decimal("-165.37")
        assert [e.line_id for e in loaded.pending_entries(CHECKING)] == [1]

        category = loaded.get_transaction(2).lines[1].line
        assert category.vendor_id == 1
        assert category.is_cleared

        deal = loaded.get_deal(2)
        assert deal.original_loan_amount == Decimal("200000")
        assert deal.loan_term_months == 360
        assert deal.first_payment_date == date(2024, 2, 1)
        assert loaded.get_deal(1).asset_account_id == MAPLE_ASSET

    def test_ids_continue_after_load(self, seeded_store, builder, tmp_path):
        save_ledger(seeded_store, tmp_path)
        loaded = load_ledger(tmp_path)
        txn_id = loaded.create_transaction(
            builder.build_new_transaction(date(2025, 6, 5), "Lunch", Decimal("-9.00"), 1, 3)
        )
        assert txn_id == 3
        assert [s.line_id for s in loaded.get_transaction(3).lines] == [5, 6]

    def test_missing_accounts_file(self, tmp_path):
        with pytest.raises(LedgerStoreError, match="accounts.csv"):
            load_ledger(tmp_path)

    def test_malformed_line(self, seeded_store, tmp_path):
        save_ledger(seeded_store, tmp_path)
        lines = tmp_path / "lines.csv"
        lines.write_text(lines.read_text().replace("-45.37", "forty"))
        with pytest.raises(LedgerStoreError, match="Malformed line"):
            load_ledger(tmp_path)
