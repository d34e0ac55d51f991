"""
Tests for the in-memory ledger store.
"""

from datetime import date
from decimal import Decimal

import pytest

from conftest import CHECKING, MEALS, SUPPLIES
from ledger_recon.models.transaction import Posting, PostingLine
from ledger_recon.utils.exceptions import LedgerStoreError


class TestReads:
    """Snapshots read for matching and suggestions."""

    def test_pending_entries(self, seeded_store):
        entries = seeded_store.pending_entries(CHECKING)
        assert [(e.line_id, e.transaction_id, e.amount) for e in entries] == [
            (1, 1, Decimal("-45.37"))
        ]
        assert entries[0].description == "MARIETTA DINER"

    def test_cleared_entries_within_lookback(self, seeded_store):
        entries = seeded_store.cleared_entries(CHECKING, as_of=date(2025, 6, 30))
        assert [e.line_id for e in entries] == [3]

    def test_cleared_entries_outside_lookback(self, seeded_store):
        assert seeded_store.cleared_entries(CHECKING, as_of=date(2025, 9, 30)) == []

    def test_category_line_carries_names(self, seeded_store):
        entry = seeded_store.transaction_entries(2)[1]
        assert entry.vendor_name == "Home Depot"
        assert entry.job_name == "Maple St Rehab"

    def test_recent_history_skips_cash_and_pending(self, seeded_store):
        """Only cleared category lines feed suggestions."""
        history = seeded_store.recent_history()
        assert len(history) == 1
        assert history[0].account_id == SUPPLIES
        assert history[0].amount == Decimal("120.00")
        assert history[0].vendor_id == 1

    def test_reference_data_is_active_only(self, seeded_store):
        reference = seeded_store.reference_data()
        assert [v.name for v in reference.vendors] == ["Home Depot", "Shell"]
        assert [j.name for j in reference.jobs] == ["Maple St Rehab"]
        assert "5100" in [a.code for a in reference.expense_accounts]
        assert "41500" in [a.code for a in reference.income_accounts]

    def test_account_balance(self, seeded_store):
        assert seeded_store.account_balance(CHECKING) == Decimal("-165.37")

    def test_unknown_deal(self, seeded_store):
        with pytest.raises(LedgerStoreError):
            seeded_store.get_deal(42)


class TestWrites:
    """Atomic transaction writes."""

    def test_create_assigns_sequential_ids(self, seeded_store):
        txn_id = seeded_store.create_transaction(
            Posting(
                date(2025, 6, 5),
                "Lunch",
                [PostingLine(CHECKING, Decimal("-12.00")), PostingLine(MEALS, Decimal("12.00"))],
            )
        )
        assert txn_id == 3
        assert [s.line_id for s in seeded_store.get_transaction(3).lines] == [5, 6]

    def test_unbalanced_write_rejected(self, seeded_store):
        posting = Posting(
            date(2025, 6, 5),
            "Lunch",
            [PostingLine(CHECKING, Decimal("-12.00")), PostingLine(MEALS, Decimal("11.00"))],
        )
        with pytest.raises(LedgerStoreError, match="sum to zero"):
            seeded_store.create_transaction(posting)
        assert len(seeded_store.transactions) == 2

    def test_unknown_account_rejected(self, seeded_store):
        posting = Posting(
            date(2025, 6, 5),
            "Lunch",
            [PostingLine(CHECKING, Decimal("-12.00")), PostingLine(999, Decimal("12.00"))],
        )
        with pytest.raises(LedgerStoreError, match="999"):
            seeded_store.create_transaction(posting)
        assert len(seeded_store.transactions) == 2

    def test_mark_cleared_is_idempotent(self, seeded_store):
        """Clearing twice leaves the lines cleared and amounts unchanged."""
        seeded_store.mark_cleared(1, date(2025, 6, 2))
        seeded_store.mark_cleared(1, date(2025, 6, 2))

        txn = seeded_store.get_transaction(1)
        assert txn.date == date(2025, 6, 2)
        assert all(s.line.is_cleared for s in txn.lines)
        assert [s.line.amount for s in txn.lines] == [Decimal("-45.37"), Decimal("45.37")]

    def test_scale_transaction(self, seeded_store):
        seeded_store.scale_transaction(
            1, Decimal("55.00") / Decimal("45.37"), date(2025, 6, 3), anchor_line_id=1
        )
        txn = seeded_store.get_transaction(1)
        assert [s.line.amount for s in txn.lines] == [Decimal("-55.00"), Decimal("55.00")]
        assert all(s.line.is_cleared for s in txn.lines)
        assert txn.date == date(2025, 6, 3)

    def test_scale_rejects_non_positive_factor(self, seeded_store):
        with pytest.raises(LedgerStoreError, match="positive"):
            seeded_store.scale_transaction(1, Decimal("0"), date(2025, 6, 3))

    def test_missing_transaction(self, seeded_store):
        with pytest.raises(LedgerStoreError, match="not found"):
            seeded_store.mark_cleared(99, date(2025, 6, 3))

    def test_created_lines_are_copies(self, seeded_store):
        line = PostingLine(CHECKING, Decimal("-12.00"))
        seeded_store.create_transaction(
            Posting(date(2025, 6, 5), "Lunch", [line, PostingLine(MEALS, Decimal("12.00"))])
        )
        seeded_store.mark_cleared(3, date(2025, 6, 6))
        assert line.is_cleared is False
