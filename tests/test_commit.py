"""
Tests for the commit orchestrator.
"""

from datetime import date
from decimal import Decimal

import pytest

from conftest import CHECKING, MEALS
from ledger_recon.commit.orchestrator import CommitOrchestrator, CommitResult
from ledger_recon.models.transaction import (
    BankStatus,
    ClassificationResult,
    MatchConfidence,
    MatchType,
    Posting,
    PostingLine,
    ReviewTransaction,
    Suggestion,
)
from ledger_recon.utils.exceptions import UnbalancedPostingError


def _review(match_type, amount, bank_status=BankStatus.POSTED, selected=True, **kwargs):
    result = ClassificationResult(
        date=kwargs.pop("day", date(2025, 6, 2)),
        description=kwargs.pop("description", "MARIETTA DINER"),
        amount=Decimal(amount),
        bank_status=bank_status,
        match_type=match_type,
        match_confidence=MatchConfidence.HIGH,
        **kwargs,
    )
    return ReviewTransaction(result=result, selected=selected)


class TestCommitOrchestrator:
    """Per-item dispatch, counters and partial failure."""

    @pytest.fixture(autouse=True)
    def _orchestrator(self, seeded_store, builder):
        self.store = seeded_store
        self.orchestrator = CommitOrchestrator(seeded_store, builder, CHECKING)

    def test_mark_cleared(self):
        item = _review(
            MatchType.MATCHED_PENDING, "-45.37", matched_line_id=1, matched_transaction_id=1
        )
        result = self.orchestrator.commit([item])

        assert result.cleared == 1
        assert result.succeeded == [item]
        txn = self.store.get_transaction(1)
        assert txn.date == date(2025, 6, 2)
        assert all(s.line.is_cleared for s in txn.lines)

    def test_tip_adjustment_scales_transaction(self):
        item = _review(
            MatchType.TIP_ADJUSTMENT,
            "-55.00",
            matched_line_id=1,
            matched_transaction_id=1,
            original_amount=Decimal("-45.37"),
        )
        result = self.orchestrator.commit([item])

        assert result.tip_adjusted == 1
        txn = self.store.get_transaction(1)
        assert [s.line.amount for s in txn.lines] == [Decimal("-55.00"), Decimal("55.00")]
        assert all(s.line.is_cleared for s in txn.lines)

    def test_new_transaction_created(self):
        item = _review(
            MatchType.NEW,
            "-18.50",
            description="CORNER CAFE",
            suggestion=Suggestion(account_id=MEALS, vendor_id=2),
        )
        result = self.orchestrator.commit([item])

        assert result.created == 1
        txn = self.store.get_transaction(3)
        assert txn.description == "CORNER CAFE"
        cash, category = txn.lines
        assert (cash.line.account_id, cash.line.amount) == (CHECKING, Decimal("-18.50"))
        assert (category.line.account_id, category.line.vendor_id) == (MEALS, 2)
        assert cash.line.is_cleared

    def test_new_uses_reviewer_overrides(self):
        item = _review(MatchType.NEW, "-18.50", bank_status=BankStatus.PENDING)
        item.override_account_id = MEALS
        item.override_description = "Team coffee"
        self.orchestrator.commit([item])

        txn = self.store.get_transaction(3)
        assert txn.description == "Team coffee"
        assert not any(s.line.is_cleared for s in txn.lines)

    def test_failure_does_not_stop_batch(self):
        """A new item without a category fails; the rest still post."""
        missing_category = _review(MatchType.NEW, "-9.99", description="MYSTERY")
        clear = _review(
            MatchType.MATCHED_PENDING, "-45.37", matched_line_id=1, matched_transaction_id=1
        )
        result = self.orchestrator.commit([missing_category, clear])

        assert result.cleared == 1
        assert result.has_failures
        failure = result.failures[0]
        assert failure.description == "MYSTERY"
        assert failure.date == date(2025, 6, 2)
        assert "Category account" in failure.message
        assert result.succeeded == [clear]

    def test_store_failure_is_recorded(self):
        item = _review(
            MatchType.MATCHED_PENDING, "-45.37", matched_line_id=50, matched_transaction_id=99
        )
        result = self.orchestrator.commit([item])
        assert result.cleared == 0
        assert "not found" in result.failures[0].message

    def test_unselected_and_anomalies_skipped(self):
        unselected = _review(
            MatchType.MATCHED_PENDING,
            "-45.37",
            selected=False,
            matched_line_id=1,
            matched_transaction_id=1,
        )
        anomaly = _review(
            MatchType.MATCHED_CLEARED,
            "-120.00",
            bank_status=BankStatus.PENDING,
            matched_line_id=3,
            matched_transaction_id=2,
        )
        result = self.orchestrator.commit([unselected, anomaly])

        assert result.skipped == 2
        assert result.succeeded_count == 0
        assert not self.store.get_transaction(1).lines[0].line.is_cleared

    def test_invariant_violation_aborts(self, monkeypatch):
        """An unbalanced posting is a programming error, not a per-item failure."""

        def broken(*args, **kwargs):
            lines = [PostingLine(CHECKING, Decimal("-1")), PostingLine(MEALS, Decimal("2"))]
            return Posting(date(2025, 6, 2), "broken", lines).validate()

        monkeypatch.setattr(self.orchestrator.builder, "build_new_transaction", broken)
        item = _review(MatchType.NEW, "-1.00", suggestion=Suggestion(account_id=MEALS))
        with pytest.raises(UnbalancedPostingError):
            self.orchestrator.commit([item])


class TestCommitResult:
    def test_clear_review_state_rule(self):
        """Cleared when anything succeeded or nothing remains."""
        assert CommitResult(created=1).should_clear_review_state(remaining=3)
        assert CommitResult().should_clear_review_state(remaining=0)
        assert not CommitResult().should_clear_review_state(remaining=2)

    def test_to_dict(self):
        result = CommitResult(cleared=2, created=1, tip_adjusted=1)
        data = result.to_dict()
        assert data["tipAdjusted"] == 1
        assert data["cleared"] == 2
        assert data["failures"] == []
