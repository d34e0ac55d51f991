"""
Tests for the rule-based statement classifier.
"""

from datetime import date

import pytest

from conftest import CHECKING, MEALS
from ledger_recon.classifier import LedgerSnapshot, RuleBasedClassifier
from ledger_recon.models.transaction import MatchType
from ledger_recon.utils.exceptions import ClassificationError


@pytest.fixture
def snapshot(seeded_store):
    return LedgerSnapshot(
        account=seeded_store.chart_of_accounts().get(CHECKING),
        pending=seeded_store.pending_entries(CHECKING),
        cleared=seeded_store.cleared_entries(CHECKING, as_of=date(2025, 6, 30)),
        history=seeded_store.recent_history(),
        reference=seeded_store.reference_data(),
    )


class TestRuleBasedClassifier:
    """Parsing, matching and run warnings."""

    def setup_method(self):
        self.classifier = RuleBasedClassifier()

    def test_one_result_per_line(self, snapshot):
        text = (
            "Date,Description,Amount,Status\n"
            "2025-06-02,MARIETTA DINER,-55.00,Posted\n"
            "2025-05-21,HOME DEPOT #123,-120.00,Processing\n"
        )
        output = self.classifier.classify(text, snapshot)

        assert [r.match_type for r in output.results] == [
            MatchType.TIP_ADJUSTMENT,
            MatchType.MATCHED_CLEARED,
        ]
        assert output.results[1].is_anomaly
        assert any("pending at the bank" in w for w in output.warnings)

    def test_repeated_lines_warned(self, snapshot):
        text = (
            "Date,Description,Amount\n"
            "2025-06-05,PARKING,-5.00\n"
            "2025-06-05,PARKING,-5.00\n"
        )
        output = self.classifier.classify(text, snapshot)
        assert any("2 times" in w for w in output.warnings)
        assert any("no suggested category" in w for w in output.warnings)

    def test_non_cash_account_rejected(self, seeded_store, snapshot):
        snapshot.account = seeded_store.chart_of_accounts().get(MEALS)
        with pytest.raises(ClassificationError, match="bank or card"):
            self.classifier.classify("Date,Description,Amount\n2025-06-05,X,-1.00\n", snapshot)
