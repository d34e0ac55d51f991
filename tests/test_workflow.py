"""
Tests for the import workflow state machine and the review-state snapshot.
"""

from datetime import date
from decimal import Decimal
from pathlib import Path

import pytest

from conftest import CHECKING, MEALS
from ledger_recon.classifier import RuleBasedClassifier
from ledger_recon.models.transaction import MatchType
from ledger_recon.utils.exceptions import (
    ClassificationError,
    StatementParseError,
    ValidationError,
    WorkflowStateError,
)
from ledger_recon.workflow import (
    ImportWorkflow,
    ReviewSnapshot,
    ReviewStateStore,
    WorkflowState,
)

AS_OF = date(2025, 6, 30)

STATEMENT = (
    "Date,Description,Amount,Status\n"
    "2025-06-02,MARIETTA DINER,-45.37,Posted\n"
    "2025-06-03,SHELL OIL 0042,-40.00,Posted\n"
    "2025-05-20,HOME DEPOT #123,-120.00,Posted\n"
)


@pytest.fixture
def workflow(seeded_store, config):
    return ImportWorkflow(seeded_store, config)


@pytest.fixture
def state_path(config):
    return Path(config.review_state.path)


class TestImportWorkflow:
    """idle -> loading-context -> processing-ai -> review -> committing -> idle"""

    def test_process_enters_review_and_saves(self, workflow, state_path):
        review_set = workflow.process(CHECKING, STATEMENT, as_of=AS_OF)

        assert workflow.state is WorkflowState.REVIEW
        assert [tx.result.match_type for tx in review_set] == [
            MatchType.MATCHED_PENDING,
            MatchType.NEW,
        ]
        assert review_set.hidden.already_cleared == 1
        assert state_path.exists()

    def test_nothing_actionable_returns_to_idle(self, workflow, state_path):
        text = "Date,Description,Amount,Status\n2025-06-02,MARIETTA DINER,-45.37,Processing\n"
        review_set = workflow.process(CHECKING, text, as_of=AS_OF)

        assert review_set.is_empty
        assert review_set.hidden.bank_pending == 1
        assert workflow.state is WorkflowState.IDLE
        assert not state_path.exists()

    def test_unknown_account(self, workflow):
        with pytest.raises(ValidationError):
            workflow.process(999, STATEMENT)
        assert workflow.state is WorkflowState.IDLE

    def test_statement_into_category_account_rejected(self, workflow):
        with pytest.raises(ClassificationError):
            workflow.process(MEALS, STATEMENT)
        assert workflow.state is WorkflowState.IDLE

    def test_unparseable_statement(self, workflow, state_path):
        with pytest.raises(StatementParseError):
            workflow.process(CHECKING, "Date,Description\n2025-06-02,Nothing\n")
        assert workflow.state is WorkflowState.IDLE
        assert not state_path.exists()

    def test_infinite_amount_returns_to_idle(self, workflow, state_path):
        with pytest.raises(ClassificationError):
            workflow.process(
                CHECKING, "Date,Description,Amount\n2025-06-02,MARIETTA DINER,Infinity\n"
            )
        assert workflow.state is WorkflowState.IDLE
        assert not state_path.exists()

    def test_illegal_transitions(self, workflow):
        with pytest.raises(WorkflowStateError):
            workflow.commit()
        with pytest.raises(WorkflowStateError):
            workflow.cancel()
        with pytest.raises(WorkflowStateError):
            workflow.save()

    def test_process_only_from_idle(self, workflow):
        workflow.process(CHECKING, STATEMENT, as_of=AS_OF)
        with pytest.raises(WorkflowStateError):
            workflow.process(CHECKING, STATEMENT, as_of=AS_OF)

    def test_cancel_discards_state(self, workflow, state_path):
        workflow.process(CHECKING, STATEMENT, as_of=AS_OF)
        workflow.cancel()

        assert workflow.state is WorkflowState.IDLE
        assert workflow.review_set is None
        assert not state_path.exists()

    def test_resume_after_restart(self, workflow, seeded_store, config):
        """Only the review state survives a restart."""
        workflow.process(CHECKING, STATEMENT, as_of=AS_OF)
        workflow.review_set.update(1, override_account_id=MEALS)
        workflow.save()

        restarted = ImportWorkflow(seeded_store, config)
        review_set = restarted.resume()

        assert restarted.state is WorkflowState.REVIEW
        assert restarted.account_id == CHECKING
        assert len(review_set) == 2
        assert review_set[0].result.amount == Decimal("-45.37")
        assert review_set[0].result.match_type is MatchType.MATCHED_PENDING
        assert review_set[1].account_id == MEALS
        assert review_set.hidden.already_cleared == 1
        assert 1 in restarted.pending_index

    def test_resume_without_state(self, workflow):
        assert workflow.resume() is None
        assert workflow.state is WorkflowState.IDLE

    def test_commit_clears_state_after_success(self, workflow, seeded_store, state_path):
        workflow.process(CHECKING, STATEMENT, as_of=AS_OF)
        workflow.review_set.update(1, override_account_id=MEALS)

        result = workflow.commit()

        assert result.cleared == 1
        assert result.created == 1
        assert workflow.state is WorkflowState.IDLE
        assert not state_path.exists()
        assert seeded_store.get_transaction(1).lines[0].line.is_cleared
        assert seeded_store.get_transaction(3).description == "SHELL OIL 0042"

    def test_commit_keeps_state_when_nothing_succeeds(self, workflow, state_path):
        """A fully failed commit keeps the remaining items for another attempt."""
        workflow.process(CHECKING, STATEMENT, as_of=AS_OF)
        workflow.review_set.toggle(0)

        result = workflow.commit()

        assert result.succeeded_count == 0
        assert len(result.failures) == 1
        assert state_path.exists()
        snapshot = ReviewStateStore(state_path).load()
        assert len(snapshot.review_transactions) == 2

    def test_custom_classifier(self, seeded_store, config):
        classifier = RuleBasedClassifier(config)
        workflow = ImportWorkflow(seeded_store, config, classifier=classifier)
        assert workflow.classifier is classifier


class TestReviewStateStore:
    """Versioned JSON snapshot."""

    def test_round_trip_uses_camel_case(self, workflow, state_path):
        workflow.process(CHECKING, STATEMENT, as_of=AS_OF)

        raw = state_path.read_text()
        assert '"reviewTransactions"' in raw
        assert '"selectedAccountId"' in raw
        assert '"pendingTransactionsIndex"' in raw

        snapshot = ReviewStateStore(state_path).load()
        assert snapshot.version == 1
        assert snapshot.selected_account_id == CHECKING
        assert snapshot.pending_transactions_index[1].amount == Decimal("-45.37")

    def test_unreadable_snapshot_discarded(self, tmp_path):
        path = tmp_path / "state.json"
        path.write_text("{not json")
        assert ReviewStateStore(path).load() is None
        assert not path.exists()

    def test_other_version_discarded(self, tmp_path):
        path = tmp_path / "state.json"
        store = ReviewStateStore(path)
        store.save(ReviewSnapshot(version=2, selected_account_id=CHECKING))
        assert store.load() is None
        assert not path.exists()

    def test_missing_snapshot(self, tmp_path):
        assert ReviewStateStore(tmp_path / "none.json").load() is None
