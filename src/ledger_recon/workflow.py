"""
Import workflow state machine and the resumable review-state snapshot.

States: idle -> loading-context -> processing-ai -> review -> committing -> idle.
Only the review state survives a restart, through the snapshot file.
"""

from datetime import date, datetime
from enum import Enum
from pathlib import Path
from typing import Optional
import logging

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .classifier import LedgerSnapshot, RuleBasedClassifier, StatementClassifier
from .commit.orchestrator import CommitOrchestrator, CommitResult
from .config import ReconConfig
from .models.accounts import ReferenceData
from .models.transaction import LedgerEntry, ReviewTransaction
from .posting.builder import PostingLineBuilder
from .review import HiddenStats, ReviewSet
from .store.ledger_store import LedgerStore
from .utils.exceptions import ReconciliationError, ValidationError, WorkflowStateError

logger = logging.getLogger(__name__)

SNAPSHOT_VERSION = 1


class WorkflowState(Enum):
    IDLE = "idle"
    LOADING_CONTEXT = "loading-context"
    PROCESSING_AI = "processing-ai"
    REVIEW = "review"
    COMMITTING = "committing"


_TRANSITIONS: dict[WorkflowState, set[WorkflowState]] = {
    WorkflowState.IDLE: {WorkflowState.LOADING_CONTEXT, WorkflowState.REVIEW},
    WorkflowState.LOADING_CONTEXT: {WorkflowState.PROCESSING_AI, WorkflowState.IDLE},
    WorkflowState.PROCESSING_AI: {WorkflowState.REVIEW, WorkflowState.IDLE},
    WorkflowState.REVIEW: {WorkflowState.COMMITTING, WorkflowState.IDLE},
    WorkflowState.COMMITTING: {WorkflowState.IDLE},
}


class ReviewSnapshot(BaseModel):
    """Serializable bundle of an in-progress review."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    version: int = SNAPSHOT_VERSION
    review_transactions: list[ReviewTransaction] = Field(default_factory=list)
    reference_data: ReferenceData = Field(default_factory=ReferenceData)
    selected_account_id: int
    warnings: list[str] = Field(default_factory=list)
    hidden_stats: HiddenStats = Field(default_factory=HiddenStats)
    pending_transactions_index: dict[int, LedgerEntry] = Field(default_factory=dict)
    saved_at: datetime = Field(default_factory=datetime.now)


class ReviewStateStore:
    """Reads and writes the review snapshot as JSON."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def save(self, snapshot: ReviewSnapshot) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        snapshot.saved_at = datetime.now()
        self.path.write_text(snapshot.model_dump_json(by_alias=True, indent=2))
        logger.debug(
            f"Saved review state ({len(snapshot.review_transactions)} items) to {self.path}"
        )

    def load(self) -> Optional[ReviewSnapshot]:
        """
        Read the snapshot, if one exists.

        An unreadable snapshot or one written by another version is discarded
        with a warning.
        """
        if not self.path.exists():
            return None
        try:
            snapshot = ReviewSnapshot.model_validate_json(self.path.read_text())
        except (OSError, ValueError, PydanticValidationError) as e:
            logger.warning(f"Discarding unreadable review state {self.path}: {e}")
            self.clear()
            return None

        if snapshot.version != SNAPSHOT_VERSION:
            logger.warning(
                f"Discarding review state version {snapshot.version} "
                f"(expected {SNAPSHOT_VERSION})"
            )
            self.clear()
            return None
        return snapshot

    def clear(self) -> None:
        if self.path.exists():
            self.path.unlink()
            logger.debug(f"Cleared review state {self.path}")


class ImportWorkflow:
    """
    Drives one statement import from processing through review to commit.

    The review set is persisted whenever the workflow is in review and the
    set is non-empty, and cleared on cancel or a successful commit.
    """

    def __init__(
        self,
        store: LedgerStore,
        config: Optional[ReconConfig] = None,
        classifier: Optional[StatementClassifier] = None,
        state_store: Optional[ReviewStateStore] = None,
    ):
        self.store = store
        self.config = config or ReconConfig()
        self.classifier = classifier or RuleBasedClassifier(self.config)
        self.state_store = state_store or ReviewStateStore(Path(self.config.review_state.path))
        self.state = WorkflowState.IDLE
        self.review_set: Optional[ReviewSet] = None
        self.account_id: Optional[int] = None
        self.warnings: list[str] = []
        self.reference = ReferenceData()
        self.pending_index: dict[int, LedgerEntry] = {}

    def _transition(self, target: WorkflowState) -> None:
        if target not in _TRANSITIONS[self.state]:
            raise WorkflowStateError(
                f"Cannot move from {self.state.value} to {target.value}"
            )
        logger.info(f"Workflow: {self.state.value} -> {target.value}")
        self.state = target

    def _reset(self) -> None:
        self.review_set = None
        self.account_id = None
        self.warnings = []
        self.reference = ReferenceData()
        self.pending_index = {}

    def load_snapshot(self, account_id: int, as_of: Optional[date] = None) -> LedgerSnapshot:
        """Read the pending, cleared, history and reference snapshots for an account."""
        account = self.store.chart_of_accounts().get(account_id)
        if account is None:
            raise ValidationError(f"Account {account_id} does not exist")

        settings = self.config.matching
        snapshot = LedgerSnapshot(
            account=account,
            pending=self.store.pending_entries(account_id, limit=settings.pending_limit),
            cleared=self.store.cleared_entries(
                account_id,
                lookback_days=settings.cleared_lookback_days,
                as_of=as_of,
                limit=settings.cleared_limit,
            ),
            history=self.store.recent_history(limit=settings.history_limit),
            reference=self.store.reference_data(),
        )
        logger.info(
            f"Loaded context for {account.code}: {len(snapshot.pending)} pending, "
            f"{len(snapshot.cleared)} cleared, {len(snapshot.history)} history lines"
        )
        return snapshot

    def process(
        self, account_id: int, statement_text: str, as_of: Optional[date] = None
    ) -> ReviewSet:
        """
        Classify a statement and enter review.

        Args:
            account_id: Bank or card account the statement belongs to
            statement_text: Raw statement CSV text
            as_of: Reference date for the cleared lookback window

        Returns:
            The review set (empty when nothing is actionable)

        Raises:
            WorkflowStateError: If not idle
            ClassificationError: If the statement cannot be classified
        """
        self._transition(WorkflowState.LOADING_CONTEXT)
        try:
            snapshot = self.load_snapshot(account_id, as_of=as_of)
            self._transition(WorkflowState.PROCESSING_AI)
            output = self.classifier.classify(statement_text, snapshot)
        except ReconciliationError as e:
            logger.error(f"Processing failed: {e}")
            self.state = WorkflowState.IDLE
            raise

        self.account_id = account_id
        self.warnings = output.warnings
        self.reference = snapshot.reference
        self.pending_index = {e.line_id: e for e in snapshot.pending}
        self.review_set = ReviewSet.from_results(output.results)
        self._transition(WorkflowState.REVIEW)

        if self.review_set.is_empty:
            logger.info("Nothing to review")
            self.state_store.clear()
            self._transition(WorkflowState.IDLE)
            review_set = self.review_set
            self._reset()
            return review_set

        self.save()
        return self.review_set

    def save(self) -> None:
        """Persist the current review set."""
        if self.state is not WorkflowState.REVIEW or self.review_set is None:
            raise WorkflowStateError("There is no review in progress to save")
        if self.review_set.is_empty:
            return
        self.state_store.save(self._snapshot())

    def _snapshot(self) -> ReviewSnapshot:
        return ReviewSnapshot(
            review_transactions=self.review_set.transactions,
            reference_data=self.reference,
            selected_account_id=self.account_id,
            warnings=self.warnings,
            hidden_stats=self.review_set.hidden,
            pending_transactions_index=self.pending_index,
        )

    def resume(self) -> Optional[ReviewSet]:
        """Restore a saved review, if any, and enter review."""
        if self.state is not WorkflowState.IDLE:
            raise WorkflowStateError(f"Cannot resume while {self.state.value}")
        snapshot = self.state_store.load()
        if snapshot is None or not snapshot.review_transactions:
            return None

        self.account_id = snapshot.selected_account_id
        self.warnings = snapshot.warnings
        self.reference = snapshot.reference_data
        self.pending_index = snapshot.pending_transactions_index
        self.review_set = ReviewSet(
            transactions=snapshot.review_transactions, hidden=snapshot.hidden_stats
        )
        self._transition(WorkflowState.REVIEW)
        logger.info(
            f"Resumed review of {len(self.review_set)} items saved at {snapshot.saved_at}"
        )
        return self.review_set

    def cancel(self) -> None:
        """Discard the review in progress."""
        if self.state is not WorkflowState.REVIEW:
            raise WorkflowStateError(f"Nothing to cancel while {self.state.value}")
        self.state_store.clear()
        self._reset()
        self._transition(WorkflowState.IDLE)

    def commit(self) -> CommitResult:
        """
        Commit the selected review items and return to idle.

        Successfully committed items leave the review set. The saved review
        state is cleared when anything succeeded or nothing remains;
        otherwise the remaining items are saved for another attempt.
        """
        if self.state is not WorkflowState.REVIEW or self.review_set is None:
            raise WorkflowStateError(f"Cannot commit while {self.state.value}")
        self._transition(WorkflowState.COMMITTING)

        builder = PostingLineBuilder(self.store.chart_of_accounts(), self.config, self.store)
        orchestrator = CommitOrchestrator(self.store, builder, self.account_id)
        try:
            result = orchestrator.commit(self.review_set.transactions)
        except Exception:
            logger.error("Commit aborted; review state kept")
            self._transition(WorkflowState.IDLE)
            raise

        self.review_set.remove(result.succeeded)
        if result.should_clear_review_state(len(self.review_set)):
            self.state_store.clear()
        else:
            self.state_store.save(self._snapshot())
        self._reset()
        self._transition(WorkflowState.IDLE)
        return result
