"""
Commit orchestrator.

Applies reviewed transactions to the ledger store one at a time. A failure on
one item is recorded and the batch moves on; nothing is rolled back.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any
import logging

from ..models.transaction import BankStatus, MatchType, ReviewTransaction
from ..posting.builder import PostingLineBuilder
from ..store.ledger_store import LedgerStore
from ..utils.exceptions import LedgerStoreError, ValidationError

logger = logging.getLogger(__name__)


@dataclass
class CommitFailure:
    """A per-item failure, reported with the transaction's date and description."""

    date: date
    description: str
    message: str


@dataclass
class CommitResult:
    """Aggregate outcome of a commit run."""

    cleared: int = 0
    created: int = 0
    tip_adjusted: int = 0
    skipped: int = 0
    failures: list[CommitFailure] = field(default_factory=list)
    succeeded: list[ReviewTransaction] = field(default_factory=list)

    @property
    def succeeded_count(self) -> int:
        return self.cleared + self.created + self.tip_adjusted

    @property
    def has_failures(self) -> bool:
        return bool(self.failures)

    def should_clear_review_state(self, remaining: int) -> bool:
        """Review state is cleared once something posted or nothing is left."""
        return self.succeeded_count > 0 or remaining == 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "cleared": self.cleared,
            "created": self.created,
            "tipAdjusted": self.tip_adjusted,
            "skipped": self.skipped,
            "failures": [
                {"date": f.date.isoformat(), "description": f.description, "message": f.message}
                for f in self.failures
            ],
        }


class CommitOrchestrator:
    """Dispatches each selected review item to the right ledger write."""

    def __init__(self, store: LedgerStore, builder: PostingLineBuilder, cash_account_id: int):
        """
        Initialize the orchestrator.

        Args:
            store: Ledger store receiving the writes
            builder: Posting builder for new transactions and tip factors
            cash_account_id: The bank or card account the statement belongs to
        """
        self.store = store
        self.builder = builder
        self.cash_account_id = cash_account_id

    def commit(self, reviewed: list[ReviewTransaction]) -> CommitResult:
        """
        Apply every selected item, strictly in order.

        Ledger store failures and per-item validation failures are collected
        in ``failures``; any other exception aborts the run.

        Args:
            reviewed: Review items, selected or not

        Returns:
            CommitResult with counts and failures
        """
        start_time = datetime.now()
        result = CommitResult()
        selected = [tx for tx in reviewed if tx.selected]
        result.skipped = len(reviewed) - len(selected)
        logger.info(f"Committing {len(selected)} of {len(reviewed)} review items")

        for tx in selected:
            try:
                outcome = self._apply(tx)
            except (LedgerStoreError, ValidationError) as e:
                logger.warning(
                    f"Failed to commit {tx.result.date} '{tx.description}': {e}"
                )
                result.failures.append(
                    CommitFailure(date=tx.result.date, description=tx.description, message=str(e))
                )
                continue

            if outcome is None:
                result.skipped += 1
                continue
            setattr(result, outcome, getattr(result, outcome) + 1)
            result.succeeded.append(tx)

        elapsed = (datetime.now() - start_time).total_seconds()
        logger.info(
            f"Commit complete in {elapsed:.2f}s: {result.cleared} cleared, "
            f"{result.created} created, {result.tip_adjusted} tip-adjusted, "
            f"{result.skipped} skipped, {len(result.failures)} failed"
        )
        return result

    def _apply(self, tx: ReviewTransaction):
        """Perform the write for one item; return the counter name or None if skipped."""
        res = tx.result

        if res.is_anomaly:
            logger.warning(
                f"Skipping anomaly {res.date} '{res.description}': cleared in the "
                f"ledger but still pending at the bank"
            )
            return None

        if res.match_type is MatchType.MATCHED_PENDING:
            if res.bank_status is not BankStatus.POSTED:
                return None
            self.store.mark_cleared(self._matched_transaction(tx), res.date)
            return "cleared"

        if res.match_type is MatchType.TIP_ADJUSTMENT:
            factor = self.builder.tip_scale_factor(res.amount, res.original_amount)
            self.store.scale_transaction(
                self._matched_transaction(tx),
                factor,
                res.date,
                anchor_line_id=res.matched_line_id,
            )
            return "tip_adjusted"

        if res.match_type is MatchType.NEW:
            posting = self.builder.build_new_transaction(
                txn_date=res.date,
                description=tx.description,
                amount=res.amount,
                cash_account_id=self.cash_account_id,
                category_account_id=tx.account_id,
                vendor_id=tx.vendor_id,
                job_id=tx.job_id,
                installer_id=tx.installer_id,
                purpose=res.suggestion.purpose,
                is_cleared=tx.is_cleared,
            )
            self.store.create_transaction(posting)
            return "created"

        # Already reconciled
        return None

    @staticmethod
    def _matched_transaction(tx: ReviewTransaction) -> int:
        if tx.result.matched_transaction_id is None:
            raise ValidationError("Matched transaction reference is missing")
        return tx.result.matched_transaction_id
