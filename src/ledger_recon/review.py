"""Review set: the actionable, user-adjustable slice of a classification run."""

from dataclasses import dataclass, field
from typing import Any
import logging

from .models.transaction import (
    BankStatus,
    ClassificationResult,
    MatchType,
    ReviewTransaction,
)

logger = logging.getLogger(__name__)

_OVERRIDE_FIELDS = {
    "override_account_id",
    "override_vendor_id",
    "override_job_id",
    "override_installer_id",
    "override_description",
    "override_is_cleared",
}


@dataclass
class HiddenStats:
    """Counts of suppressed results, for the "N hidden" summary."""

    bank_pending: int = 0
    already_cleared: int = 0
    total: int = 0

    @property
    def hidden(self) -> int:
        return self.bank_pending + self.already_cleared


@dataclass
class ReviewSet:
    """
    Actionable results of one run plus the reviewer's edits.

    Suppressed results (both sides pending, or already reconciled) are only
    counted.
    """

    transactions: list[ReviewTransaction] = field(default_factory=list)
    hidden: HiddenStats = field(default_factory=HiddenStats)

    @classmethod
    def from_results(cls, results: list[ClassificationResult]) -> "ReviewSet":
        hidden = HiddenStats(total=len(results))
        transactions: list[ReviewTransaction] = []

        for result in results:
            if result.is_actionable:
                transactions.append(ReviewTransaction.from_result(result))
            elif result.match_type is MatchType.MATCHED_PENDING:
                hidden.bank_pending += 1
            else:
                hidden.already_cleared += 1

        logger.info(
            f"Review set: {len(transactions)} actionable, {hidden.hidden} hidden "
            f"({hidden.bank_pending} pending at bank, {hidden.already_cleared} already cleared)"
        )
        return cls(transactions=transactions, hidden=hidden)

    def __len__(self) -> int:
        return len(self.transactions)

    def __iter__(self):
        return iter(self.transactions)

    def __getitem__(self, index: int) -> ReviewTransaction:
        return self.transactions[index]

    @property
    def is_empty(self) -> bool:
        return not self.transactions

    def selected(self) -> list[ReviewTransaction]:
        return [tx for tx in self.transactions if tx.selected]

    def of_type(self, match_type: MatchType) -> list[ReviewTransaction]:
        return [tx for tx in self.transactions if tx.result.match_type is match_type]

    def to_clear(self) -> list[ReviewTransaction]:
        """Posted lines matching pending ledger entries."""
        return [
            tx
            for tx in self.of_type(MatchType.MATCHED_PENDING)
            if tx.result.bank_status is BankStatus.POSTED
        ]

    def anomalies(self) -> list[ReviewTransaction]:
        return [tx for tx in self.transactions if tx.result.is_anomaly]

    def toggle(self, index: int) -> None:
        tx = self.transactions[index]
        tx.selected = not tx.selected

    def toggle_all(self) -> None:
        """Select everything, or deselect everything if all are selected."""
        all_selected = all(tx.selected for tx in self.transactions)
        for tx in self.transactions:
            tx.selected = not all_selected

    def update(self, index: int, **overrides: Any) -> ReviewTransaction:
        """
        Apply reviewer overrides to one transaction.

        Raises:
            KeyError: If an unknown override field is given
        """
        unknown = set(overrides) - _OVERRIDE_FIELDS - {"selected"}
        if unknown:
            raise KeyError(f"Unknown review fields: {sorted(unknown)}")

        tx = self.transactions[index]
        for name, value in overrides.items():
            setattr(tx, name, value)
        return tx

    def remove(self, items: list[ReviewTransaction]) -> None:
        """Drop items, e.g. those committed successfully."""
        ids = {id(tx) for tx in items}
        self.transactions = [tx for tx in self.transactions if id(tx) not in ids]

