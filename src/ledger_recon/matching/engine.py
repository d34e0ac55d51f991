"""
Reconciliation matcher.
Classifies statement lines against the ledger's pending and cleared entries.
"""

from datetime import datetime
from decimal import Decimal
from typing import Optional
import logging

from ..config import ReconConfig
from ..models.accounts import Account, AccountClass, HistoricalEntry, ReferenceData
from ..models.transaction import (
    CandidateTransaction,
    ClassificationResult,
    LedgerEntry,
    MatchType,
    to_cents,
)
from .strategies import ExactAmountStrategy, MatchingStrategy, TipAdjustmentStrategy
from .suggestions import SuggestionEngine

logger = logging.getLogger(__name__)


def to_ledger_sign(amount: Decimal, account_class: AccountClass) -> Decimal:
    """
    Convert a statement-signed amount to the ledger sign convention.

    Card statements report charges as positive; in the ledger a charge is a
    negative amount on the card account. Bank statements already agree.
    """
    amount = to_cents(amount)
    if account_class is AccountClass.CREDIT_CARD:
        return -amount
    return amount


def to_statement_sign(amount: Decimal, account_class: AccountClass) -> Decimal:
    """Inverse of :func:`to_ledger_sign`."""
    return to_ledger_sign(amount, account_class)


class ReconciliationMatcher:
    """
    Deterministic statement-to-ledger classifier.

    Each candidate is tried against the strategies in priority order and the
    first hit wins: exact pending, exact cleared, tip adjustment, otherwise new.
    """

    def __init__(self, config: Optional[ReconConfig] = None):
        """
        Initialize the matcher.

        Args:
            config: Application configuration (defaults when omitted)
        """
        self.config = config or ReconConfig()
        self.suggestions = SuggestionEngine(self.config.suggestions)

    def _build_strategies(
        self, account_class: AccountClass
    ) -> list[tuple[MatchingStrategy, str]]:
        """Strategies paired with the snapshot ("pending"/"cleared") they search."""
        settings = self.config.matching
        magnitude = account_class is AccountClass.CREDIT_CARD
        return [
            (
                ExactAmountStrategy(
                    MatchType.MATCHED_PENDING,
                    date_tolerance_days=settings.date_tolerance_days,
                    compare_magnitude=magnitude,
                ),
                "pending",
            ),
            (
                ExactAmountStrategy(
                    MatchType.MATCHED_CLEARED,
                    date_tolerance_days=settings.date_tolerance_days,
                    compare_magnitude=magnitude,
                ),
                "cleared",
            ),
            (
                TipAdjustmentStrategy(
                    self.config.tip,
                    similarity_threshold=settings.description_similarity_threshold,
                ),
                "pending",
            ),
        ]

    def match(
        self,
        candidates: list[CandidateTransaction],
        pending: list[LedgerEntry],
        cleared: list[LedgerEntry],
        account: Account,
        history: Optional[list[HistoricalEntry]] = None,
        reference: Optional[ReferenceData] = None,
    ) -> list[ClassificationResult]:
        """
        Classify every candidate against the ledger snapshots.

        Args:
            candidates: Statement lines, statement-signed
            pending: Uncleared ledger lines of the account
            cleared: Cleared ledger lines of the account within the lookback window
            account: The bank or card account the statement belongs to
            history: Recent categorized lines for suggestions on new items
            reference: Reference data for suggestions on new items

        Returns:
            One ClassificationResult per candidate, in input order
        """
        start_time = datetime.now()
        account_class = account.account_class
        logger.info(
            f"Matching {len(candidates)} statement lines for {account.code} "
            f"({account_class.value}) against {len(pending)} pending and "
            f"{len(cleared)} cleared entries"
        )

        strategies = self._build_strategies(account_class)
        pools = {"pending": pending, "cleared": cleared}
        consumed: set[int] = set()
        history = history or []
        history = history[: self.config.matching.history_limit]

        results: list[ClassificationResult] = []
        for candidate in candidates:
            amount = to_ledger_sign(candidate.amount, account_class)
            result = None

            for strategy, pool_name in strategies:
                available = [e for e in pools[pool_name] if e.line_id not in consumed]
                hit = strategy.find_match(candidate, amount, available)
                if hit is None:
                    continue

                if self.config.matching.consume_matched_entries:
                    consumed.add(hit.entry.line_id)
                result = ClassificationResult(
                    date=candidate.date,
                    description=candidate.description,
                    amount=amount,
                    bank_status=candidate.bank_status,
                    match_type=strategy.match_type,
                    match_confidence=hit.confidence,
                    matched_line_id=hit.entry.line_id,
                    matched_transaction_id=hit.entry.transaction_id,
                    original_amount=hit.original_amount,
                    reasoning=hit.reason,
                )
                break

            if result is None:
                suggestion, confidence, reason = self.suggestions.suggest(
                    candidate.description, amount, history, reference
                )
                result = ClassificationResult(
                    date=candidate.date,
                    description=candidate.description,
                    amount=amount,
                    bank_status=candidate.bank_status,
                    match_type=MatchType.NEW,
                    match_confidence=confidence,
                    suggestion=suggestion,
                    reasoning=f"No exact ledger match. {reason}",
                )

            logger.debug(
                f"{candidate.date} '{candidate.description}' {amount}: "
                f"{result.match_type.value} ({result.match_confidence.value})"
            )
            results.append(result)

        elapsed = (datetime.now() - start_time).total_seconds()
        counts: dict[str, int] = {}
        for r in results:
            counts[r.match_type.value] = counts.get(r.match_type.value, 0) + 1
        logger.info(f"Matching complete in {elapsed:.2f}s: {counts}")

        return results

