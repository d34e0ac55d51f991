"""
Statement classifier boundary.

A classifier receives raw statement text, the selected account and the ledger
snapshots, and returns one ClassificationResult per statement line plus
free-text warnings. The rule-based classifier parses CSV text and runs the
deterministic matcher.
"""

from abc import ABC, abstractmethod
from collections import Counter
from dataclasses import dataclass, field
from typing import Optional
import logging

from .config import ReconConfig
from .matching.engine import ReconciliationMatcher
from .models.accounts import Account, HistoricalEntry, ReferenceData
from .models.transaction import CandidateTransaction, ClassificationResult, LedgerEntry, MatchType
from .parsers.statement_parser import StatementParser
from .utils.exceptions import ClassificationError

logger = logging.getLogger(__name__)


@dataclass
class LedgerSnapshot:
    """Ledger state read once per run and treated as immutable for its duration."""

    account: Account
    pending: list[LedgerEntry] = field(default_factory=list)
    cleared: list[LedgerEntry] = field(default_factory=list)
    history: list[HistoricalEntry] = field(default_factory=list)
    reference: ReferenceData = field(default_factory=ReferenceData)


@dataclass
class ClassificationOutput:
    results: list[ClassificationResult]
    warnings: list[str] = field(default_factory=list)


class StatementClassifier(ABC):
    """Turns raw statement text into classification results."""

    @abstractmethod
    def classify(self, statement_text: str, snapshot: LedgerSnapshot) -> ClassificationOutput:
        """
        Classify every line of a statement.

        Raises:
            ClassificationError: If the statement cannot be parsed or the
                output is malformed; no partial results are returned
        """
        pass


class RuleBasedClassifier(StatementClassifier):
    """CSV statement parser followed by the reconciliation matcher."""

    def __init__(self, config: Optional[ReconConfig] = None):
        self.config = config or ReconConfig()
        self.parser = StatementParser(self.config)
        self.matcher = ReconciliationMatcher(self.config)

    def classify(self, statement_text: str, snapshot: LedgerSnapshot) -> ClassificationOutput:
        candidates = self.parser.parse_text(statement_text)
        return self.classify_candidates(candidates, snapshot)

    def classify_candidates(
        self, candidates: list[CandidateTransaction], snapshot: LedgerSnapshot
    ) -> ClassificationOutput:
        """Classify already-normalized statement lines."""
        account = snapshot.account
        if not account.account_class.is_cash_like:
            raise ClassificationError(
                f"Statements can only be imported into bank or card accounts, "
                f"not {account.code} ({account.account_class.value})"
            )

        results = self.matcher.match(
            candidates,
            snapshot.pending,
            snapshot.cleared,
            account,
            history=snapshot.history,
            reference=snapshot.reference,
        )
        if len(results) != len(candidates):
            raise ClassificationError(
                f"Classifier returned {len(results)} results for {len(candidates)} lines"
            )

        warnings = self._warnings(candidates, results)
        for warning in warnings:
            logger.warning(warning)
        return ClassificationOutput(results=results, warnings=warnings)

    @staticmethod
    def _warnings(
        candidates: list[CandidateTransaction], results: list[ClassificationResult]
    ) -> list[str]:
        warnings: list[str] = []

        repeats = Counter((c.date, c.description, c.amount) for c in candidates)
        for (txn_date, description, amount), count in repeats.items():
            if count > 1:
                warnings.append(
                    f"Statement lists {txn_date} '{description}' {amount} {count} times"
                )

        anomalies = [r for r in results if r.is_anomaly]
        if anomalies:
            warnings.append(
                f"{len(anomalies)} line(s) are cleared in the ledger but still "
                f"pending at the bank; review before acting"
            )

        unsuggested = [
            r for r in results if r.match_type is MatchType.NEW and r.suggestion.account_id is None
        ]
        if unsuggested:
            warnings.append(
                f"{len(unsuggested)} new line(s) have no suggested category account"
            )
        return warnings
