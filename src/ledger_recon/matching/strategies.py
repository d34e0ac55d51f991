"""
Matching strategies for statement reconciliation.
Each strategy implements one priority of the matching order.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from decimal import Decimal
from difflib import SequenceMatcher
from typing import Optional
import re

from ..config import TipSettings
from ..models.transaction import (
    CandidateTransaction,
    LedgerEntry,
    MatchConfidence,
    MatchType,
    ZERO,
    to_cents,
)


def normalize_description(description: Optional[str]) -> str:
    """Lowercase, strip punctuation and collapse whitespace."""
    desc = (description or "").lower()
    desc = re.sub(r"[^a-z0-9\s]", " ", desc)
    return " ".join(desc.split())


def description_similarity(a: Optional[str], b: Optional[str]) -> float:
    """Similarity ratio (0.0-1.0) of two normalized descriptions."""
    left = normalize_description(a)
    right = normalize_description(b)
    if not left or not right:
        return 0.0
    return SequenceMatcher(None, left, right).ratio()


def _sign(value: Decimal) -> int:
    if value > ZERO:
        return 1
    if value < ZERO:
        return -1
    return 0


@dataclass
class StrategyMatch:
    """A ledger entry selected by a strategy."""

    entry: LedgerEntry
    confidence: MatchConfidence
    reason: str
    original_amount: Optional[Decimal] = None


class MatchingStrategy(ABC):
    """Abstract base class for matching strategies."""

    match_type: MatchType

    @abstractmethod
    def find_match(
        self,
        candidate: CandidateTransaction,
        amount: Decimal,
        entries: list[LedgerEntry],
    ) -> Optional[StrategyMatch]:
        """
        Find the ledger entry a statement line belongs to.

        Args:
            candidate: Statement line being classified
            amount: Candidate amount already normalized to the ledger sign
            entries: Ledger entries still available for matching

        Returns:
            The selected entry, or None
        """
        pass


class ExactAmountStrategy(MatchingStrategy):
    """
    Exact-to-the-cent amount match.

    Dates are a tolerance used for confidence, never a requirement. Among
    several equal amounts the closest date wins, then the most similar
    description, then snapshot order.
    """

    def __init__(
        self,
        match_type: MatchType,
        date_tolerance_days: int = 3,
        compare_magnitude: bool = False,
    ):
        """
        Args:
            match_type: Match type reported for hits of this strategy
            date_tolerance_days: Day distance still considered high confidence
            compare_magnitude: Compare absolute values (credit-card accounts)
        """
        self.match_type = match_type
        self.date_tolerance_days = date_tolerance_days
        self.compare_magnitude = compare_magnitude

    def _amounts_equal(self, entry_amount: Decimal, amount: Decimal) -> bool:
        if self.compare_magnitude:
            return abs(to_cents(entry_amount)) == abs(amount)
        return to_cents(entry_amount) == amount

    def find_match(
        self,
        candidate: CandidateTransaction,
        amount: Decimal,
        entries: list[LedgerEntry],
    ) -> Optional[StrategyMatch]:
        ranked = []
        for index, entry in enumerate(entries):
            if not self._amounts_equal(entry.amount, amount):
                continue
            sign_mismatch = _sign(to_cents(entry.amount)) != _sign(amount)
            date_diff = abs((candidate.date - entry.date).days)
            similarity = description_similarity(candidate.description, entry.description)
            ranked.append((sign_mismatch, date_diff, -similarity, index, entry))

        if not ranked:
            return None

        ranked.sort(key=lambda r: r[:4])
        sign_mismatch, date_diff, neg_similarity, _, entry = ranked[0]

        if sign_mismatch:
            confidence = MatchConfidence.LOW
        elif date_diff <= self.date_tolerance_days:
            confidence = MatchConfidence.HIGH
        else:
            confidence = MatchConfidence.MEDIUM

        kind = "pending" if self.match_type is MatchType.MATCHED_PENDING else "cleared"
        reason = (
            f"Exact amount {to_cents(entry.amount)} matches {kind} line {entry.line_id}, "
            f"{date_diff} day(s) apart, description similarity {-neg_similarity:.0%}"
        )
        if sign_mismatch:
            reason += " (magnitude only, opposite sign)"

        return StrategyMatch(entry=entry, confidence=confidence, reason=reason)


class TipAdjustmentStrategy(MatchingStrategy):
    """
    Dining charge that posted higher than its pending ledger amount.

    The pending entry must be on the same side, within the date window, smaller
    in magnitude, and the difference must fall inside the absolute or the
    percentage band.
    """

    match_type = MatchType.TIP_ADJUSTMENT

    def __init__(self, settings: TipSettings, similarity_threshold: float = 0.6):
        """
        Args:
            settings: Tip heuristic bounds and vendor patterns
            similarity_threshold: Description similarity giving high confidence
        """
        self.settings = settings
        self.similarity_threshold = similarity_threshold
        self._patterns = [re.compile(p, re.IGNORECASE) for p in settings.vendor_patterns]

    def is_dining(self, description: str) -> bool:
        return any(p.search(description or "") for p in self._patterns)

    def tip_qualifies(self, tip: Decimal, original_magnitude: Decimal) -> bool:
        """Check a tip against the inclusive dollar and percent bands."""
        s = self.settings
        if s.min_amount <= tip <= s.max_amount:
            return True
        if original_magnitude > ZERO:
            percent = tip * 100 / original_magnitude
            if s.min_percent <= percent <= s.max_percent:
                return True
        return False

    def find_match(
        self,
        candidate: CandidateTransaction,
        amount: Decimal,
        entries: list[LedgerEntry],
    ) -> Optional[StrategyMatch]:
        if amount == ZERO or not self.is_dining(candidate.description):
            return None

        magnitude = abs(amount)
        ranked = []
        for index, entry in enumerate(entries):
            entry_amount = to_cents(entry.amount)
            if _sign(entry_amount) != _sign(amount):
                continue
            date_diff = abs((candidate.date - entry.date).days)
            if date_diff > self.settings.window_days:
                continue
            original = abs(entry_amount)
            if original >= magnitude:
                continue
            tip = magnitude - original
            if not self.tip_qualifies(tip, original):
                continue
            similarity = description_similarity(candidate.description, entry.description)
            ranked.append((-similarity, date_diff, tip, index, entry))

        if not ranked:
            return None

        ranked.sort(key=lambda r: r[:4])
        neg_similarity, date_diff, tip, _, entry = ranked[0]
        original_amount = to_cents(entry.amount)

        confidence = (
            MatchConfidence.HIGH
            if -neg_similarity >= self.similarity_threshold
            else MatchConfidence.MEDIUM
        )
        percent = tip * 100 / abs(original_amount)
        reason = (
            f"Dining charge with tip added. Original {abs(original_amount)}, "
            f"final {magnitude}, tip {tip} ({percent:.1f}%)"
        )
        return StrategyMatch(
            entry=entry,
            confidence=confidence,
            reason=reason,
            original_amount=original_amount,
        )
