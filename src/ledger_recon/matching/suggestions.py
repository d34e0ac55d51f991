"""Category and counterparty suggestions for statement lines with no ledger match."""

from decimal import Decimal
from typing import Optional
import logging

from ..config import SuggestionSettings
from ..models.accounts import HistoricalEntry, ReferenceData
from ..models.transaction import MatchConfidence, Suggestion, ZERO
from .strategies import description_similarity, normalize_description

logger = logging.getLogger(__name__)

STRONG_SIMILARITY = 0.9


class SuggestionEngine:
    """
    Best-effort suggestions drawn from merchant mappings and recent history.

    A missing suggestion is a normal outcome, the reviewer fills it in.
    """

    def __init__(self, settings: Optional[SuggestionSettings] = None):
        self.settings = settings or SuggestionSettings()

    def suggest(
        self,
        description: str,
        amount: Decimal,
        history: list[HistoricalEntry],
        reference: Optional[ReferenceData] = None,
    ) -> tuple[Suggestion, MatchConfidence, str]:
        """
        Suggest classification fields for a new transaction.

        Args:
            description: Statement description
            amount: Ledger-signed amount (negative = money out)
            history: Recent categorized lines, most recent first
            reference: Active reference data (vendors, merchant mappings)

        Returns:
            Tuple of (suggestion, confidence, reason)
        """
        suggestion = self._from_merchant_mapping(description, reference)
        if suggestion is not None:
            return suggestion, MatchConfidence.HIGH, "Known merchant mapping"

        suggestion, reason = self._from_history(description, amount, history)

        if suggestion.vendor_id is None and reference is not None:
            vendor_id = self._vendor_in_description(description, reference)
            if vendor_id is not None:
                suggestion.vendor_id = vendor_id
                reason += "; vendor name found in description"

        if suggestion.similarity >= STRONG_SIMILARITY:
            confidence = MatchConfidence.HIGH
        elif suggestion.similarity >= self.settings.min_similarity:
            confidence = MatchConfidence.MEDIUM
        else:
            confidence = MatchConfidence.LOW

        return suggestion, confidence, reason

    def _from_merchant_mapping(
        self, description: str, reference: Optional[ReferenceData]
    ) -> Optional[Suggestion]:
        if reference is None or not reference.merchant_mappings:
            return None

        desc = normalize_description(description)
        for mapping in reference.merchant_mappings:
            name = normalize_description(mapping.merchant_name)
            if name and (desc == name or desc.startswith(name + " ")):
                return Suggestion(
                    account_id=mapping.default_account_id,
                    vendor_id=mapping.vendor_id,
                    job_id=mapping.default_job_id,
                    similarity=1.0,
                )
        return None

    def _from_history(
        self, description: str, amount: Decimal, history: list[HistoricalEntry]
    ) -> tuple[Suggestion, str]:
        # Category lines carry the opposite sign of the cash side
        best: Optional[HistoricalEntry] = None
        best_score = 0.0
        for entry in history:
            if amount < ZERO and entry.amount <= ZERO:
                continue
            if amount > ZERO and entry.amount >= ZERO:
                continue
            score = description_similarity(description, entry.description)
            if score > best_score or (
                best is not None and score == best_score and entry.date > best.date
            ):
                best = entry
                best_score = score

        if best is None or best_score < self.settings.min_similarity:
            return Suggestion(similarity=best_score), "No similar history"

        logger.debug(
            f"Suggesting account {best.account_code} for '{description}' "
            f"(similarity {best_score:.2f})"
        )
        suggestion = Suggestion(
            account_id=best.account_id,
            account_code=best.account_code,
            vendor_id=best.vendor_id,
            job_id=best.job_id,
            installer_id=best.installer_id,
            purpose=best.purpose,
            similarity=best_score,
        )
        return suggestion, (
            f"Similar to '{best.description}' on {best.date} "
            f"({best.account_code} {best.account_name}, {best_score:.0%})"
        )

    @staticmethod
    def _vendor_in_description(description: str, reference: ReferenceData) -> Optional[int]:
        desc = f" {normalize_description(description)} "
        # Longest name first so "Home Depot Pro" wins over "Home Depot"
        for vendor in sorted(reference.vendors, key=lambda v: -len(v.name)):
            name = normalize_description(vendor.name)
            if name and f" {name} " in desc:
                return vendor.id
        return None
