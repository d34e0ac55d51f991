"""Posting construction: archetype builders and mortgage amortization."""

from .amortization import (
    MortgageSplit,
    MortgageTerms,
    amortization_schedule,
    compute_mortgage_split,
    split_deal_payment,
)
from .builder import PostingLineBuilder, RehabCostType, scale_amounts

__all__ = [
    "MortgageSplit",
    "MortgageTerms",
    "amortization_schedule",
    "compute_mortgage_split",
    "split_deal_payment",
    "PostingLineBuilder",
    "RehabCostType",
    "scale_amounts",
]
