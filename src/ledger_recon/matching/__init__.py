"""Matching engine and strategies."""

from .duplicates import find_possible_duplicates
from .engine import ReconciliationMatcher, to_ledger_sign, to_statement_sign
from .strategies import (
    MatchingStrategy,
    ExactAmountStrategy,
    TipAdjustmentStrategy,
    description_similarity,
    normalize_description,
)
from .suggestions import SuggestionEngine

__all__ = [
    "ReconciliationMatcher",
    "to_ledger_sign",
    "to_statement_sign",
    "MatchingStrategy",
    "ExactAmountStrategy",
    "TipAdjustmentStrategy",
    "SuggestionEngine",
    "description_similarity",
    "normalize_description",
    "find_possible_duplicates",
]
