"""Data models for reconciliation and posting."""

from .accounts import (
    Account,
    AccountClass,
    AccountType,
    ChartOfAccounts,
    HistoricalEntry,
    Installer,
    Job,
    MerchantMapping,
    Purpose,
    RealEstateDeal,
    ReferenceData,
    Vendor,
    classify_account,
)
from .transaction import (
    BankStatus,
    CandidateTransaction,
    ClassificationResult,
    LedgerEntry,
    MatchConfidence,
    MatchType,
    Posting,
    PostingLine,
    ReviewTransaction,
    Suggestion,
    to_cents,
)

__all__ = [
    "Account",
    "AccountClass",
    "AccountType",
    "ChartOfAccounts",
    "HistoricalEntry",
    "Installer",
    "Job",
    "MerchantMapping",
    "Purpose",
    "RealEstateDeal",
    "ReferenceData",
    "Vendor",
    "classify_account",
    "BankStatus",
    "CandidateTransaction",
    "ClassificationResult",
    "LedgerEntry",
    "MatchConfidence",
    "MatchType",
    "Posting",
    "PostingLine",
    "ReviewTransaction",
    "Suggestion",
    "to_cents",
]
