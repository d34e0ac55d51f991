"""Data models for statement lines, ledger entries, classification and postings."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Optional

from .accounts import Purpose
from ..utils.exceptions import UnbalancedPostingError

CENT = Decimal("0.01")
ZERO = Decimal("0")


def to_cents(value) -> Decimal:
    """Round a number to cents, half away from zero."""
    if not isinstance(value, Decimal):
        value = Decimal(str(value))
    return value.quantize(CENT, rounding=ROUND_HALF_UP)


class BankStatus(Enum):
    """Whether the bank shows the line as settled."""

    POSTED = "posted"
    PENDING = "pending"


class MatchType(Enum):
    """How a statement line relates to the ledger."""

    MATCHED_PENDING = "matched_pending"
    MATCHED_CLEARED = "matched_cleared"
    TIP_ADJUSTMENT = "tip_adjustment"
    NEW = "new"


class MatchConfidence(Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


@dataclass
class LedgerEntry:
    """
    A transaction line as read for matching.

    Amounts are signed from the perspective of the line's account: on a cash
    line negative is money out, on a card line negative is a charge.
    """

    line_id: int
    transaction_id: int
    date: date
    description: str
    amount: Decimal
    is_cleared: bool = False
    vendor_id: Optional[int] = None
    job_id: Optional[int] = None
    installer_id: Optional[int] = None
    vendor_name: Optional[str] = None
    job_name: Optional[str] = None
    installer_name: Optional[str] = None


@dataclass(frozen=True)
class CandidateTransaction:
    """A statement line as reported by the bank, sign as on the statement."""

    date: date
    description: str
    amount: Decimal
    bank_status: BankStatus = BankStatus.POSTED


@dataclass
class Suggestion:
    """Suggested classification for a new transaction."""

    account_id: Optional[int] = None
    account_code: Optional[str] = None
    vendor_id: Optional[int] = None
    job_id: Optional[int] = None
    installer_id: Optional[int] = None
    purpose: Optional[Purpose] = None
    similarity: float = 0.0

    @property
    def is_empty(self) -> bool:
        return (
            self.account_id is None
            and self.vendor_id is None
            and self.job_id is None
            and self.installer_id is None
        )


@dataclass
class ClassificationResult:
    """
    Outcome of matching one statement line against the ledger.

    ``amount`` is the normalized ledger-signed amount; ``original_amount`` is
    only set for tip adjustments and holds the pending entry's amount.
    """

    date: date
    description: str
    amount: Decimal
    bank_status: BankStatus
    match_type: MatchType
    match_confidence: MatchConfidence
    matched_line_id: Optional[int] = None
    matched_transaction_id: Optional[int] = None
    original_amount: Optional[Decimal] = None
    suggestion: Suggestion = field(default_factory=Suggestion)
    reasoning: str = ""

    @property
    def tip_amount(self) -> Optional[Decimal]:
        """Magnitude added on top of the pending amount, for tip adjustments."""
        if self.match_type is not MatchType.TIP_ADJUSTMENT or self.original_amount is None:
            return None
        return abs(self.amount) - abs(self.original_amount)

    @property
    def is_anomaly(self) -> bool:
        """Bank still processing a line the ledger already shows as cleared."""
        return (
            self.bank_status is BankStatus.PENDING
            and self.match_type is MatchType.MATCHED_CLEARED
        )

    @property
    def is_actionable(self) -> bool:
        if self.match_type in (MatchType.NEW, MatchType.TIP_ADJUSTMENT):
            return True
        if self.match_type is MatchType.MATCHED_PENDING:
            return self.bank_status is BankStatus.POSTED
        return self.is_anomaly


@dataclass
class ReviewTransaction:
    """A classification result with the reviewer's selection and overrides."""

    result: ClassificationResult
    selected: bool = True
    override_account_id: Optional[int] = None
    override_vendor_id: Optional[int] = None
    override_job_id: Optional[int] = None
    override_installer_id: Optional[int] = None
    override_description: Optional[str] = None
    override_is_cleared: Optional[bool] = None

    @classmethod
    def from_result(cls, result: ClassificationResult) -> "ReviewTransaction":
        # Anomalies need investigation, not automatic action
        return cls(result=result, selected=not result.is_anomaly)

    @property
    def account_id(self) -> Optional[int]:
        if self.override_account_id is not None:
            return self.override_account_id
        return self.result.suggestion.account_id

    @property
    def vendor_id(self) -> Optional[int]:
        if self.override_vendor_id is not None:
            return self.override_vendor_id
        return self.result.suggestion.vendor_id

    @property
    def job_id(self) -> Optional[int]:
        if self.override_job_id is not None:
            return self.override_job_id
        return self.result.suggestion.job_id

    @property
    def installer_id(self) -> Optional[int]:
        if self.override_installer_id is not None:
            return self.override_installer_id
        return self.result.suggestion.installer_id

    @property
    def description(self) -> str:
        return self.override_description or self.result.description

    @property
    def is_cleared(self) -> bool:
        if self.override_is_cleared is not None:
            return self.override_is_cleared
        return self.result.bank_status is BankStatus.POSTED


@dataclass
class PostingLine:
    """One signed line of a posting. Positive is a debit, negative a credit."""

    account_id: int
    amount: Decimal
    purpose: Purpose = Purpose.BUSINESS
    is_cleared: bool = False
    job_id: Optional[int] = None
    vendor_id: Optional[int] = None
    installer_id: Optional[int] = None
    real_estate_deal_id: Optional[int] = None
    rehab_category_id: Optional[int] = None
    cost_type: Optional[str] = None


@dataclass
class Posting:
    """A balanced set of lines belonging to one ledger transaction."""

    date: date
    description: str
    lines: list[PostingLine] = field(default_factory=list)

    @property
    def total(self) -> Decimal:
        return sum((line.amount for line in self.lines), ZERO)

    def is_balanced(self, tolerance: Decimal = CENT) -> bool:
        return bool(self.lines) and abs(self.total) <= tolerance

    def validate(self, tolerance: Decimal = CENT) -> "Posting":
        """
        Enforce the zero-sum invariant.

        Raises:
            UnbalancedPostingError: If the posting is empty or does not net to zero
        """
        if not self.lines:
            raise UnbalancedPostingError(f"Posting '{self.description}' has no lines")
        if abs(self.total) > tolerance:
            raise UnbalancedPostingError(
                f"Posting '{self.description}' is out of balance by {self.total}"
            )
        return self
