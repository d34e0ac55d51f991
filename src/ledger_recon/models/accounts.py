"""Chart-of-accounts and reference-data models."""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional
import re


class AccountType(Enum):
    """Ledger account type."""

    ASSET = "asset"
    LIABILITY = "liability"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"


class Purpose(Enum):
    """Business purpose tag carried by accounts and posting lines."""

    BUSINESS = "business"
    PERSONAL = "personal"
    MIXED = "mixed"


class AccountClass(Enum):
    """
    Account class derived from the code prefix.

    The class decides the sign convention of imported statements and which
    accounts a posting archetype may target.
    """

    CASH = "cash"
    CREDIT_CARD = "credit_card"
    EQUITY = "equity"
    INCOME = "income"
    EXPENSE = "expense"
    RE_ASSET = "re_asset"
    RE_LOAN = "re_loan"
    UNKNOWN = "unknown"

    @property
    def is_cash_like(self) -> bool:
        """Bank and card accounts are the ones statements are imported into."""
        return self in (AccountClass.CASH, AccountClass.CREDIT_CARD)


# Longest prefix first: "61" and "63"/"64" must win over "6".
_PREFIX_CLASSES: list[tuple[str, AccountClass]] = [
    ("61", AccountClass.INCOME),
    ("63", AccountClass.RE_ASSET),
    ("64", AccountClass.RE_LOAN),
    ("1", AccountClass.CASH),
    ("2", AccountClass.CREDIT_CARD),
    ("3", AccountClass.EQUITY),
    ("4", AccountClass.INCOME),
    ("5", AccountClass.EXPENSE),
    ("6", AccountClass.EXPENSE),
]


def classify_account(code: Optional[str]) -> AccountClass:
    """
    Resolve the account class of an account code.

    Non-digit characters are ignored, so "2100-CC" and "2100" classify alike.

    Args:
        code: Account code string (may be None)

    Returns:
        AccountClass for the code
    """
    if not code:
        return AccountClass.UNKNOWN

    digits = re.sub(r"\D", "", code)
    if not digits:
        return AccountClass.UNKNOWN

    for prefix, account_class in _PREFIX_CLASSES:
        if digits.startswith(prefix):
            return account_class
    return AccountClass.UNKNOWN


@dataclass
class Account:
    """A ledger account."""

    id: int
    code: str
    name: str
    type: AccountType
    default_purpose: Purpose = Purpose.BUSINESS
    is_active: bool = True

    @property
    def account_class(self) -> AccountClass:
        return classify_account(self.code)

    @property
    def is_credit_card(self) -> bool:
        return self.account_class is AccountClass.CREDIT_CARD


class ChartOfAccounts:
    """Lookup of accounts by id and by code."""

    def __init__(self, accounts: list[Account]):
        self._by_id = {a.id: a for a in accounts}
        self._by_code = {a.code: a for a in accounts}

    def __iter__(self):
        return iter(self._by_id.values())

    def __len__(self) -> int:
        return len(self._by_id)

    def get(self, account_id: int) -> Optional[Account]:
        return self._by_id.get(account_id)

    def by_code(self, code: str) -> Optional[Account]:
        return self._by_code.get(code)

    def of_class(self, account_class: AccountClass) -> list[Account]:
        return [a for a in self._by_id.values() if a.account_class is account_class]


@dataclass
class Vendor:
    id: int
    name: str
    is_active: bool = True


@dataclass
class Job:
    id: int
    name: str
    address: Optional[str] = None
    status: str = "open"

    @property
    def is_open(self) -> bool:
        return self.status != "closed"


@dataclass
class Installer:
    id: int
    name: str
    is_active: bool = True


@dataclass
class RealEstateDeal:
    """A flip or rental deal with its balance-sheet accounts and loan terms."""

    id: int
    nickname: str
    type: str = "flip"
    asset_account_id: Optional[int] = None
    loan_account_id: Optional[int] = None
    original_loan_amount: Optional[Decimal] = None
    interest_rate: Optional[Decimal] = None
    loan_term_months: Optional[int] = None
    close_date: Optional[date] = None
    first_payment_date: Optional[date] = None
    monthly_taxes: Decimal = Decimal("0")
    monthly_insurance: Decimal = Decimal("0")

    @property
    def is_personal(self) -> bool:
        return self.type == "personal"


@dataclass
class MerchantMapping:
    """Remembered merchant name to vendor/account/job defaults."""

    merchant_name: str
    vendor_id: Optional[int] = None
    default_account_id: Optional[int] = None
    default_job_id: Optional[int] = None


@dataclass
class ReferenceData:
    """Active/open reference lists used for suggestions and review."""

    vendors: list[Vendor] = field(default_factory=list)
    jobs: list[Job] = field(default_factory=list)
    installers: list[Installer] = field(default_factory=list)
    expense_accounts: list[Account] = field(default_factory=list)
    income_accounts: list[Account] = field(default_factory=list)
    merchant_mappings: list[MerchantMapping] = field(default_factory=list)


@dataclass
class HistoricalEntry:
    """A categorized line from recent cleared history, used for suggestions."""

    date: date
    description: str
    amount: Decimal
    account_id: int
    account_code: Optional[str] = None
    account_name: str = ""
    vendor_id: Optional[int] = None
    job_id: Optional[int] = None
    installer_id: Optional[int] = None
    purpose: Purpose = Purpose.BUSINESS
