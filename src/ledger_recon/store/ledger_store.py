"""
Ledger store interface and an in-memory implementation.

The store persists accounts, transactions and their lines. Every write is
atomic per transaction: either all lines apply or none do.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field, replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional
import logging

from ..models.accounts import (
    Account,
    AccountType,
    ChartOfAccounts,
    HistoricalEntry,
    Installer,
    Job,
    MerchantMapping,
    RealEstateDeal,
    ReferenceData,
    Vendor,
)
from ..models.transaction import CENT, LedgerEntry, Posting, PostingLine, ZERO
from ..posting.builder import scale_amounts
from ..utils.exceptions import LedgerStoreError

logger = logging.getLogger(__name__)


class LedgerStore(ABC):
    """Operations the reconciliation and posting engine consumes."""

    @abstractmethod
    def chart_of_accounts(self) -> ChartOfAccounts:
        pass

    @abstractmethod
    def get_deal(self, deal_id: int) -> RealEstateDeal:
        pass

    @abstractmethod
    def pending_entries(self, account_id: int, limit: int = 200) -> list[LedgerEntry]:
        """Uncleared lines of an account, most recent first."""
        pass

    @abstractmethod
    def cleared_entries(
        self,
        account_id: int,
        lookback_days: int = 60,
        as_of: Optional[date] = None,
        limit: int = 200,
    ) -> list[LedgerEntry]:
        """Cleared lines of an account dated within the lookback window."""
        pass

    @abstractmethod
    def recent_history(self, limit: int = 100) -> list[HistoricalEntry]:
        """Cleared category lines across accounts, most recent first."""
        pass

    @abstractmethod
    def reference_data(self) -> ReferenceData:
        """Active vendors and installers, open jobs, expense and income accounts."""
        pass

    @abstractmethod
    def create_transaction(self, posting: Posting) -> int:
        """
        Create a transaction with all of the posting's lines.

        Raises:
            LedgerStoreError: If the posting is unbalanced or references unknown accounts
        """
        pass

    @abstractmethod
    def mark_cleared(self, transaction_id: int, cleared_date: date) -> None:
        """Set the transaction date and flag every line cleared."""
        pass

    @abstractmethod
    def scale_transaction(
        self,
        transaction_id: int,
        factor: Decimal,
        cleared_date: date,
        anchor_line_id: Optional[int] = None,
    ) -> None:
        """Multiply every line by ``factor``, set the date and flag lines cleared."""
        pass

    @abstractmethod
    def account_balance(self, account_id: int) -> Decimal:
        """Sum of all line amounts on an account."""
        pass


@dataclass
class StoredLine:
    line_id: int
    line: PostingLine


@dataclass
class StoredTransaction:
    id: int
    date: date
    description: str
    lines: list[StoredLine] = field(default_factory=list)


class InMemoryLedgerStore(LedgerStore):
    """Dictionary-backed ledger store used by the CLI and in tests."""

    def __init__(
        self,
        accounts: list[Account],
        vendors: Optional[list[Vendor]] = None,
        jobs: Optional[list[Job]] = None,
        installers: Optional[list[Installer]] = None,
        deals: Optional[list[RealEstateDeal]] = None,
        merchant_mappings: Optional[list[MerchantMapping]] = None,
    ):
        self._chart = ChartOfAccounts(accounts)
        self.vendors = {v.id: v for v in vendors or []}
        self.jobs = {j.id: j for j in jobs or []}
        self.installers = {i.id: i for i in installers or []}
        self.deals = {d.id: d for d in deals or []}
        self.merchant_mappings = list(merchant_mappings or [])
        self.transactions: dict[int, StoredTransaction] = {}
        self._last_transaction_id = 0
        self._last_line_id = 0

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def chart_of_accounts(self) -> ChartOfAccounts:
        return self._chart

    def get_deal(self, deal_id: int) -> RealEstateDeal:
        deal = self.deals.get(deal_id)
        if deal is None:
            raise LedgerStoreError(f"Real estate deal {deal_id} not found")
        return deal

    def get_transaction(self, transaction_id: int) -> StoredTransaction:
        txn = self.transactions.get(transaction_id)
        if txn is None:
            raise LedgerStoreError(f"Transaction {transaction_id} not found")
        return txn

    def _account_lines(self, account_id: int):
        for txn in self.transactions.values():
            for stored in txn.lines:
                if stored.line.account_id == account_id:
                    yield txn, stored

    def _to_entry(self, txn: StoredTransaction, stored: StoredLine) -> LedgerEntry:
        line = stored.line
        vendor = self.vendors.get(line.vendor_id) if line.vendor_id else None
        job = self.jobs.get(line.job_id) if line.job_id else None
        installer = self.installers.get(line.installer_id) if line.installer_id else None
        return LedgerEntry(
            line_id=stored.line_id,
            transaction_id=txn.id,
            date=txn.date,
            description=txn.description,
            amount=line.amount,
            is_cleared=line.is_cleared,
            vendor_id=line.vendor_id,
            job_id=line.job_id,
            installer_id=line.installer_id,
            vendor_name=vendor.name if vendor else None,
            job_name=job.name if job else None,
            installer_name=installer.name if installer else None,
        )

    def transaction_entries(self, transaction_id: int) -> list[LedgerEntry]:
        txn = self.get_transaction(transaction_id)
        return [self._to_entry(txn, stored) for stored in txn.lines]

    def pending_entries(self, account_id: int, limit: int = 200) -> list[LedgerEntry]:
        entries = [
            self._to_entry(txn, stored)
            for txn, stored in self._account_lines(account_id)
            if not stored.line.is_cleared
        ]
        entries.sort(key=lambda e: e.date, reverse=True)
        return entries[:limit]

    def cleared_entries(
        self,
        account_id: int,
        lookback_days: int = 60,
        as_of: Optional[date] = None,
        limit: int = 200,
    ) -> list[LedgerEntry]:
        since = (as_of or date.today()) - timedelta(days=lookback_days)
        entries = [
            self._to_entry(txn, stored)
            for txn, stored in self._account_lines(account_id)
            if stored.line.is_cleared and txn.date >= since
        ]
        entries.sort(key=lambda e: e.date, reverse=True)
        return entries[:limit]

    def recent_history(self, limit: int = 100) -> list[HistoricalEntry]:
        history: list[HistoricalEntry] = []
        for txn in self.transactions.values():
            for stored in txn.lines:
                line = stored.line
                account = self._chart.get(line.account_id)
                if account is None or account.account_class.is_cash_like:
                    continue
                if not line.is_cleared:
                    continue
                history.append(
                    HistoricalEntry(
                        date=txn.date,
                        description=txn.description,
                        amount=line.amount,
                        account_id=account.id,
                        account_code=account.code,
                        account_name=account.name,
                        vendor_id=line.vendor_id,
                        job_id=line.job_id,
                        installer_id=line.installer_id,
                        purpose=line.purpose,
                    )
                )
        history.sort(key=lambda h: h.date, reverse=True)
        return history[:limit]

    def reference_data(self) -> ReferenceData:
        accounts = [a for a in self._chart if a.is_active]
        return ReferenceData(
            vendors=[v for v in self.vendors.values() if v.is_active],
            jobs=[j for j in self.jobs.values() if j.is_open],
            installers=[i for i in self.installers.values() if i.is_active],
            expense_accounts=[a for a in accounts if a.type is AccountType.EXPENSE],
            income_accounts=[a for a in accounts if a.type is AccountType.INCOME],
            merchant_mappings=list(self.merchant_mappings),
        )

    def account_balance(self, account_id: int) -> Decimal:
        if self._chart.get(account_id) is None:
            raise LedgerStoreError(f"Account {account_id} not found")
        return sum(
            (stored.line.amount for _, stored in self._account_lines(account_id)), ZERO
        )

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_transaction(self, posting: Posting) -> int:
        if not posting.lines:
            raise LedgerStoreError("Transaction must have at least one line")
        if abs(posting.total) > CENT:
            raise LedgerStoreError(
                f"Transaction lines must sum to zero (off by {posting.total})"
            )
        for line in posting.lines:
            if self._chart.get(line.account_id) is None:
                raise LedgerStoreError(f"Account {line.account_id} not found")

        txn = StoredTransaction(
            id=self._last_transaction_id + 1,
            date=posting.date,
            description=posting.description,
            lines=[
                StoredLine(self._last_line_id + i, replace(line))
                for i, line in enumerate(posting.lines, start=1)
            ],
        )
        self._add(txn)
        logger.debug(f"Created transaction {txn.id} with {len(txn.lines)} lines")
        return txn.id

    def _add(self, txn: StoredTransaction) -> None:
        self.transactions[txn.id] = txn
        self._last_transaction_id = max(self._last_transaction_id, txn.id)
        for stored in txn.lines:
            self._last_line_id = max(self._last_line_id, stored.line_id)

    def load_transaction(
        self,
        transaction_id: int,
        txn_date: date,
        description: str,
        lines: list[tuple[int, PostingLine]],
    ) -> None:
        """Insert a previously saved transaction, keeping its ids."""
        if transaction_id in self.transactions:
            raise LedgerStoreError(f"Transaction {transaction_id} already exists")
        self._add(
            StoredTransaction(
                id=transaction_id,
                date=txn_date,
                description=description,
                lines=[StoredLine(line_id, line) for line_id, line in lines],
            )
        )

    def mark_cleared(self, transaction_id: int, cleared_date: date) -> None:
        txn = self.get_transaction(transaction_id)
        txn.date = cleared_date
        for stored in txn.lines:
            stored.line.is_cleared = True

    def scale_transaction(
        self,
        transaction_id: int,
        factor: Decimal,
        cleared_date: date,
        anchor_line_id: Optional[int] = None,
    ) -> None:
        txn = self.get_transaction(transaction_id)
        if factor <= ZERO:
            raise LedgerStoreError(f"Scale factor must be positive, got {factor}")

        scaled = scale_amounts(
            [(s.line_id, s.line.amount) for s in txn.lines], factor, anchor_line_id
        )
        # Computed in full before any line is touched
        txn.date = cleared_date
        for stored in txn.lines:
            stored.line.amount = scaled[stored.line_id]
            stored.line.is_cleared = True
