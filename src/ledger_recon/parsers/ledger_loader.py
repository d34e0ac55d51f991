"""
Ledger directory loader.

A ledger directory holds one CSV file per table. ``accounts.csv`` and
``lines.csv`` are required; vendors, jobs, installers, deals and merchant
mappings are optional.
"""

from datetime import date
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional
import logging

import pandas as pd

from ..models.accounts import (
    Account,
    AccountType,
    Installer,
    Job,
    MerchantMapping,
    Purpose,
    RealEstateDeal,
    Vendor,
)
from ..models.transaction import PostingLine
from ..store.ledger_store import InMemoryLedgerStore
from ..utils.exceptions import LedgerStoreError

logger = logging.getLogger(__name__)

ACCOUNT_COLUMNS = ["id", "code", "name", "type", "default_purpose", "is_active"]
LINE_COLUMNS = [
    "transaction_id",
    "line_id",
    "date",
    "description",
    "account_id",
    "amount",
    "is_cleared",
    "purpose",
    "vendor_id",
    "job_id",
    "installer_id",
    "real_estate_deal_id",
    "rehab_category_id",
    "cost_type",
]
VENDOR_COLUMNS = ["id", "name", "is_active"]
JOB_COLUMNS = ["id", "name", "address", "status"]
INSTALLER_COLUMNS = ["id", "name", "is_active"]
DEAL_COLUMNS = [
    "id",
    "nickname",
    "type",
    "asset_account_id",
    "loan_account_id",
    "original_loan_amount",
    "interest_rate",
    "loan_term_months",
    "close_date",
    "first_payment_date",
    "monthly_taxes",
    "monthly_insurance",
]
MAPPING_COLUMNS = ["merchant_name", "vendor_id", "default_account_id", "default_job_id"]


def _text(value) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    text = str(value).strip()
    return text or None


def _int(value) -> Optional[int]:
    text = _text(value)
    return int(float(text)) if text is not None else None


def _decimal(value) -> Optional[Decimal]:
    text = _text(value)
    return Decimal(text) if text is not None else None


def _bool(value, default: bool = False) -> bool:
    text = _text(value)
    if text is None:
        return default
    return text.lower() in ("1", "true", "yes", "y", "t")


def _date(value) -> Optional[date]:
    text = _text(value)
    return date.fromisoformat(text) if text is not None else None


def _read(path: Path, required: bool = False) -> list[dict]:
    if not path.exists():
        if required:
            raise LedgerStoreError(f"Ledger file not found: {path}")
        return []
    try:
        df = pd.read_csv(path, dtype=str)
    except (OSError, ValueError, pd.errors.ParserError) as e:
        raise LedgerStoreError(f"Failed to read {path}: {e}") from e
    return df.to_dict("records")


def load_ledger(directory: Path) -> InMemoryLedgerStore:
    """
    Load an in-memory ledger store from a directory of CSV files.

    Args:
        directory: Ledger directory

    Returns:
        Populated InMemoryLedgerStore

    Raises:
        LedgerStoreError: If a required file is missing or a row is malformed
    """
    directory = Path(directory)
    logger.info(f"Loading ledger from: {directory}")

    try:
        accounts = [
            Account(
                id=_int(r["id"]),
                code=_text(r["code"]),
                name=_text(r.get("name")) or "",
                type=AccountType(_text(r["type"])),
                default_purpose=Purpose(_text(r.get("default_purpose")) or "business"),
                is_active=_bool(r.get("is_active"), default=True),
            )
            for r in _read(directory / "accounts.csv", required=True)
        ]
        vendors = [
            Vendor(_int(r["id"]), _text(r["name"]) or "", _bool(r.get("is_active"), True))
            for r in _read(directory / "vendors.csv")
        ]
        jobs = [
            Job(
                _int(r["id"]),
                _text(r["name"]) or "",
                _text(r.get("address")),
                _text(r.get("status")) or "open",
            )
            for r in _read(directory / "jobs.csv")
        ]
        installers = [
            Installer(_int(r["id"]), _text(r["name"]) or "", _bool(r.get("is_active"), True))
            for r in _read(directory / "installers.csv")
        ]
        deals = [
            RealEstateDeal(
                id=_int(r["id"]),
                nickname=_text(r["nickname"]) or "",
                type=_text(r.get("type")) or "flip",
                asset_account_id=_int(r.get("asset_account_id")),
                loan_account_id=_int(r.get("loan_account_id")),
                original_loan_amount=_decimal(r.get("original_loan_amount")),
                interest_rate=_decimal(r.get("interest_rate")),
                loan_term_months=_int(r.get("loan_term_months")),
                close_date=_date(r.get("close_date")),
                first_payment_date=_date(r.get("first_payment_date")),
                monthly_taxes=_decimal(r.get("monthly_taxes")) or Decimal("0"),
                monthly_insurance=_decimal(r.get("monthly_insurance")) or Decimal("0"),
            )
            for r in _read(directory / "deals.csv")
        ]
        mappings = [
            MerchantMapping(
                merchant_name=_text(r["merchant_name"]) or "",
                vendor_id=_int(r.get("vendor_id")),
                default_account_id=_int(r.get("default_account_id")),
                default_job_id=_int(r.get("default_job_id")),
            )
            for r in _read(directory / "merchant_mappings.csv")
        ]
    except (KeyError, ValueError, InvalidOperation) as e:
        raise LedgerStoreError(f"Malformed reference data in {directory}: {e}") from e

    store = InMemoryLedgerStore(accounts, vendors, jobs, installers, deals, mappings)

    grouped: dict[int, dict] = {}
    try:
        for i, r in enumerate(_read(directory / "lines.csv", required=True), start=1):
            txn_id = _int(r["transaction_id"])
            txn = grouped.setdefault(
                txn_id,
                {
                    "date": _date(r["date"]),
                    "description": _text(r.get("description")) or "",
                    "lines": [],
                },
            )
            line = PostingLine(
                account_id=_int(r["account_id"]),
                amount=_decimal(r["amount"]),
                purpose=Purpose(_text(r.get("purpose")) or "business"),
                is_cleared=_bool(r.get("is_cleared")),
                job_id=_int(r.get("job_id")),
                vendor_id=_int(r.get("vendor_id")),
                installer_id=_int(r.get("installer_id")),
                real_estate_deal_id=_int(r.get("real_estate_deal_id")),
                rehab_category_id=_int(r.get("rehab_category_id")),
                cost_type=_text(r.get("cost_type")),
            )
            txn["lines"].append((_int(r.get("line_id")) or i, line))
    except (KeyError, ValueError, InvalidOperation) as e:
        raise LedgerStoreError(f"Malformed line in {directory / 'lines.csv'}: {e}") from e

    for txn_id, txn in grouped.items():
        store.load_transaction(txn_id, txn["date"], txn["description"], txn["lines"])

    logger.info(
        f"Loaded {len(accounts)} accounts, {len(grouped)} transactions, "
        f"{len(vendors)} vendors, {len(jobs)} jobs, {len(deals)} deals"
    )
    return store


def _write(path: Path, records: list[dict], columns: list[str]) -> None:
    pd.DataFrame(records, columns=columns).to_csv(path, index=False)


def save_ledger(store: InMemoryLedgerStore, directory: Path) -> None:
    """
    Write an in-memory ledger store back to a directory of CSV files.

    Args:
        store: Store to save
        directory: Target directory (created if needed)
    """
    directory = Path(directory)
    directory.mkdir(parents=True, exist_ok=True)

    _write(
        directory / "accounts.csv",
        [
            {
                "id": a.id,
                "code": a.code,
                "name": a.name,
                "type": a.type.value,
                "default_purpose": a.default_purpose.value,
                "is_active": a.is_active,
            }
            for a in store.chart_of_accounts()
        ],
        ACCOUNT_COLUMNS,
    )

    lines = []
    for txn in sorted(store.transactions.values(), key=lambda t: t.id):
        for stored in txn.lines:
            line = stored.line
            lines.append(
                {
                    "transaction_id": txn.id,
                    "line_id": stored.line_id,
                    "date": txn.date.isoformat(),
                    "description": txn.description,
                    "account_id": line.account_id,
                    "amount": str(line.amount),
                    "is_cleared": line.is_cleared,
                    "purpose": line.purpose.value,
                    "vendor_id": line.vendor_id,
                    "job_id": line.job_id,
                    "installer_id": line.installer_id,
                    "real_estate_deal_id": line.real_estate_deal_id,
                    "rehab_category_id": line.rehab_category_id,
                    "cost_type": line.cost_type,
                }
            )
    _write(directory / "lines.csv", lines, LINE_COLUMNS)

    _write(
        directory / "vendors.csv",
        [{"id": v.id, "name": v.name, "is_active": v.is_active} for v in store.vendors.values()],
        VENDOR_COLUMNS,
    )
    _write(
        directory / "jobs.csv",
        [
            {"id": j.id, "name": j.name, "address": j.address, "status": j.status}
            for j in store.jobs.values()
        ],
        JOB_COLUMNS,
    )
    _write(
        directory / "installers.csv",
        [
            {"id": i.id, "name": i.name, "is_active": i.is_active}
            for i in store.installers.values()
        ],
        INSTALLER_COLUMNS,
    )
    _write(
        directory / "deals.csv",
        [
            {
                "id": d.id,
                "nickname": d.nickname,
                "type": d.type,
                "asset_account_id": d.asset_account_id,
                "loan_account_id": d.loan_account_id,
                "original_loan_amount": d.original_loan_amount,
                "interest_rate": d.interest_rate,
                "loan_term_months": d.loan_term_months,
                "close_date": d.close_date.isoformat() if d.close_date else None,
                "first_payment_date": (
                    d.first_payment_date.isoformat() if d.first_payment_date else None
                ),
                "monthly_taxes": d.monthly_taxes,
                "monthly_insurance": d.monthly_insurance,
            }
            for d in store.deals.values()
        ],
        DEAL_COLUMNS,
    )
    _write(
        directory / "merchant_mappings.csv",
        [
            {
                "merchant_name": m.merchant_name,
                "vendor_id": m.vendor_id,
                "default_account_id": m.default_account_id,
                "default_job_id": m.default_job_id,
            }
            for m in store.merchant_mappings
        ],
        MAPPING_COLUMNS,
    )

    logger.info(f"Saved ledger ({len(store.transactions)} transactions) to: {directory}")
