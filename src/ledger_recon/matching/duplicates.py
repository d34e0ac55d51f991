"""Possible-duplicate warning for manually entered transactions."""

from datetime import date
from decimal import Decimal
from typing import Optional

from ..config import DuplicateSettings
from ..models.transaction import LedgerEntry, to_cents
from .strategies import description_similarity


def find_possible_duplicates(
    entry_date: date,
    description: str,
    amount: Decimal,
    existing: list[LedgerEntry],
    settings: Optional[DuplicateSettings] = None,
) -> list[LedgerEntry]:
    """
    Find existing ledger lines that look like the transaction being entered.

    A line is a possible duplicate when its amount is equal to the cent, its
    date is within the window, and its description is similar enough. The
    window and similarity are tunable; the result is a warning only.

    Args:
        entry_date: Date of the new transaction
        description: Description of the new transaction
        amount: Signed amount on the cash account
        existing: Ledger lines of the same cash account
        settings: Window and similarity threshold

    Returns:
        Matching lines, most similar first
    """
    settings = settings or DuplicateSettings()
    amount = to_cents(amount)

    scored = []
    for entry in existing:
        if to_cents(entry.amount) != amount:
            continue
        if abs((entry.date - entry_date).days) > settings.window_days:
            continue
        similarity = description_similarity(description, entry.description)
        if similarity < settings.min_similarity:
            continue
        scored.append((similarity, entry))

    scored.sort(key=lambda s: -s[0])
    return [entry for _, entry in scored]
