"""Ledger store interface and implementations."""

from .ledger_store import InMemoryLedgerStore, LedgerStore

__all__ = ["InMemoryLedgerStore", "LedgerStore"]
