"""Parsers for statement CSV files and ledger directories."""

from .ledger_loader import load_ledger, save_ledger
from .statement_parser import StatementParser

__all__ = ["StatementParser", "load_ledger", "save_ledger"]
