"""Utility modules."""

from .exceptions import (
    ReconciliationError,
    ValidationError,
    SplitToleranceError,
    UnbalancedPostingError,
    LedgerStoreError,
    ClassificationError,
    StatementParseError,
    WorkflowStateError,
    ConfigurationError,
    ReportGenerationError,
)
from .logging_config import setup_logging

__all__ = [
    "ReconciliationError",
    "ValidationError",
    "SplitToleranceError",
    "UnbalancedPostingError",
    "LedgerStoreError",
    "ClassificationError",
    "StatementParseError",
    "WorkflowStateError",
    "ConfigurationError",
    "ReportGenerationError",
    "setup_logging",
]
