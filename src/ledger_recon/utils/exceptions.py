"""Custom exceptions for the reconciliation and posting engine."""


class ReconciliationError(Exception):
    """Base exception for reconciliation errors."""

    pass


class ValidationError(ReconciliationError):
    """Missing or invalid input for a posting archetype."""

    pass


class SplitToleranceError(ValidationError):
    """Mortgage split components do not reconcile to the payment total."""

    pass


class UnbalancedPostingError(ReconciliationError):
    """A built posting does not sum to zero."""

    pass


class LedgerStoreError(ReconciliationError):
    """A ledger store read or write failed."""

    pass


class ClassificationError(ReconciliationError):
    """Statement could not be classified."""

    pass


class StatementParseError(ClassificationError):
    """Error parsing a statement export."""

    pass


class WorkflowStateError(ReconciliationError):
    """Illegal workflow state transition."""

    pass


class ConfigurationError(ReconciliationError):
    """Error in configuration."""

    pass


class ReportGenerationError(ReconciliationError):
    """Error generating Excel report."""

    pass
