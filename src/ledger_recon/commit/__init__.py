"""Commit orchestration."""

from .orchestrator import CommitFailure, CommitOrchestrator, CommitResult

__all__ = ["CommitFailure", "CommitOrchestrator", "CommitResult"]
