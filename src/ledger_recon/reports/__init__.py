"""Report generation."""

from .excel_generator import ReviewReportGenerator

__all__ = ["ReviewReportGenerator"]
