"""
Excel export of a statement review.
Creates a workbook with summary, review, warnings and commit failure sheets.
"""

from datetime import datetime
from pathlib import Path
from typing import Optional
import logging

from openpyxl import Workbook
from openpyxl.styles import Border, Font, PatternFill, Side
from openpyxl.worksheet.worksheet import Worksheet

from ..commit.orchestrator import CommitResult
from ..config import ReconConfig
from ..models.accounts import ReferenceData
from ..models.transaction import MatchType, ReviewTransaction
from ..review import ReviewSet
from ..utils.exceptions import ReportGenerationError

logger = logging.getLogger(__name__)

# Style definitions
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_FONT = Font(color="FFFFFF", bold=True)
CLEAR_FILL = PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid")
TIP_FILL = PatternFill(start_color="FFEB9C", end_color="FFEB9C", fill_type="solid")
ANOMALY_FILL = PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid")
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

REVIEW_HEADERS = [
    "Selected",
    "Date",
    "Description",
    "Amount",
    "Bank Status",
    "Match Type",
    "Confidence",
    "Original Amount",
    "Tip",
    "Matched Transaction",
    "Account",
    "Vendor",
    "Job",
    "Installer",
    "Reasoning",
]


class ReviewReportGenerator:
    """Writes a review set (and optionally a commit outcome) to an Excel workbook."""

    def __init__(self, config: Optional[ReconConfig] = None):
        """
        Initialize the report generator.

        Args:
            config: Application configuration
        """
        self.config = config or ReconConfig()
        self.output_config = self.config.output.excel
        self.sheet_config = self.config.output.sheets

    def default_filename(self, now: Optional[datetime] = None) -> str:
        now = now or datetime.now()
        return self.output_config.filename_template.format(
            date=now.strftime("%Y%m%d"), time=now.strftime("%H%M%S")
        )

    def generate_report(
        self,
        review_set: ReviewSet,
        account_label: str,
        output_path: Path,
        warnings: Optional[list[str]] = None,
        reference: Optional[ReferenceData] = None,
        commit_result: Optional[CommitResult] = None,
    ) -> Path:
        """
        Generate the review workbook.

        Args:
            review_set: Actionable items and hidden counts
            account_label: Account the statement was imported into, e.g. "1010 Checking"
            output_path: Path for output file
            warnings: Classifier warnings
            reference: Reference data used to print names instead of ids
            commit_result: Outcome of a commit, for the failures sheet

        Returns:
            Path to generated report

        Raises:
            ReportGenerationError: If the workbook cannot be written
        """
        logger.info(f"Generating Excel report: {output_path}")

        wb = Workbook()
        if wb.active:
            wb.remove(wb.active)

        if self.sheet_config.summary.enabled:
            self._create_summary_sheet(wb, review_set, account_label, commit_result)
        if self.sheet_config.review.enabled:
            self._create_review_sheet(wb, review_set, reference or ReferenceData())
        if self.sheet_config.warnings.enabled:
            self._create_warnings_sheet(wb, warnings or [])
        if self.sheet_config.failures.enabled and commit_result is not None:
            self._create_failures_sheet(wb, commit_result)

        try:
            output_path.parent.mkdir(parents=True, exist_ok=True)
            wb.save(output_path)
        except OSError as e:
            raise ReportGenerationError(f"Failed to write report {output_path}: {e}") from e

        logger.info(f"Report saved: {output_path}")
        return output_path

    def _create_summary_sheet(
        self,
        wb: Workbook,
        review_set: ReviewSet,
        account_label: str,
        commit_result: Optional[CommitResult],
    ) -> None:
        ws = wb.create_sheet(self.sheet_config.summary.name)

        ws["A1"] = "Statement Review Summary"
        ws["A1"].font = Font(size=16, bold=True)
        ws.merge_cells("A1:D1")

        hidden = review_set.hidden
        rows = [
            ("Account:", account_label),
            ("Generated At:", datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
            ("", ""),
            ("Statement Lines:", hidden.total),
            ("Actionable:", len(review_set)),
            ("Selected:", len(review_set.selected())),
            ("To Mark Cleared:", len(review_set.to_clear())),
            ("Tip Adjustments:", len(review_set.of_type(MatchType.TIP_ADJUSTMENT))),
            ("New:", len(review_set.of_type(MatchType.NEW))),
            ("Anomalies:", len(review_set.anomalies())),
            ("Hidden (pending at bank):", hidden.bank_pending),
            ("Hidden (already cleared):", hidden.already_cleared),
        ]
        if commit_result is not None:
            rows += [
                ("", ""),
                ("Cleared:", commit_result.cleared),
                ("Created:", commit_result.created),
                ("Tip-adjusted:", commit_result.tip_adjusted),
                ("Failed:", len(commit_result.failures)),
            ]

        for i, (label, value) in enumerate(rows, start=3):
            ws[f"A{i}"] = label
            ws[f"B{i}"] = value
            if label:
                ws[f"A{i}"].font = Font(bold=True)

        ws.column_dimensions["A"].width = 30
        ws.column_dimensions["B"].width = 40

    def _write_headers(self, ws: Worksheet, headers: list[str]) -> None:
        for col, header in enumerate(headers, start=1):
            cell = ws.cell(row=1, column=col, value=header)
            cell.fill = HEADER_FILL
            cell.font = HEADER_FONT
            cell.border = THIN_BORDER

    def _create_review_sheet(
        self, wb: Workbook, review_set: ReviewSet, reference: ReferenceData
    ) -> None:
        ws = wb.create_sheet(self.sheet_config.review.name)
        self._write_headers(ws, REVIEW_HEADERS)

        accounts = {
            a.id: f"{a.code} {a.name}"
            for a in reference.expense_accounts + reference.income_accounts
        }
        vendors = {v.id: v.name for v in reference.vendors}
        jobs = {j.id: j.name for j in reference.jobs}
        installers = {i.id: i.name for i in reference.installers}

        def name(lookup: dict, key) -> str:
            if key is None:
                return ""
            return lookup.get(key, str(key))

        for row_num, tx in enumerate(review_set, start=2):
            res = tx.result
            row_data = [
                "yes" if tx.selected else "no",
                res.date,
                tx.description,
                float(res.amount),
                res.bank_status.value,
                res.match_type.value,
                res.match_confidence.value,
                float(res.original_amount) if res.original_amount is not None else "",
                float(res.tip_amount) if res.tip_amount is not None else "",
                res.matched_transaction_id or "",
                name(accounts, tx.account_id),
                name(vendors, tx.vendor_id),
                name(jobs, tx.job_id),
                name(installers, tx.installer_id),
                res.reasoning,
            ]

            fill = self._row_fill(tx)
            for col, value in enumerate(row_data, start=1):
                cell = ws.cell(row=row_num, column=col, value=value)
                cell.border = THIN_BORDER
                if fill is not None:
                    cell.fill = fill

        self._auto_fit_columns(ws)

    @staticmethod
    def _row_fill(tx: ReviewTransaction) -> Optional[PatternFill]:
        if tx.result.is_anomaly:
            return ANOMALY_FILL
        if tx.result.match_type is MatchType.TIP_ADJUSTMENT:
            return TIP_FILL
        if tx.result.match_type is MatchType.MATCHED_PENDING:
            return CLEAR_FILL
        return None

    def _create_warnings_sheet(self, wb: Workbook, warnings: list[str]) -> None:
        ws = wb.create_sheet(self.sheet_config.warnings.name)
        self._write_headers(ws, ["Warning"])
        for row_num, warning in enumerate(warnings, start=2):
            ws.cell(row=row_num, column=1, value=warning).border = THIN_BORDER
        self._auto_fit_columns(ws)

    def _create_failures_sheet(self, wb: Workbook, commit_result: CommitResult) -> None:
        ws = wb.create_sheet(self.sheet_config.failures.name)
        self._write_headers(ws, ["Date", "Description", "Error"])
        for row_num, failure in enumerate(commit_result.failures, start=2):
            for col, value in enumerate(
                [failure.date, failure.description, failure.message], start=1
            ):
                cell = ws.cell(row=row_num, column=col, value=value)
                cell.border = THIN_BORDER
                cell.fill = ANOMALY_FILL
        self._auto_fit_columns(ws)

    def _auto_fit_columns(self, ws: Worksheet) -> None:
        """Auto-fit column widths based on content."""
        for column_cells in ws.columns:
            max_length = max(
                (len(str(cell.value)) for cell in column_cells if cell.value is not None),
                default=0,
            )
            column = column_cells[0].column_letter
            ws.column_dimensions[column].width = min(max_length + 2, 50)
