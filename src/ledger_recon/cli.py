"""
Command-line interface for statement reconciliation and ledger posting.
"""

from datetime import datetime
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Optional
import logging
import sys

import click
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from . import __version__
from .classifier import RuleBasedClassifier
from .commit.orchestrator import CommitResult
from .config import ReconConfig, generate_default_config, load_config
from .matching.duplicates import find_possible_duplicates
from .models.accounts import Account
from .models.transaction import MatchType, Posting
from .parsers.ledger_loader import load_ledger, save_ledger
from .posting.amortization import MortgageTerms, amortization_schedule, split_deal_payment
from .posting.builder import PostingLineBuilder
from .reports.excel_generator import ReviewReportGenerator
from .review import ReviewSet
from .store.ledger_store import InMemoryLedgerStore
from .utils.exceptions import ReconciliationError, ValidationError
from .utils.logging_config import setup_logging
from .workflow import ImportWorkflow, ReviewStateStore

console = Console()
logger = logging.getLogger(__name__)

config_option = click.option(
    "-c",
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file (YAML)",
)
ledger_option = click.option(
    "-l",
    "--ledger",
    "ledger_dir",
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    required=True,
    help="Ledger directory (accounts.csv, lines.csv, ...)",
)
verbose_option = click.option("-v", "--verbose", is_flag=True, help="Enable verbose output")


@click.group()
@click.version_option(version=__version__)
def main():
    """Bank and credit-card statement reconciliation against a double-entry ledger."""
    pass


def _setup(config: Optional[Path], verbose: bool) -> ReconConfig:
    recon_config = load_config(config)
    log_settings = recon_config.logging
    level = getattr(logging, log_settings.level.upper(), logging.INFO)
    if verbose:
        level = logging.DEBUG
    setup_logging(
        level,
        log_file=Path(log_settings.file) if log_settings.file else None,
        log_format=log_settings.format,
        max_bytes=log_settings.max_bytes,
        backup_count=log_settings.backup_count,
    )
    return recon_config


def _fail(error: Exception, verbose: bool) -> None:
    console.print(f"[red]Error: {error}[/red]")
    if verbose:
        console.print_exception()
    sys.exit(1)


def _account_by_code(store: InMemoryLedgerStore, code: str) -> Account:
    account = store.chart_of_accounts().by_code(code)
    if account is None:
        raise ValidationError(f"No account with code {code}")
    return account


def _parse_amount(value: Optional[str], label: str) -> Optional[Decimal]:
    if value is None:
        return None
    try:
        return Decimal(value.replace("$", "").replace(",", ""))
    except InvalidOperation:
        raise click.BadParameter(f"{label} must be a number, got {value!r}")


@main.command()
@click.argument("statement_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@ledger_option
@click.option(
    "-a", "--account", "account_code", required=True, help="Code of the bank or card account"
)
@config_option
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Export the review to Excel")
@click.option(
    "--as-of",
    type=click.DateTime(formats=["%Y-%m-%d"]),
    default=None,
    help="Reference date for the cleared lookback window",
)
@verbose_option
@click.option("--dry-run", is_flag=True, help="Classify without saving review state")
def reconcile(
    statement_file: Path,
    ledger_dir: Path,
    account_code: str,
    config: Optional[Path],
    output: Optional[Path],
    as_of: Optional[datetime],
    verbose: bool,
    dry_run: bool,
):
    """
    Classify a statement against the ledger and start a review.

    STATEMENT_FILE: Statement CSV export
    """
    try:
        recon_config = _setup(config, verbose)
        store = load_ledger(ledger_dir)
        account = _account_by_code(store, account_code)
        text = statement_file.read_text(encoding=recon_config.input.statement.encoding)
        as_of_date = as_of.date() if as_of else None

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            console=console,
        ) as progress:
            task = progress.add_task("Classifying statement...", total=None)
            workflow = ImportWorkflow(store, recon_config)
            if dry_run:
                snapshot = workflow.load_snapshot(account.id, as_of=as_of_date)
                output_result = RuleBasedClassifier(recon_config).classify(text, snapshot)
                review_set = ReviewSet.from_results(output_result.results)
                warnings = output_result.warnings
                reference = snapshot.reference
            else:
                review_set = workflow.process(account.id, text, as_of=as_of_date)
                warnings = workflow.warnings
                reference = workflow.reference
            progress.update(task, completed=True)

        label = f"{account.code} {account.name}"
        _display_review(review_set, label)
        for warning in warnings:
            console.print(f"[yellow]Warning: {warning}[/yellow]")

        if output is not None:
            report_path = _export(
                recon_config, output, review_set, label, warnings=warnings, reference=reference
            )
            console.print(f"\n[green]Report generated: {report_path}[/green]")

        if dry_run:
            console.print("\n[yellow]Dry run - review state not saved[/yellow]")
        elif not review_set.is_empty:
            console.print(
                f"\n[green]Review saved. Run 'ledger-recon review' to adjust, "
                f"'ledger-recon commit' to post.[/green]"
            )

    except ReconciliationError as e:
        _fail(e, verbose)


@main.command()
@config_option
@click.option(
    "-t", "--toggle", "toggles", type=int, multiple=True, help="Toggle selection of item N"
)
@click.option("--toggle-all", is_flag=True, help="Select all, or deselect all if all are selected")
@click.option(
    "--set-account",
    "set_accounts",
    multiple=True,
    help="Override category account: N=ACCOUNT_CODE",
)
@click.option(
    "--set-description", "set_descriptions", multiple=True, help="Override description: N=TEXT"
)
@click.option("--set-vendor", "set_vendors", multiple=True, help="Override vendor: N=VENDOR_ID")
@click.option("--set-job", "set_jobs", multiple=True, help="Override job: N=JOB_ID")
@click.option(
    "--set-installer", "set_installers", multiple=True, help="Override installer: N=INSTALLER_ID"
)
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Export the review to Excel")
@verbose_option
def review(
    config: Optional[Path],
    toggles: tuple[int, ...],
    toggle_all: bool,
    set_accounts: tuple[str, ...],
    set_descriptions: tuple[str, ...],
    set_vendors: tuple[str, ...],
    set_jobs: tuple[str, ...],
    set_installers: tuple[str, ...],
    output: Optional[Path],
    verbose: bool,
):
    """Show and adjust the review in progress. Items are numbered from 1."""
    try:
        recon_config = _setup(config, verbose)
        workflow = ImportWorkflow(InMemoryLedgerStore([]), recon_config)
        review_set = workflow.resume()
        if review_set is None:
            console.print("[yellow]No review in progress[/yellow]")
            return

        accounts = {
            a.code: a.id
            for a in workflow.reference.expense_accounts + workflow.reference.income_accounts
        }
        for index in toggles:
            review_set.toggle(_item_index(review_set, index))
        if toggle_all:
            review_set.toggle_all()
        for assignment in set_accounts:
            index, code = _split_assignment(assignment)
            if code not in accounts:
                raise ValidationError(f"No expense or income account with code {code}")
            review_set.update(_item_index(review_set, index), override_account_id=accounts[code])
        for assignment in set_descriptions:
            index, text = _split_assignment(assignment)
            review_set.update(_item_index(review_set, index), override_description=text)

        reference = workflow.reference
        links = (
            (set_vendors, "vendor", {v.id for v in reference.vendors}, "override_vendor_id"),
            (set_jobs, "job", {j.id for j in reference.jobs}, "override_job_id"),
            (
                set_installers,
                "installer",
                {i.id for i in reference.installers},
                "override_installer_id",
            ),
        )
        for assignments, label, known_ids, field_name in links:
            for assignment in assignments:
                index, value = _split_assignment(assignment)
                if not value.isdigit() or int(value) not in known_ids:
                    raise ValidationError(f"No active {label} with id {value}")
                review_set.update(_item_index(review_set, index), **{field_name: int(value)})

        if (
            toggles
            or toggle_all
            or set_accounts
            or set_descriptions
            or set_vendors
            or set_jobs
            or set_installers
        ):
            workflow.save()

        label = f"account {workflow.account_id}"
        _display_review(review_set, label)
        for warning in workflow.warnings:
            console.print(f"[yellow]Warning: {warning}[/yellow]")

        if output is not None:
            report_path = _export(
                recon_config,
                output,
                review_set,
                label,
                warnings=workflow.warnings,
                reference=workflow.reference,
            )
            console.print(f"\n[green]Report generated: {report_path}[/green]")

    except ReconciliationError as e:
        _fail(e, verbose)


def _export(
    recon_config: ReconConfig, output: Path, review_set: ReviewSet, label: str, **kwargs
) -> Path:
    """Write the Excel report; a directory gets a timestamped file name."""
    generator = ReviewReportGenerator(recon_config)
    if output.is_dir():
        output = output / generator.default_filename()
    return generator.generate_report(review_set, label, output, **kwargs)


def _item_index(review_set: ReviewSet, number: int) -> int:
    if not 1 <= number <= len(review_set):
        raise ValidationError(f"Item {number} does not exist (1-{len(review_set)})")
    return number - 1


def _split_assignment(assignment: str) -> tuple[int, str]:
    number, sep, value = assignment.partition("=")
    if not sep or not number.strip().isdigit():
        raise click.BadParameter(f"Expected N=VALUE, got {assignment!r}")
    return int(number), value.strip()


def _warn_duplicates(
    store: InMemoryLedgerStore, recon_config: ReconConfig, cash: Account, posting: Posting
) -> None:
    """Warn about existing cash-account lines that look like ``posting``."""
    cash_amount = sum(
        (line.amount for line in posting.lines if line.account_id == cash.id), Decimal("0")
    )
    matching = recon_config.matching
    existing = store.pending_entries(cash.id, limit=matching.pending_limit)
    existing += store.cleared_entries(
        cash.id,
        lookback_days=matching.cleared_lookback_days,
        as_of=posting.date,
        limit=matching.cleared_limit,
    )
    duplicates = find_possible_duplicates(
        posting.date, posting.description, cash_amount, existing, recon_config.duplicates
    )
    for entry in duplicates:
        message = (
            f"Possible duplicate of transaction {entry.transaction_id}: "
            f"{entry.date} {entry.description} {entry.amount}"
        )
        logger.warning(message)
        console.print(f"[yellow]Warning: {message}[/yellow]")


@main.command()
@ledger_option
@config_option
@click.option("-o", "--output", type=click.Path(path_type=Path), help="Export the outcome to Excel")
@verbose_option
def commit(ledger_dir: Path, config: Optional[Path], output: Optional[Path], verbose: bool):
    """Post the selected review items to the ledger."""
    try:
        recon_config = _setup(config, verbose)
        store = load_ledger(ledger_dir)
        workflow = ImportWorkflow(store, recon_config)
        review_set = workflow.resume()
        if review_set is None:
            console.print("[yellow]No review in progress[/yellow]")
            return

        account = store.chart_of_accounts().get(workflow.account_id)
        warnings = workflow.warnings
        reference = workflow.reference
        result = workflow.commit()
        save_ledger(store, ledger_dir)

        _display_commit(result)
        if output is not None:
            label = f"{account.code} {account.name}" if account else str(workflow.account_id)
            report_path = _export(
                recon_config,
                output,
                review_set,
                label,
                warnings=warnings,
                reference=reference,
                commit_result=result,
            )
            console.print(f"\n[green]Report generated: {report_path}[/green]")

    except ReconciliationError as e:
        _fail(e, verbose)


@main.command()
@config_option
@verbose_option
def cancel(config: Optional[Path], verbose: bool):
    """Discard the review in progress."""
    try:
        recon_config = _setup(config, verbose)
        state_store = ReviewStateStore(Path(recon_config.review_state.path))
        if not state_store.path.exists():
            console.print("[yellow]No review in progress[/yellow]")
            return
        state_store.clear()
        console.print("[green]Review discarded[/green]")
    except ReconciliationError as e:
        _fail(e, verbose)


@main.command("mortgage-split")
@ledger_option
@click.option("-d", "--deal", "deal_id", type=int, required=True, help="Real estate deal id")
@click.option("--date", "payment_date", type=click.DateTime(formats=["%Y-%m-%d"]), required=True)
@click.option("--amount", required=True, help="Total payment amount")
@click.option("--taxes", default=None, help="Monthly taxes, if known")
@click.option("--insurance", default=None, help="Monthly insurance, if known")
@click.option(
    "--schedule", "schedule_rows", type=int, default=0, help="Print the first N schedule rows"
)
@click.option("--post", "cash_code", default=None, help="Post the payment from this cash account")
@config_option
@verbose_option
def mortgage_split(
    ledger_dir: Path,
    deal_id: int,
    payment_date: datetime,
    amount: str,
    taxes: Optional[str],
    insurance: Optional[str],
    schedule_rows: int,
    cash_code: Optional[str],
    config: Optional[Path],
    verbose: bool,
):
    """Split a mortgage payment into principal, interest and escrow."""
    try:
        recon_config = _setup(config, verbose)
        store = load_ledger(ledger_dir)
        deal = store.get_deal(deal_id)
        terms = MortgageTerms.from_deal(deal)
        total = _parse_amount(amount, "Amount")
        split = split_deal_payment(
            deal,
            payment_date.date(),
            total,
            taxes=_parse_amount(taxes, "Taxes"),
            insurance=_parse_amount(insurance, "Insurance"),
        )

        table = Table(title=f"Mortgage split: {deal.nickname} payment #{split.payment_number}")
        table.add_column("Component", style="cyan")
        table.add_column("Amount", justify="right")
        table.add_row("Principal", f"${split.principal:,.2f}")
        table.add_row("Interest", f"${split.interest:,.2f}")
        table.add_row("Escrow", f"${split.escrow:,.2f}")
        table.add_row("Total", f"${split.total:,.2f}")
        console.print(table)
        for warning in split.warnings:
            console.print(f"[yellow]Warning: {warning}[/yellow]")

        if schedule_rows > 0:
            df = amortization_schedule(terms).head(schedule_rows)
            schedule = Table(title="Amortization schedule")
            for column in df.columns:
                schedule.add_column(column.replace("_", " ").title(), justify="right")
            for row in df.itertuples(index=False):
                schedule.add_row(*(str(v) for v in row))
            console.print(schedule)

        if cash_code is not None:
            cash = _account_by_code(store, cash_code)
            builder = PostingLineBuilder(store.chart_of_accounts(), recon_config, store)
            posting = builder.build_mortgage_payment(
                payment_date.date(),
                deal,
                cash.id,
                total,
                split.principal,
                split.interest,
                split.escrow,
            )
            _warn_duplicates(store, recon_config, cash, posting)
            txn_id = store.create_transaction(posting)
            save_ledger(store, ledger_dir)
            console.print(
                f"\n[green]Posted transaction {txn_id} ({len(posting.lines)} lines)[/green]"
            )

    except ReconciliationError as e:
        _fail(e, verbose)


@main.command("init-config")
@click.option(
    "-o", "--output", type=click.Path(path_type=Path), default=Path("config.yaml")
)
def init_config(output: Path):
    """Generate a sample configuration file."""
    generate_default_config(output)
    console.print(f"[green]Configuration file generated: {output}[/green]")


def _display_review(review_set: ReviewSet, label: str) -> None:
    """Display the actionable items and the hidden summary in console."""
    table = Table(title=f"Review: {label}")
    table.add_column("#", justify="right")
    table.add_column("Sel")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Amount", justify="right")
    table.add_column("Bank")
    table.add_column("Match")
    table.add_column("Confidence")

    styles = {
        MatchType.MATCHED_PENDING: "green",
        MatchType.TIP_ADJUSTMENT: "yellow",
        MatchType.NEW: "cyan",
    }
    for number, tx in enumerate(review_set, start=1):
        res = tx.result
        style = "red" if res.is_anomaly else styles.get(res.match_type)
        description = tx.description
        if len(description) > 40:
            description = description[:40] + "..."
        table.add_row(
            str(number),
            "x" if tx.selected else "",
            str(res.date),
            description,
            f"{res.amount:,.2f}",
            res.bank_status.value,
            res.match_type.value,
            res.match_confidence.value,
            style=style,
        )

    console.print(table)
    hidden = review_set.hidden
    console.print(
        f"{len(review_set)} to review, {hidden.hidden} hidden "
        f"({hidden.bank_pending} pending at bank, {hidden.already_cleared} already cleared)"
    )


def _display_commit(result: CommitResult) -> None:
    """Display commit counts and failures in console."""
    table = Table(title="Commit Summary")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_row("Cleared", str(result.cleared))
    table.add_row("Created", str(result.created))
    table.add_row("Tip-adjusted", str(result.tip_adjusted))
    table.add_row("Skipped", str(result.skipped))
    table.add_row("Failed", str(len(result.failures)))
    console.print(table)

    for failure in result.failures:
        console.print(f"[red]{failure.date} {failure.description}: {failure.message}[/red]")


if __name__ == "__main__":
    main()
