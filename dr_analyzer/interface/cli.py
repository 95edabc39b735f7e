"""CLI commands for the DR analyzer application."""

import threading
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console

from .display import InteractivePrompts, ProgressTracker, ReportDisplay
from ..actions.models import ActionMode, ActionPlan, CleanupPolicy
from ..actions.services import ActionExecutor, ActionPlanner
from ..core.config import AppInfo, DecimalPolicy, ScanSettings
from ..core.exceptions import DRAnalyzerError
from ..core.logging_config import get_logger, setup_logging
from ..parsing.models import CandidateFile, ScanFailure
from ..parsing.services import analyze_file
from ..scanning.models import ScanResult
from ..scanning.services import CancellationToken, scan_directory

# Initialize Rich console and Typer app
console = Console()
app = typer.Typer(
    name=AppInfo.NAME,
    help=AppInfo.DESCRIPTION,
    rich_markup_mode="rich",
    no_args_is_help=True,
)

# Initialize display components
display = ReportDisplay(console)
progress = ProgressTracker(console)
prompts = InteractivePrompts(console)

logger = get_logger(__name__)


def handle_error(error: Exception) -> None:
    """Centralized error handling."""
    if isinstance(error, DRAnalyzerError):
        display.show_error_message(error.message)
        if error.details:
            console.print(f"[dim]Details: {error.details}[/dim]")
    else:
        display.show_error_message(f"Unexpected error: {str(error)}")

    raise typer.Exit(1)


@app.callback()
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False, "--verbose", "-v", help="Enable verbose output"
    ),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Only log errors"),
    log_file: Optional[Path] = typer.Option(
        None, "--log-file", help="Append an audit log of the run to this file"
    ),
):
    """Dynamic Range log analyzer and library cleanup tool."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    setup_logging(verbose=verbose, quiet=quiet, log_file=str(log_file) if log_file else None)

    # Show app header only for non-help commands
    if ctx.invoked_subcommand and ctx.invoked_subcommand != "--help":
        display.show_app_header()


def _build_settings(
    extensions: Optional[List[str]],
    workers: Optional[int],
    max_size: Optional[int],
    decimals: Optional[DecimalPolicy],
) -> ScanSettings:
    return ScanSettings.from_env(
        extensions=tuple(extensions) if extensions else None,
        max_workers=workers,
        max_file_bytes=max_size,
        decimal_policy=decimals,
    )


def _run_scan(root: Path, settings: ScanSettings) -> ScanResult:
    """Scan in a background thread so Ctrl-C cancels cooperatively."""
    cancel = CancellationToken()
    outcome = {}

    with progress.scan_progress("Scanning logs...") as sink:

        def worker():
            try:
                outcome["result"] = scan_directory(root, settings, sink, cancel)
            except Exception as e:
                outcome["error"] = e

        thread = threading.Thread(target=worker, name="dr-scan-dispatch", daemon=True)
        thread.start()
        try:
            while thread.is_alive():
                thread.join(0.1)
        except KeyboardInterrupt:
            logger.warning("Scan of %s interrupted by user", root)
            cancel.cancel()
            display.show_warning_message("Cancelling scan, finishing files in flight...")
            thread.join()

    if "error" in outcome:
        raise outcome["error"]
    return outcome["result"]


def _build_plan(
    result: ScanResult,
    policy: CleanupPolicy,
    min_dr: Optional[int],
    move_to: Optional[Path],
) -> ActionPlan:
    planner = ActionPlanner(
        policy=policy,
        mode=ActionMode.MOVE if move_to else ActionMode.DELETE,
        destination=move_to.expanduser().resolve() if move_to else None,
        min_dr=min_dr,
    )
    return planner.plan(result)


# Shared option declarations
_EXT_OPTION = typer.Option(
    None, "--ext", "-e", help="File extension to consider (repeatable)"
)
_WORKERS_OPTION = typer.Option(
    None, "--workers", "-w", help="Parallel workers (defaults to CPU count)"
)
_MAX_SIZE_OPTION = typer.Option(
    None, "--max-size", help="Skip files larger than this many bytes"
)
_DECIMALS_OPTION = typer.Option(
    None, "--decimals", help="How fractional DR values become integers"
)
_POLICY_OPTION = typer.Option(..., "--policy", "-p", help="Cleanup policy")
_MIN_DR_OPTION = typer.Option(
    None, "--min-dr", help="Threshold for the remove-low-dr policy"
)
_MOVE_TO_OPTION = typer.Option(
    None, "--move-to", help="Move targets here instead of deleting them"
)


@app.command()
def scan(
    root: Path = typer.Argument(help="Directory tree to scan for DR logs"),
    extensions: Optional[List[str]] = _EXT_OPTION,
    workers: Optional[int] = _WORKERS_OPTION,
    max_size: Optional[int] = _MAX_SIZE_OPTION,
    decimals: Optional[DecimalPolicy] = _DECIMALS_OPTION,
    show_failures: bool = typer.Option(
        True, "--failures/--no-failures", help="List files that were not valid logs"
    ),
):
    """Scan a directory tree and rate every DR log found."""
    try:
        settings = _build_settings(extensions, workers, max_size, decimals)
        display.show_scan_config(root, settings)

        result = _run_scan(root, settings)

        if result.reports:
            display.show_results_table(result)
        else:
            console.print("[yellow]No DR logs found.[/yellow]")
        if show_failures:
            display.show_failures_table(result)
        display.show_category_summary(result)

    except DRAnalyzerError as e:
        handle_error(e)


@app.command()
def show(
    log_file: Path = typer.Argument(help="Single DR log to inspect"),
    max_size: Optional[int] = _MAX_SIZE_OPTION,
    decimals: Optional[DecimalPolicy] = _DECIMALS_OPTION,
):
    """Show the tracks, album value and warnings of one DR log."""
    try:
        settings = _build_settings(None, None, max_size, decimals)
        if not log_file.is_file():
            display.show_error_message(f"Log file not found: {log_file}")
            raise typer.Exit(1)

        path = log_file.expanduser().resolve()
        candidate = CandidateFile(path=path, size_bytes=path.stat().st_size)
        result = analyze_file(candidate, settings)

        if isinstance(result, ScanFailure):
            display.show_error_message(f"{result.reason.value}: {result.message}")
            raise typer.Exit(1)

        display.show_report_details(result)

    except DRAnalyzerError as e:
        handle_error(e)


@app.command()
def classify(
    dr_value: int = typer.Argument(help="DR value to classify"),
):
    """Show the health category of a DR value."""
    display.show_classification(dr_value)


@app.command()
def plan(
    root: Path = typer.Argument(help="Directory tree to plan a cleanup for"),
    policy: CleanupPolicy = _POLICY_OPTION,
    min_dr: Optional[int] = _MIN_DR_OPTION,
    move_to: Optional[Path] = _MOVE_TO_OPTION,
    extensions: Optional[List[str]] = _EXT_OPTION,
    workers: Optional[int] = _WORKERS_OPTION,
):
    """Preview a cleanup without touching the filesystem."""
    try:
        settings = _build_settings(extensions, workers, None, None)
        display.show_scan_config(root, settings)
        result = _run_scan(root, settings)

        action_plan = _build_plan(result, policy, min_dr, move_to)
        display.show_action_plan(action_plan)

        if not action_plan.is_empty:
            report = ActionExecutor(dry_run=True).execute(action_plan)
            display.show_execution_report(report)

    except DRAnalyzerError as e:
        handle_error(e)


@app.command()
def clean(
    root: Path = typer.Argument(help="Directory tree to clean up"),
    policy: CleanupPolicy = _POLICY_OPTION,
    min_dr: Optional[int] = _MIN_DR_OPTION,
    move_to: Optional[Path] = _MOVE_TO_OPTION,
    prune_empty: bool = typer.Option(
        False, "--prune-empty", help="Also remove directories left empty (DANGEROUS)"
    ),
    yes: bool = typer.Option(
        False, "--yes", "-y", help="Skip the confirmation prompt"
    ),
    extensions: Optional[List[str]] = _EXT_OPTION,
    workers: Optional[int] = _WORKERS_OPTION,
):
    """Delete or move logs and directories according to a cleanup policy."""
    try:
        settings = _build_settings(extensions, workers, None, None)
        display.show_scan_config(root, settings)
        result = _run_scan(root, settings)

        if result.cancelled:
            display.show_error_message("Scan was cancelled; refusing to act on partial results")
            raise typer.Exit(1)

        action_plan = _build_plan(result, policy, min_dr, move_to)
        display.show_action_plan(action_plan)

        if action_plan.is_empty:
            display.show_info_message("Nothing to clean up")
            return

        verb = "move" if action_plan.mode is ActionMode.MOVE else "permanently delete"
        confirmed = yes or prompts.confirm(
            f"This will {verb} {len(action_plan.actions)} target(s). Continue?",
            default=False,
        )
        if not confirmed:
            display.show_info_message("Cleanup aborted, nothing was changed")
            return

        logger.info(
            "Executing %s plan: %d action(s) under %s",
            policy.value,
            len(action_plan.actions),
            root,
        )
        executor = ActionExecutor(dry_run=False, prune_empty_dirs=prune_empty)
        report = executor.execute(action_plan, confirmed=True)
        display.show_execution_report(report)

        if report.failed:
            raise typer.Exit(1)

    except DRAnalyzerError as e:
        handle_error(e)
