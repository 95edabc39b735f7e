"""Rich console display components for the DR analyzer application."""

from contextlib import contextmanager
from pathlib import Path
from typing import Optional

from rich.align import Align
from rich.console import Console
from rich.markup import escape
from rich.panel import Panel
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TaskProgressColumn,
    TextColumn,
    TimeElapsedColumn,
)
from rich.table import Table
from rich.text import Text

from ..actions.models import ActionMode, ActionPlan, ExecutionReport
from ..classification.models import HealthCategory
from ..classification.services import classify
from ..core.config import AppInfo, ScanSettings, describe_settings
from ..parsing.models import LogReport
from ..scanning.models import ScanResult

SWATCH = "■"


def dr_text(report: LogReport) -> Text:
    """DR value with its category color swatch, or ERR in grey."""
    if report.category is None:
        return Text(f"{SWATCH} ERR", style="grey50")
    text = Text(f"{SWATCH} ", style=report.category.hex_color)
    text.append(str(report.overall_dr), style=report.category.style)
    return text


def _display_path(path: Path, root: Optional[Path]) -> str:
    """Path relative to root where possible, escaped for rich markup."""
    if root is not None and root in path.parents:
        return escape(str(path.relative_to(root)))
    return escape(str(path))


class ReportDisplay:
    """Handles all rich console output for scans and cleanups."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize with optional console instance."""
        self.console = console or Console()

    def show_app_header(self) -> None:
        """Display application header with branding."""
        header_text = Text()
        header_text.append(AppInfo.NAME.upper(), style="bold blue")
        header_text.append(f" v{AppInfo.VERSION}", style="dim")
        header_text.append(f"\n{AppInfo.DESCRIPTION}", style="italic")

        panel = Panel(Align.center(header_text), border_style="blue", padding=(1, 2))
        self.console.print(panel)

    def show_scan_config(self, root: Path, settings: ScanSettings) -> None:
        """Display the scan root and any non-default settings."""
        lines = [f"[bold blue]Scanning[/bold blue] {escape(str(root))}"]
        summary = describe_settings(settings)
        if summary:
            lines.append(escape(summary))
        self.console.print(Panel.fit("\n".join(lines), border_style="blue"))

    def show_results_table(self, result: ScanResult) -> None:
        """Display every recognized log, best DR first."""
        table = Table(title="DR Logs")
        table.add_column("File Name", style="magenta", max_width=40)
        table.add_column("Path", style="dim", overflow="fold")
        table.add_column("DR Value", justify="left", no_wrap=True)
        table.add_column("Category", no_wrap=True)
        table.add_column("Lang", justify="center", style="cyan")
        table.add_column("Tracks", justify="right", style="green")

        for report in result.reports:
            category = report.category
            table.add_row(
                escape(report.source.filename),
                _display_path(report.path.parent, result.root),
                dr_text(report),
                Text(category.label, style=category.style)
                if category
                else Text(report.reason.value, style="red"),
                report.variant.value,
                str(len(report.tracks)),
            )

        self.console.print(table)

    def show_category_summary(self, result: ScanResult) -> None:
        """Display how many valid logs fall into each category."""
        table = Table(title="Health Summary")
        table.add_column("Category")
        table.add_column("DR", justify="right", style="dim")
        table.add_column("Logs", justify="right", style="cyan")

        ranges = {
            HealthCategory.RED: "0-7",
            HealthCategory.NEON: "14+",
        }
        for category, count in result.category_counts.items():
            dr_range = ranges.get(category, str(category.rank + 7))
            table.add_row(
                Text(f"{SWATCH} {category.label}", style=category.style),
                dr_range,
                str(count),
            )

        self.console.print(table)

        status = (
            f"[green]{len(result.valid_reports)} valid[/green], "
            f"[yellow]{len(result.invalid_reports)} invalid[/yellow], "
            f"[red]{len(result.failures)} not a log or unreadable[/red] "
            f"out of {result.total} file(s)"
        )
        self.console.print(status)
        if result.failure_counts:
            breakdown = ", ".join(
                f"{reason.value}: {count}"
                for reason, count in sorted(
                    result.failure_counts.items(), key=lambda item: item[0].value
                )
            )
            self.console.print(f"[dim]Skipped by reason: {breakdown}[/dim]")
        if result.cancelled:
            self.show_warning_message(
                f"Scan was cancelled; results cover {result.completed} of "
                f"{result.total} file(s)"
            )

    def show_failures_table(self, result: ScanResult) -> None:
        """Display files that failed, inline with the results."""
        rows = [(r.path, r.reason.value, "; ".join(r.warnings)) for r in result.invalid_reports]
        rows += [(f.path, f.reason.value, f.message or "") for f in result.failures]
        if not rows:
            return

        table = Table(title="Skipped Files")
        table.add_column("Path", style="magenta", overflow="fold")
        table.add_column("Reason", style="red", no_wrap=True)
        table.add_column("Detail", style="dim")

        for path, reason, detail in sorted(rows, key=lambda row: str(row[0])):
            table.add_row(_display_path(path, result.root), reason, escape(detail))

        self.console.print(table)

    def show_report_details(self, report: LogReport) -> None:
        """Display one log with its album info, tracks and warnings."""
        info_lines = [f"[bold blue]{escape(str(report.path))}[/bold blue]"]
        album = report.album
        if album.analyzed:
            info_lines.append(f"Analyzed: [magenta]{escape(album.analyzed)}[/magenta]")
        if album.log_date:
            info_lines.append(f"Log date: [dim]{escape(album.log_date)}[/dim]")
        info_lines.append(f"Language: [cyan]{report.variant.value}[/cyan]")
        if report.source.encoding:
            info_lines.append(f"Encoding: [dim]{report.source.encoding}[/dim]")

        technical = [
            ("Samplerate", album.sample_rate),
            ("Channels", album.channels),
            ("Bits", album.bits_per_sample),
            ("Bitrate", album.bitrate),
            ("Codec", album.codec),
        ]
        details = " | ".join(f"{k}: {escape(v)}" for k, v in technical if v)
        if details:
            info_lines.append(details)

        if report.is_valid:
            source = "stated" if report.has_stated_value else "computed"
            category = report.category
            info_lines.append(
                f"Overall: [{category.style}]DR{report.overall_dr}[/] "
                f"({source}, {category.label})"
            )
        else:
            info_lines.append(f"[red]Invalid log: {report.reason.value}[/red]")

        self.console.print(
            Panel("\n".join(info_lines), title="DR Log", border_style="blue")
        )

        if report.tracks:
            table = Table(title=f"Tracks ({len(report.tracks)})")
            table.add_column("#", justify="right", style="cyan", no_wrap=True)
            table.add_column("DR", no_wrap=True)
            table.add_column("Peak", justify="right", style="yellow")
            table.add_column("RMS", justify="right", style="yellow")
            table.add_column("Duration", justify="right", style="green")
            table.add_column("Title", style="magenta")

            for track in report.tracks:
                table.add_row(
                    str(track.index),
                    Text(f"DR{track.dr_value}", style=track.category.style),
                    f"{track.peak_db:.2f} dB" if track.peak_db is not None else "",
                    f"{track.rms_db:.2f} dB" if track.rms_db is not None else "",
                    track.duration or "",
                    escape(track.title) if track.title else "-",
                )
            self.console.print(table)
        elif report.excerpt:
            self.console.print(
                Panel(escape(report.excerpt), title="Excerpt", border_style="dim")
            )

        for warning in report.warnings:
            self.show_warning_message(warning)

    def show_classification(self, dr_value: int) -> None:
        """Display the category of a single DR value."""
        category = classify(dr_value)
        text = Text(f"{SWATCH} DR{dr_value}: ", style=category.hex_color)
        text.append(category.label, style=category.style)
        text.append(f"  {category.hex_color}", style="dim")
        self.console.print(text)

    def show_action_plan(self, plan: ActionPlan) -> None:
        """Display a plan preview, one row per directory."""
        table = Table(title=f"Cleanup Plan: {plan.policy.description}")
        table.add_column("Directory", style="magenta", overflow="fold")
        table.add_column("Kept", style="green")
        table.add_column("Best", justify="right", no_wrap=True)
        table.add_column("Actions", style="yellow", overflow="fold")

        for directory_plan in plan.directories:
            if directory_plan.skipped:
                actions = Text(
                    f"Skipped: {directory_plan.skip_reason.value}", style="dim"
                )
            elif directory_plan.actions:
                actions = "\n".join(
                    escape(f"{a.kind.verb} {a.target.name} ({a.reason})")
                    for a in directory_plan.actions
                )
            else:
                actions = Text(directory_plan.note or "Nothing to do", style="dim")

            best = ""
            if directory_plan.best_dr is not None:
                category = classify(directory_plan.best_dr)
                best = Text(f"DR{directory_plan.best_dr}", style=category.style)

            table.add_row(
                _display_path(directory_plan.directory, plan.root),
                escape(directory_plan.kept.name) if directory_plan.kept else "-",
                best,
                actions,
            )

        self.console.print(table)
        mode = "moved" if plan.mode is ActionMode.MOVE else "deleted"
        self.console.print(
            f"[yellow]{len(plan.actions)} target(s) would be {mode}[/yellow], "
            f"[dim]{len(plan.skipped_directories)} ambiguous directory(ies) skipped[/dim]"
        )

    def show_execution_report(self, report: ExecutionReport) -> None:
        """Display the status of every executed action."""
        title = "Dry Run Results" if report.dry_run else "Cleanup Results"
        table = Table(title=title)
        table.add_column("Status", justify="center", no_wrap=True)
        table.add_column("Action", style="cyan", no_wrap=True)
        table.add_column("Target", style="magenta", overflow="fold")
        table.add_column("Detail", style="dim", overflow="fold")

        for outcome in report.outcomes:
            status = (
                Text("✓", style="green") if outcome.success else Text("✗", style="red")
            )
            table.add_row(
                status,
                outcome.action.kind.value,
                escape(str(outcome.action.target)),
                escape(outcome.message or ""),
            )

        self.console.print(table)
        for directory in report.pruned:
            self.console.print(f"[dim]Removed empty directory {escape(str(directory))}[/dim]")

        if report.failed:
            self.show_error_message(
                f"{len(report.failed)} of {len(report.outcomes)} action(s) failed"
            )
        else:
            self.show_success_message(f"{len(report.succeeded)} action(s) completed")

    def show_success_message(self, message: str) -> None:
        """Display a success message."""
        self.console.print(f"[green]✓ {escape(message)}[/green]")

    def show_warning_message(self, message: str) -> None:
        """Display a warning message."""
        self.console.print(f"[yellow]⚠ {escape(message)}[/yellow]")

    def show_error_message(self, message: str) -> None:
        """Display an error message."""
        self.console.print(f"[red]✗ {escape(message)}[/red]")

    def show_info_message(self, message: str) -> None:
        """Display an informational message."""
        self.console.print(f"[blue]ℹ {escape(message)}[/blue]")


class ProgressTracker:
    """Manages progress bars and status updates."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize with optional console instance."""
        self.console = console or Console()

    @contextmanager
    def scan_progress(self, description: str):
        """Context manager yielding a (completed, total) progress sink."""
        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            MofNCompleteColumn(),
            TaskProgressColumn(),
            TimeElapsedColumn(),
            console=self.console,
            transient=False,
        ) as progress:
            task = progress.add_task(description, total=None)

            def sink(completed: int, total: int) -> None:
                progress.update(task, completed=completed, total=total)

            try:
                yield sink
            finally:
                progress.update(
                    task, description=f"✓ {description.replace('...', ' complete!')}"
                )


class InteractivePrompts:
    """Handles interactive user prompts with rich formatting."""

    def __init__(self, console: Optional[Console] = None):
        """Initialize with optional console instance."""
        self.console = console or Console()

    def confirm(self, message: str, default: bool = True) -> bool:
        """Ask for yes/no confirmation."""
        suffix = " [Y/n]" if default else " [y/N]"
        response = (
            self.console.input(f"[yellow]{escape(message + suffix)}:[/yellow] ")
            .strip()
            .lower()
        )

        if not response:
            return default

        return response in ("y", "yes", "true", "1")
