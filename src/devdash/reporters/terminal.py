"""Terminal reporter with rich output formatting."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rich.console import Console
from rich.markup import escape
from rich.table import Table

if TYPE_CHECKING:
    from rich.status import Status

    from devdash.testrunner.models import AggregateResult, CoverageSummary, SuiteSummary

console = Console()


_PERFECT_RATE = 100.0
_GOOD_RATE = 80.0
_MS_PER_SECOND = 1000.0
_SECONDS_PER_MINUTE = 60.0

_STATUS_STYLES = {
    "passed": ("✓", "green"),
    "failed": ("✗", "red"),
    "pending": ("⊘", "yellow"),
    "skipped": ("⊘", "yellow"),
    "todo": ("…", "yellow"),
    "disabled": ("⊘", "dim"),
}


def _pass_rate_color(rate: float) -> str:
    """Return a Rich color name for a given pass-rate percentage."""
    if rate >= _PERFECT_RATE:
        return "green"
    if rate >= _GOOD_RATE:
        return "yellow"
    return "red"


def _format_duration(milliseconds: float) -> str:
    """Format a duration in milliseconds to a human-readable string."""
    seconds = milliseconds / _MS_PER_SECOND
    if seconds >= _SECONDS_PER_MINUTE:
        return f"{seconds / _SECONDS_PER_MINUTE:.1f}m"
    return f"{seconds:.1f}s"


def _coverage_color(percentage: str) -> str:
    high_threshold = 80.0
    medium_threshold = 50.0

    value = float(percentage)
    if value >= high_threshold:
        return "green"
    if value >= medium_threshold:
        return "yellow"
    return "red"


class CLIReporter:
    """Rich terminal output for devdash commands."""

    def __init__(self) -> None:
        """Initialize the CLI reporter."""
        self.console = console

    def print_header(self, title: str) -> None:
        """Print a bold header."""
        self.console.print(f"\n[bold cyan]{title}[/bold cyan]\n")

    def print_success(self, message: str) -> None:
        """Print a success message."""
        self.console.print(f"[green]✓[/green] {message}")

    def print_error(self, message: str) -> None:
        """Print an error message."""
        self.console.print(f"[red]✗[/red] {message}")

    def print_warning(self, message: str) -> None:
        """Print a warning message."""
        self.console.print(f"[yellow]⚠[/yellow] {message}")

    def print_info(self, message: str) -> None:
        """Print an info message."""
        self.console.print(f"[dim]{message}[/dim]")

    def create_status(self, message: str) -> Status:
        """Create a Rich Status spinner for long-running operations."""
        return self.console.status(message)

    # ── Test dashboard ─────────────────────────────────────────────────

    def print_aggregate(self, result: AggregateResult) -> None:
        """Print an aggregated test run: counts, suites, failures and coverage."""
        if result.error:
            self.print_error(escape(result.error))

        if result.summary is not None:
            self.print_summary_line(
                result.summary.total_tests,
                result.summary.passed_tests,
                result.summary.failed_tests,
                result.summary.pending_tests,
            )
        elif result.success:
            self.console.print("  [dim]No tests executed[/dim]")

        if result.test_suites:
            self.print_suites(result.test_suites)
            self.print_failures(result.test_suites)

        if result.coverage is not None:
            self.print_coverage(result.coverage)

    def print_summary_line(self, total: int, passed: int, failed: int, pending: int) -> None:
        """Print the run totals with a pass rate."""
        if total == 0:
            self.console.print("  [dim]No tests executed[/dim]")
            return

        pass_rate = passed / total * 100
        rate_color = _pass_rate_color(pass_rate)

        parts: list[str] = []
        if passed:
            parts.append(f"[green]✓ {passed} passed[/green]")
        if failed:
            parts.append(f"[red]✗ {failed} failed[/red]")
        if pending:
            parts.append(f"[yellow]⊘ {pending} pending[/yellow]")

        self.console.print()
        self.console.print(
            f"  [bold]{total}[/bold] tests  "
            f"[bold {rate_color}]{pass_rate:.0f}%[/bold {rate_color}] pass rate  "
            f"{'  '.join(parts)}"
        )
        self.console.print()

    def print_suites(self, suites: list[SuiteSummary]) -> None:
        """Print one row per suite, in report order."""
        table = Table(title="Test Suites", title_style="bold cyan")
        table.add_column("Suite", style="bold")
        table.add_column("Status", justify="center")
        table.add_column("Tests", justify="right")
        table.add_column("Duration", justify="right")

        for suite in suites:
            icon, color = _STATUS_STYLES.get(suite.status, ("?", "dim"))
            table.add_row(
                escape(suite.name),
                f"[{color}]{icon}[/{color}]",
                str(len(suite.tests)),
                _format_duration(suite.duration) if suite.duration else "-",
            )

        self.console.print(table)

    def print_failures(self, suites: list[SuiteSummary]) -> None:
        """Print sanitized failure messages grouped by suite."""
        for suite in suites:
            failed = [test for test in suite.tests if test.failed]
            if not failed:
                continue
            self.console.print(f"\n[bold red]{escape(suite.name)}[/bold red]")
            for test in failed:
                self.console.print(f"  [red]✗[/red] {escape(test.title)}")
                for message in test.failure_messages:
                    for line in message.splitlines():
                        self.console.print(f"      [dim]{escape(line)}[/dim]", highlight=False)

    def print_coverage(self, coverage: CoverageSummary) -> None:
        """Print the aggregate coverage table."""
        table = Table(title="Coverage Summary", title_style="bold cyan")
        table.add_column("Metric", style="bold")
        table.add_column("Coverage", justify="right")

        for label, value in (
            ("Lines", coverage.lines),
            ("Statements", coverage.statements),
            ("Functions", coverage.functions),
            ("Branches", coverage.branches),
        ):
            color = _coverage_color(value)
            table.add_row(label, f"[{color}]{value}%[/{color}]")

        self.console.print(table)


reporter = CLIReporter()
