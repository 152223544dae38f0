"""Test report aggregator behind the dashboard's "run tests" button.

Each call launches a fresh run of the configured test command, waits for it
to exit, and reduces its JSON report into an ``AggregateResult``. Runs are
independent: there is no queueing, deduplication, or cancellation.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from devdash.telemetry import start_span
from devdash.testrunner.errors import ReportParseError
from devdash.testrunner.models import PARSE_FAILURE_MESSAGE, AggregateResult
from devdash.testrunner.parsing import (
    build_aggregate,
    extract_json_object,
    looks_like_report,
    parse_test_report,
)
from devdash.utils.subprocess_runner import (
    DEFAULT_MAX_BUFFER,
    SubprocessError,
    SubprocessResult,
    run_subprocess,
)

if TYPE_CHECKING:
    from collections.abc import Sequence
    from pathlib import Path

    from devdash.config import DevdashConfig

logger = logging.getLogger(__name__)

_STDERR_TAIL_LINES = 20


class TestReportAggregator:
    """Run the project's test command and aggregate its JSON report.

    ``run_and_aggregate`` never raises for run or parse failures; every
    outcome is encoded in the returned ``AggregateResult``.
    """

    __test__ = False

    def __init__(
        self,
        command: Sequence[str],
        cwd: Path,
        *,
        max_buffer: int = DEFAULT_MAX_BUFFER,
        timeout: float | None = None,
    ) -> None:
        """Initialize the aggregator.

        Args:
            command: Test command printing a Jest ``--json`` report on stdout.
            cwd: Directory to run in. Its path is stripped from suite names.
            max_buffer: Per-stream output ceiling in bytes.
            timeout: Optional timeout in seconds; ``None`` waits for exit.
        """
        self._command = list(command)
        self._cwd = cwd.resolve()
        self._max_buffer = max_buffer
        self._timeout = timeout

    @classmethod
    def from_config(cls, config: DevdashConfig) -> TestReportAggregator:
        return cls(
            config.testing.command,
            config.test_cwd,
            max_buffer=config.testing.max_buffer_bytes,
            timeout=config.testing.timeout,
        )

    @property
    def cwd_prefix(self) -> str:
        return str(self._cwd)

    async def run_and_aggregate(self) -> AggregateResult:
        """Run the tests once and return the aggregated result."""
        with start_span(op="devdash.testrunner", name=" ".join(self._command)) as span:
            result = await self._run()
            span.set_data("success", result.success)
            span.set_data("suites", len(result.test_suites))
            return result

    async def _run(self) -> AggregateResult:
        try:
            completed = await run_subprocess(
                self._command,
                cwd=self._cwd,
                timeout=self._timeout,
                max_buffer=self._max_buffer,
            )
        except (SubprocessError, ValueError) as exc:
            logger.error("Test command could not run: %s", exc)
            partial = exc.result if isinstance(exc, SubprocessError) else None
            return self._recover(partial, str(exc))

        if completed.timed_out or completed.overflowed:
            reason = "timed out" if completed.timed_out else "exceeded the output buffer limit"
            return self._recover(completed, f"Test command {reason}")

        if completed.returncode == 0:
            return self.aggregate_output(completed.stdout)

        # Jest exits nonzero whenever a test fails; the report is then still whole.
        logger.info("Test command exited with code %d", completed.returncode)
        try:
            report = parse_test_report(completed.stdout)
        except ReportParseError:
            return self._recover(completed, self._failure_message(completed))
        return build_aggregate(report, self.cwd_prefix)

    def aggregate_output(self, stdout: str) -> AggregateResult:
        """Parse captured runner stdout into an aggregate result."""
        try:
            report = parse_test_report(stdout)
        except ReportParseError as exc:
            logger.warning("%s (%d chars of output)", exc, len(stdout))
            return AggregateResult(success=False, error=PARSE_FAILURE_MESSAGE)

        return build_aggregate(report, self.cwd_prefix)

    def _failure_message(self, completed: SubprocessResult) -> str:
        message = f"Command failed with exit code {completed.returncode}: {' '.join(self._command)}"
        stderr_tail = completed.stderr.strip().split("\n")[-_STDERR_TAIL_LINES:]
        if any(line.strip() for line in stderr_tail):
            message += "\n" + "\n".join(stderr_tail)
        return message

    def _recover(self, partial: SubprocessResult | None, error: str) -> AggregateResult:
        """Salvage whatever report the failed run printed before it stopped."""
        stdout = partial.stdout if partial is not None else ""
        report = extract_json_object(stdout) if stdout else None

        if report is None or not looks_like_report(report):
            return AggregateResult(success=False, error=error)

        logger.warning("Recovered partial test report after failure: %s", error)
        recovered = build_aggregate(report, self.cwd_prefix)
        return AggregateResult(
            success=False,
            summary=recovered.summary,
            test_suites=recovered.test_suites,
            error=error,
        )
