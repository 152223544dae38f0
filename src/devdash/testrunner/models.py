"""Data models for aggregated test runs.

Every model is transient: built fresh from one runner report and serialized
straight into the dashboard response. ``to_dict`` methods emit the camelCase
keys the dashboard UI consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

PARSE_FAILURE_MESSAGE = "Failed to parse test results. Please try again."
"""Fixed user-facing message for unparseable runner output."""


class CaseStatus(Enum):
    """Known outcome strings reported by Jest for a single assertion."""

    PASSED = "passed"
    FAILED = "failed"
    PENDING = "pending"
    SKIPPED = "skipped"
    TODO = "todo"
    DISABLED = "disabled"


@dataclass
class TestOutcome:
    """A single test case and its sanitized failure messages."""

    __test__ = False

    title: str
    status: str
    failure_messages: list[str] = field(default_factory=list)

    @property
    def failed(self) -> bool:
        """Return True if the runner reported this case as failed."""
        return self.status == CaseStatus.FAILED.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "status": self.status,
            "failureMessages": list(self.failure_messages),
        }


@dataclass
class SuiteSummary:
    """One test file's results, in report order."""

    name: str
    """File path with the working-directory prefix stripped."""

    status: str
    tests: list[TestOutcome] = field(default_factory=list)
    duration: float = 0.0
    """Suite runtime in milliseconds (``perfStats.runtime``)."""

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "status": self.status,
            "tests": [test.to_dict() for test in self.tests],
            "duration": self.duration,
        }


@dataclass
class RunSummary:
    """Pass/fail/pending counts for the whole run."""

    total_tests: int
    passed_tests: int
    failed_tests: int
    pending_tests: int
    success: bool

    def to_dict(self) -> dict[str, Any]:
        return {
            "totalTests": self.total_tests,
            "passedTests": self.passed_tests,
            "failedTests": self.failed_tests,
            "pendingTests": self.pending_tests,
            "success": self.success,
        }


@dataclass
class CoverageSummary:
    """Aggregate coverage percentages, each formatted to two decimals.

    An axis with nothing to measure is reported as ``"0"``.
    """

    lines: str = "0"
    statements: str = "0"
    functions: str = "0"
    branches: str = "0"

    def to_dict(self) -> dict[str, str]:
        return {
            "lines": self.lines,
            "statements": self.statements,
            "functions": self.functions,
            "branches": self.branches,
        }


@dataclass
class AggregateResult:
    """Outcome of one aggregation pass.

    ``success`` means the pipeline produced a usable report, not that every
    test passed. Failed tests are carried in ``test_suites``.
    """

    success: bool
    summary: RunSummary | None = None
    test_suites: list[SuiteSummary] = field(default_factory=list)
    coverage: CoverageSummary | None = None
    error: str | None = None

    @property
    def has_failures(self) -> bool:
        """Return True if any suite contains a failed test case."""
        return any(test.failed for suite in self.test_suites for test in suite.tests)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "success": self.success,
            "summary": self.summary.to_dict() if self.summary else None,
            "testSuites": [suite.to_dict() for suite in self.test_suites],
            "coverage": self.coverage.to_dict() if self.coverage else None,
        }
        if self.error is not None:
            payload["error"] = self.error
        return payload
