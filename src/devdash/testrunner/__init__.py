"""Test runner dashboard: run Jest, parse its report, aggregate coverage."""

from devdash.testrunner.aggregator import TestReportAggregator
from devdash.testrunner.coverage import aggregate_coverage
from devdash.testrunner.errors import ReportParseError, TestRunnerError
from devdash.testrunner.models import (
    PARSE_FAILURE_MESSAGE,
    AggregateResult,
    CoverageSummary,
    RunSummary,
    SuiteSummary,
    TestOutcome,
)
from devdash.testrunner.parsing import (
    build_aggregate,
    extract_json_object,
    parse_test_report,
    sanitize_failure_message,
)

__all__ = [
    "PARSE_FAILURE_MESSAGE",
    "AggregateResult",
    "CoverageSummary",
    "ReportParseError",
    "RunSummary",
    "SuiteSummary",
    "TestOutcome",
    "TestReportAggregator",
    "TestRunnerError",
    "aggregate_coverage",
    "build_aggregate",
    "extract_json_object",
    "parse_test_report",
    "sanitize_failure_message",
]
