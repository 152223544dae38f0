"""Jest JSON report parsing: extraction, sanitization and reduction.

Turns the raw stdout of ``npm test -- --json --coverage --verbose`` into an
``AggregateResult``. The runner often prints banners, warnings or ANSI
noise around the JSON body, so extraction falls back to scanning the text
with a streaming decoder that respects nesting and string literals.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from devdash.testrunner.coverage import aggregate_coverage
from devdash.testrunner.errors import ReportParseError
from devdash.testrunner.models import (
    AggregateResult,
    RunSummary,
    SuiteSummary,
    TestOutcome,
)

logger = logging.getLogger(__name__)

# ── Constants ────────────────────────────────────────────────────

MAX_FAILURE_LINES = 3

# Stack-frame lines pointing into the framework or dependencies.
_NOISE_MARKERS = ("at Object.", "at async", "node_modules")

# Keys that identify a Jest aggregated report among other JSON objects.
_REPORT_KEYS = frozenset({"testResults", "numTotalTests", "coverageMap"})

_decoder = json.JSONDecoder()


# ── Extraction ───────────────────────────────────────────────────


def parse_test_report(stdout: str) -> dict[str, Any]:
    """Return the JSON report object contained in *stdout*.

    Raises:
        ReportParseError: If no JSON object can be decoded from the text.
    """
    try:
        parsed = json.loads(stdout)
    except json.JSONDecodeError:
        parsed = None
    if isinstance(parsed, dict):
        return parsed

    embedded = extract_json_object(stdout)
    if embedded is None:
        raise ReportParseError("No JSON report object found in test runner output")
    logger.debug("Recovered JSON report embedded in %d chars of output", len(stdout))
    return embedded


def extract_json_object(text: str) -> dict[str, Any] | None:
    """Find a JSON object embedded in *text*.

    Each ``{`` is tried as the start of an object with ``raw_decode``, which
    stops at the matching close brace, so nested objects and braces inside
    strings are handled. Decoded objects are skipped over as a whole. The
    first object that looks like a test report wins; failing that, the
    first object decoded at all.
    """
    first: dict[str, Any] | None = None
    pos = text.find("{")

    while pos != -1:
        try:
            obj, end = _decoder.raw_decode(text, pos)
        except json.JSONDecodeError:
            pos = text.find("{", pos + 1)
            continue

        if isinstance(obj, dict):
            if looks_like_report(obj):
                return obj
            if first is None:
                first = obj
        pos = text.find("{", end)

    return first


def looks_like_report(obj: dict[str, Any]) -> bool:
    """Return True if *obj* carries any top-level Jest report key."""
    return bool(_REPORT_KEYS & obj.keys())


# ── Sanitization ─────────────────────────────────────────────────


def sanitize_failure_message(message: str, max_lines: int = MAX_FAILURE_LINES) -> str:
    """Keep the assertion message and nearest call site of a failure trace.

    Drops blank lines and framework/dependency stack frames, then keeps at
    most *max_lines* of what remains, in their original order.
    """
    relevant = [
        line
        for line in message.split("\n")
        if line.strip() and not any(marker in line for marker in _NOISE_MARKERS)
    ]
    return "\n".join(relevant[:max_lines])


# ── Reduction ────────────────────────────────────────────────────


def build_aggregate(report: dict[str, Any], cwd: str = "") -> AggregateResult:
    """Reduce a parsed Jest report into summary, suites and coverage.

    Args:
        report: The decoded ``--json`` report.
        cwd: Working-directory prefix to strip from suite file paths.
    """
    return AggregateResult(
        success=True,
        summary=build_summary(report),
        test_suites=build_suites(report, cwd),
        coverage=aggregate_coverage(report["coverageMap"])
        if isinstance(report.get("coverageMap"), dict) and report["coverageMap"]
        else None,
    )


def build_summary(report: dict[str, Any]) -> RunSummary | None:
    """Return run counts, or ``None`` when the report has no test total."""
    if not report.get("numTotalTests"):
        return None
    return RunSummary(
        total_tests=_to_int(report.get("numTotalTests")),
        passed_tests=_to_int(report.get("numPassedTests")),
        failed_tests=_to_int(report.get("numFailedTests")),
        pending_tests=_to_int(report.get("numPendingTests")),
        success=bool(report.get("success", False)),
    )


def build_suites(report: dict[str, Any], cwd: str = "") -> list[SuiteSummary]:
    """Map ``testResults`` to suite summaries, preserving report order."""
    raw_suites = report.get("testResults")
    if not isinstance(raw_suites, list):
        return []

    suites: list[SuiteSummary] = []
    for suite_obj in raw_suites:
        suite: dict[str, Any] = suite_obj if isinstance(suite_obj, dict) else {}
        raw_assertions = suite.get("assertionResults")
        assertions: list[Any] = raw_assertions if isinstance(raw_assertions, list) else []
        perf_stats = suite.get("perfStats")

        suites.append(
            SuiteSummary(
                name=_strip_prefix(str(suite.get("name", "")), cwd),
                status=str(suite.get("status", "")),
                tests=[_build_outcome(a) for a in assertions],
                duration=_to_float(perf_stats.get("runtime"))
                if isinstance(perf_stats, dict)
                else 0.0,
            )
        )
    return suites


def _build_outcome(assertion_obj: Any) -> TestOutcome:
    assertion: dict[str, Any] = assertion_obj if isinstance(assertion_obj, dict) else {}
    raw_messages = assertion.get("failureMessages")
    messages: list[Any] = raw_messages if isinstance(raw_messages, list) else []
    return TestOutcome(
        title=str(assertion.get("title", "")),
        status=str(assertion.get("status", "")),
        failure_messages=[sanitize_failure_message(str(m)) for m in messages],
    )


def _strip_prefix(path: str, prefix: str) -> str:
    if prefix and path.startswith(prefix):
        return path[len(prefix) :]
    return path


def _to_int(value: object) -> int:
    """Coerce *value* to ``int``, defaulting to ``0``."""
    try:
        return int(value)  # type: ignore[call-overload]
    except (TypeError, ValueError):
        return 0


def _to_float(value: object) -> float:
    """Coerce *value* to ``float``, defaulting to ``0.0``."""
    try:
        return float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return 0.0
