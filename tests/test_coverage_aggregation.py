"""Tests for Istanbul coverage-map aggregation (testrunner/coverage.py)."""

from __future__ import annotations

from typing import Any

from devdash.testrunner.coverage import AxisTotals, aggregate_coverage
from devdash.testrunner.models import CoverageSummary

# ── Sample Istanbul coverage map ─────────────────────────────────

_MATH_FILE: dict[str, Any] = {
    "path": "/project/src/math.ts",
    "statementMap": {
        "0": {"start": {"line": 1, "column": 0}, "end": {"line": 1, "column": 20}},
        "1": {"start": {"line": 2, "column": 0}, "end": {"line": 2, "column": 15}},
        "2": {"start": {"line": 5, "column": 0}, "end": {"line": 5, "column": 25}},
        "3": {"start": {"line": 6, "column": 0}, "end": {"line": 6, "column": 15}},
    },
    "s": {"0": 10, "1": 8, "2": 5, "3": 0},
    "f": {"0": 10, "1": 0},
    "b": {"0": [8, 2]},
}

_UTILS_FILE: dict[str, Any] = {
    "path": "/project/src/utils.ts",
    "statementMap": {
        "0": {"start": {"line": 1, "column": 0}, "end": {"line": 1, "column": 10}},
        "1": {"start": {"line": 2, "column": 0}, "end": {"line": 2, "column": 10}},
    },
    "s": {"0": 0, "1": 0},
    "f": {"0": 0, "1": 3},
    "b": {"0": [0, 0], "1": [1, 0]},
}


# ── AxisTotals ───────────────────────────────────────────────────


def test_axis_percentage_two_decimals() -> None:
    totals = AxisTotals(covered=2, total=3)
    assert totals.percentage == "66.67"


def test_axis_percentage_zero_denominator() -> None:
    assert AxisTotals().percentage == "0"


def test_axis_full_coverage() -> None:
    totals = AxisTotals()
    totals.add(4, 4)
    assert totals.percentage == "100.00"


# ── aggregate_coverage ───────────────────────────────────────────


def test_statement_percentage_scenario() -> None:
    summary = aggregate_coverage({"a.js": {"s": {"0": 1, "1": 1, "2": 0}}})

    assert summary.statements == "66.67"


def test_single_file_all_axes() -> None:
    summary = aggregate_coverage({"/project/src/math.ts": _MATH_FILE})

    assert summary == CoverageSummary(
        lines="75.00",
        statements="75.00",
        functions="50.00",
        branches="100.00",
    )


def test_sums_across_files() -> None:
    summary = aggregate_coverage(
        {"/project/src/math.ts": _MATH_FILE, "/project/src/utils.ts": _UTILS_FILE}
    )

    # statements 3/6, functions 2/4, branches 3/6, lines 3/6
    assert summary.statements == "50.00"
    assert summary.functions == "50.00"
    assert summary.branches == "50.00"
    assert summary.lines == "50.00"


def test_order_independent() -> None:
    forward = aggregate_coverage({"a": _MATH_FILE, "b": _UTILS_FILE})
    backward = aggregate_coverage({"b": _UTILS_FILE, "a": _MATH_FILE})

    assert forward == backward


def test_branch_counts_each_path() -> None:
    summary = aggregate_coverage({"a.js": {"b": {"0": [1, 0], "1": [2, 3, 0, 0]}}})

    # 3 of 6 branch paths taken
    assert summary.branches == "50.00"


def test_function_percentage() -> None:
    summary = aggregate_coverage({"a.js": {"f": {"0": 1, "1": 1, "2": 1, "3": 0}}})

    assert summary.functions == "75.00"


def test_lines_counted_once_per_distinct_line() -> None:
    """Several statements on one line count as a single line."""
    file_data = {
        "statementMap": {
            "0": {"start": {"line": 3}},
            "1": {"start": {"line": 3}},
            "2": {"start": {"line": 3}},
            "3": {"start": {"line": 4}},
        },
        "s": {"0": 0, "1": 2, "2": 0, "3": 0},
    }

    summary = aggregate_coverage({"a.js": file_data})

    assert summary.statements == "25.00"
    assert summary.lines == "50.00"


def test_empty_map_reports_zero_everywhere() -> None:
    assert aggregate_coverage({}) == CoverageSummary(
        lines="0", statements="0", functions="0", branches="0"
    )


def test_file_without_functions_or_branches() -> None:
    file_data = {"s": {"0": 1}, "statementMap": {"0": {"start": {"line": 1}}}}

    summary = aggregate_coverage({"a.js": file_data})

    assert summary.statements == "100.00"
    assert summary.lines == "100.00"
    assert summary.functions == "0"
    assert summary.branches == "0"


# ── Malformed input ──────────────────────────────────────────────


def test_non_dict_file_entry_is_skipped() -> None:
    summary = aggregate_coverage({"broken.js": "oops", "a.js": {"s": {"0": 1, "1": 0}}})

    assert summary.statements == "50.00"


def test_malformed_sections_contribute_nothing() -> None:
    file_data = {
        "s": ["not", "a", "dict"],
        "f": None,
        "b": {"0": "not-a-list", "1": [1]},
        "statementMap": {"0": {"start": {"line": "7"}}, "1": "junk", "2": {"start": {"line": 2}}},
    }

    summary = aggregate_coverage({"a.js": file_data})

    assert summary.statements == "0"
    assert summary.functions == "0"
    assert summary.branches == "100.00"
    # only line 2 is well-formed and it has no hit count
    assert summary.lines == "0.00"


def test_non_numeric_counts_are_not_hits() -> None:
    summary = aggregate_coverage({"a.js": {"s": {"0": "5", "1": True, "2": None, "3": 1}}})

    assert summary.statements == "25.00"


def test_percentages_within_bounds() -> None:
    summary = aggregate_coverage({"a": _MATH_FILE, "b": _UTILS_FILE})

    for value in (summary.lines, summary.statements, summary.functions, summary.branches):
        assert 0.0 <= float(value) <= 100.0
