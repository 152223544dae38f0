"""Istanbul coverage-map aggregation.

Reduces the ``coverageMap`` section of a Jest ``--json --coverage`` report
into four project-wide percentages. Istanbul's per-file format::

    {
      "/path/to/file.ts": {
        "statementMap": { "0": {"start": {"line": 1}}, ... },
        "s": { "0": 1, "1": 0, ... },   // statement hit counts
        "f": { "0": 1, ... },           // function hit counts
        "b": { "0": [1, 0], ... }       // per-branch hit counts
      }
    }

Malformed entries contribute nothing instead of aborting the reduction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

from devdash.testrunner.models import CoverageSummary

logger = logging.getLogger(__name__)


@dataclass
class AxisTotals:
    """Running covered/total counts for one coverage axis."""

    covered: int = 0
    total: int = 0

    def add(self, covered: int, total: int) -> None:
        self.covered += covered
        self.total += total

    @property
    def percentage(self) -> str:
        """Return the percentage formatted to two decimals, or ``"0"`` if empty."""
        if self.total == 0:
            return "0"
        return f"{self.covered / self.total * 100:.2f}"


def aggregate_coverage(coverage_map: dict[str, Any]) -> CoverageSummary:
    """Sum statement, branch, function and line coverage across all files.

    Lines are counted once per distinct source line referenced by the
    statement map, so several statements sharing a line count as one line,
    covered if any of them executed.
    """
    statements = AxisTotals()
    branches = AxisTotals()
    functions = AxisTotals()
    lines = AxisTotals()

    for file_path, file_data in coverage_map.items():
        if not isinstance(file_data, dict):
            logger.debug("Skipping malformed coverage entry for %s", file_path)
            continue

        statement_counts = _as_dict(file_data.get("s"))
        statements.add(*_count_hits(statement_counts.values()))
        functions.add(*_count_hits(_as_dict(file_data.get("f")).values()))

        for counts in _as_dict(file_data.get("b")).values():
            if isinstance(counts, list):
                branches.add(*_count_hits(counts))

        statement_map = file_data.get("statementMap")
        if isinstance(statement_map, dict):
            lines.add(*_count_lines(statement_map, statement_counts))

    return CoverageSummary(
        lines=lines.percentage,
        statements=statements.percentage,
        functions=functions.percentage,
        branches=branches.percentage,
    )


def _count_hits(counts: Any) -> tuple[int, int]:
    """Return ``(covered, total)`` for an iterable of execution counts."""
    values = list(counts)
    return sum(1 for value in values if _is_hit(value)), len(values)


def _count_lines(
    statement_map: dict[str, Any], statement_counts: dict[str, Any]
) -> tuple[int, int]:
    """Return ``(covered, total)`` distinct source lines for one file."""
    all_lines: set[int] = set()
    covered_lines: set[int] = set()

    for stmt_id, location in statement_map.items():
        line = _start_line(location)
        if line is None:
            continue
        all_lines.add(line)
        if _is_hit(statement_counts.get(stmt_id)):
            covered_lines.add(line)

    return len(covered_lines), len(all_lines)


def _start_line(location: Any) -> int | None:
    if not isinstance(location, dict):
        return None
    start = location.get("start")
    if not isinstance(start, dict):
        return None
    line = start.get("line")
    if isinstance(line, bool) or not isinstance(line, int):
        return None
    return line


def _is_hit(value: Any) -> bool:
    """Return True for a numeric execution count above zero."""
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return value > 0


def _as_dict(value: Any) -> dict[str, Any]:
    return value if isinstance(value, dict) else {}
