"""Exceptions raised by the test report pipeline."""

from __future__ import annotations


class TestRunnerError(Exception):
    """Base class for test report pipeline failures."""

    __test__ = False


class ReportParseError(TestRunnerError):
    """Raised when no JSON report object can be located in runner output."""
