"""Sentry SDK integration for devdash.

Handles initialization, data scrubbing, tracing, and logging integration
with Sentry. Sentry is strictly OPT-IN: nothing is sent unless
``sentry.enabled: true`` is set in ``.devdash.yml`` or
``DEVDASH_SENTRY_ENABLED=true`` is exported.
"""

from __future__ import annotations

import logging
import re
import threading
from typing import TYPE_CHECKING, Any

import sentry_sdk
from sentry_sdk.integrations.logging import LoggingIntegration

from devdash import __version__

if TYPE_CHECKING:
    from types import TracebackType

    from devdash.config import SentryConfig

logger = logging.getLogger(__name__)

_init_lock = threading.Lock()
_initialized: dict[str, bool] = {"value": False}

# Patterns to scrub from event data
_SENSITIVE_PATTERN = re.compile(
    r"(api[_-]?key|password|secret|token|dsn|authorization|cookie)\s*[:=]\s*\S+",
    re.IGNORECASE,
)

_PATH_HOME_RE = re.compile(r"/(?:home|Users)/[^/]+")

_SENSITIVE_KEYS = frozenset(
    {
        "api_key",
        "apikey",
        "key",
        "password",
        "secret",
        "token",
        "dsn",
        "authorization",
        "cookie",
        "supabase_key",
    }
)


def init_sentry(config: SentryConfig) -> None:
    """Initialize Sentry SDK if enabled and configured.

    Idempotent and thread-safe: later calls are no-ops once initialized.
    """
    with _init_lock:
        if _initialized["value"]:
            return
        if not config.enabled:
            logger.debug("Sentry disabled (sentry.enabled is false)")
            return
        if not config.dsn:
            logger.warning("Sentry enabled but no DSN configured")
            return

        environment = config.environment or "local"

        sentry_sdk.init(
            dsn=config.dsn,
            release=f"devdash@{__version__}",
            environment=environment,
            traces_sample_rate=config.traces_sample_rate,
            send_default_pii=False,
            server_name="",
            before_send=_before_send,
            before_send_transaction=_before_send_transaction,
            in_app_include=["devdash"],
            integrations=[
                LoggingIntegration(
                    level=logging.INFO,
                    event_level=logging.ERROR,
                ),
            ],
        )

        _initialized["value"] = True
        logger.info(
            "Sentry initialized (env=%s, tracing=%.2f)",
            environment,
            config.traces_sample_rate,
        )


def is_sentry_enabled() -> bool:
    """Return whether Sentry has been successfully initialized."""
    return _initialized["value"]


# ---------------------------------------------------------------------------
# Privacy scrubbing
# ---------------------------------------------------------------------------


def _scrub_path(path: str) -> str:
    """Replace user home directory in paths."""
    return _PATH_HOME_RE.sub("/~", path)


def _scrub_string(value: str) -> str:
    """Remove sensitive patterns from a string."""
    return _SENSITIVE_PATTERN.sub("[REDACTED]", value)


def _scrub_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Scrub sensitive keys and values from a dict."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if key.lower() in _SENSITIVE_KEYS:
            result[key] = "[REDACTED]"
        elif isinstance(value, str):
            result[key] = _scrub_string(value)
        elif isinstance(value, dict):
            result[key] = _scrub_dict(value)
        else:
            result[key] = value
    return result


def _scrub_event(event: dict[str, Any]) -> dict[str, Any]:
    """Deep-scrub an event dict for sensitive data."""
    exception = event.get("exception")
    if isinstance(exception, dict):
        for value in exception.get("values", []):
            stacktrace = value.get("stacktrace")
            if isinstance(stacktrace, dict):
                for frame in stacktrace.get("frames", []):
                    frame.pop("vars", None)
                    for key in ("filename", "abs_path"):
                        path = frame.get(key)
                        if isinstance(path, str):
                            frame[key] = _scrub_path(path)

    breadcrumbs = event.get("breadcrumbs")
    if isinstance(breadcrumbs, dict):
        for crumb in breadcrumbs.get("values", []):
            msg = crumb.get("message")
            if isinstance(msg, str):
                crumb["message"] = _scrub_string(msg)
            crumb_data = crumb.get("data")
            if isinstance(crumb_data, dict):
                crumb["data"] = _scrub_dict(crumb_data)

    request = event.get("request")
    if isinstance(request, dict):
        headers = request.get("headers")
        if isinstance(headers, dict):
            request["headers"] = _scrub_dict(headers)

    extra = event.get("extra")
    if isinstance(extra, dict):
        event["extra"] = _scrub_dict(extra)

    # Never send hostname
    event.pop("server_name", None)

    return event


def _before_send(event: dict[str, Any], _hint: dict[str, Any]) -> dict[str, Any] | None:
    """Scrub sensitive data from error events before sending."""
    return _scrub_event(event)


def _before_send_transaction(event: dict[str, Any], _hint: dict[str, Any]) -> dict[str, Any] | None:
    """Scrub sensitive data from transaction events before sending."""
    return _scrub_event(event)


# ---------------------------------------------------------------------------
# Tracing helpers
# ---------------------------------------------------------------------------


class _NoOpSpan:
    """Context manager that does nothing when Sentry is disabled."""

    def __enter__(self) -> _NoOpSpan:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        pass

    def set_data(self, key: str, value: Any) -> None:
        """No-op data setter."""

    def set_status(self, status: str) -> None:
        """No-op status setter."""


def start_span(op: str, name: str) -> Any:
    """Start a new Sentry span. Returns a context manager.

    Returns a no-op context manager if Sentry is disabled.
    """
    if not _initialized["value"]:
        return _NoOpSpan()
    return sentry_sdk.start_span(op=op, name=name)
