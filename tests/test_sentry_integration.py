"""Tests for Sentry integration."""

from __future__ import annotations

from collections.abc import Generator
from typing import Any
from unittest.mock import MagicMock, patch

import pytest

from devdash.config import SentryConfig, _validate_sentry_config, load_config
from devdash.telemetry import sentry_integration


@pytest.fixture(autouse=True)
def _reset_sentry_state() -> Generator[None]:
    """Reset Sentry singleton state between tests."""
    sentry_integration._initialized["value"] = False
    yield
    sentry_integration._initialized["value"] = False


# ---------------------------------------------------------------------------
# init_sentry
# ---------------------------------------------------------------------------


def test_init_sentry_disabled_does_not_call_sdk() -> None:
    config = SentryConfig(enabled=False, dsn="https://key@sentry.io/123")

    with patch.object(sentry_integration, "sentry_sdk") as mock_sdk:
        sentry_integration.init_sentry(config)

    mock_sdk.init.assert_not_called()
    assert not sentry_integration.is_sentry_enabled()


def test_init_sentry_enabled_no_dsn_warns(caplog: pytest.LogCaptureFixture) -> None:
    config = SentryConfig(enabled=True, dsn="")
    sentry_integration.init_sentry(config)

    assert not sentry_integration.is_sentry_enabled()
    assert "no DSN configured" in caplog.text


def test_init_sentry_valid_config_calls_sdk() -> None:
    config = SentryConfig(
        enabled=True,
        dsn="https://key@sentry.io/123",
        traces_sample_rate=0.5,
        environment="test",
    )

    with (
        patch.object(sentry_integration, "sentry_sdk") as mock_sdk,
        patch.object(sentry_integration, "LoggingIntegration") as mock_logging_integration,
    ):
        sentry_integration.init_sentry(config)

    assert sentry_integration.is_sentry_enabled()
    mock_sdk.init.assert_called_once()
    mock_logging_integration.assert_called_once()

    call_kwargs = mock_sdk.init.call_args[1]
    assert call_kwargs["dsn"] == "https://key@sentry.io/123"
    assert call_kwargs["traces_sample_rate"] == 0.5
    assert call_kwargs["send_default_pii"] is False
    assert call_kwargs["server_name"] == ""
    assert call_kwargs["environment"] == "test"
    assert call_kwargs["release"].startswith("devdash@")


def test_init_sentry_defaults_to_local_environment() -> None:
    config = SentryConfig(enabled=True, dsn="https://key@sentry.io/123")

    with (
        patch.object(sentry_integration, "sentry_sdk") as mock_sdk,
        patch.object(sentry_integration, "LoggingIntegration"),
    ):
        sentry_integration.init_sentry(config)

    assert mock_sdk.init.call_args[1]["environment"] == "local"


def test_init_sentry_is_idempotent() -> None:
    config = SentryConfig(enabled=True, dsn="https://key@sentry.io/123")

    with (
        patch.object(sentry_integration, "sentry_sdk") as mock_sdk,
        patch.object(sentry_integration, "LoggingIntegration"),
    ):
        sentry_integration.init_sentry(config)
        sentry_integration.init_sentry(config)

    assert mock_sdk.init.call_count == 1


# ---------------------------------------------------------------------------
# Privacy scrubbing
# ---------------------------------------------------------------------------


def test_scrub_event_removes_frame_vars() -> None:
    event: dict[str, Any] = {
        "exception": {
            "values": [
                {
                    "stacktrace": {
                        "frames": [
                            {
                                "filename": "devdash/tasks/store.py",
                                "vars": {"key": "supabase-secret", "x": 42},
                            }
                        ]
                    }
                }
            ]
        }
    }
    scrubbed = sentry_integration._scrub_event(event)
    frame = scrubbed["exception"]["values"][0]["stacktrace"]["frames"][0]
    assert "vars" not in frame


def test_scrub_event_anonymizes_paths() -> None:
    event: dict[str, Any] = {
        "exception": {
            "values": [
                {
                    "stacktrace": {
                        "frames": [
                            {
                                "filename": "/Users/john/projects/app/server.py",
                                "abs_path": "/home/jane/app/server.py",
                            }
                        ]
                    }
                }
            ]
        }
    }
    scrubbed = sentry_integration._scrub_event(event)
    frame = scrubbed["exception"]["values"][0]["stacktrace"]["frames"][0]
    assert frame["filename"] == "/~/projects/app/server.py"
    assert frame["abs_path"] == "/~/app/server.py"


def test_scrub_event_removes_server_name() -> None:
    event: dict[str, Any] = {"server_name": "my-macbook.local", "tags": {}}
    scrubbed = sentry_integration._scrub_event(event)
    assert "server_name" not in scrubbed


def test_scrub_event_redacts_request_headers() -> None:
    event: dict[str, Any] = {
        "request": {
            "url": "http://localhost:5000/api/tasks",
            "headers": {"Authorization": "Bearer abc", "Accept": "application/json"},
        }
    }
    scrubbed = sentry_integration._scrub_event(event)
    headers = scrubbed["request"]["headers"]
    assert headers["Authorization"] == "[REDACTED]"
    assert headers["Accept"] == "application/json"


def test_scrub_dict_redacts_sensitive_keys() -> None:
    redacted = "[REDACTED]"
    data = {
        "supabase_key": "eyJhbGciOi",
        "password": "secret",
        "token": "tok_abc",
        "dsn": "https://key@sentry.io/123",
        "nested": {"key": "anon"},
        "title": "visible",
    }
    scrubbed = sentry_integration._scrub_dict(data)
    assert scrubbed["supabase_key"] == redacted
    assert scrubbed["password"] == redacted
    assert scrubbed["token"] == redacted
    assert scrubbed["dsn"] == redacted
    assert scrubbed["nested"]["key"] == redacted
    assert scrubbed["title"] == "visible"


def test_scrub_string_redacts_secret_patterns() -> None:
    text = "Connecting with apikey=eyJhbGciOi and password: hunter2"
    scrubbed = sentry_integration._scrub_string(text)
    assert "eyJhbGciOi" not in scrubbed
    assert "hunter2" not in scrubbed
    assert scrubbed.count("[REDACTED]") == 2


def test_scrub_event_handles_breadcrumbs() -> None:
    event: dict[str, Any] = {
        "breadcrumbs": {
            "values": [
                {
                    "message": "Set token=abc123 for auth",
                    "data": {"authorization": "Bearer x", "url": "https://example.com"},
                }
            ]
        }
    }
    scrubbed = sentry_integration._scrub_event(event)
    crumb = scrubbed["breadcrumbs"]["values"][0]
    assert "abc123" not in crumb["message"]
    assert crumb["data"]["authorization"] == "[REDACTED]"
    assert crumb["data"]["url"] == "https://example.com"


def test_before_send_preserves_structure() -> None:
    event: dict[str, Any] = {
        "event_id": "abc123",
        "level": "error",
        "extra": {"debug_info": "safe data", "password": "x"},
    }
    result = sentry_integration._before_send(event, {})
    assert result is not None
    assert result["event_id"] == "abc123"
    assert result["extra"] == {"debug_info": "safe data", "password": "[REDACTED]"}


def test_before_send_transaction_scrubs() -> None:
    event: dict[str, Any] = {"server_name": "host.local", "transaction": "POST /api/test-runner"}
    result = sentry_integration._before_send_transaction(event, {})
    assert result is not None
    assert "server_name" not in result
    assert result["transaction"] == "POST /api/test-runner"


# ---------------------------------------------------------------------------
# Tracing helpers
# ---------------------------------------------------------------------------


def test_start_span_returns_noop_when_disabled() -> None:
    span = sentry_integration.start_span(op="test", name="test span")
    assert isinstance(span, sentry_integration._NoOpSpan)


def test_noop_span_context_manager() -> None:
    span = sentry_integration._NoOpSpan()
    with span as s:
        s.set_data("key", "value")
        s.set_status("ok")
    # Should not raise


def test_start_span_calls_sdk_when_enabled() -> None:
    sentry_integration._initialized["value"] = True
    mock_sdk = MagicMock()

    with patch.object(sentry_integration, "sentry_sdk", mock_sdk):
        sentry_integration.start_span(op="devdash.testrunner", name="npm test")

    mock_sdk.start_span.assert_called_once_with(op="devdash.testrunner", name="npm test")


# ---------------------------------------------------------------------------
# Config validation and parsing
# ---------------------------------------------------------------------------


def test_validate_sentry_config_enabled_no_dsn() -> None:
    errors = _validate_sentry_config(SentryConfig(enabled=True, dsn=""))
    assert any("dsn" in e.lower() for e in errors)


def test_validate_sentry_config_traces_rate_out_of_range() -> None:
    errors = _validate_sentry_config(
        SentryConfig(enabled=True, dsn="https://k@sentry.io/1", traces_sample_rate=1.5)
    )
    assert any("traces_sample_rate" in e for e in errors)


def test_validate_sentry_config_disabled_no_errors() -> None:
    assert _validate_sentry_config(SentryConfig()) == []


def test_parse_sentry_config_from_yaml(tmp_path: Any) -> None:
    (tmp_path / ".devdash.yml").write_text(
        "sentry:\n"
        "  enabled: true\n"
        "  dsn: https://key@sentry.io/123\n"
        "  traces_sample_rate: 0.5\n"
        "  environment: staging\n"
    )

    config = load_config(tmp_path)
    assert config.sentry.enabled is True
    assert config.sentry.dsn == "https://key@sentry.io/123"
    assert config.sentry.traces_sample_rate == 0.5
    assert config.sentry.environment == "staging"


def test_parse_sentry_config_env_vars(tmp_path: Any, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DEVDASH_SENTRY_ENABLED", "true")
    monkeypatch.setenv("DEVDASH_SENTRY_DSN", "https://env@sentry.io/456")
    monkeypatch.setenv("DEVDASH_SENTRY_TRACES_SAMPLE_RATE", "0.3")

    config = load_config(tmp_path)
    assert config.sentry.enabled is True
    assert config.sentry.dsn == "https://env@sentry.io/456"
    assert config.sentry.traces_sample_rate == 0.3
