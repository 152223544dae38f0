"""Configuration parsing from ``.devdash.yml``."""

from __future__ import annotations

import logging
import os
import re
import shlex
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from devdash.docs.files import DEFAULT_EXCLUDED_DIRS
from devdash.utils.subprocess_runner import DEFAULT_MAX_BUFFER

logger = logging.getLogger(__name__)

CONFIG_FILENAME = ".devdash.yml"

_ENV_VAR_RE = re.compile(r"\$\{(\w+)\}")

_DEFAULT_TEST_COMMAND = ["npm", "test", "--", "--json", "--coverage", "--verbose"]

_DEFAULT_EXCLUDED_DIRS = sorted(DEFAULT_EXCLUDED_DIRS)

_MAX_PORT = 65535


def _resolve_env_vars(value: str) -> str:
    """Replace ``${VAR_NAME}`` placeholders with environment variable values."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = os.environ.get(var)
        if resolved is None:
            logger.warning("Environment variable %s is not set (referenced in config)", var)
            return ""
        return resolved

    return _ENV_VAR_RE.sub(_replace, value)


def _resolve_dict(data: dict[str, Any]) -> dict[str, Any]:
    """Recursively resolve environment variables in a dictionary."""
    result: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, str):
            result[key] = _resolve_env_vars(value)
        elif isinstance(value, dict):
            result[key] = _resolve_dict(value)
        elif isinstance(value, list):
            result[key] = [
                _resolve_env_vars(item) if isinstance(item, str) else item for item in value
            ]
        else:
            result[key] = value
    return result


def _section(raw: dict[str, Any], name: str) -> dict[str, Any]:
    value = raw.get(name, {})
    return value if isinstance(value, dict) else {}


def _resolve_path(base: Path, value: str) -> str:
    """Resolve *value* against *base* unless it is already absolute."""
    return str((base / Path(value).expanduser()).resolve())


@dataclass
class ProjectConfig:
    """Project-level configuration."""

    root: str
    """Project root directory. Markdown files and tests live under it."""


@dataclass
class TestingConfig:
    """Test runner invocation for the dashboard."""

    __test__ = False

    command: list[str] = field(default_factory=lambda: list(_DEFAULT_TEST_COMMAND))
    """Command and arguments that print a Jest ``--json`` report on stdout."""

    cwd: str = ""
    """Directory to run in; also stripped from suite paths (defaults to project root)."""

    max_buffer_bytes: int = DEFAULT_MAX_BUFFER
    """Per-stream output ceiling. The run is killed when exceeded."""

    timeout: float | None = None
    """Optional timeout in seconds. ``None`` waits for the runner to exit."""


@dataclass
class SupabaseConfig:
    """Hosted datastore backing the task list."""

    url: str = ""
    """Supabase project URL (supports ${ENV_VAR} expansion)."""

    key: str = ""
    """Supabase anon or service key (supports ${ENV_VAR} expansion)."""

    table: str = "tasks"
    """Table holding task rows."""

    @property
    def is_configured(self) -> bool:
        """Return True when both URL and key are present."""
        return bool(self.url and self.key)


@dataclass
class MarkdownConfig:
    """Markdown browser configuration."""

    extension: str = ".md"
    """File extension listed and rendered by the browser."""

    excluded_dirs: list[str] = field(default_factory=lambda: list(_DEFAULT_EXCLUDED_DIRS))
    """Directory names never descended into while listing files."""


@dataclass
class ServerConfig:
    """HTTP server configuration."""

    host: str = "127.0.0.1"
    port: int = 5000
    cors_origins: list[str] = field(default_factory=list)
    """Origins allowed by the CORS middleware (empty disables it)."""


@dataclass
class SentryConfig:
    """Sentry error monitoring configuration."""

    enabled: bool = False
    """Opt-in flag. No Sentry data sent unless True."""

    dsn: str = ""
    """Sentry DSN (Data Source Name)."""

    traces_sample_rate: float = 0.0
    """Fraction of transactions sent for tracing (0.0-1.0). 0 = disabled."""

    environment: str = ""
    """Environment tag (defaults to ``local``)."""


@dataclass
class DevdashConfig:
    """Complete devdash configuration from ``.devdash.yml``."""

    project: ProjectConfig
    """Project configuration."""

    testing: TestingConfig = field(default_factory=TestingConfig)
    """Test runner configuration."""

    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    """Task datastore configuration."""

    markdown: MarkdownConfig = field(default_factory=MarkdownConfig)
    """Markdown browser configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    """HTTP server configuration."""

    sentry: SentryConfig = field(default_factory=SentryConfig)
    """Sentry observability configuration."""

    raw: dict[str, Any] = field(default_factory=dict)
    """Raw parsed YAML for extension/debugging."""

    @property
    def root_path(self) -> Path:
        return Path(self.project.root)

    @property
    def test_cwd(self) -> Path:
        """Working directory for the test runner."""
        return Path(self.testing.cwd) if self.testing.cwd else self.root_path


def _parse_command(value: Any) -> list[str]:
    if isinstance(value, str):
        return shlex.split(value)
    if isinstance(value, list):
        return [str(part) for part in value]
    return list(_DEFAULT_TEST_COMMAND)


def _parse_testing_config(raw: dict[str, Any]) -> TestingConfig:
    """Parse test runner configuration from raw YAML."""
    testing_raw = _section(raw, "testing")

    timeout_raw = testing_raw.get("timeout")
    return TestingConfig(
        command=_parse_command(
            testing_raw.get("command", os.environ.get("DEVDASH_TEST_COMMAND", _DEFAULT_TEST_COMMAND))
        ),
        cwd=str(testing_raw.get("cwd", "")),
        max_buffer_bytes=int(testing_raw.get("max_buffer_bytes", DEFAULT_MAX_BUFFER)),
        timeout=float(timeout_raw) if timeout_raw is not None else None,
    )


def _parse_supabase_config(raw: dict[str, Any]) -> SupabaseConfig:
    """Parse datastore configuration from raw YAML."""
    supabase_raw = _section(raw, "supabase")

    return SupabaseConfig(
        url=str(supabase_raw.get("url", os.environ.get("SUPABASE_URL", ""))),
        key=str(supabase_raw.get("key", os.environ.get("SUPABASE_KEY", ""))),
        table=str(supabase_raw.get("table", "tasks")),
    )


def _parse_markdown_config(raw: dict[str, Any]) -> MarkdownConfig:
    """Parse markdown browser configuration from raw YAML."""
    markdown_raw = _section(raw, "markdown")

    excluded = list(_DEFAULT_EXCLUDED_DIRS)
    extra_raw = markdown_raw.get("excluded_dirs", [])
    if isinstance(extra_raw, list):
        excluded.extend(str(d) for d in extra_raw if str(d) not in excluded)

    return MarkdownConfig(
        extension=str(markdown_raw.get("extension", ".md")),
        excluded_dirs=excluded,
    )


def _parse_server_config(raw: dict[str, Any]) -> ServerConfig:
    """Parse HTTP server configuration from raw YAML."""
    server_raw = _section(raw, "server")

    origins_raw = server_raw.get("cors_origins", [])
    return ServerConfig(
        host=str(server_raw.get("host", os.environ.get("DEVDASH_HOST", "127.0.0.1"))),
        port=int(server_raw.get("port", os.environ.get("DEVDASH_PORT", 5000))),
        cors_origins=[str(o) for o in origins_raw] if isinstance(origins_raw, list) else [],
    )


def _parse_sentry_config(raw: dict[str, Any]) -> SentryConfig:
    """Parse Sentry configuration from raw YAML."""
    sentry_raw = _section(raw, "sentry")

    enabled_raw = sentry_raw.get("enabled", os.environ.get("DEVDASH_SENTRY_ENABLED", ""))
    enabled = enabled_raw in {True, "true", "1", "yes"}

    return SentryConfig(
        enabled=enabled,
        dsn=str(sentry_raw.get("dsn", os.environ.get("DEVDASH_SENTRY_DSN", ""))),
        traces_sample_rate=float(
            sentry_raw.get(
                "traces_sample_rate",
                os.environ.get("DEVDASH_SENTRY_TRACES_SAMPLE_RATE", "0.0"),
            )
        ),
        environment=str(sentry_raw.get("environment", "")),
    )


def load_config(root: str | Path) -> DevdashConfig:
    """Load and parse the complete ``.devdash.yml`` configuration.

    Falls back to sensible defaults and environment variables when
    the YAML file is missing or incomplete.
    """
    root_path = Path(root).resolve()
    config_file = root_path / CONFIG_FILENAME

    raw: dict[str, Any] = {}
    if config_file.is_file():
        text = config_file.read_text(encoding="utf-8")
        parsed = yaml.safe_load(text)
        if isinstance(parsed, dict):
            raw = _resolve_dict(parsed)

    project_raw = _section(raw, "project")
    project = ProjectConfig(root=_resolve_path(root_path, str(project_raw.get("root", root_path))))

    # Relative directories are anchored to the config file, not the process cwd.
    testing = _parse_testing_config(raw)
    if testing.cwd:
        testing.cwd = _resolve_path(root_path, testing.cwd)

    return DevdashConfig(
        project=project,
        testing=testing,
        supabase=_parse_supabase_config(raw),
        markdown=_parse_markdown_config(raw),
        server=_parse_server_config(raw),
        sentry=_parse_sentry_config(raw),
        raw=raw,
    )


def _validate_testing_config(testing: TestingConfig) -> list[str]:
    """Validate test runner settings."""
    errors: list[str] = []

    if not testing.command:
        errors.append("testing.command must not be empty")

    if testing.max_buffer_bytes <= 0:
        errors.append(
            f"testing.max_buffer_bytes must be positive (got: {testing.max_buffer_bytes})"
        )

    if testing.timeout is not None and testing.timeout <= 0:
        errors.append(f"testing.timeout must be positive (got: {testing.timeout})")

    if testing.cwd and not Path(testing.cwd).is_dir():
        errors.append(f"testing.cwd does not exist: {testing.cwd}")

    return errors


def _validate_supabase_config(supabase: SupabaseConfig) -> list[str]:
    """Validate datastore settings."""
    errors: list[str] = []

    if bool(supabase.url) != bool(supabase.key):
        errors.append("supabase.url and supabase.key must be set together")

    if supabase.url and not supabase.url.startswith(("http://", "https://")):
        errors.append(f"supabase.url must start with http:// or https:// (got: {supabase.url})")

    if not supabase.table:
        errors.append("supabase.table must not be empty")

    return errors


def _validate_markdown_config(markdown: MarkdownConfig) -> list[str]:
    """Validate markdown browser settings."""
    if not markdown.extension.startswith("."):
        return [f"markdown.extension must start with '.' (got: {markdown.extension})"]
    return []


def _validate_server_config(server: ServerConfig) -> list[str]:
    """Validate HTTP server settings."""
    if not 0 < server.port <= _MAX_PORT:
        return [f"server.port must be between 1 and {_MAX_PORT} (got: {server.port})"]
    return []


def _validate_sentry_config(sentry: SentryConfig) -> list[str]:
    """Validate Sentry configuration."""
    errors: list[str] = []

    if sentry.enabled and not sentry.dsn:
        errors.append("sentry.dsn is required when sentry.enabled is true")

    if not 0.0 <= sentry.traces_sample_rate <= 1.0:
        errors.append(
            f"sentry.traces_sample_rate must be between 0.0 and 1.0 "
            f"(got: {sentry.traces_sample_rate})"
        )

    return errors


def validate_config(config: DevdashConfig) -> list[str]:
    """Validate the configuration and return a list of error messages.

    Returns an empty list if the configuration is valid.
    """
    errors: list[str] = []

    if not config.project.root:
        errors.append("project.root is required")

    errors.extend(_validate_testing_config(config.testing))
    errors.extend(_validate_supabase_config(config.supabase))
    errors.extend(_validate_markdown_config(config.markdown))
    errors.extend(_validate_server_config(config.server))
    errors.extend(_validate_sentry_config(config.sentry))

    return errors
