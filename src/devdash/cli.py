"""devdash CLI: top-level command group."""

from __future__ import annotations

import asyncio
import json
import logging
import os
import sys
from typing import Any

import click
import yaml
from rich.console import Console

from devdash import __version__
from devdash.config import CONFIG_FILENAME, load_config, validate_config
from devdash.docs import DocumentService
from devdash.reporters.terminal import reporter
from devdash.testrunner import TestReportAggregator

logger = logging.getLogger(__name__)
console = Console()

# Masking thresholds
_MIN_MASKED_VALUE_LENGTH = 8

_SENSITIVE_KEYS = frozenset({"key", "dsn", "password", "token"})


def _config_to_dict(config: Any) -> dict[str, Any]:
    """Convert DevdashConfig to dictionary for display."""
    from dataclasses import asdict

    result = asdict(config)
    # Remove the raw field as it's redundant
    result.pop("raw", None)
    return result


def _mask_sensitive_values(config_dict: dict[str, Any]) -> dict[str, Any]:
    """Recursively mask sensitive values in configuration dict."""
    import copy

    result = copy.deepcopy(config_dict)

    def _mask_dict(data: dict[str, Any]) -> None:
        for key, value in data.items():
            if key in _SENSITIVE_KEYS and isinstance(value, str) and value:
                # Show first and last 4 chars, mask the rest
                if len(value) > _MIN_MASKED_VALUE_LENGTH:
                    data[key] = f"{value[:4]}...{value[-4:]}"
                else:
                    data[key] = "***"
            elif isinstance(value, dict):
                _mask_dict(value)

    _mask_dict(result)
    return result


def _init_sentry_from_env() -> None:
    """Initialize Sentry from environment variables (pre-config-load).

    Provides early error capture even before ``.devdash.yml`` is parsed.
    ``serve`` re-initializes from the loaded config, which is a no-op once
    Sentry is already running.
    """
    from devdash.config import SentryConfig
    from devdash.telemetry import init_sentry

    enabled_raw = os.environ.get("DEVDASH_SENTRY_ENABLED", "").strip().lower()
    if enabled_raw not in {"1", "true", "yes"}:
        return

    dsn = os.environ.get("DEVDASH_SENTRY_DSN", "").strip()
    if not dsn:
        return

    config = SentryConfig(
        enabled=True,
        dsn=dsn,
        traces_sample_rate=float(os.environ.get("DEVDASH_SENTRY_TRACES_SAMPLE_RATE", "0.0")),
    )
    init_sentry(config)


def _load_or_abort(path: str) -> Any:
    try:
        return load_config(path)
    except Exception as e:
        reporter.print_error(f"Failed to load configuration: {e}")
        raise click.Abort from e


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.version_option(version=__version__, prog_name="devdash")
def cli(*, verbose: bool) -> None:
    """devdash: task list, markdown browser and test dashboard."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    _init_sentry_from_env()


# ── Server ─────────────────────────────────────────────────────────


@cli.command()
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option("--host", default=None, help="Bind address (overrides server.host).")
@click.option("--port", default=None, type=int, help="Bind port (overrides server.port).")
def serve(path: str, host: str | None, port: int | None) -> None:
    """Serve the dashboard API.

    Example:
      devdash serve --port 5000
    """
    import uvicorn

    from devdash.server import create_app

    config = _load_or_abort(path)
    bind_host = host or config.server.host
    bind_port = port or config.server.port

    reporter.print_info(f"Serving {config.project.root} on http://{bind_host}:{bind_port}")
    uvicorn.run(create_app(config), host=bind_host, port=bind_port)


# ── Test dashboard ─────────────────────────────────────────────────


@cli.command("test-run")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option("--json-output", "as_json", is_flag=True, help="Output raw JSON instead of tables.")
def test_run(path: str, *, as_json: bool) -> None:
    """Run the project's test command once and summarize the report.

    Exits with status 1 when the report could not be produced or any test
    failed.
    """
    config = _load_or_abort(path)
    aggregator = TestReportAggregator.from_config(config)

    if as_json:
        result = asyncio.run(aggregator.run_and_aggregate())
        click.echo(json.dumps(result.to_dict(), indent=2))
    else:
        with reporter.create_status(f"Running {' '.join(config.testing.command)}..."):
            result = asyncio.run(aggregator.run_and_aggregate())
        reporter.print_aggregate(result)

    if not result.success or result.has_failures:
        sys.exit(1)


# ── Markdown browser ───────────────────────────────────────────────


@cli.group("docs")
def docs_group() -> None:
    """Browse markdown files in the project."""


@docs_group.command("list")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
def docs_list(path: str) -> None:
    """List markdown files under the project root."""
    config = _load_or_abort(path)
    files = DocumentService.from_config(config).list_files()

    if not files:
        reporter.print_warning(f"No {config.markdown.extension} files found")
        return

    for file in files:
        click.echo(file)


# ── Configuration ──────────────────────────────────────────────────


@cli.group("config")
def config_group() -> None:
    """Inspect `.devdash.yml` configuration."""


@config_group.command("show")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
@click.option(
    "--json-output",
    "as_json",
    is_flag=True,
    help="Output as JSON instead of YAML.",
)
@click.option(
    "--no-mask",
    is_flag=True,
    help="Show sensitive values unmasked (use with caution).",
)
def config_show(path: str, *, as_json: bool, no_mask: bool) -> None:
    """Display resolved configuration with masked sensitive values.

    Example:
      devdash config show
      devdash config show --json-output
    """
    config = _load_or_abort(path)

    config_dict = _config_to_dict(config)
    if not no_mask:
        config_dict = _mask_sensitive_values(config_dict)

    if as_json:
        click.echo(json.dumps(config_dict, indent=2))
    else:
        console.print()
        console.print("[bold cyan]Configuration:[/bold cyan]")
        console.print()
        click.echo(yaml.safe_dump(config_dict, sort_keys=False, default_flow_style=False))


@config_group.command("validate")
@click.option(
    "--path",
    default=".",
    type=click.Path(exists=True, file_okay=False, resolve_path=True),
    help="Project root directory.",
)
def config_validate(path: str) -> None:
    """Validate `.devdash.yml` configuration."""
    config = _load_or_abort(path)
    errors = validate_config(config)

    if not errors:
        reporter.print_success("Configuration is valid!")
        return

    reporter.print_error(f"Found {len(errors)} configuration error(s):")
    console.print()

    for idx, error in enumerate(errors, start=1):
        console.print(f"  {idx}. [red]{error}[/red]")

    console.print()
    console.print(f"[dim]Fix these errors in {CONFIG_FILENAME} and run again.[/dim]")
    raise click.Abort
