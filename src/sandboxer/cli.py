"""
CLI entrypoint for py-sandboxer.

Runs a configuration script and a sandboxed script through the playground
and streams the output entries to the terminal.
"""

from __future__ import annotations

import asyncio
import os
import sys
from pathlib import Path

import click

from sandboxer.config import PlaygroundConfig, load_config
from sandboxer.debug import log_debug
from sandboxer.errors import InterpreterInitError
from sandboxer.output import OutputEntry
from sandboxer.playground import Playground

DEFAULT_CONFIG_SOURCE = "-- Default configuration"
DEFAULT_SCRIPT_SOURCE = "print('Hello from sandboxed script!')"

_KIND_STYLES: dict[str, dict] = {
    "info": {"fg": "cyan"},
    "success": {"fg": "green", "bold": True},
    "error": {"fg": "red", "bold": True},
    "warning": {"fg": "yellow"},
}


def _default_settings_path() -> Path:
    return Path.home() / ".sandboxer-settings.json"


def _read_source(path: str | None, default: str, label: str) -> str:
    if path is None:
        click.echo(f"Warning: no {label} given, using default {label}", err=True)
        return default
    return Path(path).read_text(encoding="utf-8")


def _make_printer(color: bool):
    def listener(entry: OutputEntry) -> None:
        style = _KIND_STYLES.get(entry.kind, {}) if color else {}
        click.echo(click.style(entry.text, **style) if style else entry.text)

    return listener


async def _run(
    config_source: str,
    script_source: str,
    settings_path: str | None,
    color: bool,
) -> int:
    path = settings_path or str(_default_settings_path())
    playground_config = load_config(path)
    if playground_config is None:
        log_debug(f"No settings found at {path}, using defaults")
        playground_config = PlaygroundConfig()

    playground = Playground(playground_config)
    unsubscribe = playground.output.subscribe(_make_printer(color))
    try:
        outcome = await playground.run(config_source, script_source)
    except InterpreterInitError as exc:
        click.echo(f"Error: {exc}", err=True)
        return 1
    finally:
        unsubscribe()

    log_debug(f"Outcome: {outcome}")
    return 0 if outcome.ok else 1


@click.command()
@click.argument("script", required=False, type=click.Path(exists=True, dir_okay=False))
@click.option(
    "-c",
    "--config",
    "config_path",
    type=click.Path(exists=True, dir_okay=False),
    default=None,
    help="Configuration script deciding what the sandboxed script may use",
)
@click.option(
    "-e",
    "script_string",
    type=str,
    default=None,
    help="Run a script string directly instead of a file",
)
@click.option("-d", "--debug", is_flag=True, help="Enable debug logging")
@click.option(
    "-s",
    "--settings",
    type=click.Path(),
    default=None,
    help="Path to settings file (default: ~/.sandboxer-settings.json)",
)
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.version_option(version="0.1.0", prog_name="sandboxer")
def main(
    script: str | None,
    config_path: str | None,
    script_string: str | None,
    debug: bool,
    settings: str | None,
    no_color: bool,
) -> None:
    """Run a Lua script inside a sandbox declared by a configuration script."""
    if debug:
        os.environ["SANDBOXER_DEBUG"] = "1"

    if script and script_string is not None:
        click.echo("Error: Use either SCRIPT or -e, not both.", err=True)
        sys.exit(1)

    config_source = _read_source(config_path, DEFAULT_CONFIG_SOURCE, "configuration script")
    if script_string is not None:
        log_debug("Script string mode")
        script_source = script_string
    else:
        script_source = _read_source(script, DEFAULT_SCRIPT_SOURCE, "sandboxed script")

    exit_code = asyncio.run(_run(config_source, script_source, settings, not no_color))
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
