"""Table data CLI - build widget tables from request files."""

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
import yaml
from rich.console import Console

from tabledata import __version__, service
from tabledata.config import ConfigLoadError, ConfigValidationError, get_config
from tabledata.render import render_table

console = Console()
err_console = Console(stderr=True)

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


def _configure_logging(level_name: str) -> None:
    level = getattr(logging, level_name.upper())
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")
    logging.getLogger().setLevel(level)


def load_request(source: str) -> Any:
    """Read a request from a JSON or YAML file, or from stdin when ``-``.

    ``.json`` files are parsed as JSON; anything else goes through the YAML
    loader, which also accepts JSON.
    """
    if source == "-":
        text = sys.stdin.read()
        suffix = ""
    else:
        path = Path(source)
        try:
            text = path.read_text()
        except OSError as e:
            raise click.ClickException(f"Cannot read {path}: {e}")
        suffix = path.suffix.lower()

    try:
        if suffix == ".json":
            return json.loads(text)
        return yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise click.ClickException(f"Invalid request in {source}: {e}")


def output_result(result: dict[str, Any], ctx: click.Context, title: str | None = None) -> None:
    """Print a response as JSON (stdout) or as a rich table."""
    output_format = ctx.obj.get("output_format", "json")

    if output_format == "json":
        print(json.dumps(result, indent=2))
    elif service.is_error(result):
        err_console.print(f"[red]Error:[/red] {result['error']}")
    else:
        console.print(render_table(result, title=title))

    if service.is_error(result):
        raise SystemExit(1)


@click.group()
@click.option(
    "--log-level",
    type=click.Choice(LOG_LEVELS, case_sensitive=False),
    default="WARNING",
    envvar="TABLEDATA_LOG_LEVEL",
    help="Logging level (default: WARNING)",
)
@click.option(
    "--config", "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    envvar="TABLEDATA_CONFIG",
    help="Project config file (JSON)",
)
@click.option(
    "--format", "-f", "output_format",
    type=click.Choice(["json", "text"]),
    default="json",
    envvar="TABLEDATA_OUTPUT_FORMAT",
    help="Output format: json (default) or text",
)
@click.pass_context
def main(ctx: click.Context, log_level: str, config_path: Path | None, output_format: str) -> None:
    """Table data - build hierarchical summary tables for survey widgets."""
    _configure_logging(log_level)
    ctx.ensure_object(dict)
    ctx.obj["output_format"] = output_format

    try:
        ctx.obj["config"] = get_config(config_path)
    except (ConfigLoadError, ConfigValidationError) as e:
        err_console.print(f"[red]Error:[/red] {e}")
        raise SystemExit(1)


@main.command()
def version() -> None:
    """Show version."""
    console.print(f"tabledata {__version__}")


@main.command("config")
@click.pass_context
def show_config(ctx: click.Context) -> None:
    """Show the effective engine configuration."""
    print(json.dumps(ctx.obj["config"].to_dict(), indent=2))


@main.command("build-data")
@click.argument("source", default="-")
@click.pass_context
def build_data(ctx: click.Context, source: str) -> None:
    """Build the full row tree for a BuildData request.

    SOURCE is a JSON or YAML file with calculation_data and widget
    (default: stdin).
    """
    request = load_request(source)
    result = service.build_data(request, ctx.obj["config"])
    output_result(result, ctx)


@main.command("build-row")
@click.argument("source", default="-")
@click.pass_context
def build_row(ctx: click.Context, source: str) -> None:
    """Build a single row for a BuildRow request.

    SOURCE is a JSON or YAML file with breakdown_label, breakdown_tooltip,
    row_data and widget (default: stdin).
    """
    request = load_request(source)
    result = service.build_row(request, ctx.obj["config"])
    output_result(result, ctx)


@main.command()
@click.option("--host", default="localhost", help="Interface to bind")
@click.option("--port", "-p", default=8484, type=int, help="Port to listen on")
@click.pass_context
def serve(ctx: click.Context, host: str, port: int) -> None:
    """Serve BuildData / BuildRow over HTTP."""
    from tabledata.server import start_server

    start_server(host, port, ctx.obj["config"])


if __name__ == "__main__":
    main()
