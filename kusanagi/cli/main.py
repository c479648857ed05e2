"""Click entry points.

    kusanagi serve                  -- run the API and notification servers.
    kusanagi report --format csv    -- print one cluster report and exit.
"""

from __future__ import annotations

import asyncio
import sys

import click

from kusanagi.config import load_config
from kusanagi.observability.logging import setup_logging
from kusanagi.report import ExportFormat, ReportGenerationError, export_report


@click.group()
@click.version_option(package_name="kusanagi")
def cli() -> None:
    """Kusanagi cluster health dashboard."""


@cli.command()
def serve() -> None:
    """Run the REST API and the WebSocket notification server."""
    from kusanagi.app import main

    try:
        config = load_config()
    except ValueError as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from exc
    asyncio.run(main(config))


@cli.command()
@click.option(
    "--format",
    "fmt",
    type=click.Choice([f.value for f in ExportFormat]),
    default=ExportFormat.JSON.value,
    show_default=True,
    help="Output format.",
)
@click.option("--output", "-o", type=click.Path(dir_okay=False, writable=True), help="Write to a file instead of stdout.")
def report(fmt: str, output: str | None) -> None:
    """Generate one cluster report and print it."""
    from kubernetes_asyncio.config import ConfigException  # type: ignore[import-untyped]

    from kusanagi.app import generate_report_once

    try:
        config = load_config()
    except ValueError as exc:
        raise click.ClickException(f"Invalid configuration: {exc}") from exc
    setup_logging(config.log.level)

    try:
        generated = asyncio.run(generate_report_once(config))
    except ReportGenerationError as exc:
        click.echo(f"Error: {exc}", err=True)
        sys.exit(2)
    except (ConfigException, OSError) as exc:
        raise click.ClickException(f"Kubernetes client unavailable: {exc}") from exc

    body = export_report(generated, ExportFormat(fmt))
    if output:
        with open(output, "w", encoding="utf-8") as fh:
            fh.write(body)
        click.echo(f"Report written to {output}", err=True)
    else:
        click.echo(body)
