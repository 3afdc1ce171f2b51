# Copyright (c) sas-device Contributors. All rights reserved.
# Licensed under the MIT License.
"""
sas-device CLI

Commands:
- run: derive a credential and hold the hub session open until interrupted
- identity: show the identity reported by the identity service
- credential: derive and print the connection string
"""

from __future__ import annotations

import asyncio
import json
import logging
import sys

import click
from rich import box
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from sasdevice import __version__
from sasdevice.cancellation import CancellationToken
from sasdevice.config import DeviceSettings
from sasdevice.exceptions import OperationCancelledError, SasDeviceError
from sasdevice.identity.models import DeviceIdentity
from sasdevice.pipeline import EXIT_FAILURE, DevicePipeline, run_device

console = Console()
logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=True)],
        force=True,
    )


def _identity_table(identity: DeviceIdentity) -> Table:
    table = Table(title="Device Identity", box=box.ROUNDED)
    table.add_column("Field", style="cyan")
    table.add_column("Value")
    table.add_row("Device ID", identity.device_id)
    table.add_row("Hub", identity.hub_endpoint)
    table.add_row("Gateway", identity.gateway_endpoint)
    table.add_row("Via gateway", "yes" if identity.uses_gateway else "no")
    return table


async def _with_signals(coro_fn, settings: DeviceSettings):
    cancel = CancellationToken()
    cancel.install_signal_handlers(asyncio.get_running_loop())
    pipeline = DevicePipeline(settings, cancel)
    return await coro_fn(pipeline)


@click.group()
@click.version_option(__version__, prog_name="sasdevice")
@click.option(
    "--log-level",
    default=None,
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR"], case_sensitive=False),
    help="Logging level (default: SASDEVICE_LOG_LEVEL or INFO).",
)
@click.pass_context
def app(ctx: click.Context, log_level: str | None) -> None:
    """Device agent authenticating to the hub with a delegated SAS token."""
    settings = DeviceSettings.from_env()
    if log_level:
        settings = settings.model_copy(update={"log_level": log_level.upper()})
    _configure_logging(settings.log_level)
    ctx.obj = settings


@app.command()
@click.pass_obj
def run(settings: DeviceSettings) -> None:
    """Derive a credential and send telemetry until SIGINT/SIGTERM."""
    code = asyncio.run(run_device(settings))
    sys.exit(code)


@app.command()
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
@click.pass_obj
def identity(settings: DeviceSettings, as_json: bool) -> None:
    """Show the identity reported by the identity service."""
    try:
        ident = asyncio.run(_with_signals(lambda p: p.resolve_identity(), settings))
    except OperationCancelledError:
        sys.exit(0)
    except SasDeviceError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(EXIT_FAILURE)

    if as_json:
        click.echo(json.dumps(ident.model_dump(exclude={"key_handle"}), indent=2))
    else:
        console.print(_identity_table(ident))


@app.command()
@click.option("--reveal", is_flag=True, help="Print the signature instead of masking it.")
@click.pass_obj
def credential(settings: DeviceSettings, reveal: bool) -> None:
    """Derive the connection string without opening a session."""

    async def _build(pipeline: DevicePipeline):
        ident = await pipeline.resolve_identity()
        return await pipeline.build_credential(ident)

    try:
        cred = asyncio.run(_with_signals(_build, settings))
    except OperationCancelledError:
        sys.exit(0)
    except SasDeviceError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(EXIT_FAILURE)

    click.echo(cred.to_connection_string() if reveal else cred.redacted())


def main() -> None:
    app()


if __name__ == "__main__":
    main()
