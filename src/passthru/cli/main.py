#!/usr/bin/env python3
"""
passthru CLI - Main entry point.

Usage:
    passthru [OPTIONS] COMMAND [ARGS]...

Negotiates GPU, display and input device pass-through for a system
container, keeping only the devices the container still boots with.
"""

import logging
from typing import Optional

import typer
from rich.logging import RichHandler
from rich.markup import escape
from rich.table import Table

from . import __version__
from ..daemon.backends import PctBackend
from ..daemon.config import ConfigError
from ..daemon.device_service import DeviceService, SessionReport, capability_report
from ..daemon.host import LocalHostDevices
from ..daemon.negotiation.catalog import DEFAULT_CATALOG
from ..daemon.negotiation.classifier import build_signatures
from ..daemon.negotiation.errors import NegotiationAborted
from .async_typer import AsyncTyper
from .decorators import require_backend
from .output import ConsoleReporter, attempts_table, out
from .state import CliState


# Create the main Typer app
app = AsyncTyper(
    name="passthru",
    help="Device pass-through negotiation for GPU-accelerated system containers",
    add_completion=True,
    no_args_is_help=True,
)


def version_callback(value: bool) -> None:
    """Print version and exit."""
    if value:
        out.info(f"passthru version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=version_callback,
        is_eager=True,
    ),
    config: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="Path to passthru.conf (default: $PASSTHRU_CONFIG or /etc/passthru/passthru.conf)",
    ),
    backend: Optional[str] = typer.Option(
        None,
        "--backend",
        "-b",
        help="Container backend: pct (Proxmox VE) or incus",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Show debug logging.",
    ),
) -> None:
    """
    passthru - progressive device pass-through for system containers.

    Each device capability is granted on its own and the container is
    restarted to check it still comes up; devices that break startup are
    rolled back and left out.
    """
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=out.err_console, show_path=False)],
        )
    ctx.obj = CliState(config_path=config, backend_name=backend)


def _print_report(report: SessionReport) -> None:
    result = report.result
    out.print(attempts_table(result.attempts))
    out.success(f"Granted: {', '.join(result.granted) or 'none'}")
    if result.excluded:
        out.warning(f"Excluded: {', '.join(sorted(result.excluded))}")
    for path in report.missing_in_container:
        out.warning(f"{path} is not visible inside the container")
    for failure in report.step_failures:
        out.warning(f"Post-commit step {failure.step} failed: {failure.error}")


async def _negotiate(state: CliState, container_id: str, provision: bool) -> None:
    service = DeviceService(state.backend, state.config)
    try:
        report = await service.negotiate(container_id, ConsoleReporter(), provision=provision)
    except NegotiationAborted as e:
        out.print(attempts_table(e.result.attempts))
        out.error(str(e))
        raise typer.Exit(1)
    _print_report(report)


@app.command()
@require_backend
async def negotiate(
    ctx: typer.Context,
    container_id: str = typer.Argument(..., help="Container id (Proxmox CTID or Incus instance name)"),
    probe_timeout: Optional[float] = typer.Option(
        None, "--probe-timeout", help="Seconds to wait for the container to become live.",
    ),
    start_timeout: Optional[float] = typer.Option(
        None, "--start-timeout", help="Seconds to wait for a start command to return.",
    ),
    provision: bool = typer.Option(
        True, "--provision/--no-provision", help="Run post-commit checks after negotiation.",
    ),
) -> None:
    """Negotiate device pass-through for an existing container.

    The container is restarted once per capability.  It is left running
    with the final configuration.
    """
    state: CliState = ctx.obj
    try:
        state.config = state.config.with_overrides(
            probe_timeout=probe_timeout, start_timeout=start_timeout,
        )
    except ConfigError as e:
        out.error(str(e))
        raise typer.Exit(1)
    await _negotiate(state, container_id, provision)


@app.command()
@require_backend
async def create(
    ctx: typer.Context,
    template: str = typer.Argument(
        ..., help="Template volume, e.g. local:vztmpl/ubuntu-22.04-standard_22.04-1_amd64.tar.zst",
    ),
    ctid: Optional[str] = typer.Option(None, "--ctid", help="Container id (default: next free id from 200)"),
    hostname: str = typer.Option("gaming-lxc", "--hostname", help="Container hostname"),
    memory: int = typer.Option(8192, "--memory", help="Memory in MB"),
    cores: int = typer.Option(4, "--cores", help="CPU cores"),
    storage: int = typer.Option(32, "--storage", help="Root disk size in GB"),
    rootfs_storage: str = typer.Option("local-lvm", "--rootfs-storage", help="Storage for the root disk"),
    bridge: str = typer.Option("vmbr0", "--bridge", help="Network bridge"),
) -> None:
    """Create a privileged Proxmox container skeleton and negotiate its devices."""
    state: CliState = ctx.obj
    backend = state.backend
    if not isinstance(backend, PctBackend):
        out.error("create is only supported with the pct backend")
        raise typer.Exit(1)

    lifecycle = backend.lifecycle
    container_id = ctid or await lifecycle.next_free_id()
    if await lifecycle.exists(container_id):
        out.error(f"Container {container_id} already exists. Choose a different id.")
        raise typer.Exit(1)

    out.info(f"Creating container {container_id} from {template}")
    await lifecycle.create(
        container_id,
        template,
        hostname=hostname,
        memory=memory,
        cores=cores,
        storage=storage,
        rootfs_storage=rootfs_storage,
        bridge=bridge,
    )
    out.success(f"Container {container_id} created")
    await _negotiate(state, container_id, provision=True)


@app.command()
def catalog() -> None:
    """Show capabilities in negotiation order and whether this host has them."""
    table = Table(title="Capabilities")
    table.add_column("#", justify="right")
    table.add_column("Name", style="bold")
    table.add_column("Required")
    table.add_column("On host")
    table.add_column("Needs")
    table.add_column("Description")

    report = capability_report(DEFAULT_CATALOG, LocalHostDevices())
    for i, cap in enumerate(report, start=1):
        table.add_row(
            str(i),
            cap.name,
            "yes" if cap.required else "",
            "[green]yes[/green]" if cap.available else "[red]no[/red]",
            ", ".join(cap.requires),
            cap.description,
        )
    out.print(table)


@app.command()
def signatures(ctx: typer.Context) -> None:
    """Show the failure signatures matched against start output."""
    state: CliState = ctx.obj
    try:
        config = state.load_config()
        active = build_signatures(config.disabled_signatures, config.signatures)
    except (ConfigError, ValueError) as e:
        out.error(str(e))
        raise typer.Exit(1)

    table = Table(title="Failure signatures")
    table.add_column("Name", style="bold")
    table.add_column("Pattern", overflow="fold")
    table.add_column("Description")
    for sig in active:
        table.add_row(sig.name, escape(sig.pattern.pattern), escape(sig.description))
    out.print(table)

    if config.disabled_signatures:
        out.dim(f"Disabled: {', '.join(config.disabled_signatures)}")


if __name__ == "__main__":
    app()
