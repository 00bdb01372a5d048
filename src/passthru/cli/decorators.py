"""Decorators for CLI commands."""

from functools import wraps
from typing import Callable, Coroutine, TypeVar

import typer

from ..daemon.backends import BackendError, make_backend
from ..daemon.config import ConfigError
from ..daemon.negotiation.errors import SessionBusy
from ..daemon.operations import OperationError
from .output import out
from .state import CliState

R = TypeVar("R")


def require_backend(func: Callable[..., Coroutine[None, None, R]]) -> Callable[..., Coroutine[None, None, R]]:
    """Decorator that opens the configured backend and handles its errors.

    The command must take ``ctx: typer.Context``; the opened backend and
    loaded config are left on ``ctx.obj``.
    """
    @wraps(func)
    async def wrapper(*args: object, **kwargs: object) -> R:
        ctx: typer.Context = kwargs["ctx"]  # type: ignore[assignment]
        state: CliState = ctx.obj

        try:
            config = state.load_config()
        except ConfigError as e:
            out.error(str(e))
            raise typer.Exit(1)

        backend = make_backend(config)
        try:
            if not await backend.is_available():
                out.error(f"The {backend.name} backend is not available on this host.")
                if backend.name == "pct":
                    out.hint("Run on a Proxmox VE node, as root.")
                else:
                    out.hint("Check that incus is running: [bold]systemctl status incus[/bold]")
                raise typer.Exit(1)

            state.config = config
            state.backend = backend
            return await func(*args, **kwargs)
        except (BackendError, OperationError, SessionBusy) as e:
            out.error(str(e))
            raise typer.Exit(1)
        finally:
            await backend.close()
    return wrapper
