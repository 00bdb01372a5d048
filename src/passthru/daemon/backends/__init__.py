# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Container runtime backends."""

from __future__ import annotations

from typing import TYPE_CHECKING

from .base import Backend, BackendError, run_command
from .incus import IncusBackend
from .pct import PctBackend

if TYPE_CHECKING:
    from ..config import PassthruConfig

BACKENDS = ("pct", "incus")


def make_backend(config: "PassthruConfig") -> Backend:
    """Instantiate the backend selected in *config*."""
    if config.backend == "pct":
        return PctBackend(config_dir=config.pve_config_dir)
    if config.backend == "incus":
        return IncusBackend(socket_path=config.incus_socket)
    raise BackendError(f"Unknown backend: {config.backend!r} (expected one of {BACKENDS})")


__all__ = [
    "BACKENDS",
    "Backend",
    "BackendError",
    "IncusBackend",
    "PctBackend",
    "make_backend",
    "run_command",
]
