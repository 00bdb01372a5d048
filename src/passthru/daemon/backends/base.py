# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Shared pieces for container backends."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence
from typing import Protocol

from ..negotiation.config_store import TextConfigStore
from ..negotiation.lifecycle import ContainerLifecycle, ExecResult

logger = logging.getLogger(__name__)


class BackendError(Exception):
    """A container runtime command could not be carried out."""


class Backend(Protocol):
    """A container runtime the negotiator can drive."""

    name: str
    lifecycle: ContainerLifecycle

    def store_for(self, container_id: str) -> TextConfigStore: ...

    async def is_available(self) -> bool: ...

    async def exists(self, container_id: str) -> bool: ...

    async def close(self) -> None: ...


async def run_command(argv: Sequence[str]) -> ExecResult:
    """Run *argv* and capture stdout and stderr merged, in order.

    If the awaiting task is cancelled (e.g. by a timeout) the child is
    killed before the cancellation propagates.
    """
    logger.debug("Running: %s", " ".join(argv))
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
        )
    except FileNotFoundError as e:
        raise BackendError(f"Command not found: {argv[0]}") from e

    try:
        stdout, _ = await proc.communicate()
    except asyncio.CancelledError:
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        raise

    output = stdout.decode(errors="replace") if stdout else ""
    return ExecResult(returncode=proc.returncode or 0, output=output)
