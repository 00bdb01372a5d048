# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Incus backend: fragments live in the instance's ``raw.lxc`` config key.

``raw.lxc`` is a flat block of native LXC directives (``key=value``), the
same model as a Proxmox config file.  A config patch is a single API call,
so every store write is atomic from the daemon's point of view.

Start output is assembled from the operation error and the tail of the
instance's ``lxc.log``; Incus reports most device problems only there.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from ..incus_client import DEFAULT_SOCKET, IncusClient, IncusError
from ..negotiation.config_store import TextConfigStore
from ..negotiation.lifecycle import ContainerStatus, ExecResult, StartResult
from .base import BackendError, run_command

logger = logging.getLogger(__name__)

RAW_LXC_KEY = "raw.lxc"

# Lines of lxc.log appended to start output
_LOG_TAIL = 40


class IncusRawLxcStore(TextConfigStore):
    """Fragment store over an instance's ``raw.lxc`` key."""

    separator = "="

    def __init__(self, incus: IncusClient, name: str):
        self._incus = incus
        self._name = name

    async def _read(self) -> str:
        try:
            instance = await self._incus.get_instance(self._name)
        except IncusError as e:
            raise BackendError(f"Cannot read config of {self._name}: {e}") from e
        return (instance.config or {}).get(RAW_LXC_KEY, "")

    async def _write(self, text: str) -> None:
        try:
            await self._incus.update_instance_config(self._name, {RAW_LXC_KEY: text})
        except IncusError as e:
            raise BackendError(f"Cannot write config of {self._name}: {e}") from e


class IncusLifecycle:
    """Container control through the Incus REST API.

    ``exec`` shells out to ``incus exec``: the REST exec endpoint needs
    websockets for output and a probe only cares about the exit status.
    """

    def __init__(self, incus: IncusClient, incus_bin: str = "incus"):
        self._incus = incus
        self._incus_bin = incus_bin

    async def _log_tail(self, name: str) -> str:
        try:
            log = await self._incus.get_instance_log(name)
        except IncusError as e:
            logger.debug("No lxc.log for %s: %s", name, e)
            return ""
        return "\n".join(log.splitlines()[-_LOG_TAIL:])

    async def start(self, container_id: str) -> StartResult:
        try:
            op = await self._incus.change_state(container_id, "start")
        except IncusError as e:
            return StartResult(exit_ok=False, output=str(e))

        parts = [op.err or "", await self._log_tail(container_id)]
        output = "\n".join(p for p in parts if p)
        return StartResult(exit_ok=op.status == "Success", output=output)

    async def stop(self, container_id: str) -> None:
        try:
            op = await self._incus.change_state(container_id, "stop", force=True)
        except IncusError as e:
            raise BackendError(f"Failed to stop {container_id}: {e}") from e
        if op.status != "Success":
            raise BackendError(f"Stop failed: {op.err or op.status}")

    async def status(self, container_id: str) -> ContainerStatus:
        try:
            instance = await self._incus.get_instance(container_id)
        except IncusError as e:
            raise BackendError(f"Cannot query {container_id}: {e}") from e
        return ContainerStatus.parse(instance.status or "")

    async def exec(self, container_id: str, argv: Sequence[str]) -> ExecResult:
        return await run_command([self._incus_bin, "exec", container_id, "--", *argv])


class IncusBackend:
    """Incus container backend."""

    name = "incus"

    def __init__(self, socket_path: str = DEFAULT_SOCKET, incus: IncusClient | None = None):
        self._incus = incus or IncusClient(socket_path)
        self.lifecycle = IncusLifecycle(self._incus)

    def store_for(self, container_id: str) -> IncusRawLxcStore:
        return IncusRawLxcStore(self._incus, container_id)

    async def is_available(self) -> bool:
        return await self._incus.is_available()

    async def exists(self, container_id: str) -> bool:
        try:
            return await self._incus.instance_exists(container_id)
        except IncusError as e:
            raise BackendError(str(e)) from e

    async def close(self) -> None:
        await self._incus.close()
