# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Proxmox VE backend: ``pct`` for lifecycle, ``/etc/pve/lxc/<id>.conf`` for config.

The container config is a flat ``key: value`` file.  Snapshots are stored in
the same file under ``[snapshot-name]`` section headers, so appended
directives must land at the end of the *main* section, not the end of the
file.
"""

from __future__ import annotations

import asyncio
import logging
import os
import re
import shutil
import tempfile
from collections.abc import Sequence

from ..negotiation.config_store import TextConfigStore
from ..negotiation.lifecycle import ContainerStatus, ExecResult, StartResult
from .base import BackendError, run_command

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_DIR = "/etc/pve/lxc"

# Range searched for a free container id
_FIRST_CTID = 200
_LAST_CTID = 999
_FALLBACK_CTID = 300

_SECTION_RE = re.compile(r"^\[[^\]]+\]\s*$")


def _write_atomic(path: str, text: str) -> None:
    directory = os.path.dirname(path) or "."
    fd, tmp = tempfile.mkstemp(prefix=f".{os.path.basename(path)}.", suffix=".tmp", dir=directory)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    except BaseException:
        try:
            os.unlink(tmp)
        except FileNotFoundError:
            pass
        raise


class PveConfigStore(TextConfigStore):
    """Fragment store over one Proxmox container config file."""

    separator = ": "

    def __init__(self, path: str):
        self.path = path

    async def _read(self) -> str:
        def read() -> str:
            with open(self.path, encoding="utf-8") as f:
                return f.read()

        try:
            return await asyncio.to_thread(read)
        except FileNotFoundError as e:
            raise BackendError(f"Container config not found: {self.path}") from e

    async def _write(self, text: str) -> None:
        await asyncio.to_thread(_write_atomic, self.path, text)

    def _main_end(self, lines: list[str]) -> int:
        for i, line in enumerate(lines):
            if _SECTION_RE.match(line):
                return i
        return len(lines)

    def _insert_index(self, lines: list[str]) -> int:
        i = self._main_end(lines)
        # Keep the blank separator line above the section header
        while 0 < i < len(lines) and not lines[i - 1].strip():
            i -= 1
        return i


class PctLifecycle:
    """Container control through the ``pct`` CLI."""

    def __init__(self, pct: str = "pct"):
        self._pct = pct

    async def start(self, container_id: str) -> StartResult:
        result = await run_command([self._pct, "start", container_id])
        return StartResult(exit_ok=result.ok, output=result.output)

    async def stop(self, container_id: str) -> None:
        result = await run_command([self._pct, "stop", container_id])
        if not result.ok:
            raise BackendError(f"pct stop {container_id} failed: {result.output.strip()}")

    async def status(self, container_id: str) -> ContainerStatus:
        result = await run_command([self._pct, "status", container_id])
        if not result.ok:
            raise BackendError(f"pct status {container_id} failed: {result.output.strip()}")
        return ContainerStatus.parse(result.output)

    async def exec(self, container_id: str, argv: Sequence[str]) -> ExecResult:
        return await run_command([self._pct, "exec", container_id, "--", *argv])

    async def exists(self, container_id: str) -> bool:
        result = await run_command([self._pct, "status", container_id])
        return result.ok

    async def create(
        self,
        container_id: str,
        template: str,
        *,
        hostname: str = "gaming-lxc",
        memory: int = 8192,
        cores: int = 4,
        storage: int = 32,
        rootfs_storage: str = "local-lvm",
        bridge: str = "vmbr0",
    ) -> None:
        """Create a privileged container skeleton from a template.

        The skeleton has no device pass-through; that is negotiated after.
        """
        argv = [
            self._pct, "create", container_id, template,
            "--hostname", hostname,
            "--memory", str(memory),
            "--cores", str(cores),
            "--rootfs", f"{rootfs_storage}:{storage}",
            "--net0", f"name=eth0,bridge={bridge},ip=dhcp",
            "--unprivileged", "0",
            "--features", "nesting=1,keyctl=1",
            "--startup", "order=2",
        ]
        result = await run_command(argv)
        if not result.ok:
            raise BackendError(f"pct create {container_id} failed: {result.output.strip()}")

    async def next_free_id(self) -> str:
        """First container id in 200..999 that ``pct status`` does not know."""
        for ctid in range(_FIRST_CTID, _LAST_CTID + 1):
            if not await self.exists(str(ctid)):
                return str(ctid)
        return str(_FALLBACK_CTID)


class PctBackend:
    """Proxmox VE container backend."""

    name = "pct"

    def __init__(self, config_dir: str = DEFAULT_CONFIG_DIR, pct: str = "pct"):
        self._config_dir = config_dir
        self._pct = pct
        self.lifecycle = PctLifecycle(pct)

    def store_for(self, container_id: str) -> PveConfigStore:
        if not container_id.isdigit():
            raise BackendError(f"Invalid Proxmox container id: {container_id!r}")
        return PveConfigStore(os.path.join(self._config_dir, f"{container_id}.conf"))

    async def is_available(self) -> bool:
        return shutil.which(self._pct) is not None and os.path.isdir(self._config_dir)

    async def exists(self, container_id: str) -> bool:
        return await self.lifecycle.exists(container_id)

    async def close(self) -> None:
        pass
