# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Shared fakes for passthru unit tests.

The fake container reads the same in-memory config text the engine edits,
so a capability "breaks" the container exactly while its lines are present.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable, Sequence

import pytest

from passthru.daemon.negotiation.catalog import DEFAULT_CATALOG, CapabilityCatalog
from passthru.daemon.negotiation.config_store import MemoryConfigStore
from passthru.daemon.negotiation.engine import NegotiationEngine
from passthru.daemon.negotiation.lifecycle import ContainerStatus, ExecResult, StartResult
from passthru.daemon.negotiation.readiness import ReadinessProbe

BASE_CONFIG = """\
arch: amd64
cores: 4
features: keyctl=1,nesting=1
hostname: gaming-lxc
memory: 8192
net0: name=eth0,bridge=vmbr0,ip=dhcp
ostype: ubuntu
rootfs: local-lvm:vm-200-disk-0,size=32G
"""

ALL_DEVICES = frozenset({
    "/dev/dri/renderD128",
    "/dev/dri/card0",
    "/dev/input",
    "/dev/uinput",
})

MONITOR_STALL = (
    "lxc-start: 200: commands_utils.c: lxc_cmd_sock_rcv_state: 73 "
    "Timed out waiting for monitor socket\n"
)
HARD_FAILURE = "lxc-start: 200: start.c: __lxc_start: 2107 Failed to spawn container \"200\"\n"


class FakeHost:
    def __init__(self, paths: Iterable[str] = ALL_DEVICES):
        self.paths = set(paths)

    def exists(self, path: str) -> bool:
        return path in self.paths


class FakeContainer:
    """Scripted container whose behaviour depends on its current config.

    ``failures`` maps a capability name to ``"hard"``, ``"unstable"``,
    ``"unresponsive"`` or ``"hang"``; the failure applies whenever any line
    of that capability is present in the store.
    """

    def __init__(
        self,
        store: MemoryConfigStore,
        failures: dict[str, str] | None = None,
        *,
        catalog: CapabilityCatalog = DEFAULT_CATALOG,
        sticky: bool = False,
        missing_in_container: Iterable[str] = (),
    ):
        self.store = store
        self.failures = dict(failures or {})
        self.catalog = catalog
        self.sticky = sticky
        self.missing_in_container = set(missing_in_container)
        self.running = False
        self.live = False
        self.broken = False
        self.starts: list[str] = []
        self.stops = 0

    def _failure(self) -> str | None:
        if self.broken:
            return "hard"
        lines = self.store.text.splitlines()
        for name, kind in self.failures.items():
            entry = self.catalog.get(name)
            if any(entry.matches(line) for line in lines):
                return kind
        return None

    async def start(self, container_id: str) -> StartResult:
        self.starts.append(self.store.text)
        kind = self._failure()
        if kind is not None and self.sticky:
            self.broken = True
        if kind == "hang":
            await asyncio.sleep(3600)
        if kind == "hard":
            return StartResult(exit_ok=False, output=HARD_FAILURE)
        self.running = True
        self.live = kind != "unresponsive"
        if kind == "unstable":
            return StartResult(exit_ok=True, output=MONITOR_STALL)
        return StartResult(exit_ok=True)

    async def stop(self, container_id: str) -> None:
        self.stops += 1
        self.running = False
        self.live = False

    async def status(self, container_id: str) -> ContainerStatus:
        return ContainerStatus.RUNNING if self.running else ContainerStatus.STOPPED

    async def exec(self, container_id: str, argv: Sequence[str]) -> ExecResult:
        if not self.live:
            return ExecResult(returncode=255, output="container is not running")
        if argv[-1] in self.missing_in_container:
            return ExecResult(returncode=1)
        return ExecResult(returncode=0)


@pytest.fixture
def store() -> MemoryConfigStore:
    return MemoryConfigStore(BASE_CONFIG)


@pytest.fixture
def host() -> FakeHost:
    return FakeHost()


@pytest.fixture
def make_container(store: MemoryConfigStore):
    """Factory for a :class:`FakeContainer` bound to the ``store`` fixture."""
    def factory(failures: dict[str, str] | None = None, **kwargs: object) -> FakeContainer:
        return FakeContainer(store, failures, **kwargs)  # type: ignore[arg-type]
    return factory


@pytest.fixture
def make_engine(store: MemoryConfigStore, host: FakeHost):
    """Factory for an engine with short probe and start timeouts."""
    def factory(container: FakeContainer, **kwargs: object) -> NegotiationEngine:
        kwargs.setdefault("probe", ReadinessProbe(container, interval=0.01))
        kwargs.setdefault("probe_timeout", 0.1)
        kwargs.setdefault("start_timeout", 0.5)
        return NegotiationEngine(store, container, host, **kwargs)  # type: ignore[arg-type]
    return factory


class FakeBackend:
    """In-memory :class:`~passthru.daemon.backends.Backend`."""

    name = "fake"

    def __init__(self, store: MemoryConfigStore, container: FakeContainer, known: Iterable[str] = ("200",)):
        self._store = store
        self.lifecycle = container
        self.known = set(known)
        self.gate: asyncio.Event | None = None
        self.closed = False

    def store_for(self, container_id: str) -> MemoryConfigStore:
        return self._store

    async def is_available(self) -> bool:
        return True

    async def exists(self, container_id: str) -> bool:
        if self.gate is not None:
            await self.gate.wait()
        return container_id in self.known

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_backend(store: MemoryConfigStore):
    def factory(container: FakeContainer, **kwargs: object) -> FakeBackend:
        return FakeBackend(store, container, **kwargs)  # type: ignore[arg-type]
    return factory
