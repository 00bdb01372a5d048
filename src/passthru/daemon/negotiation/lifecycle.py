# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Container control interface used by the negotiation engine."""

from __future__ import annotations

import enum
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol


class ContainerStatus(enum.Enum):
    RUNNING = "running"
    STOPPED = "stopped"
    UNKNOWN = "unknown"

    @classmethod
    def parse(cls, raw: str) -> "ContainerStatus":
        value = raw.strip().lower()
        # pct prints "status: running"
        if ":" in value:
            value = value.split(":", 1)[1].strip()
        for member in cls:
            if member.value == value:
                return member
        return cls.UNKNOWN


@dataclass(frozen=True)
class StartResult:
    """Outcome of a start request.

    ``output`` holds merged stdout/stderr.  Runtimes frequently report
    success here while the container is unusable, so callers must not
    treat ``exit_ok`` as proof of liveness.
    """

    exit_ok: bool
    output: str = ""
    timed_out: bool = False


@dataclass(frozen=True)
class ExecResult:
    returncode: int
    output: str = ""

    @property
    def ok(self) -> bool:
        return self.returncode == 0


class ContainerLifecycle(Protocol):
    """Start/stop/query/exec for containers addressed by id."""

    async def start(self, container_id: str) -> StartResult: ...

    async def stop(self, container_id: str) -> None: ...

    async def status(self, container_id: str) -> ContainerStatus: ...

    async def exec(self, container_id: str, argv: Sequence[str]) -> ExecResult: ...
