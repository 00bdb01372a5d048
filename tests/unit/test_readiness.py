# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Tests for the liveness probe."""

from __future__ import annotations

import asyncio
from collections.abc import Sequence

import pytest

from passthru.daemon.negotiation.lifecycle import ContainerStatus, ExecResult, StartResult
from passthru.daemon.negotiation.readiness import ReadinessProbe


class ProbeTarget:
    """Answers the probe after ``ready_after`` failed execs."""

    def __init__(self, ready_after: int = 0, hang: bool = False):
        self.ready_after = ready_after
        self.hang = hang
        self.calls: list[list[str]] = []

    async def start(self, container_id: str) -> StartResult:
        return StartResult(exit_ok=True)

    async def stop(self, container_id: str) -> None:
        pass

    async def status(self, container_id: str) -> ContainerStatus:
        return ContainerStatus.RUNNING

    async def exec(self, container_id: str, argv: Sequence[str]) -> ExecResult:
        self.calls.append(list(argv))
        if self.hang:
            await asyncio.sleep(3600)
        if len(self.calls) > self.ready_after:
            return ExecResult(0)
        return ExecResult(1)


async def test_live_immediately():
    target = ProbeTarget()

    assert await ReadinessProbe(target, interval=0.01).wait("200", timeout=1.0)
    assert target.calls == [["test", "-e", "/bin/bash"]]


async def test_live_after_retries():
    target = ProbeTarget(ready_after=3)

    assert await ReadinessProbe(target, interval=0.01).wait("200", timeout=1.0)
    assert len(target.calls) == 4


async def test_never_live_times_out():
    target = ProbeTarget(ready_after=10_000)

    assert not await ReadinessProbe(target, interval=0.01).wait("200", timeout=0.1)


async def test_hanging_exec_is_bounded():
    target = ProbeTarget(hang=True)

    assert not await ReadinessProbe(target, interval=0.01).wait("200", timeout=0.05)


async def test_each_wait_has_its_own_window():
    target = ProbeTarget(ready_after=10_000)
    probe = ReadinessProbe(target, interval=0.01)

    assert not await probe.wait("200", timeout=0.05)
    target.ready_after = len(target.calls)
    assert await probe.wait("200", timeout=0.5)


async def test_custom_liveness_path():
    target = ProbeTarget()

    await ReadinessProbe(target, liveness_path="/usr/bin/sunshine").wait("200", timeout=1.0)

    assert target.calls[0][-1] == "/usr/bin/sunshine"


def test_interval_must_be_positive():
    with pytest.raises(ValueError):
        ReadinessProbe(ProbeTarget(), interval=0)
