# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Tests for DeviceService sessions and the post-commit pipeline."""

from __future__ import annotations

import asyncio

import pytest

from passthru.daemon.backends.base import BackendError
from passthru.daemon.config import PassthruConfig
from passthru.daemon.device_service import DeviceService, capability_report
from passthru.daemon.negotiation.catalog import DEFAULT_CATALOG
from passthru.daemon.negotiation.errors import BaselineFailure, SessionBusy
from passthru.daemon.operations import OperationError
from passthru.daemon.post_commit import post_commit_pipeline
from passthru.daemon.service import attempts_to_dbus

FAST = PassthruConfig(start_timeout=0.5, probe_timeout=0.1, probe_interval=0.01)


@pytest.fixture
def service_for(host, make_backend):
    def factory(container, config: PassthruConfig = FAST, **kwargs) -> DeviceService:
        return DeviceService(make_backend(container, **kwargs), config, host=host)
    return factory


async def test_negotiate_runs_post_commit(make_container, service_for):
    container = make_container({"uinput-device": "unstable"}, missing_in_container=["/dev/input"])
    service = service_for(container)

    report = await service.negotiate("200")

    assert report.result.granted == ("render-device", "card-device", "input-tree")
    assert report.missing_in_container == ("/dev/input",)
    assert report.skipped_features == ("uinput-device", "elevated-capability")


async def test_post_commit_backend_error_keeps_committed_result(
    store, make_container, service_for, monkeypatch,
):
    container = make_container()
    exec_in_container = container.exec

    async def exec_(container_id, argv):
        if argv[-1] == "/dev/input":
            raise BackendError("pct exec timed out")
        return await exec_in_container(container_id, argv)

    monkeypatch.setattr(container, "exec", exec_)

    report = await service_for(container).negotiate("200")

    assert len(report.result.granted) == len(DEFAULT_CATALOG)
    assert store.text == report.result.config_text
    assert [f.step for f in report.step_failures] == ["verify_devices"]
    assert "timed out" in report.step_failures[0].error
    # report_excluded still ran after the failed step
    assert report.skipped_features == ()

async def test_negotiate_without_provisioning(make_container, service_for):
    container = make_container(missing_in_container=["/dev/input"])

    report = await service_for(container).negotiate("200", provision=False)

    assert report.missing_in_container == ()
    assert report.skipped_features == ()
    assert len(report.result.granted) == len(DEFAULT_CATALOG)


async def test_unknown_container(make_container, service_for):
    service = service_for(make_container(), known=())

    with pytest.raises(OperationError, match="does not exist"):
        await service.negotiate("200")


async def test_concurrent_session_is_rejected(make_container, service_for):
    service = service_for(make_container())
    gate = asyncio.Event()
    service.backend.gate = gate  # type: ignore[attr-defined]

    first = asyncio.create_task(service.negotiate("200"))
    await asyncio.sleep(0)

    with pytest.raises(SessionBusy):
        await service.negotiate("200")

    gate.set()
    report = await first
    assert report.result.committed


async def test_lock_released_after_abort(make_container, service_for):
    container = make_container({"render-device": "hard"})
    service = service_for(container)

    with pytest.raises(BaselineFailure):
        await service.negotiate("200")

    container.failures.clear()
    report = await service.negotiate("200")
    assert report.result.committed


async def test_disabled_signature_changes_outcome(make_container, service_for):
    container = make_container({"uinput-device": "unstable"})
    config = FAST.with_overrides(disabled_signatures=["monitor-socket-timeout"])

    report = await service_for(container, config).negotiate("200")

    # The stall is no longer recognised and the container is live
    assert "uinput-device" in report.result.granted


def test_capability_report(host):
    host.paths.discard("/dev/uinput")

    report = {c.name: c for c in capability_report(DEFAULT_CATALOG, host)}

    assert report["render-device"].required
    assert report["render-device"].available
    assert not report["uinput-device"].available
    # No host-side requirement
    assert report["elevated-capability"].available
    assert report["elevated-capability"].to_dbus_struct()[0] == "elevated-capability"


def test_post_commit_step_order():
    names = [s.__name__ for s in post_commit_pipeline.steps()]

    assert names == ["verify_devices", "report_excluded"]


async def test_attempt_log_as_dbus(make_container, service_for):
    report = await service_for(make_container()).negotiate("200")

    log = attempts_to_dbus(report.result.attempts)

    assert log[0] == ["baseline", "baseline", "Ok", ""]
    assert all(len(row) == 4 for row in log)
