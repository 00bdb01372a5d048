# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Tests for fragment append/remove on text config stores."""

from __future__ import annotations

import json

import httpx
import pytest

from passthru.daemon.backends.base import BackendError
from passthru.daemon.backends.incus import IncusRawLxcStore
from passthru.daemon.backends.pct import PveConfigStore
from passthru.daemon.incus_client import IncusClient
from passthru.daemon.negotiation.catalog import CARD_DEVICE, RENDER_DEVICE, UINPUT_DEVICE
from passthru.daemon.negotiation.config_store import MemoryConfigStore

PVE_WITH_SNAPSHOT = """\
arch: amd64
hostname: gaming-lxc
parent: before-gpu

[before-gpu]
arch: amd64
hostname: gaming-lxc
snaptime: 1760000000
"""


# ---------------------------------------------------------------------------
# Memory store
# ---------------------------------------------------------------------------


async def test_append_adds_fragment_contiguously(store):
    added = await store.append(CARD_DEVICE)

    assert added == CARD_DEVICE.render(": ")
    assert store.text.endswith("\n".join(added) + "\n")


async def test_append_is_idempotent(store):
    await store.append(RENDER_DEVICE)
    text = store.text
    writes = store.writes

    assert await store.append(RENDER_DEVICE) == []
    assert store.text == text
    assert store.writes == writes


async def test_append_fills_in_partial_fragment(store):
    store.text += CARD_DEVICE.render(": ")[0] + "\n"

    added = await store.append(CARD_DEVICE)

    assert added == CARD_DEVICE.render(": ")[1:]
    assert store.text.count("c 226:0 rwm") == 1


async def test_remove_deletes_only_matching_lines(store):
    original = store.text
    await store.append(UINPUT_DEVICE)

    removed = await store.remove(UINPUT_DEVICE.marker_pattern)

    assert removed == UINPUT_DEVICE.render(": ")
    assert store.text == original


async def test_remove_absent_fragment_is_noop(store):
    original = store.text

    assert await store.remove(UINPUT_DEVICE.marker_pattern) == []
    assert store.text == original
    assert store.writes == 0


async def test_remove_matches_other_dialect():
    store = MemoryConfigStore("\n".join(UINPUT_DEVICE.render("=")) + "\n")

    await store.remove(UINPUT_DEVICE.marker_pattern)

    assert store.text == ""


async def test_restore_is_byte_exact(store):
    snapshot = await store.snapshot()
    await store.append(RENDER_DEVICE)

    await store.restore(snapshot)

    assert store.text == snapshot


# ---------------------------------------------------------------------------
# Proxmox config file
# ---------------------------------------------------------------------------


async def test_pve_append_lands_before_snapshot_section(tmp_path):
    path = tmp_path / "200.conf"
    path.write_text(PVE_WITH_SNAPSHOT)
    store = PveConfigStore(str(path))

    await store.append(RENDER_DEVICE)

    lines = path.read_text().splitlines()
    section = lines.index("[before-gpu]")
    render = lines.index(RENDER_DEVICE.render(": ")[0])
    assert render < section
    assert lines[section - 1] == ""
    assert lines[render - 1] == "parent: before-gpu"
    # The snapshot section itself is untouched
    assert path.read_text().endswith("[before-gpu]\narch: amd64\nhostname: gaming-lxc\nsnaptime: 1760000000\n")


async def test_pve_remove_then_restore_roundtrip(tmp_path):
    path = tmp_path / "200.conf"
    path.write_text(PVE_WITH_SNAPSHOT)
    store = PveConfigStore(str(path))
    snapshot = await store.snapshot()

    await store.append(UINPUT_DEVICE)
    await store.remove(UINPUT_DEVICE.marker_pattern)

    assert await store.snapshot() == snapshot


async def test_pve_snapshot_section_is_left_alone(tmp_path):
    uinput = UINPUT_DEVICE.render(": ")
    snapshot_section = "[pre-upgrade]\narch: amd64\n" + "\n".join(uinput) + "\nsnaptime: 1760000000\n"
    path = tmp_path / "200.conf"
    path.write_text("arch: amd64\nhostname: gaming-lxc\nparent: pre-upgrade\n\n" + snapshot_section)
    store = PveConfigStore(str(path))

    assert await store.remove(UINPUT_DEVICE.marker_pattern) == []
    assert path.read_text().endswith(snapshot_section)

    # Lines that exist only in the snapshot still count as missing
    assert await store.append(UINPUT_DEVICE) == uinput
    lines = path.read_text().splitlines()
    section = lines.index("[pre-upgrade]")
    assert lines.index(uinput[0]) < section

    removed = await store.remove(UINPUT_DEVICE.marker_pattern)
    assert removed == uinput
    assert path.read_text().endswith(snapshot_section)
    assert uinput[0] not in path.read_text().split("[pre-upgrade]")[0]


async def test_pve_write_leaves_no_temp_files(tmp_path):
    path = tmp_path / "200.conf"
    path.write_text("arch: amd64\n")
    store = PveConfigStore(str(path))

    await store.append(CARD_DEVICE)

    assert [p.name for p in tmp_path.iterdir()] == ["200.conf"]


async def test_pve_missing_file(tmp_path):
    store = PveConfigStore(str(tmp_path / "404.conf"))

    with pytest.raises(BackendError, match="not found"):
        await store.snapshot()


# ---------------------------------------------------------------------------
# Incus raw.lxc
# ---------------------------------------------------------------------------


def _incus_store(instance_config: dict[str, str]) -> tuple[IncusRawLxcStore, list[dict]]:
    patches: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        if request.method == "PATCH":
            body = json.loads(request.content)
            patches.append(body)
            instance_config.update(body["config"])
            return httpx.Response(200, json={"type": "sync", "metadata": {}})
        return httpx.Response(200, json={
            "type": "sync",
            "metadata": {"name": "gaming", "status": "Stopped", "config": instance_config},
        })

    client = IncusClient(transport=httpx.MockTransport(handler))
    return IncusRawLxcStore(client, "gaming"), patches


async def test_incus_append_writes_raw_lxc():
    store, patches = _incus_store({"security.privileged": "true"})

    await store.append(RENDER_DEVICE)

    assert patches == [{"config": {"raw.lxc": "\n".join(RENDER_DEVICE.render("=")) + "\n"}}]


async def test_incus_remove_keeps_other_raw_lxc_lines():
    raw = "lxc.apparmor.profile=unconfined\n" + "\n".join(UINPUT_DEVICE.render("=")) + "\n"
    store, _patches = _incus_store({"raw.lxc": raw})

    await store.remove(UINPUT_DEVICE.marker_pattern)

    assert await store.snapshot() == "lxc.apparmor.profile=unconfined\n"
