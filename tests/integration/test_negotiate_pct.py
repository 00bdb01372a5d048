# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Negotiation against a real Proxmox container.

The container named by ``PASSTHRU_TEST_CTID`` is restarted several times
and its config file is rewritten; use a scratch container.
"""

from __future__ import annotations

import pytest

from passthru.daemon.backends import PctBackend
from passthru.daemon.config import PassthruConfig
from passthru.daemon.device_service import DeviceService
from passthru.daemon.negotiation.catalog import DEFAULT_CATALOG

pytestmark = [pytest.mark.integration, pytest.mark.slow]


async def test_negotiation_commits_and_is_repeatable(ctid, config_path):
    backend = PctBackend()
    service = DeviceService(backend, PassthruConfig())

    first = await service.negotiate(ctid)
    second = await service.negotiate(ctid)

    assert first.result.granted[0] == "render-device"
    assert second.result.granted == first.result.granted
    assert second.result.config_text == first.result.config_text
    with open(config_path, encoding="utf-8") as f:
        text = f.read()
    for name in first.result.excluded:
        entry = DEFAULT_CATALOG.get(name)
        assert not any(entry.matches(line) for line in text.splitlines())
