# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Pytest configuration for passthru integration tests.

These tests restart a real container on a Proxmox VE node.  They are
skipped unless ``PASSTHRU_TEST_CTID`` names a scratch container.
"""

from __future__ import annotations

import os

import pytest

# ---------------------------------------------------------------------------
# Host configuration
# ---------------------------------------------------------------------------

TEST_CTID = os.environ.get("PASSTHRU_TEST_CTID", "")
PVE_CONFIG_DIR = os.environ.get("PASSTHRU_TEST_PVE_DIR", "/etc/pve/lxc")


def pytest_configure(config: pytest.Config) -> None:
    """Configure pytest markers."""
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if TEST_CTID:
        return
    skip = pytest.mark.skip(reason="set PASSTHRU_TEST_CTID to a scratch container id")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip)


@pytest.fixture
def ctid() -> str:
    return TEST_CTID


@pytest.fixture
def config_path(ctid: str) -> str:
    return os.path.join(PVE_CONFIG_DIR, f"{ctid}.conf")
