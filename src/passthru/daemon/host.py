# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Host-side device node checks."""

from __future__ import annotations

import os
from typing import Protocol


class HostDevices(Protocol):
    """Answers whether a device node exists on the host."""

    def exists(self, path: str) -> bool: ...


class LocalHostDevices:
    """Checks device nodes on the machine the daemon runs on.

    Nothing is cached: device nodes come and go with module loads and
    udev, so every negotiation asks again.
    """

    def __init__(self, root: str = "/"):
        self._root = root

    def exists(self, path: str) -> bool:
        return os.path.exists(os.path.join(self._root, path.lstrip("/")))
