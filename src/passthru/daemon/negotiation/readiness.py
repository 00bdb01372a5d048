# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Bounded liveness polling."""

from __future__ import annotations

import asyncio
import logging

from .lifecycle import ContainerLifecycle

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT = 30.0
DEFAULT_INTERVAL = 2.0
DEFAULT_LIVENESS_PATH = "/bin/bash"


class ReadinessProbe:
    """Polls a container until a basic executable is visible inside it.

    Each :meth:`wait` call opens a fresh timeout window; nothing carries
    over between calls.
    """

    def __init__(
        self,
        lifecycle: ContainerLifecycle,
        *,
        interval: float = DEFAULT_INTERVAL,
        liveness_path: str = DEFAULT_LIVENESS_PATH,
    ):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._lifecycle = lifecycle
        self._interval = interval
        self._liveness_path = liveness_path

    async def wait(self, container_id: str, timeout: float = DEFAULT_TIMEOUT) -> bool:
        """Return True once the container answers, False on timeout.

        A probe command that hangs is cancelled together with the window.
        """
        try:
            attempts = await asyncio.wait_for(self._poll(container_id), timeout)
        except asyncio.TimeoutError:
            logger.info("%s not live after %.1fs", container_id, timeout)
            return False
        logger.debug("%s live after %d probe(s)", container_id, attempts)
        return True

    async def _poll(self, container_id: str) -> int:
        attempt = 0
        while True:
            attempt += 1
            result = await self._lifecycle.exec(
                container_id, ["test", "-e", self._liveness_path],
            )
            if result.ok:
                return attempt
            await asyncio.sleep(self._interval)
