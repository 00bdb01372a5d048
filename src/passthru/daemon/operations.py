# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Operator-facing progress reporting.

Long-running work (a negotiation session restarts the container several
times) reports what it is doing through an :class:`OperationReporter`.
The base class just logs; the CLI prints to the terminal and the D-Bus
service turns messages into ``OperationProgress`` signals.
"""

from __future__ import annotations

import logging

logger = logging.getLogger(__name__)


class OperationError(Exception):
    """An operation could not be carried out; the message is user-facing."""


class OperationReporter:
    """Sink for progress messages of one operation."""

    def __init__(self, operation_id: str = "", stage: str = ""):
        self.operation_id = operation_id
        self.stage = stage

    def set_stage(self, stage: str) -> None:
        self.stage = stage

    def _emit(self, level: str, message: str) -> None:
        log_level = {
            "error": logging.ERROR,
            "warning": logging.WARNING,
            "dim": logging.DEBUG,
        }.get(level, logging.INFO)
        logger.log(log_level, "[%s] %s", self.stage or self.operation_id or "-", message)

    def info(self, message: str) -> None:
        self._emit("info", message)

    def dim(self, message: str) -> None:
        self._emit("dim", message)

    def warning(self, message: str) -> None:
        self._emit("warning", message)

    def success(self, message: str) -> None:
        self._emit("success", message)

    def error(self, message: str) -> None:
        self._emit("error", message)
