# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Persisted container configuration as a flat, append-ordered text.

Backends only have to provide whole-text :meth:`TextConfigStore._read` and
an atomic whole-text :meth:`TextConfigStore._write`.  Every mutation here
computes the complete new text first and hands it over in one write, so a
fragment is either fully on disk or not at all.
"""

from __future__ import annotations

import logging
import re
from typing import Protocol

from .catalog import CapabilityEntry

logger = logging.getLogger(__name__)


class ContainerConfigStore(Protocol):
    """Read/write access to one container's persisted configuration."""

    async def snapshot(self) -> str: ...

    async def append(self, entry: CapabilityEntry) -> list[str]: ...

    async def remove(self, pattern: re.Pattern[str]) -> list[str]: ...

    async def restore(self, text: str) -> None: ...


def _join(lines: list[str]) -> str:
    return "\n".join(lines) + "\n" if lines else ""


class TextConfigStore:
    """Fragment operations on top of whole-text read/write.

    Subclasses set :attr:`separator` to their directive dialect.  A config
    that carries more than the live settings (snapshots, pending changes)
    overrides :meth:`_main_end`; lines past that index are never matched,
    removed or counted as present.
    """

    separator = ": "

    async def _read(self) -> str:
        raise NotImplementedError

    async def _write(self, text: str) -> None:
        raise NotImplementedError

    def _main_end(self, lines: list[str]) -> int:
        return len(lines)

    def _insert_index(self, lines: list[str]) -> int:
        return self._main_end(lines)

    async def snapshot(self) -> str:
        return await self._read()

    async def append(self, entry: CapabilityEntry) -> list[str]:
        """Add the entry's lines that are not already present.

        Containment is checked per line, not per fragment, so re-applying
        a fragment after a partial manual edit only fills in the gaps.

        Returns:
            The lines actually added (empty if nothing changed).
        """
        lines = (await self._read()).splitlines()
        present = {line.strip() for line in lines[:self._main_end(lines)]}
        added = [line for line in entry.render(self.separator) if line.strip() not in present]
        if not added:
            logger.debug("Fragment %s already present, nothing to append", entry.name)
            return []

        at = self._insert_index(lines)
        # Keep the block contiguous
        new_lines = lines[:at] + added + lines[at:]
        await self._write(_join(new_lines))
        logger.debug("Appended %d line(s) for %s", len(added), entry.name)
        return added

    async def remove(self, pattern: re.Pattern[str]) -> list[str]:
        """Delete every line of the main section matching *pattern*.

        Removing a fragment that is not present is a no-op.

        Returns:
            The removed lines.
        """
        lines = (await self._read()).splitlines()
        end = self._main_end(lines)
        kept = [line for line in lines[:end] if not pattern.match(line)]
        removed = [line for line in lines[:end] if pattern.match(line)]
        if removed:
            await self._write(_join(kept + lines[end:]))
        return removed

    async def restore(self, text: str) -> None:
        await self._write(text)


class MemoryConfigStore(TextConfigStore):
    """Config store backed by a string.  Used for dry runs and tests."""

    def __init__(self, text: str = "", separator: str = ": "):
        self.text = text
        self.separator = separator
        self.writes = 0

    async def _read(self) -> str:
        return self.text

    async def _write(self, text: str) -> None:
        self.text = text
        self.writes += 1
