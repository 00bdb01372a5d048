# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Classify a start attempt from launch output plus a liveness probe.

LXC happily reports a successful start for containers that are not usable:
a stalled monitor socket or a failed optional bind mount only show up as
text in the start output.  Conversely, a clean-looking start can still
produce a container that never answers.  Classification therefore combines
both channels:

=========================  ============  ===================
start                      output        probe               -> outcome
=========================  ============  ===================
failed                     (any)         (not run)           HardFailure
ok                         signature     (not run)           StartupUnstable
timed out                  (any)         (not run)           NotResponsive
ok                         clean         not live            NotResponsive
ok                         clean         live                Ok
=========================  ============  ===================

Signatures are data, not code: add a :class:`FailureSignature` (or list one
in the ``[signatures]`` section of the config file) to teach the classifier
a new failure mode without touching the engine.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from .lifecycle import StartResult
from .state import Outcome

logger = logging.getLogger(__name__)

# Longest excerpt kept in the attempt log
EXCERPT_LIMIT = 300


@dataclass(frozen=True)
class FailureSignature:
    """A known-bad pattern in start output."""

    name: str
    pattern: re.Pattern[str]
    description: str = ""

    @classmethod
    def compile(cls, name: str, pattern: str, description: str = "") -> "FailureSignature":
        return cls(name, re.compile(pattern, re.IGNORECASE | re.MULTILINE), description)

    def search(self, output: str) -> str | None:
        """Return the first offending line, or None."""
        m = self.pattern.search(output)
        if m is None:
            return None
        start = output.rfind("\n", 0, m.start()) + 1
        end = output.find("\n", m.end())
        return output[start:end if end != -1 else len(output)].strip()


DEFAULT_SIGNATURES: tuple[FailureSignature, ...] = (
    FailureSignature.compile(
        "monitor-socket-timeout",
        r"monitor\S*\s+socket.*time(?:d)?\s*out|time(?:d)?\s*out.*monitor\S*\s+socket",
        "LXC monitor socket stalled during start; the container is up but degraded",
    ),
    FailureSignature.compile(
        "command-socket-stall",
        r"lxc_cmd\w*:.*(?:Resource temporarily unavailable|Connection reset by peer)",
        "Command socket to the container monitor stopped answering",
    ),
    FailureSignature.compile(
        "mount-entry-failed",
        r"Failed to mount \"?/dev/",
        "An optional device bind mount was skipped at start",
    ),
)


def build_signatures(
    disabled: Iterable[str] = (),
    extra: Mapping[str, str] | None = None,
    base: Iterable[FailureSignature] = DEFAULT_SIGNATURES,
) -> tuple[FailureSignature, ...]:
    """Assemble the active signature list.

    Args:
        disabled: Names of signatures to drop.
        extra: Additional ``name -> regex`` signatures.  An extra signature
            with the name of a built-in one replaces it.
        base: Signatures to start from.

    Raises:
        ValueError: An extra pattern is not a valid regular expression.
    """
    off = set(disabled)
    extra = dict(extra or {})
    result: list[FailureSignature] = []
    for sig in base:
        if sig.name in off or sig.name in extra:
            continue
        result.append(sig)
    for name, pattern in extra.items():
        if name in off:
            continue
        try:
            result.append(FailureSignature.compile(name, pattern, "configured"))
        except re.error as e:
            raise ValueError(f"Invalid pattern for signature '{name}': {e}") from e
    return tuple(result)


@dataclass(frozen=True)
class Classification:
    outcome: Outcome
    excerpt: str = ""
    signature: str | None = None


def _tail(output: str, lines: int = 3) -> str:
    kept = [line.strip() for line in output.splitlines() if line.strip()]
    return " | ".join(kept[-lines:])[-EXCERPT_LIMIT:]


class FailureClassifier:
    """Maps (start result, probe result) to exactly one :class:`Outcome`."""

    def __init__(self, signatures: Iterable[FailureSignature] = DEFAULT_SIGNATURES):
        self._signatures = tuple(signatures)

    @property
    def signatures(self) -> tuple[FailureSignature, ...]:
        return self._signatures

    def match(self, output: str) -> tuple[FailureSignature, str] | None:
        for sig in self._signatures:
            line = sig.search(output)
            if line is not None:
                return sig, line
        return None

    def needs_probe(self, start: StartResult) -> bool:
        """Whether the outcome still depends on a liveness probe."""
        if not start.exit_ok or start.timed_out:
            return False
        return self.match(start.output) is None

    def classify(self, start: StartResult, live: bool | None) -> Classification:
        """Classify one attempt.

        Args:
            start: Result of the start request.
            live: Probe result, or None when the probe was not run.
        """
        if start.timed_out:
            return Classification(Outcome.NOT_RESPONSIVE, "start did not finish in time")

        if not start.exit_ok:
            return Classification(Outcome.HARD_FAILURE, _tail(start.output) or "start failed")

        found = self.match(start.output)
        if found is not None:
            sig, line = found
            logger.debug("Signature %s matched: %s", sig.name, line)
            return Classification(
                Outcome.STARTUP_UNSTABLE,
                f"[{sig.name}] {line}"[:EXCERPT_LIMIT],
                signature=sig.name,
            )

        if not live:
            return Classification(Outcome.NOT_RESPONSIVE, "liveness probe timed out")

        return Classification(Outcome.OK)
