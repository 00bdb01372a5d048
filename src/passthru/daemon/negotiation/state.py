# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Per-session negotiation state and the result handed to callers."""

from __future__ import annotations

import enum
from dataclasses import dataclass, field


class Outcome(enum.Enum):
    """Classification of one attempt."""

    OK = "Ok"
    PRECONDITION_UNMET = "PreconditionUnmet"
    STARTUP_UNSTABLE = "StartupUnstable"
    NOT_RESPONSIVE = "NotResponsive"
    HARD_FAILURE = "HardFailure"

    @property
    def is_failure(self) -> bool:
        return self not in (Outcome.OK, Outcome.PRECONDITION_UNMET)


class Phase(enum.Enum):
    """Which part of the session an attempt belongs to."""

    BASELINE = "baseline"
    EXTEND = "extend"
    RECOVER = "recover"


class SessionStatus(enum.Enum):
    COMMITTED = "committed"
    ABORTED = "aborted"


# Baseline attempts are logged under this pseudo-capability name
BASELINE = "baseline"


@dataclass(frozen=True)
class AttemptRecord:
    """One line of the attempt log."""

    capability: str
    phase: Phase
    outcome: Outcome
    excerpt: str = ""

    def to_dbus_struct(self) -> tuple[str, str, str, str]:
        """Convert to D-Bus struct (ssss)."""
        return (self.capability, self.phase.value, self.outcome.value, self.excerpt)


@dataclass
class NegotiationState:
    """Mutable record owned by one :class:`~.engine.NegotiationEngine` run.

    ``committed`` only ever grows at the end and ``excluded`` only ever
    grows.  Both rules are enforced here so the
    engine cannot violate them by accident.
    """

    committed: list[str] = field(default_factory=lambda: list[str]())
    excluded: set[str] = field(default_factory=lambda: set[str]())
    last_known_good: str = ""
    attempts: list[AttemptRecord] = field(default_factory=lambda: list[AttemptRecord]())

    def commit(self, name: str, snapshot: str) -> None:
        if name in self.committed or name in self.excluded:
            raise ValueError(f"Capability '{name}' was already decided this session")
        self.committed.append(name)
        self.last_known_good = snapshot

    def exclude(self, name: str) -> None:
        if name in self.committed:
            raise ValueError(f"Capability '{name}' is committed and cannot be excluded")
        self.excluded.add(name)

    def is_decided(self, name: str) -> bool:
        return name in self.committed or name in self.excluded

    def record(
        self,
        capability: str,
        phase: Phase,
        outcome: Outcome,
        excerpt: str = "",
    ) -> AttemptRecord:
        rec = AttemptRecord(capability, phase, outcome, excerpt)
        self.attempts.append(rec)
        return rec

    def to_result(self, container_id: str, status: SessionStatus, config_text: str) -> NegotiationResult:
        return NegotiationResult(
            container_id=container_id,
            status=status,
            granted=tuple(self.committed),
            excluded=frozenset(self.excluded),
            attempts=tuple(self.attempts),
            config_text=config_text,
        )


@dataclass(frozen=True)
class NegotiationResult:
    """What a finished session exposes to the provisioning layer."""

    container_id: str
    status: SessionStatus
    granted: tuple[str, ...]
    excluded: frozenset[str]
    attempts: tuple[AttemptRecord, ...]
    config_text: str

    @property
    def committed(self) -> bool:
        return self.status is SessionStatus.COMMITTED

    def outcome_of(self, capability: str) -> Outcome | None:
        """Outcome of the last non-recovery attempt for *capability*."""
        for rec in reversed(self.attempts):
            if rec.capability == capability and rec.phase is not Phase.RECOVER:
                return rec.outcome
        return None
