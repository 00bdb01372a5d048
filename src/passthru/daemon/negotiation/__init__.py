# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Device-capability negotiation: public API re-exports."""

from .catalog import DEFAULT_CATALOG, CapabilityCatalog, CapabilityEntry, Directive
from .classifier import DEFAULT_SIGNATURES, FailureClassifier, FailureSignature, build_signatures
from .config_store import ContainerConfigStore, MemoryConfigStore, TextConfigStore
from .engine import NegotiationEngine
from .errors import (
    BaselineFailure,
    NegotiationAborted,
    NegotiationError,
    RequiredCapabilityMissing,
    SessionBusy,
    UnrecoverableRollback,
)
from .lifecycle import ContainerLifecycle, ContainerStatus, ExecResult, StartResult
from .readiness import ReadinessProbe
from .state import AttemptRecord, NegotiationResult, NegotiationState, Outcome, Phase, SessionStatus

__all__ = [
    "DEFAULT_CATALOG",
    "CapabilityCatalog",
    "CapabilityEntry",
    "Directive",
    "DEFAULT_SIGNATURES",
    "FailureClassifier",
    "FailureSignature",
    "build_signatures",
    "ContainerConfigStore",
    "MemoryConfigStore",
    "TextConfigStore",
    "NegotiationEngine",
    "BaselineFailure",
    "NegotiationAborted",
    "NegotiationError",
    "RequiredCapabilityMissing",
    "SessionBusy",
    "UnrecoverableRollback",
    "ContainerLifecycle",
    "ContainerStatus",
    "ExecResult",
    "StartResult",
    "ReadinessProbe",
    "AttemptRecord",
    "NegotiationResult",
    "NegotiationState",
    "Outcome",
    "Phase",
    "SessionStatus",
]
