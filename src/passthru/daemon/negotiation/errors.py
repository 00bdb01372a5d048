# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Errors that end a negotiation session.

Capability-level failures never raise: they are rolled back and recorded in
the attempt log.  Only the conditions below terminate a session, and each
carries the :class:`~.state.NegotiationResult` built so far so the caller
can still show the operator what happened.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .state import NegotiationResult


class NegotiationError(Exception):
    """Base class for negotiation failures."""


class NegotiationAborted(NegotiationError):
    """The session ended in the ``Aborted`` state."""

    def __init__(self, message: str, result: "NegotiationResult"):
        super().__init__(message)
        self.result = result


class RequiredCapabilityMissing(NegotiationAborted):
    """A required capability's host precondition is unmet."""


class BaselineFailure(NegotiationAborted):
    """The container does not come up even without optional capabilities."""


class UnrecoverableRollback(NegotiationAborted):
    """Rolling back a fragment did not bring back a live container."""


class SessionBusy(NegotiationError):
    """Another session is already negotiating this container."""
