# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Progressive device-capability negotiation.

The engine grants capabilities one at a time and keeps only those with
which the container still boots::

    Init -> BaselineProbe -> Extending(c1) -> ... -> Extending(cn) -> Committed
                 |                  |
                 +-> Aborted <------+  (only if a rollback cannot recover)

Init strips every catalog fragment from the configuration and layers the
required ones back in; that baseline must come up, otherwise nothing else is
worth trying.  Each optional capability is then appended, the container is
restarted and the attempt classified.  A failed capability is rolled back to
the last-known-good text and excluded for the rest of the session; the
container is restarted once more to confirm the rollback worked.

A configuration is never retried.  The failures seen here come from
device/runtime incompatibilities and reproduce on every start.
"""

from __future__ import annotations

import asyncio
import logging

from ..host import HostDevices
from ..operations import OperationReporter
from .catalog import DEFAULT_CATALOG, CapabilityCatalog, CapabilityEntry
from .classifier import Classification, FailureClassifier
from .config_store import ContainerConfigStore
from .errors import (
    BaselineFailure,
    NegotiationAborted,
    RequiredCapabilityMissing,
    UnrecoverableRollback,
)
from .lifecycle import ContainerLifecycle, ContainerStatus, StartResult
from .readiness import DEFAULT_TIMEOUT, ReadinessProbe
from .state import BASELINE, NegotiationResult, NegotiationState, Outcome, Phase, SessionStatus

logger = logging.getLogger(__name__)

DEFAULT_START_TIMEOUT = 120.0


class NegotiationEngine:
    """Drives one negotiation session for one container.

    The store must be bound to the same container that ``run`` is called
    with.  An engine instance holds no state between runs; everything
    session-specific lives in a fresh :class:`NegotiationState`.
    """

    def __init__(
        self,
        store: ContainerConfigStore,
        lifecycle: ContainerLifecycle,
        host: HostDevices,
        *,
        catalog: CapabilityCatalog = DEFAULT_CATALOG,
        classifier: FailureClassifier | None = None,
        probe: ReadinessProbe | None = None,
        probe_timeout: float = DEFAULT_TIMEOUT,
        start_timeout: float = DEFAULT_START_TIMEOUT,
        progress: OperationReporter | None = None,
    ):
        self._store = store
        self._lifecycle = lifecycle
        self._host = host
        self._catalog = catalog
        self._classifier = classifier or FailureClassifier()
        self._probe = probe or ReadinessProbe(lifecycle)
        self._probe_timeout = probe_timeout
        self._start_timeout = start_timeout
        self._progress = progress or OperationReporter()

    # -------------------------------------------------------------------------
    # Session
    # -------------------------------------------------------------------------

    async def run(self, container_id: str) -> NegotiationResult:
        """Negotiate the device set for *container_id*.

        Returns:
            The committed result; the container is left running with the
            final configuration.

        Raises:
            RequiredCapabilityMissing: A required device is absent on the host.
            BaselineFailure: The container does not come up with only the
                required capabilities.  The pre-session configuration is
                restored.
            UnrecoverableRollback: A rollback did not bring back a live
                container.

        Backend errors and cancellation propagate unchanged, after the
        configuration is put back to the last text known to boot (the
        pre-session text while the baseline is being tried).
        """
        state = NegotiationState()
        original = await self._store.snapshot()

        await self._baseline(container_id, state, original)

        for entry in self._catalog.optional():
            if state.is_decided(entry.name):
                continue
            await self._extend(container_id, entry, state)

        final = await self._store.snapshot()
        self._progress.set_stage("commit")
        self._progress.success(
            f"Granted: {', '.join(state.committed) or 'none'}"
        )
        if state.excluded:
            self._progress.dim(f"Excluded: {', '.join(sorted(state.excluded))}")
        logger.info(
            "Negotiation for %s committed: granted=%s excluded=%s",
            container_id, state.committed, sorted(state.excluded),
        )
        return state.to_result(container_id, SessionStatus.COMMITTED, final)

    async def _baseline(self, container_id: str, state: NegotiationState, original: str) -> None:
        self._progress.set_stage("baseline")
        required = self._catalog.required()

        for entry in required:
            reason = self._unmet_reason(entry, state)
            if reason is not None:
                state.record(entry.name, Phase.BASELINE, Outcome.PRECONDITION_UNMET, reason)
                state.exclude(entry.name)
                self._progress.error(f"Required capability {entry.name} unavailable: {reason}")
                raise RequiredCapabilityMissing(
                    f"Required capability '{entry.name}' unavailable: {reason}",
                    state.to_result(container_id, SessionStatus.ABORTED, original),
                )

        try:
            # Start from zero optional capabilities, whatever a previous run left
            for entry in self._catalog:
                await self._store.remove(entry.marker_pattern)
            for entry in required:
                await self._store.append(entry)

            names = ", ".join(e.name for e in required) or "no devices"
            self._progress.info(f"Starting baseline configuration ({names})")
            result = await self._attempt(container_id)
        except BaseException:
            logger.warning("Baseline of %s interrupted, restoring the original configuration", container_id)
            await self._store.restore(original)
            raise
        state.record(BASELINE, Phase.BASELINE, result.outcome, result.excerpt)

        if result.outcome is not Outcome.OK:
            self._progress.error(f"Baseline failed: {result.outcome.value} {result.excerpt}".rstrip())
            try:
                await self._stop_if_running(container_id)
            finally:
                await self._store.restore(original)
            raise BaselineFailure(
                f"Container {container_id} does not start with the baseline "
                f"configuration: {result.outcome.value}"
                + (f" ({result.excerpt})" if result.excerpt else ""),
                state.to_result(container_id, SessionStatus.ABORTED, original),
            )

        snapshot = await self._store.snapshot()
        state.last_known_good = snapshot
        for entry in required:
            state.commit(entry.name, snapshot)
        self._progress.success("Baseline is live")

    async def _extend(self, container_id: str, entry: CapabilityEntry, state: NegotiationState) -> None:
        self._progress.set_stage(entry.name)

        reason = self._unmet_reason(entry, state)
        if reason is not None:
            state.record(entry.name, Phase.EXTEND, Outcome.PRECONDITION_UNMET, reason)
            state.exclude(entry.name)
            self._progress.dim(f"Skipping {entry.name}: {reason}")
            return

        self._progress.info(f"Trying {entry.name}")
        try:
            await self._store.append(entry)
            result = await self._attempt(container_id)
            state.record(entry.name, Phase.EXTEND, result.outcome, result.excerpt)

            if result.outcome is Outcome.OK:
                state.commit(entry.name, await self._store.snapshot())
                self._progress.success(f"{entry.name} granted")
                return

            self._progress.warning(
                f"{entry.name} rejected: {result.outcome.value}"
                + (f" ({result.excerpt})" if result.excerpt else "")
            )
            await self._rollback(container_id, entry, state)
        except NegotiationAborted:
            raise
        except BaseException:
            logger.warning(
                "Trying %s on %s interrupted, restoring the last known good configuration",
                entry.name, container_id,
            )
            await self._store.restore(state.last_known_good)
            raise
        state.exclude(entry.name)

        recovery = await self._attempt(container_id)
        state.record(entry.name, Phase.RECOVER, recovery.outcome, recovery.excerpt)
        if recovery.outcome is not Outcome.OK:
            self._progress.error(
                f"Container does not come back after removing {entry.name}"
            )
            raise UnrecoverableRollback(
                f"Rolled back {entry.name} but container {container_id} is "
                f"{recovery.outcome.value}",
                state.to_result(container_id, SessionStatus.ABORTED, await self._store.snapshot()),
            )
        self._progress.dim(f"Rolled back {entry.name}; container is live again")

    # -------------------------------------------------------------------------
    # Helpers
    # -------------------------------------------------------------------------

    def _unmet_reason(self, entry: CapabilityEntry, state: NegotiationState) -> str | None:
        missing = [p for p in entry.device_paths if not self._host.exists(p)]
        if missing:
            return f"missing on host: {', '.join(missing)}"
        needed = [r for r in entry.requires if r not in state.committed]
        if needed:
            return f"requires {', '.join(needed)}"
        return None

    def _marker_ambiguous(self, entry: CapabilityEntry, good: str) -> bool:
        """True if the entry's marker also matches last-known-good lines."""
        return any(entry.matches(line) for line in good.splitlines())

    async def _rollback(self, container_id: str, entry: CapabilityEntry, state: NegotiationState) -> None:
        good = state.last_known_good
        if self._marker_ambiguous(entry, good):
            logger.info("Marker for %s overlaps committed lines, restoring snapshot", entry.name)
            await self._store.restore(good)
        else:
            await self._store.remove(entry.marker_pattern)
            if await self._store.snapshot() != good:
                logger.warning("Removing %s did not reproduce the snapshot, restoring it", entry.name)
                await self._store.restore(good)

        if await self._store.snapshot() != good:
            raise UnrecoverableRollback(
                f"Configuration of {container_id} could not be restored after {entry.name}",
                state.to_result(container_id, SessionStatus.ABORTED, await self._store.snapshot()),
            )

    async def _stop_if_running(self, container_id: str) -> None:
        if await self._lifecycle.status(container_id) is ContainerStatus.RUNNING:
            await self._lifecycle.stop(container_id)

    async def _attempt(self, container_id: str) -> Classification:
        """Restart the container with the current configuration and classify."""
        await self._stop_if_running(container_id)

        try:
            start = await asyncio.wait_for(
                self._lifecycle.start(container_id), self._start_timeout,
            )
        except asyncio.TimeoutError:
            logger.warning("Start of %s exceeded %.0fs", container_id, self._start_timeout)
            start = StartResult(exit_ok=False, timed_out=True)

        live: bool | None = None
        if self._classifier.needs_probe(start):
            live = await self._probe.wait(container_id, self._probe_timeout)

        result = self._classifier.classify(start, live)
        logger.debug("Attempt on %s: %s %s", container_id, result.outcome.value, result.excerpt)
        return result
