# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Negotiation sessions for the CLI and the D-Bus daemon.

:class:`DeviceService` wires a backend, the configuration and the
capability catalog into a :class:`NegotiationEngine`, guarantees at most
one session per container, and hands a committed result to the post-commit
pipeline.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from .backends import Backend, BackendError
from .config import PassthruConfig
from .contexts import CommitContext
from .host import HostDevices, LocalHostDevices
from .negotiation.catalog import DEFAULT_CATALOG, CapabilityCatalog
from .negotiation.classifier import FailureClassifier, FailureSignature, build_signatures
from .negotiation.engine import NegotiationEngine
from .negotiation.errors import SessionBusy
from .negotiation.readiness import ReadinessProbe
from .negotiation.state import NegotiationResult
from .operations import OperationError, OperationReporter
from .pipeline import StepFailure
from .post_commit import post_commit_pipeline

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SessionReport:
    """A committed negotiation plus what post-commit provisioning found."""

    result: NegotiationResult
    missing_in_container: tuple[str, ...] = ()
    skipped_features: tuple[str, ...] = ()
    step_failures: tuple[StepFailure, ...] = ()


@dataclass(frozen=True)
class CapabilityStatus:
    name: str
    description: str
    required: bool
    available: bool
    requires: tuple[str, ...]

    def to_dbus_struct(self) -> tuple[str, bool, bool, str]:
        """Convert to D-Bus struct (sbbs)."""
        return (self.name, self.required, self.available, self.description)


def capability_report(catalog: CapabilityCatalog, host: HostDevices) -> list[CapabilityStatus]:
    """Host-side availability of every catalog entry, in priority order."""
    return [
        CapabilityStatus(
            name=e.name,
            description=e.description,
            required=e.required,
            available=all(host.exists(p) for p in e.device_paths),
            requires=e.requires,
        )
        for e in catalog
    ]


class DeviceService:
    """Runs negotiation sessions against one backend."""

    def __init__(
        self,
        backend: Backend,
        config: PassthruConfig,
        *,
        host: HostDevices | None = None,
        catalog: CapabilityCatalog = DEFAULT_CATALOG,
    ):
        self._backend = backend
        self._config = config
        self._host = host or LocalHostDevices()
        self._catalog = catalog
        self._classifier = FailureClassifier(
            build_signatures(config.disabled_signatures, config.signatures),
        )
        self._locks: dict[str, asyncio.Lock] = {}

    @property
    def backend(self) -> Backend:
        return self._backend

    @property
    def catalog(self) -> CapabilityCatalog:
        return self._catalog

    def signatures(self) -> tuple[FailureSignature, ...]:
        return self._classifier.signatures

    def capability_report(self) -> list[CapabilityStatus]:
        return capability_report(self._catalog, self._host)

    def build_engine(
        self,
        container_id: str,
        progress: OperationReporter | None = None,
    ) -> NegotiationEngine:
        lifecycle = self._backend.lifecycle
        return NegotiationEngine(
            self._backend.store_for(container_id),
            lifecycle,
            self._host,
            catalog=self._catalog,
            classifier=self._classifier,
            probe=ReadinessProbe(
                lifecycle,
                interval=self._config.probe_interval,
                liveness_path=self._config.liveness_path,
            ),
            probe_timeout=self._config.probe_timeout,
            start_timeout=self._config.start_timeout,
            progress=progress,
        )

    async def negotiate(
        self,
        container_id: str,
        progress: OperationReporter | None = None,
        *,
        provision: bool = True,
    ) -> SessionReport:
        """Run one negotiation session, then the post-commit pipeline.

        Args:
            container_id: Container to negotiate.
            progress: Reporter for operator-facing messages.
            provision: Run the post-commit pipeline after a commit.

        Raises:
            SessionBusy: A session for this container is already running.
            OperationError: The container does not exist.
            NegotiationAborted: The session aborted (see the subclasses).
        """
        lock = self._locks.setdefault(container_id, asyncio.Lock())
        if lock.locked():
            raise SessionBusy(f"Container {container_id} is already being negotiated")

        async with lock:
            if not await self._backend.exists(container_id):
                raise OperationError(f"Container '{container_id}' does not exist")

            engine = self.build_engine(container_id, progress)
            result = await engine.run(container_id)

            if not provision:
                return SessionReport(result)

            if progress:
                progress.set_stage("provision")
            ctx = CommitContext(
                result=result,
                catalog=self._catalog,
                lifecycle=self._backend.lifecycle,
                progress=progress,
            )
            failures = await post_commit_pipeline.run(ctx, tolerate=(BackendError,))
            return SessionReport(
                result,
                missing_in_container=tuple(ctx.missing_in_container),
                skipped_features=tuple(ctx.skipped_features),
                step_failures=tuple(failures),
            )
