# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""D-Bus service implementation for passthru.

Uses dbus-fast for async D-Bus communication.
"""

from __future__ import annotations

import logging
import uuid

from dbus_fast import BusType
from dbus_fast.aio import MessageBus
from dbus_fast.errors import DBusError
from dbus_fast.service import PropertyAccess, ServiceInterface, dbus_property, method, signal

from . import __version__
from .backends import BackendError, make_backend
from .config import PassthruConfig
from .device_service import DeviceService, SessionReport
from .negotiation.errors import NegotiationAborted, SessionBusy
from .negotiation.state import AttemptRecord
from .operations import OperationError, OperationReporter

logger = logging.getLogger(__name__)

BUS_NAME = "org.passthru.Negotiator"
OBJECT_PATH = "/org/passthru"

_FAILED = "org.passthru.Error.Failed"


def attempts_to_dbus(attempts: tuple[AttemptRecord, ...]) -> list[list[str]]:
    """Attempt log as D-Bus ``a(ssss)``."""
    return [list(a.to_dbus_struct()) for a in attempts]


class DbusReporter(OperationReporter):
    """Forwards progress messages as ``OperationProgress`` signals."""

    def __init__(self, interface: "NegotiatorInterface", operation_id: str):
        super().__init__(operation_id=operation_id)
        self._interface = interface

    def _emit(self, level: str, message: str) -> None:
        super()._emit(level, message)
        self._interface.OperationProgress(
            self.operation_id, self.stage, -1.0, f"{level}: {message}",
        )


class NegotiatorInterface(ServiceInterface):
    """org.passthru.Negotiator D-Bus interface.

    Exposes device negotiation to the provisioning layer.
    """

    def __init__(self, devices: DeviceService):
        super().__init__(BUS_NAME)
        self._devices = devices
        self._version = __version__

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @dbus_property(access=PropertyAccess.READ)
    def Version(self) -> "s":
        """Daemon version."""
        return self._version

    @dbus_property(access=PropertyAccess.READ)
    def Backend(self) -> "s":
        """Name of the container backend in use."""
        return self._devices.backend.name

    # -------------------------------------------------------------------------
    # Methods
    # -------------------------------------------------------------------------

    @method()
    async def IsBackendAvailable(self) -> "b":
        """Check whether the container runtime is usable."""
        return await self._devices.backend.is_available()

    @method()
    def ListCapabilities(self) -> "a(sbbs)":
        """List capabilities in negotiation order.

        Returns:
            Array of structs: (name, required, available_on_host, description)
        """
        return [list(c.to_dbus_struct()) for c in self._devices.capability_report()]

    @method()
    def ListSignatures(self) -> "a(sss)":
        """List active failure signatures as (name, pattern, description)."""
        return [
            [s.name, s.pattern.pattern, s.description]
            for s in self._devices.signatures()
        ]

    @method()
    async def Negotiate(self, container_id: "s") -> "bsasa(ssss)":
        """Negotiate device pass-through for a container.

        Progress is reported through ``OperationProgress`` signals.

        Args:
            container_id: Container identifier.

        Returns:
            (committed, message, granted capability names, attempt log)
        """
        operation_id = uuid.uuid4().hex
        progress = DbusReporter(self, operation_id)
        try:
            report: SessionReport = await self._devices.negotiate(container_id, progress)
        except NegotiationAborted as e:
            self.NegotiationFinished(container_id, False, [])
            return [False, str(e), list(e.result.granted), attempts_to_dbus(e.result.attempts)]
        except (SessionBusy, OperationError, BackendError) as e:
            raise DBusError(_FAILED, str(e))

        result = report.result
        message = "committed"
        if report.step_failures:
            message += "; post-commit failed: " + ", ".join(f.step for f in report.step_failures)
        self.NegotiationFinished(container_id, True, list(result.granted))
        return [True, message, list(result.granted), attempts_to_dbus(result.attempts)]

    # -------------------------------------------------------------------------
    # Signals
    # -------------------------------------------------------------------------

    @signal()
    def OperationProgress(
        self,
        operation_id: str,
        stage: str,
        progress: float,
        message: str,
    ) -> "ssds":
        """Emitted during a negotiation session.

        Args:
            operation_id: Unique ID for the session.
            stage: "baseline", a capability name, "commit" or "provision".
            progress: Progress 0.0-1.0, or -1 for indeterminate.
            message: Human-readable status message.
        """
        return [operation_id, stage, progress, message]

    @signal()
    def NegotiationFinished(self, container_id: str, committed: bool, granted: list[str]) -> "sbas":
        """Emitted when a session commits or aborts."""
        return [container_id, committed, granted]


class PassthruService:
    """Main D-Bus service manager."""

    def __init__(self, config: PassthruConfig, bus_type: str = "session"):
        """Initialize the service.

        Args:
            config: Loaded configuration.
            bus_type: "session" or "system" bus.
        """
        self._bus_type = BusType.SYSTEM if bus_type == "system" else BusType.SESSION
        self._bus: MessageBus | None = None
        self._backend = make_backend(config)
        self._devices = DeviceService(self._backend, config)
        self._interface: NegotiatorInterface | None = None

    async def start(self) -> None:
        """Start the D-Bus service."""
        self._bus = await MessageBus(bus_type=self._bus_type).connect()

        self._interface = NegotiatorInterface(self._devices)
        self._bus.export(OBJECT_PATH, self._interface)
        await self._bus.request_name(BUS_NAME)

        bus_name = "system" if self._bus_type == BusType.SYSTEM else "session"
        logger.info(
            "passthru daemon v%s running on %s bus (%s backend)",
            __version__, bus_name, self._backend.name,
        )
        logger.info("Service: %s  Object: %s", BUS_NAME, OBJECT_PATH)

    async def run(self) -> None:
        """Run the service until disconnected."""
        if self._bus is None:
            raise RuntimeError("Service not started")
        await self._bus.wait_for_disconnect()

    async def stop(self) -> None:
        """Stop the D-Bus service."""
        await self._backend.close()
        if self._bus:
            self._bus.disconnect()
            self._bus = None
