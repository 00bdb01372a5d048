# SPDX-FileCopyrightText: 2026 Lasath Fernando <devel@lasath.org>
#
# SPDX-License-Identifier: GPL-3.0-or-later

"""Async Incus REST API client.

Talks to the Incus daemon over the Unix socket at
/var/lib/incus/unix.socket.  Only the calls the negotiator needs are here:
instance lookup, state changes, config patches and the LXC start log.
"""

from __future__ import annotations

from typing import Any

import httpx

from .models import Instance, Operation

DEFAULT_SOCKET = "/var/lib/incus/unix.socket"


class IncusError(Exception):
    """Error from Incus API."""

    def __init__(self, message: str, code: int | None = None):
        super().__init__(message)
        self.code = code


class IncusClient:
    """Async client for Incus REST API over Unix socket."""

    def __init__(
        self,
        socket_path: str = DEFAULT_SOCKET,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._socket_path = socket_path
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def _get_client(self) -> httpx.AsyncClient:
        """Get or create the HTTP client."""
        if self._client is None or self._client.is_closed:
            transport = self._transport or httpx.AsyncHTTPTransport(uds=self._socket_path)
            self._client = httpx.AsyncClient(
                transport=transport,
                base_url="http://localhost",
                timeout=30.0,
            )
        return self._client

    async def close(self) -> None:
        """Close the HTTP client."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def _request(
        self, method: str, path: str, **kwargs: Any
    ) -> Any:
        """Make request and handle Incus response format.

        Incus wraps all responses in:
        {
            "type": "sync" | "async" | "error",
            "status": "Success" | ...,
            "status_code": 200 | ...,
            "metadata": <actual data>
        }
        """
        client = await self._get_client()
        try:
            response = await client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            raise IncusError(f"Cannot reach Incus at {self._socket_path}: {e}")
        try:
            data = response.json()
        except ValueError:
            raise IncusError(
                f"Unexpected response from Incus: HTTP {response.status_code}",
                response.status_code,
            )

        if data.get("type") == "error" or response.is_error:
            raise IncusError(
                data.get("error", f"HTTP {response.status_code}"),
                data.get("error_code", response.status_code),
            )

        return data.get("metadata", data)

    async def get(self, path: str) -> Any:
        """GET request."""
        return await self._request("GET", path)

    async def put(self, path: str, json: dict[str, Any] | None = None) -> Any:
        """PUT request."""
        return await self._request("PUT", path, json=json)

    async def patch(self, path: str, json: dict[str, Any] | None = None) -> Any:
        """PATCH request."""
        return await self._request("PATCH", path, json=json)

    async def get_text(self, path: str) -> str:
        """GET a raw (non-JSON) resource such as a log file."""
        client = await self._get_client()
        try:
            response = await client.get(path)
        except httpx.TransportError as e:
            raise IncusError(f"Cannot reach Incus at {self._socket_path}: {e}")
        if response.is_error:
            raise IncusError(f"HTTP {response.status_code} for {path}", response.status_code)
        return response.text

    # -------------------------------------------------------------------------
    # Instance operations
    # -------------------------------------------------------------------------

    async def get_instance(self, name: str) -> Instance:
        data = await self.get(f"/1.0/instances/{name}")
        return Instance.model_validate(data)

    async def instance_exists(self, name: str) -> bool:
        try:
            await self.get_instance(name)
        except IncusError as e:
            if e.code == 404:
                return False
            raise
        return True

    async def update_instance_config(self, name: str, config: dict[str, str]) -> None:
        """Merge *config* keys into the instance config in one request."""
        await self.patch(f"/1.0/instances/{name}", json={"config": config})

    async def wait_operation(self, operation_id: str, timeout: int = -1) -> Operation:
        data = await self.get(f"/1.0/operations/{operation_id}/wait?timeout={timeout}")
        return Operation.model_validate(data)

    async def change_state(
        self,
        name: str,
        action: str,
        *,
        force: bool = False,
        wait: bool = True,
    ) -> Operation:
        """Start/stop/restart an instance.

        Args:
            name: Instance name.
            action: "start", "stop" or "restart".
            force: Force the action (stop/restart only).
            wait: Block until the background operation finishes.
        """
        body: dict[str, Any] = {"action": action, "timeout": -1}
        if force:
            body["force"] = True
        op = Operation.model_validate(await self.put(f"/1.0/instances/{name}/state", json=body))
        if wait and op.id:
            return await self.wait_operation(op.id)
        return op

    async def get_instance_log(self, name: str, filename: str = "lxc.log") -> str:
        return await self.get_text(f"/1.0/instances/{name}/logs/{filename}")

    async def is_available(self) -> bool:
        """Check if Incus is available and responding.

        Returns:
            True if Incus is available.
        """
        try:
            await self.get("/1.0")
            return True
        except IncusError:
            return False
