# Copyright (c) sas-device Contributors. All rights reserved.
# Licensed under the MIT License.
"""One-shot JSON RPC to a local service over a Unix domain socket.

The identity and key services speak HTTP on filesystem sockets. Each call
opens a fresh connection, sends one request, reads one JSON response and
closes; nothing is pooled between calls.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx

from sasdevice.cancellation import CancellationToken

logger = logging.getLogger(__name__)


class LocalServiceError(Exception):
    """A local service call failed (unreachable, bad status, or bad JSON)."""


class LocalServiceClient:
    """HTTP-over-Unix-socket client for one local service.

    Args:
        socket_path: Filesystem path of the service socket.
        host: Virtual host name used in the request URL.
        api_version: Value of the ``api-version`` query parameter.
        timeout_seconds: Per-call timeout.
        transport: Optional httpx transport; defaults to a Unix socket
            transport bound to ``socket_path``. Tests pass
            ``httpx.MockTransport``.
    """

    def __init__(
        self,
        socket_path: str,
        host: str,
        api_version: str,
        timeout_seconds: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.socket_path = socket_path
        self.host = host
        self.api_version = api_version
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _make_transport(self) -> httpx.AsyncBaseTransport:
        if self._transport is not None:
            return self._transport
        return httpx.AsyncHTTPTransport(uds=self.socket_path)

    async def request_json(
        self,
        method: str,
        path: str,
        cancel: CancellationToken,
        body: Optional[dict[str, Any]] = None,
    ) -> dict[str, Any]:
        """Send one request and return the decoded JSON object.

        Args:
            method: HTTP method.
            path: Request path, without the query string.
            cancel: Token observed while the call is suspended.
            body: Optional JSON body.

        Returns:
            The response body as a dictionary.

        Raises:
            LocalServiceError: On transport failure, non-2xx status or a
                response that is not a JSON object.
            OperationCancelledError: If ``cancel`` fires first.
        """
        return await cancel.guard(self._request_json(method, path, body))

    async def _request_json(
        self, method: str, path: str, body: Optional[dict[str, Any]]
    ) -> dict[str, Any]:
        params = {"api-version": self.api_version}
        async with httpx.AsyncClient(
            transport=self._make_transport(),
            base_url=f"http://{self.host}",
            timeout=self.timeout_seconds,
        ) as client:
            try:
                response = await client.request(method, path, params=params, json=body)
                response.raise_for_status()
            except httpx.HTTPStatusError as exc:
                raise LocalServiceError(
                    f"{self.host} returned HTTP {exc.response.status_code} for {method} {path}"
                ) from exc
            except httpx.HTTPError as exc:
                raise LocalServiceError(
                    f"{self.host} unreachable at {self.socket_path}: {exc}"
                ) from exc

        logger.debug("%s %s -> %d", method, path, response.status_code)
        try:
            data = response.json()
        except ValueError as exc:
            raise LocalServiceError(f"{self.host} returned invalid JSON") from exc
        if not isinstance(data, dict):
            raise LocalServiceError(f"{self.host} returned a non-object JSON body")
        return data


__all__ = [
    "LocalServiceClient",
    "LocalServiceError",
]
