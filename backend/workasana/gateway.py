"""Authenticated gateway — the single outbound-call policy.

Every remote call goes through ``AuthenticatedGateway.request``:
  1. Request stage: ``Authorization: Bearer <token>`` when the session
     holds a token; unauthenticated otherwise.
  2. Response stage:
     - 2xx            → parsed JSON body, unchanged
     - 401 / 403      → session eviction, then SessionExpired
     - other non-2xx  → RequestFailed(server "error" text or generic)
     - transport error → RequestFailed(cause=exc), session untouched
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from workasana.config import settings
from workasana.errors import GENERIC_FAILURE_MESSAGE, RequestFailed, SessionExpired
from workasana.session import SessionContext

logger = logging.getLogger(__name__)

AUTH_FAILURE_STATUSES = frozenset({401, 403})

_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
}


def _error_message(resp: httpx.Response) -> str:
    """Server-supplied ``{"error": ...}`` text, or the generic message."""
    try:
        payload = resp.json()
    except ValueError:
        return GENERIC_FAILURE_MESSAGE
    if isinstance(payload, dict):
        message = payload.get("error")
        if isinstance(message, str) and message.strip():
            return message
    return GENERIC_FAILURE_MESSAGE


class AuthenticatedGateway:
    """Async gateway to the task tracker REST service.

    Usage:
        gateway = AuthenticatedGateway(session)
        tasks = await gateway.get("/tasks")
        await gateway.post("/teams", json={"name": "Core"})
    """

    def __init__(
        self,
        session: SessionContext,
        base_url: str = "",
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.session = session
        self.base_url = (base_url or settings.api_base_url).rstrip("/")
        self._timeout = timeout if timeout is not None else settings.request_timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = dict(_HEADERS)
        token = self.session.token
        if token:
            headers["Authorization"] = f"Bearer {token}"
        return headers

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: dict | None = None,
        json: Any = None,
    ) -> Any:
        """Issue one call under the shared credential/eviction policy.

        Raises:
            SessionExpired: the credential was rejected (after eviction).
            RequestFailed: any other non-2xx status or transport failure.
        """
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            async with httpx.AsyncClient(timeout=self._timeout, transport=self._transport) as client:
                resp = await client.request(
                    method,
                    url,
                    headers=self._headers(),
                    params=params,
                    json=json,
                )
        except httpx.HTTPError as e:
            logger.warning("%s %s failed: %s", method, path, e)
            raise RequestFailed(cause=e) from e

        if resp.status_code in AUTH_FAILURE_STATUSES:
            logger.warning("%s %s rejected with HTTP %d", method, path, resp.status_code)
            self.session.evict()
            raise SessionExpired(resp.status_code, path)

        if resp.is_error:
            message = _error_message(resp)
            logger.warning("%s %s → HTTP %d: %s", method, path, resp.status_code, message)
            raise RequestFailed(message, status_code=resp.status_code)

        logger.debug("%s %s → HTTP %d", method, path, resp.status_code)
        if not resp.content:
            return None
        try:
            return resp.json()
        except ValueError as e:
            raise RequestFailed("Malformed response from server.", status_code=resp.status_code, cause=e) from e

    async def get(self, path: str, params: dict | None = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None) -> Any:
        return await self.request("POST", path, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str) -> Any:
        return await self.request("DELETE", path)
