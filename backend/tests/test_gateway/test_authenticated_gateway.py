"""Tests for the authenticated gateway — no live calls."""

from __future__ import annotations

import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from workasana.errors import GENERIC_FAILURE_MESSAGE, RequestFailed, SessionExpired
from workasana.gateway import AuthenticatedGateway

BASE_URL = "https://api.test"


def _gateway(session, handler) -> AuthenticatedGateway:
    return AuthenticatedGateway(session, base_url=BASE_URL, timeout=5, transport=httpx.MockTransport(handler))


class TestRequestStage:
    @pytest.mark.asyncio
    async def test_bearer_header_attached_when_token_present(self, signed_in_session):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            seen["url"] = str(request.url)
            return httpx.Response(200, json=[])

        await _gateway(signed_in_session, handler).get("/tasks")
        assert seen["auth"] == "Bearer tok-123"
        assert seen["url"] == "https://api.test/tasks"

    @pytest.mark.asyncio
    async def test_no_header_when_signed_out(self, session):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["auth"] = request.headers.get("Authorization")
            return httpx.Response(200, json={"ok": True})

        result = await _gateway(session, handler).get("/projects")
        assert seen["auth"] is None
        assert result == {"ok": True}

    @pytest.mark.asyncio
    async def test_json_body_and_params_forwarded(self, signed_in_session):
        seen = {}

        def handler(request: httpx.Request) -> httpx.Response:
            seen["method"] = request.method
            seen["body"] = json.loads(request.content) if request.content else None
            seen["params"] = dict(request.url.params)
            return httpx.Response(201, json={"_id": "tm1"})

        gw = _gateway(signed_in_session, handler)
        await gw.post("/teams", json={"name": "Core"})
        assert seen["method"] == "POST"
        assert seen["body"] == {"name": "Core"}

        await gw.get("/report/grouped-tasks", params={"groupBy": "team"})
        assert seen["params"] == {"groupBy": "team"}


class TestResponseStage:
    @pytest.mark.asyncio
    async def test_success_passes_through(self, signed_in_session):
        payload = [{"_id": "t1", "name": "A"}]
        result = await _gateway(signed_in_session, lambda r: httpx.Response(200, json=payload)).get("/tasks")
        assert result == payload

    @pytest.mark.asyncio
    async def test_empty_body_returns_none(self, signed_in_session):
        result = await _gateway(signed_in_session, lambda r: httpx.Response(204)).delete("/teams/tm1")
        assert result is None

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [401, 403])
    @pytest.mark.parametrize("path", ["/tasks", "/report/pending", "/teams/tm1/members"])
    async def test_auth_failure_evicts_and_raises_session_expired(self, signed_in_session, status, path):
        signed_in_session.save_preferences({"theme": "dark"})
        gw = _gateway(signed_in_session, lambda r: httpx.Response(status, json={"error": "Invalid token"}))

        with pytest.raises(SessionExpired) as exc_info:
            await gw.get(path)

        assert exc_info.value.status_code == status
        assert signed_in_session.token is None
        assert signed_in_session.user is None
        assert signed_in_session.preferences["theme"] == "dark"

    @pytest.mark.asyncio
    async def test_server_error_uses_error_field_and_keeps_session(self, signed_in_session):
        gw = _gateway(signed_in_session, lambda r: httpx.Response(400, json={"error": "Team name taken"}))
        with pytest.raises(RequestFailed) as exc_info:
            await gw.post("/teams", json={"name": "Core"})
        assert exc_info.value.message == "Team name taken"
        assert exc_info.value.status_code == 400
        assert signed_in_session.token == "tok-123"

    @pytest.mark.asyncio
    async def test_error_without_error_field_gets_generic_message(self, signed_in_session):
        gw = _gateway(signed_in_session, lambda r: httpx.Response(500, text="<html>oops</html>"))
        with pytest.raises(RequestFailed) as exc_info:
            await gw.get("/tasks")
        assert exc_info.value.message == GENERIC_FAILURE_MESSAGE
        assert not exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_503_is_retryable(self, signed_in_session):
        gw = _gateway(signed_in_session, lambda r: httpx.Response(503, json={}))
        with pytest.raises(RequestFailed) as exc_info:
            await gw.get("/tasks")
        assert exc_info.value.retryable

    @pytest.mark.asyncio
    async def test_transport_failure_is_request_failed(self, signed_in_session):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(RequestFailed) as exc_info:
            await _gateway(signed_in_session, handler).get("/tasks")

        assert isinstance(exc_info.value.cause, httpx.ConnectError)
        assert exc_info.value.retryable
        assert signed_in_session.token == "tok-123"

    @pytest.mark.asyncio
    async def test_malformed_success_body(self, signed_in_session):
        gw = _gateway(signed_in_session, lambda r: httpx.Response(200, text="not json"))
        with pytest.raises(RequestFailed):
            await gw.get("/tasks")


def test_base_url_trailing_slash_stripped(session):
    gw = AuthenticatedGateway(session, base_url="https://api.test/")
    assert gw.base_url == "https://api.test"


def test_default_base_url_from_settings(session):
    from workasana.config import settings

    assert AuthenticatedGateway(session).base_url == settings.api_base_url.rstrip("/")


class TestClientConstruction:
    @pytest.mark.asyncio
    async def test_timeout_and_url_from_settings(self, signed_in_session):
        mock_http = AsyncMock()
        mock_http.request = AsyncMock(return_value=httpx.Response(200, json=[]))

        with patch("httpx.AsyncClient") as mock_cls, patch("workasana.gateway.settings") as mock_settings:
            mock_settings.api_base_url = "https://api.test/"
            mock_settings.request_timeout = 2.5
            mock_cls.return_value.__aenter__ = AsyncMock(return_value=mock_http)
            mock_cls.return_value.__aexit__ = AsyncMock(return_value=False)

            result = await AuthenticatedGateway(signed_in_session).get("/tasks")

        assert result == []
        assert mock_cls.call_args.kwargs["timeout"] == 2.5
        assert mock_http.request.call_args.args == ("GET", "https://api.test/tasks")
        assert mock_http.request.call_args.kwargs["headers"]["Authorization"] == "Bearer tok-123"

    @pytest.mark.asyncio
    async def test_timeout_is_retryable_request_failed(self, signed_in_session):
        mock_http = AsyncMock()
        mock_http.request = AsyncMock(side_effect=httpx.ReadTimeout("timed out"))

        with patch("httpx.AsyncClient") as mock_cls:
            mock_cls.return_value.__aenter__ = AsyncMock(return_value=mock_http)
            mock_cls.return_value.__aexit__ = AsyncMock(return_value=False)

            with pytest.raises(RequestFailed) as exc_info:
                await AuthenticatedGateway(signed_in_session, base_url=BASE_URL).get("/tasks")

        assert exc_info.value.retryable
        assert exc_info.value.message == GENERIC_FAILURE_MESSAGE
        assert signed_in_session.is_authenticated
