"""Tests for the REST session gateway."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from studytrack_cli.models.config_models import APIConfig
from studytrack_cli.models.timer.errors import NetworkError
from studytrack_cli.services.session_gateway import RestSessionGateway


def _response(status_code=200, json_data=None, content=None):
    request = httpx.Request("POST", "https://api.example.com/session/start")
    if content is not None:
        return httpx.Response(status_code, content=content, request=request)
    return httpx.Response(status_code, json=json_data or {}, request=request)


def _status_error(status_code):
    response = _response(status_code)
    return httpx.HTTPStatusError("failed", request=response.request, response=response)


@pytest.fixture
def client():
    c = MagicMock()
    c.post = AsyncMock(return_value=_response(201, {"sessionId": 42}))
    c.put = AsyncMock(return_value=_response(200))
    c.delete = AsyncMock(return_value=_response(204))
    return c


@pytest.fixture
def gateway(client):
    return RestSessionGateway(client, APIConfig())


class TestStart:
    @pytest.mark.asyncio
    async def test_posts_session_and_returns_id(self, gateway, client):
        session_id = await gateway.start(1, 7, "algebra")

        assert session_id == 42
        client.post.assert_awaited_once_with(
            "/session/start",
            json={"sessionType": 1, "topicId": 7, "notes": "algebra"},
            retry=0,
        )

    @pytest.mark.asyncio
    async def test_sends_nulls_for_missing_fields(self, gateway, client):
        await gateway.start(2, None, None)
        payload = client.post.await_args.kwargs["json"]
        assert payload == {"sessionType": 2, "topicId": None, "notes": None}

    @pytest.mark.asyncio
    async def test_http_error_becomes_network_error(self, gateway, client):
        client.post.side_effect = _status_error(401)

        with pytest.raises(NetworkError) as exc_info:
            await gateway.start(1, None, None)
        assert exc_info.value.status_code == 401

    @pytest.mark.asyncio
    async def test_transport_error_becomes_network_error(self, gateway, client):
        client.post.side_effect = httpx.ConnectError("refused")

        with pytest.raises(NetworkError) as exc_info:
            await gateway.start(1, None, None)
        assert exc_info.value.status_code is None

    @pytest.mark.asyncio
    async def test_missing_session_id(self, gateway, client):
        client.post.return_value = _response(201, {"id": 42})
        with pytest.raises(NetworkError):
            await gateway.start(1, None, None)

    @pytest.mark.asyncio
    async def test_non_json_body(self, gateway, client):
        client.post.return_value = _response(201, content=b"<html>")
        with pytest.raises(NetworkError):
            await gateway.start(1, None, None)


class TestEnd:
    @pytest.mark.asyncio
    async def test_puts_duration(self, gateway, client):
        await gateway.end(42, 1500)
        client.put.assert_awaited_once_with(
            "/session/end", json={"id": 42, "durationSeconds": 1500}
        )

    @pytest.mark.asyncio
    async def test_failure_becomes_network_error(self, gateway, client):
        client.put.side_effect = _status_error(503)

        with pytest.raises(NetworkError) as exc_info:
            await gateway.end(42, 1500)
        assert exc_info.value.status_code == 503
        assert "42" in str(exc_info.value)


class TestCancel:
    @pytest.mark.asyncio
    async def test_deletes_session(self, gateway, client):
        await gateway.cancel(42)
        client.delete.assert_awaited_once_with("/session/42")

    @pytest.mark.asyncio
    async def test_uses_configured_paths(self, client):
        config = APIConfig(session_delete_path="/v2/sessions/{id}", session_end_path="/v2/end")
        gateway = RestSessionGateway(client, config)

        await gateway.cancel(5)
        await gateway.end(5, 60)

        client.delete.assert_awaited_once_with("/v2/sessions/5")
        assert client.put.await_args.args == ("/v2/end",)

    @pytest.mark.asyncio
    async def test_failure_becomes_network_error(self, gateway, client):
        client.delete.side_effect = httpx.ReadTimeout("slow")
        with pytest.raises(NetworkError):
            await gateway.cancel(42)
