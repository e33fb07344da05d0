"""Tests for HttpActionExecutor — ApiClient over httpx.MockTransport."""

import json
from datetime import datetime, timezone

import httpx
import pytest

from recruit_sync.api.client import ApiClient
from recruit_sync.storage.models import ActionKind, HttpMethod, QueuedAction
from recruit_sync.sync.executor import HttpActionExecutor


def make_action(method: HttpMethod = HttpMethod.POST, body: dict | None = None) -> QueuedAction:
    return QueuedAction(
        id="1741608000000-abc123xyz",
        kind=ActionKind.SAVE,
        endpoint="/api/saved-coaches",
        method=method,
        queued_at=datetime(2026, 3, 10, tzinfo=timezone.utc),
        body=body,
    )


def make_api(handler) -> ApiClient:
    return ApiClient("http://backend.test", token="tok", transport=httpx.MockTransport(handler))


class TestHttpActionExecutor:
    async def test_replays_method_endpoint_and_body(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(201, json={"id": "s9"})

        api = make_api(handler)
        ok = await HttpActionExecutor(api)(make_action(body={"coachId": "c1"}))
        await api.close()

        assert ok is True
        assert seen[0].method == "POST"
        assert seen[0].url.path == "/api/saved-coaches"
        assert json.loads(seen[0].content) == {"coachId": "c1"}
        assert seen[0].headers["Authorization"] == "Bearer tok"

    async def test_backend_rejection_returns_false(self) -> None:
        api = make_api(lambda request: httpx.Response(422, json={"error": "invalid"}))
        ok = await HttpActionExecutor(api)(make_action())
        await api.close()
        assert ok is False

    async def test_transport_error_propagates(self) -> None:
        def refuse(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        api = make_api(refuse)
        with pytest.raises(httpx.ConnectError):
            await HttpActionExecutor(api)(make_action(method=HttpMethod.DELETE))
        await api.close()
