"""Backend API client — thin async wrapper over httpx with the app's error mapping."""

import json
import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from typing import Any

import httpx

logger = logging.getLogger(__name__)

_DEFAULT_TIMEOUT_SECONDS = 20.0

# Backend paths. Mutating endpoints are also referenced by QueuedAction.endpoint.
SAVED_CONTACTS_PATH = "/api/saved-coaches"
SOCIAL_FOLLOWERS_PATH = "/api/twitter/followers"
EMAIL_STATUS_PATH = "/api/email/status"
SEND_EMAIL_PATH = "/api/email/send"
SEND_DM_PATH = "/api/twitter/dm"
CONVERSATIONS_PATH = "/api/conversations"
INSIGHT_STREAM_PATH = "/api/insight"
INSIGHT_SYNC_PATH = "/api/insight/sync"


class APIError(Exception):
    """Raised for any non-2xx backend response."""

    def __init__(self, status: int, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.status = status
        self.message = message
        self.code = code

    def __repr__(self) -> str:
        return f"APIError(status={self.status}, code={self.code!r}, message={self.message!r})"


class ApiClient:
    """Async client for the recruiting backend.

    Holds one pooled ``httpx.AsyncClient``; call ``close()`` (or use
    ``sync_context()``) to release it.  Every call sends the bearer token if
    one is configured.

    Usage::

        api = ApiClient("https://example.com", token="...")
        saved = await api.get_saved_contacts()
        await api.close()
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = _DEFAULT_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
        on_auth_expired: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._token = token
        self._on_auth_expired = on_auth_expired
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=timeout,
            transport=transport,
        )

    async def close(self) -> None:
        await self._client.aclose()

    # ── Generic ────────────────────────────────────────────────────────────────

    async def request(self, method: str, endpoint: str, body: Any | None = None) -> Any:
        """Send one request and return the decoded JSON body (None for empty bodies).

        Raises:
            APIError: for non-2xx responses.
            httpx.TransportError: when the backend cannot be reached.
        """
        response = await self._client.request(
            method.upper(),
            endpoint,
            json=body,
            headers=self._headers(),
        )
        return await self._handle_response(response)

    # ── Outreach sources ───────────────────────────────────────────────────────

    async def get_saved_contacts(self) -> list[dict[str, Any]]:
        return await self.request("GET", SAVED_CONTACTS_PATH) or []

    async def get_social_followers(self) -> dict[str, Any]:
        return await self.request("GET", SOCIAL_FOLLOWERS_PATH) or {}

    async def get_email_status(self) -> dict[str, Any]:
        return await self.request("GET", EMAIL_STATUS_PATH) or {}

    # ── Conversations ──────────────────────────────────────────────────────────

    async def get_conversations(self) -> list[dict[str, Any]]:
        return await self.request("GET", CONVERSATIONS_PATH) or []

    async def get_conversation(self, conversation_id: str) -> dict[str, Any]:
        return await self.request("GET", f"{CONVERSATIONS_PATH}/{conversation_id}")

    async def delete_conversation(self, conversation_id: str) -> None:
        await self.request("DELETE", f"{CONVERSATIONS_PATH}/{conversation_id}")

    # ── Insight (assistant chat) ───────────────────────────────────────────────

    @asynccontextmanager
    async def open_insight_stream(self, payload: dict[str, Any]) -> AsyncIterator[AsyncIterator[str]]:
        """Open the chunked insight endpoint and yield its body as an async line iterator.

        Raises APIError before yielding if the backend rejects the request.
        """
        async with self._client.stream(
            "POST",
            INSIGHT_STREAM_PATH,
            json=payload,
            headers=self._headers(),
        ) as response:
            if response.is_error:
                await response.aread()
                await self._handle_response(response)
            yield response.aiter_lines()

    async def insight_sync(self, payload: dict[str, Any]) -> dict[str, Any]:
        """Request the complete insight response in a single round trip."""
        return await self.request("POST", INSIGHT_SYNC_PATH, payload) or {}

    # ── Private ────────────────────────────────────────────────────────────────

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._token:
            headers["Authorization"] = f"Bearer {self._token}"
        return headers

    async def _handle_response(self, response: httpx.Response) -> Any:
        if response.is_success:
            if response.status_code == 204 or not response.content:
                return None
            try:
                return response.json()
            except ValueError:
                return response.text

        message, code = _parse_error_body(response.text)
        status = response.status_code
        if status == 401:
            if self._on_auth_expired is not None:
                await self._on_auth_expired()
            raise APIError(401, "Session expired. Please sign in again.", "AUTH_EXPIRED")
        if status == 429:
            raise APIError(429, "Too many requests. Please wait a moment.", "RATE_LIMITED")
        if status == 500:
            logger.error("Server error on %s %s: %s", response.request.method, response.request.url, message)
            raise APIError(500, "Server error. Please try again later.", "SERVER_ERROR")
        raise APIError(status, message, code)


def _parse_error_body(text: str) -> tuple[str, str | None]:
    """Extract (message, code) from a JSON error body, with a generic fallback."""
    message = "Something went wrong"
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return message, None
    if not isinstance(parsed, dict):
        return message, None
    return str(parsed.get("error") or parsed.get("message") or message), parsed.get("code")
