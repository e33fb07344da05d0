"""Replays a QueuedAction against the backend."""

import logging

from recruit_sync.api.client import APIError, ApiClient
from recruit_sync.storage.models import QueuedAction

logger = logging.getLogger(__name__)


class HttpActionExecutor:
    """ActionExecutor that re-sends ``{endpoint, method, body}`` verbatim.

    The action's semantics are opaque here: a 2xx response counts as done, a
    backend rejection counts as a failed attempt.  Transport errors propagate
    so QueueProcessor records them as failed attempts too.
    """

    def __init__(self, api: ApiClient) -> None:
        self._api = api

    async def __call__(self, action: QueuedAction) -> bool:
        try:
            await self._api.request(action.method.value, action.endpoint, action.body)
        except APIError as exc:
            logger.warning(
                "Replay of %s %s rejected (status=%d, code=%s): %s",
                action.method.value,
                action.endpoint,
                exc.status,
                exc.code,
                exc.message,
            )
            return False
        logger.info("Replayed %s action %s", action.kind.value, action.id)
        return True
