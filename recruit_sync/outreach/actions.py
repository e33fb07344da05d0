"""User-initiated outreach writes, each queued for replay when offline."""

import logging
from collections.abc import Callable
from typing import Any

from recruit_sync.api.client import SAVED_CONTACTS_PATH, SEND_DM_PATH, SEND_EMAIL_PATH, ApiClient
from recruit_sync.storage.models import ActionKind, HttpMethod, QueueConfig
from recruit_sync.sync.context import SyncContext
from recruit_sync.sync.mutation import OptimisticUpdate, SyncedMutation

logger = logging.getLogger(__name__)


class OutreachActions:
    """Save/unsave contacts, move them through the pipeline, send email and DMs.

    Online, each call hits the backend directly.  Offline, it is appended to
    the persistent queue (``on_queued`` receives the queued id) and replayed
    by the queue processor on reconnect.

    ``statuses`` holds the locally known outreach status per saved contact id;
    ``update_status`` changes it optimistically and restores it on failure.
    """

    def __init__(
        self,
        api: ApiClient,
        context: SyncContext,
        on_queued: Callable[[str], None] | None = None,
    ) -> None:
        self._api = api
        self._context = context
        self._on_queued = on_queued
        self.statuses: dict[str, str] = {}

    # ── Public API ─────────────────────────────────────────────────────────────

    async def save_contact(self, contact_id: str, contact_name: str | None = None) -> Any:
        body = {"coachId": contact_id}
        return await self._run(
            ActionKind.SAVE,
            HttpMethod.POST,
            SAVED_CONTACTS_PATH,
            body,
            metadata={"coachName": contact_name} if contact_name else None,
        )

    async def unsave_contact(self, saved_contact_id: str) -> Any:
        return await self._run(
            ActionKind.UNSAVE,
            HttpMethod.DELETE,
            f"{SAVED_CONTACTS_PATH}/{saved_contact_id}",
        )

    async def update_status(self, saved_contact_id: str, status: str) -> Any:
        """Set the pipeline status locally first, then confirm with the backend."""
        previous = self.statuses.get(saved_contact_id)
        endpoint = f"{SAVED_CONTACTS_PATH}/{saved_contact_id}/status"
        body = {"status": status}

        def apply() -> None:
            self.statuses[saved_contact_id] = status

        def revert() -> None:
            if previous is None:
                self.statuses.pop(saved_contact_id, None)
            else:
                self.statuses[saved_contact_id] = previous

        update = OptimisticUpdate(
            apply=apply,
            revert=revert,
            mutation=self._mutation(ActionKind.UPDATE, HttpMethod.PATCH, endpoint, body),
        )
        return await update.run()

    async def send_email(self, contact_id: str, subject: str, message: str) -> Any:
        body = {"coachId": contact_id, "subject": subject, "body": message}
        return await self._run(ActionKind.EMAIL, HttpMethod.POST, SEND_EMAIL_PATH, body)

    async def send_dm(self, contact_id: str, message: str) -> Any:
        body = {"coachId": contact_id, "message": message}
        return await self._run(ActionKind.DM, HttpMethod.POST, SEND_DM_PATH, body)

    # ── Private ────────────────────────────────────────────────────────────────

    def _mutation(
        self,
        kind: ActionKind,
        method: HttpMethod,
        endpoint: str,
        body: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> SyncedMutation[Any]:
        return SyncedMutation(
            lambda: self._api.request(method.value, endpoint, body),
            self._context,
            queue_config=QueueConfig(kind, endpoint, method, body=body, metadata=metadata),
            on_queued=self._queued,
        )

    async def _run(
        self,
        kind: ActionKind,
        method: HttpMethod,
        endpoint: str,
        body: dict[str, Any] | None = None,
        metadata: dict[str, Any] | None = None,
    ) -> Any:
        return await self._mutation(kind, method, endpoint, body, metadata).execute()

    def _queued(self, action_id: str) -> None:
        logger.info("Offline: queued action %s for replay", action_id)
        if self._on_queued is not None:
            self._on_queued(action_id)
