"""Offline-aware writes: run now when online, queue for replay when offline."""

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, Generic, TypeVar

from recruit_sync.storage.models import QueueConfig
from recruit_sync.sync.context import SyncContext

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ConnectivityRequiredError(Exception):
    """Raised when an offline mutation has no queue config to fall back on."""


class MutationOutcome(str, Enum):
    EXECUTED = "executed"
    QUEUED = "queued"
    FAILED = "failed"


class SyncedMutation(Generic[T]):
    """Wraps a mutating coroutine function with offline queuing.

    - Online: awaits ``action()`` and returns or raises exactly as it does.
    - Offline with ``queue_config``: appends a QueuedAction, calls
      ``on_queued(id)`` and returns None.  Queuing counts as success, so this
      path never raises.
    - Offline without ``queue_config``: raises ConnectivityRequiredError.

    A raising ``on_success`` or ``on_queued`` is logged; the outcome stands.

    Usage::

        mutation = SyncedMutation(
            lambda: api.request("POST", "/api/saved-coaches", {"coachId": cid}),
            context,
            queue_config=QueueConfig(ActionKind.SAVE, "/api/saved-coaches", HttpMethod.POST, {"coachId": cid}),
        )
        result = await mutation.execute()
    """

    def __init__(
        self,
        action: Callable[[], Awaitable[T]],
        context: SyncContext,
        queue_config: QueueConfig | None = None,
        on_success: Callable[[T], None] | None = None,
        on_error: Callable[[Exception], None] | None = None,
        on_queued: Callable[[str], None] | None = None,
    ) -> None:
        self._action = action
        self._context = context
        self._queue_config = queue_config
        self._on_success = on_success
        self._on_error = on_error
        self._on_queued = on_queued
        self.loading = False
        self.error: Exception | None = None
        self.last_outcome: MutationOutcome | None = None

    async def execute(self) -> T | None:
        self.loading = True
        self.error = None
        try:
            if self._context.is_online:
                result = await self._action()
                self.last_outcome = MutationOutcome.EXECUTED
                if self._on_success is not None:
                    _notify(self._on_success, result)
                return result

            if self._queue_config is not None:
                action_id = await self._context.queue.append(self._queue_config)
                self.last_outcome = MutationOutcome.QUEUED
                if action_id is not None and self._on_queued is not None:
                    _notify(self._on_queued, action_id)
                return None

            raise ConnectivityRequiredError("Action requires internet connection")
        except Exception as exc:
            self.last_outcome = MutationOutcome.FAILED
            self.error = exc
            if self._on_error is not None:
                self._on_error(exc)
            raise
        finally:
            self.loading = False


def _notify(callback: Callable[[Any], None], value: Any) -> None:
    """Call a completion callback; a raising callback is logged, never turned into a failure."""
    try:
        callback(value)
    except Exception as exc:  # noqa: BLE001
        logger.error("Mutation callback %r failed: %s", callback, exc, exc_info=True)


# ── Optimistic updates ─────────────────────────────────────────────────────────


class OptimisticPhase(str, Enum):
    IDLE = "idle"
    PENDING_LOCAL = "pending_local"
    CONFIRMED = "confirmed"
    ROLLED_BACK = "rolled_back"


class OptimisticUpdate(Generic[T]):
    """A local state change applied before the server confirms it.

    Transitions: ``IDLE → PENDING_LOCAL → CONFIRMED`` when the mutation
    succeeds, ``PENDING_LOCAL → ROLLED_BACK`` (after calling ``revert``) when it
    raises.  A mutation that was queued offline stays ``PENDING_LOCAL`` until
    the replay is confirmed elsewhere.

    Usage::

        update = OptimisticUpdate(
            apply=lambda: statuses.__setitem__(cid, "SENT"),
            revert=lambda: statuses.__setitem__(cid, previous),
            mutation=mutation,
        )
        await update.run()
    """

    def __init__(
        self,
        apply: Callable[[], None],
        revert: Callable[[], None],
        mutation: SyncedMutation[T],
    ) -> None:
        self._apply = apply
        self._revert = revert
        self._mutation = mutation
        self.phase = OptimisticPhase.IDLE

    async def run(self) -> T | None:
        """Apply locally, then execute the mutation.

        Raises whatever the mutation raised, after the local change has been
        reverted.
        """
        self._apply()
        self.phase = OptimisticPhase.PENDING_LOCAL
        try:
            result = await self._mutation.execute()
        except Exception as exc:
            logger.warning("Optimistic update rolled back: %s", exc)
            self._revert()
            self.phase = OptimisticPhase.ROLLED_BACK
            raise
        if self._mutation.last_outcome is MutationOutcome.EXECUTED:
            self.phase = OptimisticPhase.CONFIRMED
        return result
