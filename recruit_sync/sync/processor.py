"""Queue drain — replays queued actions once connectivity returns."""

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from recruit_sync.storage.models import MAX_RETRIES, QueuedAction
from recruit_sync.storage.queue import PersistentQueue

logger = logging.getLogger(__name__)

#: Replays one action. Resolve True to mark it done; False or raise to retry later.
ActionExecutor = Callable[[QueuedAction], Awaitable[bool]]


@dataclass(frozen=True)
class ProcessResult:
    success: int = 0
    failed: int = 0
    evicted: int = 0
    skipped: bool = False  # another drain was already in flight


class QueueProcessor:
    """Drains a PersistentQueue through an executor with bounded retries.

    Each pass works on a snapshot taken at call time, oldest action first;
    actions appended mid-pass wait for the next pass.  An action is evicted
    once its retry count reaches ``max_retries``, so a permanently failing
    action never retries forever.

    Only one drain runs at a time: a call made while another is in flight
    returns immediately with ``skipped=True``.
    """

    def __init__(self, queue: PersistentQueue, max_retries: int = MAX_RETRIES) -> None:
        self._queue = queue
        self._max_retries = max_retries
        self._in_flight = False

    @property
    def in_flight(self) -> bool:
        return self._in_flight

    async def process(self, executor: ActionExecutor) -> ProcessResult:
        """Replay every currently queued action once, then evict exhausted ones."""
        if self._in_flight:
            logger.debug("Queue drain already in flight; skipping")
            return ProcessResult(skipped=True)

        self._in_flight = True
        try:
            return await self._drain(executor)
        finally:
            self._in_flight = False

    async def _drain(self, executor: ActionExecutor) -> ProcessResult:
        snapshot = await self._queue.list()
        if not snapshot:
            return ProcessResult()

        logger.info("Replaying %d queued action(s)", len(snapshot))
        success = 0
        failed = 0
        for action in snapshot:
            try:
                ok = await executor(action)
            except Exception as exc:  # noqa: BLE001
                logger.warning(
                    "Queued %s action %s raised: %s",
                    action.kind.value,
                    action.id,
                    exc,
                )
                ok = False

            if ok:
                await self._queue.remove(action.id)
                success += 1
            else:
                await self._queue.increment_retry(action.id)
                failed += 1

        evicted = await self._evict_exhausted()
        logger.info(
            "Queue drain finished: %d succeeded, %d failed, %d evicted",
            success,
            failed,
            evicted,
        )
        return ProcessResult(success=success, failed=failed, evicted=evicted)

    async def _evict_exhausted(self) -> int:
        evicted = 0
        for action in await self._queue.list():
            if action.retry_count >= self._max_retries:
                logger.warning(
                    "Evicting %s action %s (%s %s) after %d failed attempts",
                    action.kind.value,
                    action.id,
                    action.method.value,
                    action.endpoint,
                    action.retry_count,
                )
                await self._queue.remove(action.id)
                evicted += 1
        return evicted
