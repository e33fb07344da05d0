"""Incremental delivery of assistant responses, with a non-streaming fallback.

The primary path reads ``POST /api/insight`` line by line (``data: <text>``
records, ``data: [DONE]`` or EOF terminates).  If that fails at any point the
client makes one ``POST /api/insight/sync`` call and replays the complete text
word by word, so the caller still sees progressive output.

Chunks travel through an anyio memory-object stream; a producer failure is
sent into the stream as an ``Exception`` item and re-raised on the consumer
side.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

import anyio
import httpx
from anyio.streams.memory import MemoryObjectSendStream

from recruit_sync.api.client import APIError, ApiClient
from recruit_sync.api.types import Message

logger = logging.getLogger(__name__)

_DATA_PREFIX = "data: "
_DONE_SENTINEL = "[DONE]"
_DEFAULT_WORD_DELAY = 0.03


class StreamTransportError(Exception):
    """The chunked endpoint could not be opened or read."""


@dataclass(frozen=True)
class StreamChunk:
    """A piece of assistant output.

    ``cumulative`` chunks carry the whole response so far and replace what the
    consumer has; non-cumulative chunks are appended.
    """

    text: str
    cumulative: bool = False


ChunkSender = MemoryObjectSendStream["StreamChunk | Exception"]
Producer = Callable[[ChunkSender], Awaitable[None]]


class InsightStream:
    """An async iterator of StreamChunk fed by a background producer task.

    ``cancel()`` closes the channel: iteration stops, no error is raised and
    the producer is cancelled.

    Usage::

        stream = client.open_stream(messages)
        async for chunk in stream:
            ...
    """

    def __init__(self, producer: Producer, buffer_size: int = 32) -> None:
        self._send, self._receive = anyio.create_memory_object_stream[StreamChunk | Exception](buffer_size)
        self.cancelled = False
        self._task = asyncio.get_running_loop().create_task(self._produce(producer))

    def __aiter__(self) -> "InsightStream":
        return self

    async def __anext__(self) -> StreamChunk:
        if self.cancelled:
            raise StopAsyncIteration
        try:
            item = await self._receive.receive()
        except (anyio.EndOfStream, anyio.ClosedResourceError):
            raise StopAsyncIteration from None
        if self.cancelled:
            raise StopAsyncIteration
        if isinstance(item, Exception):
            raise item
        return item

    def cancel(self) -> None:
        if self.cancelled:
            return
        self.cancelled = True
        self._receive.close()
        self._send.close()
        self._task.cancel()

    async def aclose(self) -> None:
        """Cancel and wait for the producer task to wind down."""
        self.cancel()
        await asyncio.wait([self._task])

    async def _produce(self, producer: Producer) -> None:
        async with self._send:
            try:
                await producer(self._send)
            except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                logger.debug("Insight stream consumer went away")
            except Exception as exc:  # noqa: BLE001
                try:
                    await self._send.send(exc)
                except (anyio.BrokenResourceError, anyio.ClosedResourceError):
                    logger.debug("Dropped stream error after cancel: %s", exc)


class StreamingResponseClient:
    """Opens insight streams against the backend.

    Two interfaces over the same producer:

    - ``open_stream()`` returns an InsightStream to iterate.
    - ``stream()`` drives callbacks from a background task and returns a
      cancel function; after cancel no callback fires.
    """

    def __init__(self, api: ApiClient, word_delay: float = _DEFAULT_WORD_DELAY) -> None:
        self._api = api
        self._word_delay = word_delay
        self._consumers: set[asyncio.Task[None]] = set()

    # ── Public API ─────────────────────────────────────────────────────────────

    def open_stream(self, messages: list[Message], conversation_id: str | None = None) -> InsightStream:
        payload = _payload(messages, conversation_id)
        return InsightStream(lambda send: self._produce(send, payload))

    def stream(
        self,
        messages: list[Message],
        on_chunk: Callable[[StreamChunk], None],
        on_done: Callable[[], None],
        on_error: Callable[[Exception], None],
        conversation_id: str | None = None,
    ) -> Callable[[], None]:
        insight = self.open_stream(messages, conversation_id)

        async def consume() -> None:
            try:
                async for chunk in insight:
                    on_chunk(chunk)
            except Exception as exc:  # noqa: BLE001
                if not insight.cancelled:
                    on_error(exc)
                return
            if not insight.cancelled:
                on_done()

        task = asyncio.get_running_loop().create_task(consume())
        self._consumers.add(task)
        task.add_done_callback(self._consumers.discard)

        def cancel() -> None:
            insight.cancel()
            task.cancel()

        return cancel

    # ── Private ────────────────────────────────────────────────────────────────

    async def _produce(self, send: ChunkSender, payload: dict[str, Any]) -> None:
        try:
            await self._stream_chunked(send, payload)
            return
        except StreamTransportError as exc:
            logger.warning("Streaming failed, falling back to single request: %s", exc)
        await self._stream_fallback(send, payload)

    async def _stream_chunked(self, send: ChunkSender, payload: dict[str, Any]) -> None:
        try:
            async with self._api.open_insight_stream(payload) as lines:
                async for line in lines:
                    if not line.startswith(_DATA_PREFIX):
                        continue
                    data = line[len(_DATA_PREFIX):]
                    if data == _DONE_SENTINEL:
                        return
                    await send.send(StreamChunk(text=data))
        except (anyio.BrokenResourceError, anyio.ClosedResourceError):
            raise
        except (APIError, httpx.HTTPError) as exc:
            raise StreamTransportError(str(exc)) from exc
        except Exception as exc:  # noqa: BLE001
            raise StreamTransportError(f"{type(exc).__name__}: {exc}") from exc

    async def _stream_fallback(self, send: ChunkSender, payload: dict[str, Any]) -> None:
        response = await self._api.insight_sync(payload)
        content = response.get("content")
        if not isinstance(content, str):
            raise StreamTransportError("Fallback response has no content")
        words = content.split(" ")
        for i in range(len(words)):
            await asyncio.sleep(self._word_delay)
            await send.send(StreamChunk(text=" ".join(words[: i + 1]), cumulative=True))


def _payload(messages: list[Message], conversation_id: str | None) -> dict[str, Any]:
    payload: dict[str, Any] = {"messages": [m.to_dict() for m in messages]}
    if conversation_id:
        payload["conversationId"] = conversation_id
    return payload
