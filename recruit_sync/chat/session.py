"""Chat session state: message history, the live stream, saved conversations."""

import logging
import time
from collections.abc import Callable

from recruit_sync.api.client import ApiClient
from recruit_sync.api.types import Conversation, Message
from recruit_sync.chat.stream import InsightStream, StreamingResponseClient

logger = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


class ChatSession:
    """One assistant conversation as seen by the user.

    Only one response streams at a time: ``send_message`` cancels whatever
    stream was still running before it starts its own.  Errors from
    conversation management are recorded on ``error`` rather than raised.

    Usage::

        session = ChatSession(api, StreamingResponseClient(api))
        reply = await session.send_message("Which coaches should I follow up with?")
    """

    def __init__(self, api: ApiClient, streamer: StreamingResponseClient) -> None:
        self._api = api
        self._streamer = streamer
        self._active: InsightStream | None = None
        self.messages: list[Message] = []
        self.conversations: list[Conversation] = []
        self.current_conversation_id: str | None = None
        self.streaming_content = ""
        self.is_streaming = False
        self.is_loading = False
        self.error: str | None = None

    # ── Messaging ──────────────────────────────────────────────────────────────

    async def send_message(
        self,
        content: str,
        on_update: Callable[[str], None] | None = None,
    ) -> Message | None:
        """Send ``content`` and stream the reply.

        ``on_update`` receives the full reply text so far after every chunk.
        Returns the assistant message, or None when the stream was cancelled
        or failed (the failure is left on ``error``).
        """
        self.cancel()
        self.messages.append(Message(id=f"temp-{_now_ms()}", role="user", content=content))
        self.is_streaming = True
        self.streaming_content = ""
        self.error = None

        stream = self._streamer.open_stream(list(self.messages), self.current_conversation_id)
        self._active = stream
        try:
            async for chunk in stream:
                if chunk.cumulative:
                    self.streaming_content = chunk.text
                else:
                    self.streaming_content += chunk.text
                if on_update is not None:
                    on_update(self.streaming_content)
        except Exception as exc:  # noqa: BLE001
            if self._active is stream:
                logger.error("Insight stream failed: %s", exc)
                self.error = str(exc)
                self._finish_stream()
            return None

        if stream.cancelled:
            return None

        reply = Message(id=f"msg-{_now_ms()}", role="assistant", content=self.streaming_content)
        self.messages.append(reply)
        self._finish_stream()
        return reply

    def cancel(self) -> None:
        """Stop the running stream, if any; no further chunks are applied."""
        if self._active is not None:
            self._active.cancel()
            self._finish_stream()

    def start_new_chat(self) -> None:
        self.cancel()
        self.messages = []
        self.current_conversation_id = None
        self.error = None

    # ── Conversations ──────────────────────────────────────────────────────────

    async def fetch_conversations(self) -> list[Conversation]:
        self.is_loading = True
        self.error = None
        try:
            data = await self._api.get_conversations()
            self.conversations = [Conversation.from_dict(c) for c in data]
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to load conversations: %s", exc)
            self.error = str(exc) or "Failed to load conversations"
        finally:
            self.is_loading = False
        return self.conversations

    async def load_conversation(self, conversation_id: str) -> None:
        self.is_loading = True
        self.error = None
        try:
            conversation = Conversation.from_dict(await self._api.get_conversation(conversation_id))
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to load conversation %s: %s", conversation_id, exc)
            self.error = str(exc) or "Failed to load conversation"
        else:
            self.cancel()
            self.messages = list(conversation.messages)
            self.current_conversation_id = conversation_id
        finally:
            self.is_loading = False

    async def delete_conversation(self, conversation_id: str) -> None:
        try:
            await self._api.delete_conversation(conversation_id)
        except Exception as exc:  # noqa: BLE001
            logger.error("Failed to delete conversation %s: %s", conversation_id, exc)
            self.error = str(exc) or "Failed to delete conversation"
            return
        self.conversations = [c for c in self.conversations if c.id != conversation_id]
        if self.current_conversation_id == conversation_id:
            self.messages = []
            self.current_conversation_id = None

    # ── Private ────────────────────────────────────────────────────────────────

    def _finish_stream(self) -> None:
        self._active = None
        self.is_streaming = False
        self.streaming_content = ""
