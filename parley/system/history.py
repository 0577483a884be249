"""Conversation history assembly.

Turns persisted thread messages into the chat messages sent to the model:
chronological, stripped of blanks and non-chat entries, without the message
currently being answered.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

from parley.platform_client import PlatformClient
from parley.system.thread import PersistedMessage, Thread
from parley.utils.errors import TransportError

logger = logging.getLogger(__name__)

HISTORY_PATH = "api/agent/conversation/history"

ChatMessage = Dict[str, Any]


class MessageStore(ABC):
    """Source of persisted thread messages."""

    @abstractmethod
    async def fetch_history(self, thread: Thread, page: int, page_size: int) -> List[PersistedMessage]:
        """Return one page of the thread's messages, most recent first."""
        ...


class InMemoryMessageStore(MessageStore):
    """Message store held in memory, keyed by workflow type and participant."""

    def __init__(self):
        self._messages: Dict[tuple, List[PersistedMessage]] = {}

    def add(self, workflow_type: str, participant_id: str, message: PersistedMessage) -> None:
        """Append a message; messages are added in chronological order."""
        self._messages.setdefault((workflow_type, participant_id), []).append(message)

    async def fetch_history(self, thread: Thread, page: int, page_size: int) -> List[PersistedMessage]:
        messages = list(reversed(self._messages.get((thread.workflow_type, thread.participant_id), [])))
        start = max(page - 1, 0) * page_size
        return messages[start:start + page_size]


class HttpMessageStore(MessageStore):
    """Message history served by the agent platform."""

    def __init__(self, client: PlatformClient):
        self._client = client

    async def fetch_history(self, thread: Thread, page: int, page_size: int) -> List[PersistedMessage]:
        params = {
            "workflowType": thread.workflow_type,
            "participantId": thread.participant_id,
            "page": page,
            "pageSize": page_size,
            "scope": thread.latest_message.scope,
        }
        payload = await self._client.get_json(HISTORY_PATH, params=params)
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise TransportError(f"Unexpected history payload from {HISTORY_PATH}: {type(payload).__name__}")
        return [PersistedMessage.from_dict(item) for item in payload]


class HistoryAssembler:
    """Builds the chat history for one turn."""

    def __init__(self, store: Optional[MessageStore] = None):
        self.store = store

    async def assemble(
        self,
        thread: Thread,
        system_prompt: str,
        history_size: int,
        current_text: Optional[str] = None,
    ) -> List[ChatMessage]:
        """System prompt followed by prior turns in chronological order.

        The current message is not included: a trailing stored copy of
        ``current_text`` (default: the thread's latest text) is dropped.
        Stateless messages get the system prompt only.
        """
        history: List[ChatMessage] = [{"role": "system", "content": system_prompt}]

        if thread.latest_message.is_stateless:
            logger.debug(f"Stateless message on {thread.workflow_id}, skipping history")
            return history

        if thread.history is not None:
            persisted = list(thread.history)
        elif self.store is None:
            logger.warning("No message store configured, answering without history")
            persisted = []
        else:
            persisted = await self.store.fetch_history(thread, 1, history_size)

        if current_text is None:
            current_text = thread.latest_text
        history.extend(self.to_chat_messages(persisted, current_text))
        logger.debug(f"Assembled {len(history) - 1} history messages for {thread.workflow_id}")
        return history

    @staticmethod
    def to_chat_messages(persisted: List[PersistedMessage], current_text: str) -> List[ChatMessage]:
        """Map most-recent-first persisted messages to chronological chat messages."""
        chronological = list(reversed(persisted))
        current = (current_text or "").strip().lower()

        messages: List[ChatMessage] = []
        last_index = len(chronological) - 1
        for index, message in enumerate(chronological):
            if not (message.text or "").strip():
                continue
            if not (message.is_incoming or message.is_outgoing):
                continue
            # The platform may already have stored the message being answered
            if index == last_index and message.is_incoming and message.text.strip().lower() == current:
                continue
            role = "user" if message.is_incoming else "assistant"
            messages.append({"role": role, "content": message.text})
        return messages
