"""Conversation thread data model.

All types are plain dataclasses with ISO-8601 string timestamps so they can
cross the Temporal activity boundary with the default data converter.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from parley.constants import HINT_STATELESS, INCOMING_MESSAGE, OUTGOING_MESSAGE

logger = logging.getLogger(__name__)


class MessageType(str, Enum):
    CHAT = "Chat"
    DATA = "Data"
    HANDOFF = "Handoff"


def _pick(data: Dict[str, Any], *keys: str, default: Any = None) -> Any:
    """First present key; the platform sends camelCase, hosts often snake_case."""
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return default


@dataclass
class InboundMessage:
    """The message currently being answered."""

    text: Optional[str] = None
    data: Any = None
    message_type: str = MessageType.CHAT.value
    request_id: Optional[str] = None
    hint: Optional[str] = None
    scope: Optional[str] = None
    origin: Optional[str] = None

    @property
    def is_stateless(self) -> bool:
        return (self.hint or "").strip().lower() == HINT_STATELESS

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InboundMessage":
        message_type = _pick(data, "type", "messageType", "message_type", default=MessageType.CHAT.value)
        return cls(
            text=_pick(data, "text"),
            data=_pick(data, "data"),
            message_type=message_type.value if isinstance(message_type, MessageType) else str(message_type),
            request_id=_pick(data, "requestId", "request_id"),
            hint=_pick(data, "hint"),
            scope=_pick(data, "scope"),
            origin=_pick(data, "origin"),
        )


@dataclass
class PersistedMessage:
    """A message as stored by the platform. Read-only."""

    id: Optional[str] = None
    thread_id: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
    direction: Optional[str] = None
    text: Optional[str] = None
    data: Any = None
    participant_id: Optional[str] = None
    workflow_id: Optional[str] = None
    workflow_type: Optional[str] = None

    @property
    def is_incoming(self) -> bool:
        return (self.direction or "").lower() == INCOMING_MESSAGE

    @property
    def is_outgoing(self) -> bool:
        return (self.direction or "").lower() == OUTGOING_MESSAGE

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PersistedMessage":
        return cls(
            id=_pick(data, "id"),
            thread_id=_pick(data, "threadId", "thread_id"),
            created_at=_pick(data, "createdAt", "created_at"),
            updated_at=_pick(data, "updatedAt", "updated_at"),
            direction=_pick(data, "direction"),
            text=_pick(data, "text"),
            data=_pick(data, "data"),
            participant_id=_pick(data, "participantId", "participant_id"),
            workflow_id=_pick(data, "workflowId", "workflow_id"),
            workflow_type=_pick(data, "workflowType", "workflow_type"),
        )


@dataclass
class Thread:
    """One inbound delivery on a conversation thread.

    Created per delivery and discarded at the end of the turn. Capability
    functions may set ``skip_response`` to suppress the reply; the router
    resets it once consumed.
    """

    participant_id: str
    workflow_id: str
    workflow_type: str
    agent: str
    latest_message: InboundMessage = field(default_factory=InboundMessage)
    thread_id: Optional[str] = None
    authorization: Optional[str] = None
    # Most-recent-first, as delivered by the platform
    history: Optional[List[PersistedMessage]] = None
    skip_response: bool = False

    @property
    def latest_text(self) -> str:
        return self.latest_message.text or ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Thread":
        latest = _pick(data, "latestMessage", "latest_message", default={})
        history = _pick(data, "history")
        return cls(
            participant_id=_pick(data, "participantId", "participant_id", default=""),
            workflow_id=_pick(data, "workflowId", "workflow_id", default=""),
            workflow_type=_pick(data, "workflowType", "workflow_type", default=""),
            agent=_pick(data, "agent", "agentName", "agent_name", default=""),
            latest_message=latest if isinstance(latest, InboundMessage) else InboundMessage.from_dict(latest),
            thread_id=_pick(data, "threadId", "thread_id"),
            authorization=_pick(data, "authorization"),
            history=[
                m if isinstance(m, PersistedMessage) else PersistedMessage.from_dict(m)
                for m in history
            ] if history is not None else None,
            skip_response=bool(_pick(data, "skipResponse", "skip_response", default=False)),
        )
