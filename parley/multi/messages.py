"""Envelopes exchanged with the agent platform.

Field names are snake_case in Python and camelCase on the wire.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from parley.system.thread import MessageType

logger = logging.getLogger(__name__)

__all__ = [
    "MessageType",
    "OutboundMessage",
    "HandoffEnvelope",
    "BotToBotEnvelope",
    "MessageResponse",
]


def _compact(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in payload.items() if v is not None}


@dataclass
class OutboundMessage:
    """A chat or data message from an agent to a participant."""

    participant_id: str
    workflow_id: str
    workflow_type: str
    message_type: str = MessageType.CHAT.value
    text: Optional[str] = None
    data: Any = None
    request_id: Optional[str] = None
    scope: Optional[str] = None
    authorization: Optional[str] = None
    thread_id: Optional[str] = None
    hint: Optional[str] = None
    origin: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return _compact({
            "participantId": self.participant_id,
            "workflowId": self.workflow_id,
            "workflowType": self.workflow_type,
            "type": self.message_type,
            "text": self.text,
            "data": self.data,
            "requestId": self.request_id,
            "scope": self.scope,
            "authorization": self.authorization,
            "threadId": self.thread_id,
            "hint": self.hint,
            "origin": self.origin,
        })


@dataclass
class HandoffEnvelope:
    """Transfers a thread to another agent."""

    source_agent: str
    source_workflow_type: str
    source_workflow_id: str
    thread_id: str
    participant_id: str
    text: str
    target_workflow_id: Optional[str] = None
    target_workflow_type: Optional[str] = None
    authorization: Optional[str] = None
    data: Any = None
    message_type: str = MessageType.HANDOFF.value

    def to_payload(self) -> Dict[str, Any]:
        return _compact({
            "targetWorkflowId": self.target_workflow_id,
            "targetWorkflowType": self.target_workflow_type,
            "sourceAgent": self.source_agent,
            "sourceWorkflowType": self.source_workflow_type,
            "sourceWorkflowId": self.source_workflow_id,
            "threadId": self.thread_id,
            "participantId": self.participant_id,
            "authorization": self.authorization,
            "text": self.text,
            "data": self.data,
            "type": self.message_type,
        })


@dataclass
class BotToBotEnvelope:
    """A synchronous request from one agent to another."""

    target_workflow_id: Optional[str]
    target_workflow_type: Optional[str]
    text: str
    message_type: str = MessageType.CHAT.value
    participant_id: Optional[str] = None
    data: Any = None
    request_id: Optional[str] = None
    scope: Optional[str] = None
    authorization: Optional[str] = None
    hint: Optional[str] = None
    thread_id: Optional[str] = None
    origin: Optional[str] = None

    def to_payload(self) -> Dict[str, Any]:
        return _compact({
            "workflowId": self.target_workflow_id,
            "workflowType": self.target_workflow_type,
            "type": self.message_type,
            "participantId": self.participant_id,
            "text": self.text,
            "data": self.data,
            "requestId": self.request_id,
            "scope": self.scope,
            "authorization": self.authorization,
            "hint": self.hint,
            "threadId": self.thread_id,
            "origin": self.origin,
        })


@dataclass
class MessageResponse:
    """The answer to a bot-to-bot request."""

    text: Optional[str] = None
    data: Any = None
    created_at: Optional[str] = None
    message_type: Optional[str] = None
    scope: Optional[str] = None
    hint: Optional[str] = None
    request_id: Optional[str] = None
    thread_id: Optional[str] = None
    participant_id: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MessageResponse":
        return cls(
            text=data.get("text"),
            data=data.get("data"),
            created_at=data.get("createdAt"),
            message_type=data.get("messageType"),
            scope=data.get("scope"),
            hint=data.get("hint"),
            request_id=data.get("requestId"),
            thread_id=data.get("threadId"),
            participant_id=data.get("participantId"),
        )
