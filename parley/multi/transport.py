"""Outbound transport to the agent platform."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import Any, Optional

from parley.constants import BOT_TO_BOT_ACTIVITY_GRACE_SECONDS
from parley.multi.messages import BotToBotEnvelope, HandoffEnvelope, MessageResponse, OutboundMessage
from parley.platform_client import PlatformClient
from parley.utils.errors import TransportError

logger = logging.getLogger(__name__)

OUTBOUND_PATH = "api/agent/conversation/outbound/{type}"
HANDOFF_PATH = "api/agent/conversation/outbound/handoff"
CONVERSE_PATH = "api/agent/conversation/converse"


class OutboundTransport(ABC):
    """Delivers agent messages to the platform."""

    @abstractmethod
    async def send(self, message: OutboundMessage) -> Optional[str]:
        ...

    @abstractmethod
    async def handoff(self, envelope: HandoffEnvelope) -> Optional[str]:
        ...

    @abstractmethod
    async def converse(self, envelope: BotToBotEnvelope, timeout_seconds: int) -> MessageResponse:
        """Send a bot-to-bot request and wait for the correlated response."""
        ...


def _as_ack(payload: Any) -> Optional[str]:
    if payload is None:
        return None
    return payload if isinstance(payload, str) else str(payload)


class HttpTransport(OutboundTransport):
    def __init__(self, client: PlatformClient):
        self._client = client

    async def send(self, message: OutboundMessage) -> Optional[str]:
        path = OUTBOUND_PATH.format(type=message.message_type.lower())
        logger.debug(f"Sending {message.message_type} message to {message.participant_id}")
        return _as_ack(await self._client.post_json(path, message.to_payload()))

    async def handoff(self, envelope: HandoffEnvelope) -> Optional[str]:
        logger.info(
            f"Handing off thread {envelope.thread_id} from {envelope.source_workflow_type} "
            f"to {envelope.target_workflow_type or envelope.target_workflow_id}"
        )
        return _as_ack(await self._client.post_json(HANDOFF_PATH, envelope.to_payload()))

    async def converse(self, envelope: BotToBotEnvelope, timeout_seconds: int) -> MessageResponse:
        payload = await self._client.post_json(
            CONVERSE_PATH,
            envelope.to_payload(),
            params={"type": envelope.message_type, "timeoutSeconds": timeout_seconds},
            # The server waits up to timeout_seconds for the other agent
            timeout=timeout_seconds + BOT_TO_BOT_ACTIVITY_GRACE_SECONDS,
        )
        response = payload.get("response") if isinstance(payload, dict) else None
        if not response:
            raise TransportError(
                f"No conversation response from agent {envelope.target_workflow_type}",
                details={"target_workflow_id": envelope.target_workflow_id},
            )
        return MessageResponse.from_dict(response)
