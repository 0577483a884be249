"""Handoffs and outbound replies for a conversation thread."""

from __future__ import annotations

import logging
from typing import Any, Optional

from parley.multi.messages import HandoffEnvelope, MessageType, OutboundMessage
from parley.orchestration.dispatch import DispatchGate
from parley.system.thread import Thread
from parley.utils.errors import ValidationError

logger = logging.getLogger(__name__)


def validate_handoff(envelope: HandoffEnvelope) -> None:
    if not (envelope.text or "").strip():
        raise ValidationError("Handoff request text is required")
    if not envelope.target_workflow_id and not envelope.target_workflow_type:
        raise ValidationError(
            "Handoff requires a target workflow id or target workflow type",
            details={"thread_id": envelope.thread_id},
        )


class HandoffService:
    """Transfers ownership of a thread to another agent."""

    def __init__(self, gate: Optional[DispatchGate] = None):
        self.gate = gate or DispatchGate()

    async def handoff(self, envelope: HandoffEnvelope) -> Optional[str]:
        validate_handoff(envelope)
        logger.info(
            f"Handoff of thread {envelope.thread_id} requested by {envelope.source_agent} "
            f"to {envelope.target_workflow_id or envelope.target_workflow_type}"
        )
        return await self.gate.send_handoff(envelope)


class Messenger:
    """Sends messages on behalf of the agent that owns a thread."""

    def __init__(self, gate: Optional[DispatchGate] = None):
        self.gate = gate or DispatchGate()
        self.handoffs = HandoffService(self.gate)

    def _outbound(self, thread: Thread, message_type: str, text: Optional[str], data: Any) -> OutboundMessage:
        latest = thread.latest_message
        return OutboundMessage(
            participant_id=thread.participant_id,
            workflow_id=thread.workflow_id,
            workflow_type=thread.workflow_type,
            message_type=message_type,
            text=text,
            data=data,
            request_id=latest.request_id,
            scope=latest.scope,
            authorization=thread.authorization,
            thread_id=thread.thread_id,
            hint=latest.hint,
            origin=latest.origin,
        )

    async def respond(self, thread: Thread, text: str, data: Any = None) -> Optional[str]:
        """Reply to the participant on the thread's conversation."""
        return await self.gate.send_message(self._outbound(thread, MessageType.CHAT.value, text, data))

    async def send_data(self, thread: Thread, data: Any, text: Optional[str] = None) -> Optional[str]:
        return await self.gate.send_message(self._outbound(thread, MessageType.DATA.value, text, data))

    async def handoff_thread(
        self,
        thread: Thread,
        text: str,
        target_workflow_id: Optional[str] = None,
        target_workflow_type: Optional[str] = None,
        data: Any = None,
    ) -> Optional[str]:
        if not thread.thread_id:
            raise ValidationError("Thread id is required to hand off a thread")
        envelope = HandoffEnvelope(
            source_agent=thread.agent,
            source_workflow_type=thread.workflow_type,
            source_workflow_id=thread.workflow_id,
            thread_id=thread.thread_id,
            participant_id=thread.participant_id,
            text=text,
            target_workflow_id=target_workflow_id,
            target_workflow_type=target_workflow_type,
            authorization=thread.authorization,
            data=data,
        )
        return await self.handoffs.handoff(envelope)
