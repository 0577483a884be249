"""Synchronous request/response between agents.

The sending workflow's id is used both as the participant id and as the
origin of every bot-to-bot request, so the target agent can answer on a
conversation dedicated to the sender.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from temporalio import workflow

from parley.constants import DEFAULT_BOT_TO_BOT_TIMEOUT_SECONDS
from parley.multi.identifiers import DEFAULT_TENANT_ID, WorkflowIdentifier
from parley.multi.messages import BotToBotEnvelope, MessageResponse, MessageType
from parley.orchestration.dispatch import DispatchGate
from parley.utils.errors import ValidationError

logger = logging.getLogger(__name__)


class Agent2Agent:
    def __init__(
        self,
        source_workflow_id: Optional[str] = None,
        gate: Optional[DispatchGate] = None,
        tenant_id: str = DEFAULT_TENANT_ID,
    ):
        self._source_workflow_id = source_workflow_id
        self.gate = gate or DispatchGate()
        self.tenant_id = tenant_id

    @property
    def source_workflow_id(self) -> str:
        if workflow.in_workflow():
            return workflow.info().workflow_id
        if not self._source_workflow_id:
            raise ValidationError("Source workflow id is required outside a workflow")
        return self._source_workflow_id

    async def send_chat(
        self,
        workflow_id_or_type: str,
        message: str,
        data: Any = None,
        request_id: Optional[str] = None,
        scope: Optional[str] = None,
        authorization: Optional[str] = None,
        hint: Optional[str] = None,
        timeout_seconds: int = DEFAULT_BOT_TO_BOT_TIMEOUT_SECONDS,
    ) -> MessageResponse:
        """Send a chat message to another agent and wait for its reply."""
        target = WorkflowIdentifier.parse(workflow_id_or_type, self.tenant_id)
        envelope = BotToBotEnvelope(
            target_workflow_id=target.workflow_id,
            target_workflow_type=target.workflow_type,
            text=message,
            message_type=MessageType.CHAT.value,
            data=data,
            request_id=request_id,
            scope=scope,
            authorization=authorization,
            hint=hint,
        )
        return await self.bot_to_bot(envelope, timeout_seconds)

    async def send_data(
        self,
        workflow_id_or_type: str,
        data: Any,
        method_name: str,
        request_id: Optional[str] = None,
        scope: Optional[str] = None,
        authorization: Optional[str] = None,
        hint: Optional[str] = None,
        timeout_seconds: int = DEFAULT_BOT_TO_BOT_TIMEOUT_SECONDS,
    ) -> MessageResponse:
        """Send data to another agent; ``method_name`` travels as the request text."""
        target = WorkflowIdentifier.parse(workflow_id_or_type, self.tenant_id)
        envelope = BotToBotEnvelope(
            target_workflow_id=target.workflow_id,
            target_workflow_type=target.workflow_type,
            text=method_name,
            message_type=MessageType.DATA.value,
            data=data,
            request_id=request_id,
            scope=scope,
            authorization=authorization,
            hint=hint,
        )
        return await self.bot_to_bot(envelope, timeout_seconds)

    async def bot_to_bot(
        self,
        envelope: BotToBotEnvelope,
        timeout_seconds: int = DEFAULT_BOT_TO_BOT_TIMEOUT_SECONDS,
    ) -> MessageResponse:
        if not envelope.text:
            raise ValidationError("Request text is required for bot to bot messaging")
        if not envelope.target_workflow_id or not envelope.target_workflow_type:
            raise ValidationError("Target workflow id and workflow type are required for bot to bot messaging")
        if timeout_seconds <= 0:
            raise ValidationError(f"timeout_seconds must be positive, got {timeout_seconds}")

        source = self.source_workflow_id
        envelope.participant_id = source
        envelope.origin = source

        logger.info(
            f"Bot to bot {envelope.message_type} from {source} to {envelope.target_workflow_id} "
            f"(timeout {timeout_seconds}s)"
        )
        return await self.gate.send_bot_to_bot(envelope, timeout_seconds)
