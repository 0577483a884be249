"""Messaging between agents, participants and the platform."""

from .identifiers import WorkflowIdentifier
from .messages import BotToBotEnvelope, HandoffEnvelope, MessageResponse, MessageType, OutboundMessage
from .transport import HttpTransport, OutboundTransport
from .handoff import HandoffService, Messenger
from .agent2agent import Agent2Agent

__all__ = [
    "WorkflowIdentifier",
    "MessageType",
    "OutboundMessage",
    "HandoffEnvelope",
    "BotToBotEnvelope",
    "MessageResponse",
    "OutboundTransport",
    "HttpTransport",
    "HandoffService",
    "Messenger",
    "Agent2Agent",
]
