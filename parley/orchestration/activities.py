"""Temporal activities for the operations that perform I/O.

Each activity is a method on :class:`SystemActivities`, so a worker
registers one instance holding the transport, the router and the agent
profiles. Outside a workflow the same methods are called directly.

Parley errors leave an activity as ``ApplicationError`` typed with the
error class name; they are non-retryable unless the error is recoverable.
Any other exception is first wrapped in a ``ParleyError`` with code
``ACTIVITY_FAILED``.
"""

from __future__ import annotations

import asyncio
import functools
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, TypeVar

from temporalio import activity
from temporalio.exceptions import ApplicationError

from parley.config import RouterOptions
from parley.constants import BOT_TO_BOT_RESPONSE_GRACE_SECONDS, DEFAULT_BOT_TO_BOT_TIMEOUT_SECONDS
from parley.multi.messages import BotToBotEnvelope, HandoffEnvelope, MessageResponse, OutboundMessage
from parley.multi.transport import OutboundTransport
from parley.router.interceptors import ChatInterceptor, EngineModifier
from parley.router.router import Capabilities, RouteResult, Router
from parley.system.thread import Thread
from parley.utils.errors import BotToBotTimeoutError, ParleyError, TransportError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass
class AgentProfile:
    """What the router needs for one workflow type, held by the worker."""

    capabilities: Capabilities = None
    interceptors: Optional[Sequence[ChatInterceptor]] = None
    engine_modifiers: Optional[Sequence[EngineModifier]] = None
    options: Optional[RouterOptions] = None


def to_application_error(error: ParleyError) -> ApplicationError:
    return ApplicationError(
        str(error),
        error.to_dict(),
        type=type(error).__name__,
        non_retryable=not error.recoverable,
    )


def _raises_application_errors(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> T:
        try:
            return await func(*args, **kwargs)
        except ParleyError as e:
            logger.error(f"{func.__name__} failed: {e}")
            raise to_application_error(e) from e
        except Exception as e:
            logger.error(f"{func.__name__} failed unexpectedly: {e}", exc_info=True)
            error = ParleyError(
                f"Activity {func.__name__} failed: {e}",
                code="ACTIVITY_FAILED",
                details={"error_type": type(e).__name__},
            )
            error.__cause__ = e
            raise to_application_error(error) from error

    return wrapper


class SystemActivities:
    """I/O operations usable as Temporal activities or called in-process."""

    def __init__(
        self,
        transport: Optional[OutboundTransport] = None,
        router: Optional[Router] = None,
        profiles: Optional[Dict[str, AgentProfile]] = None,
    ):
        self.transport = transport
        self.router = router or Router()
        self.profiles: Dict[str, AgentProfile] = dict(profiles or {})

    def register_profile(self, workflow_type: str, profile: AgentProfile) -> None:
        self.profiles[workflow_type] = profile

    def activities(self) -> List[Callable[..., Any]]:
        """Bound activity methods to pass to a ``temporalio.worker.Worker``."""
        return [
            self.send_message,
            self.complete,
            self.route,
            self.send_handoff,
            self.send_bot_to_bot,
        ]

    def _require_transport(self) -> OutboundTransport:
        if self.transport is None:
            raise ParleyError(
                "No outbound transport configured",
                code="TRANSPORT_NOT_CONFIGURED",
                recoverable=False,
                suggested_action="configure_platform",
            )
        return self.transport

    @activity.defn(name="parley.send_message")
    @_raises_application_errors
    async def send_message(self, message: OutboundMessage) -> Optional[str]:
        return await self._require_transport().send(message)

    @activity.defn(name="parley.complete")
    @_raises_application_errors
    async def complete(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        options: Optional[RouterOptions] = None,
    ) -> Optional[str]:
        return await self.router.complete(prompt, system_instruction, options)

    @activity.defn(name="parley.route")
    @_raises_application_errors
    async def route(
        self,
        thread: Thread,
        system_prompt: str,
        options: Optional[RouterOptions] = None,
    ) -> RouteResult:
        profile = self.profiles.get(thread.workflow_type)
        if profile is None:
            logger.warning(f"No agent profile registered for {thread.workflow_type}, routing without capabilities")
            profile = AgentProfile()
        return await self.router.route(
            thread,
            system_prompt,
            capabilities=profile.capabilities,
            interceptors=profile.interceptors,
            engine_modifiers=profile.engine_modifiers,
            options=options or profile.options,
        )

    @activity.defn(name="parley.send_handoff")
    @_raises_application_errors
    async def send_handoff(self, envelope: HandoffEnvelope) -> Optional[str]:
        return await self._require_transport().handoff(envelope)

    @activity.defn(name="parley.send_bot_to_bot")
    @_raises_application_errors
    async def send_bot_to_bot(
        self,
        envelope: BotToBotEnvelope,
        timeout_seconds: int = DEFAULT_BOT_TO_BOT_TIMEOUT_SECONDS,
    ) -> MessageResponse:
        transport = self._require_transport()
        try:
            return await asyncio.wait_for(
                transport.converse(envelope, timeout_seconds),
                timeout=timeout_seconds + BOT_TO_BOT_RESPONSE_GRACE_SECONDS,
            )
        except asyncio.TimeoutError as e:
            raise BotToBotTimeoutError(
                f"No response from {envelope.target_workflow_type} within {timeout_seconds} seconds",
                details={"target_workflow_id": envelope.target_workflow_id, "timeout_seconds": timeout_seconds},
            ) from e
        except TransportError as e:
            # Bot-to-bot requests are delivered at most once
            raise TransportError(
                f"Bot to bot request to {envelope.target_workflow_id} failed: {e}",
                recoverable=False,
                suggested_action="check_target_agent",
                details={**e.details, "target_workflow_id": envelope.target_workflow_id},
            ) from e
