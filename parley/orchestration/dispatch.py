"""Dispatch gate for I/O operations.

Inside a Temporal workflow, operations are scheduled as activities with the
configured timeout and retry policy. Anywhere else they run in-process by
calling the activity method directly. Callers see the same Parley error
types either way.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from temporalio import workflow
from temporalio.exceptions import ActivityError, ApplicationError
from temporalio.exceptions import TimeoutError as TemporalTimeoutError

from parley.constants import BOT_TO_BOT_ACTIVITY_GRACE_SECONDS
from parley.orchestration.activities import SystemActivities
from parley.orchestration.config import OrchestrationConfig, get_config
from parley.utils.errors import (
    ERROR_TYPES,
    BotToBotTimeoutError,
    ConfigurationError,
    OperationTimeoutError,
    ParleyError,
)

logger = logging.getLogger(__name__)

OPERATIONS = ("send_message", "complete", "route", "send_handoff", "send_bot_to_bot")


def rebuild_error(type_name: Optional[str], message: str, info: Optional[Dict[str, Any]] = None) -> ParleyError:
    """Recreate a Parley error from the name and ``to_dict()`` payload carried by an ApplicationError."""
    info = info or {}
    cls = ERROR_TYPES.get(type_name or "", ParleyError)
    error = cls.__new__(cls)
    ParleyError.__init__(
        error,
        info.get("message", message),
        code=info.get("code", "PARLEY_ERROR"),
        recoverable=info.get("recoverable", True),
        suggested_action=info.get("suggested_action", "retry"),
        details=info.get("details") or {},
    )
    if isinstance(error, ConfigurationError):
        error.field = error.details.get("field")
    return error


def _from_application_error(error: ApplicationError) -> ParleyError:
    if isinstance(error.__cause__, ParleyError):
        return error.__cause__
    info = error.details[0] if error.details and isinstance(error.details[0], dict) else None
    return rebuild_error(error.type, error.message, info)


class DispatchGate:
    """Runs an operation as an activity when in a workflow, directly otherwise."""

    def __init__(
        self,
        activities: Optional[SystemActivities] = None,
        config: Optional[OrchestrationConfig] = None,
    ):
        self.activities = activities
        self._config = config

    @property
    def config(self) -> OrchestrationConfig:
        return self._config or get_config()

    def _timeout_for(self, operation: str, timeout: Optional[int]) -> timedelta:
        if timeout is not None:
            return timedelta(seconds=timeout)
        return self.config.schedule_to_close_timeout(operation)

    async def dispatch(self, operation: str, *args: Any, timeout: Optional[int] = None) -> Any:
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown operation: {operation}")

        try:
            if workflow.in_workflow():
                return await workflow.execute_activity_method(
                    getattr(SystemActivities, operation),
                    args=list(args),
                    schedule_to_close_timeout=self._timeout_for(operation, timeout),
                    retry_policy=self.config.retry_policy(),
                )

            if self.activities is None:
                raise ParleyError(
                    f"Cannot run {operation} outside a workflow without local activities",
                    code="DISPATCH_NOT_CONFIGURED",
                    recoverable=False,
                    suggested_action="configure_activities",
                )
            return await getattr(self.activities, operation)(*args)
        except ActivityError as e:
            raise self._translate(operation, e.cause, e) from e
        except ApplicationError as e:
            error = _from_application_error(e)
            if error is e.__cause__:
                # In-process call: surface the original error with its own cause
                raise error
            raise error from e
        except TemporalTimeoutError as e:
            raise self._timeout_error(operation, e) from e

    def _translate(self, operation: str, cause: Optional[BaseException], error: ActivityError) -> ParleyError:
        if isinstance(cause, ApplicationError):
            return _from_application_error(cause)
        if isinstance(cause, TemporalTimeoutError):
            return self._timeout_error(operation, cause)
        logger.error(f"Activity {operation} failed: {error}")
        return ParleyError(f"Activity {operation} failed: {cause or error}", code="ACTIVITY_FAILED")

    @staticmethod
    def _timeout_error(operation: str, cause: BaseException) -> OperationTimeoutError:
        if operation == "send_bot_to_bot":
            return BotToBotTimeoutError(f"Bot-to-bot request timed out: {cause}")
        return OperationTimeoutError(f"Operation {operation} timed out: {cause}", details={"operation": operation})

    async def send_message(self, message) -> Optional[str]:
        return await self.dispatch("send_message", message)

    async def complete(self, prompt: str, system_instruction: Optional[str] = None, options=None) -> Optional[str]:
        return await self.dispatch("complete", prompt, system_instruction, options)

    async def route(self, thread, system_prompt: str, options=None):
        return await self.dispatch("route", thread, system_prompt, options)

    async def send_handoff(self, envelope) -> Optional[str]:
        return await self.dispatch("send_handoff", envelope)

    async def send_bot_to_bot(self, envelope, timeout_seconds: int):
        return await self.dispatch(
            "send_bot_to_bot",
            envelope,
            timeout_seconds,
            timeout=timeout_seconds + BOT_TO_BOT_ACTIVITY_GRACE_SECONDS,
        )
