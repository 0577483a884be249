import logging
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class ParleyError(Exception):
    """Base exception for all Parley errors with structured error information."""

    def __init__(
        self,
        message: str,
        code: str = "PARLEY_ERROR",
        recoverable: bool = True,
        suggested_action: str = "retry",
        details: Optional[Dict[str, Any]] = None
    ):
        super().__init__(message)
        self.code = code
        self.recoverable = recoverable
        self.suggested_action = suggested_action
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert error to dictionary for API responses."""
        return {
            "code": self.code,
            "message": str(self),
            "recoverable": self.recoverable,
            "suggested_action": self.suggested_action,
            "details": self.details
        }


# Specific error types for better categorization
class ConfigurationError(ParleyError):
    """A required provider setting could not be resolved from any source."""
    def __init__(self, message: str, field: Optional[str] = None, **kwargs):
        details = kwargs.pop("details", None) or {}
        if field:
            details["field"] = field
        super().__init__(
            message,
            code="CONFIGURATION_ERROR",
            recoverable=False,
            suggested_action="check_configuration",
            details=details,
            **kwargs
        )
        self.field = field


class ValidationError(ParleyError):
    """Malformed request, rejected before anything is dispatched."""
    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            code="VALIDATION_ERROR",
            recoverable=False,
            suggested_action="fix_request",
            **kwargs
        )


class EngineBuildError(ParleyError):
    """Completion engine could not be built (unsupported provider, bad connector)."""
    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            code="ENGINE_BUILD_ERROR",
            recoverable=False,
            suggested_action="check_provider",
            **kwargs
        )


class CapabilityConstructionError(ParleyError):
    """An instance capability type has no constructor usable for a thread."""
    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            code="CAPABILITY_CONSTRUCTION_ERROR",
            recoverable=False,
            suggested_action="fix_capability_constructor",
            **kwargs
        )


class ModelInvocationError(ParleyError):
    """Provider or network failure while calling the language model."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", "MODEL_INVOCATION_ERROR")
        kwargs.setdefault("suggested_action", "retry_later")
        super().__init__(message, **kwargs)


class ToolLoopTerminatedError(ModelInvocationError):
    """The model kept calling the same function past the consecutive-call cap."""
    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            code="TOOL_LOOP_TERMINATED",
            recoverable=False,
            suggested_action="revise_capabilities_or_prompt",
            **kwargs
        )


class InterceptorError(ParleyError):
    """Raised by (or on behalf of) an interceptor. Never fails a turn."""
    def __init__(self, message: str, **kwargs):
        super().__init__(
            message,
            code="INTERCEPTOR_ERROR",
            recoverable=True,
            suggested_action="ignore",
            **kwargs
        )


class TransportError(ParleyError):
    """The agent platform could not be reached or rejected a request."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", "TRANSPORT_ERROR")
        kwargs.setdefault("recoverable", True)
        kwargs.setdefault("suggested_action", "retry_later")
        super().__init__(message, **kwargs)


class OperationTimeoutError(ParleyError):
    """A dispatched operation did not finish within its time bound."""
    def __init__(self, message: str, **kwargs):
        kwargs.setdefault("code", "OPERATION_TIMEOUT")
        kwargs.setdefault("recoverable", False)
        kwargs.setdefault("suggested_action", "increase_timeout")
        super().__init__(message, **kwargs)


class BotToBotTimeoutError(OperationTimeoutError):
    """The target agent did not answer a bot-to-bot request in time."""
    def __init__(self, message: str, **kwargs):
        super().__init__(message, code="BOT_TO_BOT_TIMEOUT", **kwargs)


# Errors that can cross the durable boundary by name.
ERROR_TYPES = {
    cls.__name__: cls
    for cls in (
        ParleyError,
        ConfigurationError,
        ValidationError,
        EngineBuildError,
        CapabilityConstructionError,
        ModelInvocationError,
        ToolLoopTerminatedError,
        InterceptorError,
        TransportError,
        OperationTimeoutError,
        BotToBotTimeoutError,
    )
}
