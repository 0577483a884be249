from .errors import (
    BotToBotTimeoutError,
    CapabilityConstructionError,
    ConfigurationError,
    EngineBuildError,
    InterceptorError,
    ModelInvocationError,
    OperationTimeoutError,
    ParleyError,
    ToolLoopTerminatedError,
    TransportError,
    ValidationError,
)
from .token_counter import TokenCounter, count_message_tokens, default_token_counter

__all__ = [
    "ParleyError",
    "ConfigurationError",
    "ValidationError",
    "EngineBuildError",
    "CapabilityConstructionError",
    "ModelInvocationError",
    "ToolLoopTerminatedError",
    "InterceptorError",
    "TransportError",
    "OperationTimeoutError",
    "BotToBotTimeoutError",
    "TokenCounter",
    "count_message_tokens",
    "default_token_counter",
]
