"""Parley - conversational orchestration for platform-hosted AI agents.

Parley turns one inbound message on a conversation thread into one model
turn:

- Provider settings resolved from options, environment or the platform
- One completion engine per workflow type, cached for the process
- Capability functions exposed to the model as tools
- History assembled from the platform and reduced to a token budget
- Interceptors around the turn, handoffs and bot-to-bot exchanges after it

Example Usage:
    ```python
    from parley import ParleyConfig, RouterOptions, Router, Thread

    config = ParleyConfig.load()
    router = Router()

    result = await router.route(thread, "You are a travel assistant.", options=config.router)
    if not result.is_suppressed:
        await messenger.respond(thread, result.text)
    ```
"""

from ._version import __version__

from .config import ParleyConfig, PlatformConfig, RouterOptions, configure_logging
from .router import RouteResult, Router
from .system import InboundMessage, PersistedMessage, Thread
from .tools import CapabilityRegistry, capability
from .multi import Agent2Agent, HandoffService, Messenger, WorkflowIdentifier
from .orchestration import OrchestrationConfig
from .utils.errors import ParleyError

__all__ = [
    "__version__",
    # Configuration
    "ParleyConfig",
    "PlatformConfig",
    "RouterOptions",
    "OrchestrationConfig",
    "configure_logging",
    # Turns
    "Router",
    "RouteResult",
    "Thread",
    "InboundMessage",
    "PersistedMessage",
    # Capabilities
    "CapabilityRegistry",
    "capability",
    # Multi-agent
    "Messenger",
    "HandoffService",
    "Agent2Agent",
    "WorkflowIdentifier",
    "ParleyError",
]
