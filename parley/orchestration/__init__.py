"""Durable execution for Parley's I/O operations.

``DispatchGate`` and ``SystemActivities`` live in ``parley.orchestration.dispatch``
and ``parley.orchestration.activities``; they are not imported here because
they depend on the router and transport packages.
"""

from .config import OrchestrationConfig, TemporalConfig, get_config, reset_config, set_config

__all__ = [
    "OrchestrationConfig",
    "TemporalConfig",
    "get_config",
    "set_config",
    "reset_config",
]
