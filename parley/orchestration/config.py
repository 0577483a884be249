"""Durable execution configuration.

Holds the Temporal settings used when operations are dispatched as
activities from inside a workflow, plus a process-wide default instance.
"""

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, Optional

from temporalio.common import RetryPolicy

from parley.constants import DEFAULT_ACTIVITY_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


@dataclass
class TemporalConfig:
    """Configuration for Temporal activities."""

    address: str = "localhost:7233"
    namespace: str = "default"
    task_queue: str = "parley-system"

    # Timeouts (seconds)
    activity_schedule_to_close_timeout: int = DEFAULT_ACTIVITY_TIMEOUT_SECONDS

    # Retry policy
    max_retries: int = 3
    initial_interval_sec: int = 1
    max_interval_sec: int = 60
    backoff_coefficient: float = 2.0


@dataclass
class OrchestrationConfig:
    """Configuration for the dispatch gate."""

    temporal: TemporalConfig = field(default_factory=TemporalConfig)

    # Per-operation schedule-to-close overrides (seconds), keyed by operation name
    operation_timeouts: Dict[str, int] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OrchestrationConfig":
        """Create config from dictionary (e.g., from config.yml)."""
        temporal_data = data.get("temporal", {})
        temporal_config = TemporalConfig(
            address=temporal_data.get("address", "localhost:7233"),
            namespace=temporal_data.get("namespace", "default"),
            task_queue=temporal_data.get("task_queue", "parley-system"),
            activity_schedule_to_close_timeout=temporal_data.get(
                "activity_schedule_to_close_timeout", DEFAULT_ACTIVITY_TIMEOUT_SECONDS
            ),
            max_retries=temporal_data.get("max_retries", 3),
            initial_interval_sec=temporal_data.get("initial_interval_sec", 1),
            max_interval_sec=temporal_data.get("max_interval_sec", 60),
            backoff_coefficient=temporal_data.get("backoff_coefficient", 2.0),
        )
        return cls(
            temporal=temporal_config,
            operation_timeouts=dict(data.get("operation_timeouts", {})),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "temporal": {
                "address": self.temporal.address,
                "namespace": self.temporal.namespace,
                "task_queue": self.temporal.task_queue,
                "activity_schedule_to_close_timeout": self.temporal.activity_schedule_to_close_timeout,
                "max_retries": self.temporal.max_retries,
                "initial_interval_sec": self.temporal.initial_interval_sec,
                "max_interval_sec": self.temporal.max_interval_sec,
                "backoff_coefficient": self.temporal.backoff_coefficient,
            },
            "operation_timeouts": dict(self.operation_timeouts),
        }

    def schedule_to_close_timeout(self, operation: str) -> timedelta:
        seconds = self.operation_timeouts.get(operation, self.temporal.activity_schedule_to_close_timeout)
        return timedelta(seconds=seconds)

    def retry_policy(self) -> RetryPolicy:
        return RetryPolicy(
            initial_interval=timedelta(seconds=self.temporal.initial_interval_sec),
            backoff_coefficient=self.temporal.backoff_coefficient,
            maximum_interval=timedelta(seconds=self.temporal.max_interval_sec),
            maximum_attempts=self.temporal.max_retries + 1,
        )


# Global config instance (set by the host process)
_config: Optional[OrchestrationConfig] = None


def set_config(config: OrchestrationConfig) -> None:
    """Set the global orchestration config."""
    global _config
    _config = config
    logger.info(f"Orchestration config set: task_queue={config.temporal.task_queue}")


def get_config() -> OrchestrationConfig:
    """Get the current orchestration config."""
    global _config
    if _config is None:
        _config = OrchestrationConfig()
        logger.debug("Using default orchestration config")
    return _config


def reset_config() -> None:
    """Reset to defaults (for testing)."""
    global _config
    _config = None
