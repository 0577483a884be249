"""Provider adapters.

Each supported provider is a :class:`ProviderKind` with one
:class:`ProviderAdapter` that knows which settings it needs and how to turn
them into LiteLLM ``acompletion`` parameters.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from parley.constants import DEFAULT_AZURE_API_VERSION
from parley.utils.errors import EngineBuildError

logger = logging.getLogger(__name__)


class ProviderKind(str, Enum):
    OPENAI = "openai"
    AZURE_OPENAI = "azureopenai"
    ANTHROPIC = "anthropic"

    @classmethod
    def parse(cls, name: Optional[str]) -> "ProviderKind":
        normalized = (name or "").strip().lower().replace("-", "").replace("_", "")
        for kind in cls:
            if kind.value == normalized:
                return kind
        raise EngineBuildError(
            f"Unsupported LLM provider: {name}. Supported providers are: "
            f"{', '.join(k.value for k in cls)}",
            details={"provider": name},
        )


@dataclass(frozen=True)
class ResolvedProviderConfig:
    """Provider settings after option/env/server resolution."""

    provider: ProviderKind
    api_key: str
    model_name: Optional[str] = None
    endpoint: Optional[str] = None
    deployment_name: Optional[str] = None
    api_version: Optional[str] = None

    def __repr__(self) -> str:
        return (
            f"ResolvedProviderConfig(provider={self.provider.value}, api_key='***', "
            f"model_name={self.model_name!r}, endpoint={self.endpoint!r}, "
            f"deployment_name={self.deployment_name!r})"
        )


class ProviderAdapter(ABC):
    """Base adapter interface for LLM providers"""

    kind: ProviderKind

    @property
    @abstractmethod
    def required_fields(self) -> Tuple[str, ...]:
        """Settings (besides the provider) this provider cannot work without"""
        pass

    @abstractmethod
    def model_identifier(self, config: ResolvedProviderConfig) -> str:
        """Full LiteLLM model identifier, e.g. 'openai/gpt-4o'"""
        pass

    def completion_params(self, config: ResolvedProviderConfig, timeout: Optional[float] = None) -> Dict[str, Any]:
        """Connection parameters for ``litellm.acompletion``."""
        params = {
            "model": self.model_identifier(config),
            "api_key": config.api_key,
            "api_base": config.endpoint,
            "api_version": config.api_version,
            "timeout": timeout,
        }
        # Remove None values to avoid sending empty params
        return {k: v for k, v in params.items() if v is not None}


class OpenAIAdapter(ProviderAdapter):
    kind = ProviderKind.OPENAI

    @property
    def required_fields(self) -> Tuple[str, ...]:
        return ("api_key", "model_name")

    def model_identifier(self, config: ResolvedProviderConfig) -> str:
        return f"openai/{config.model_name}"


class AzureOpenAIAdapter(ProviderAdapter):
    kind = ProviderKind.AZURE_OPENAI

    @property
    def required_fields(self) -> Tuple[str, ...]:
        return ("api_key", "endpoint", "deployment_name")

    def model_identifier(self, config: ResolvedProviderConfig) -> str:
        return f"azure/{config.deployment_name}"

    def completion_params(self, config: ResolvedProviderConfig, timeout: Optional[float] = None) -> Dict[str, Any]:
        params = super().completion_params(config, timeout)
        params.setdefault("api_version", DEFAULT_AZURE_API_VERSION)
        return params


class AnthropicAdapter(ProviderAdapter):
    kind = ProviderKind.ANTHROPIC

    @property
    def required_fields(self) -> Tuple[str, ...]:
        return ("api_key", "model_name")

    def model_identifier(self, config: ResolvedProviderConfig) -> str:
        return f"anthropic/{config.model_name}"


_ADAPTERS: Dict[ProviderKind, ProviderAdapter] = {
    ProviderKind.OPENAI: OpenAIAdapter(),
    ProviderKind.AZURE_OPENAI: AzureOpenAIAdapter(),
    ProviderKind.ANTHROPIC: AnthropicAdapter(),
}


def get_adapter(kind: ProviderKind) -> ProviderAdapter:
    return _ADAPTERS[kind]
