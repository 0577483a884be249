"""Remote provider settings published by the agent platform."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from parley.platform_client import PlatformClient
from parley.utils.errors import TransportError

logger = logging.getLogger(__name__)

SETTINGS_PATH = "api/agent/settings/flowserver"


@dataclass(frozen=True)
class ServerSettings:
    """LLM settings snapshot held by the platform server."""

    api_key: Optional[str] = None
    provider_name: Optional[str] = None
    endpoint: Optional[str] = None
    model_name: Optional[str] = None
    additional_config: Dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ServerSettings":
        # The server speaks camelCase
        def pick(*keys: str) -> Optional[str]:
            for key in keys:
                value = data.get(key)
                if value:
                    return value
            return None

        return cls(
            api_key=pick("apiKey", "api_key", "openAIApiKey"),
            provider_name=pick("providerName", "provider_name"),
            endpoint=pick("baseUrl", "base_url", "endpoint"),
            model_name=pick("modelName", "model_name"),
            additional_config=dict(data.get("additionalConfig") or data.get("additional_config") or {}),
        )


class SettingsProvider(ABC):
    """Source of the remote :class:`ServerSettings` snapshot."""

    @abstractmethod
    async def get_settings(self) -> ServerSettings:
        ...


class StaticSettingsProvider(SettingsProvider):
    """Returns a fixed snapshot. Used for hosts without a platform server."""

    def __init__(self, settings: Optional[ServerSettings] = None):
        self._settings = settings or ServerSettings()

    async def get_settings(self) -> ServerSettings:
        return self._settings


class HttpSettingsProvider(SettingsProvider):
    """Fetches settings from the platform and caches the first success."""

    def __init__(self, client: PlatformClient):
        self._client = client
        self._settings: Optional[ServerSettings] = None
        self._lock = asyncio.Lock()

    async def get_settings(self) -> ServerSettings:
        if self._settings is not None:
            return self._settings
        async with self._lock:
            if self._settings is None:
                payload = await self._client.get_json(SETTINGS_PATH)
                if not isinstance(payload, dict):
                    raise TransportError(f"Unexpected settings payload from {SETTINGS_PATH}")
                self._settings = ServerSettings.from_dict(payload)
                logger.info(
                    f"Settings loaded from server: provider={self._settings.provider_name}, "
                    f"model={self._settings.model_name}"
                )
        return self._settings
