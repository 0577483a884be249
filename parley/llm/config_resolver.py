"""Provider configuration resolution.

Every provider setting is resolved with a fixed fallback chain:
per-call option -> process environment -> platform server settings.
The first non-blank value wins.
"""

import logging
import os
from typing import Callable, Optional

from parley.config import RouterOptions
from parley.constants import (
    ENV_LLM_API_KEY,
    ENV_LLM_DEPLOYMENT_NAME,
    ENV_LLM_ENDPOINT,
    ENV_LLM_MODEL_NAME,
    ENV_LLM_PROVIDER,
    SETTINGS_DEPLOYMENT_NAME_KEY,
)
from parley.llm.providers import ProviderKind, ResolvedProviderConfig, get_adapter
from parley.llm.settings_service import ServerSettings, SettingsProvider
from parley.utils.errors import ConfigurationError

logger = logging.getLogger(__name__)

# field -> (human label, environment variable)
_FIELDS = {
    "provider": ("LLM Provider", ENV_LLM_PROVIDER),
    "api_key": ("LLM API Key", ENV_LLM_API_KEY),
    "endpoint": ("LLM Endpoint", ENV_LLM_ENDPOINT),
    "deployment_name": ("LLM Deployment Name", ENV_LLM_DEPLOYMENT_NAME),
    "model_name": ("LLM Model Name", ENV_LLM_MODEL_NAME),
}


def _settings_value(settings: ServerSettings, field_name: str) -> Optional[str]:
    if field_name == "provider":
        return settings.provider_name
    if field_name == "deployment_name":
        return (settings.additional_config or {}).get(SETTINGS_DEPLOYMENT_NAME_KEY)
    return getattr(settings, field_name, None)


def _present(value: Optional[str]) -> bool:
    return bool(value and str(value).strip())


class ProviderConfigResolver:
    """Resolves LLM provider settings for one call.

    Environment variables are read when the resolver is created. The remote
    settings snapshot is fetched at most once per resolver, and only if a
    field is missing from both the options and the environment.
    """

    def __init__(
        self,
        settings_provider: Optional[SettingsProvider] = None,
        environ: Optional[Callable[[str], Optional[str]]] = None,
    ):
        getenv = environ or os.getenv
        self._env = {name: getenv(env_var) for name, (_, env_var) in _FIELDS.items()}
        self._settings_provider = settings_provider
        self._settings: Optional[ServerSettings] = None

    async def _get_settings(self, field_name: str) -> Optional[ServerSettings]:
        if self._settings is not None:
            return self._settings
        if self._settings_provider is None:
            return None
        try:
            self._settings = await self._settings_provider.get_settings()
        except Exception as e:
            label = _FIELDS[field_name][0]
            logger.error(f"Failed to load server settings while resolving {label}: {e}")
            raise ConfigurationError(
                f"{label} is not available: failed to load server settings ({e})",
                field=field_name,
            ) from e
        return self._settings

    async def resolve_field(self, options: RouterOptions, field_name: str) -> str:
        explicit = getattr(options, field_name, None)
        if _present(explicit):
            return explicit

        from_env = self._env.get(field_name)
        if _present(from_env):
            return from_env

        settings = await self._get_settings(field_name)
        if settings is not None:
            remote = _settings_value(settings, field_name)
            if _present(remote):
                return remote

        raise ConfigurationError(f"{_FIELDS[field_name][0]} is not available", field=field_name)

    async def get_provider_name(self, options: RouterOptions) -> str:
        return await self.resolve_field(options, "provider")

    async def get_api_key(self, options: RouterOptions) -> str:
        return await self.resolve_field(options, "api_key")

    async def get_endpoint(self, options: RouterOptions) -> str:
        return await self.resolve_field(options, "endpoint")

    async def get_deployment_name(self, options: RouterOptions) -> str:
        return await self.resolve_field(options, "deployment_name")

    async def get_model_name(self, options: RouterOptions) -> str:
        return await self.resolve_field(options, "model_name")

    async def resolve(self, options: RouterOptions) -> ResolvedProviderConfig:
        """Resolve the provider and exactly the fields it requires."""
        provider = ProviderKind.parse(await self.get_provider_name(options))
        adapter = get_adapter(provider)

        values = {}
        for field_name in adapter.required_fields:
            values[field_name] = await self.resolve_field(options, field_name)

        config = ResolvedProviderConfig(
            provider=provider,
            api_version=options.api_version or None,
            **values,
        )
        logger.debug(f"Resolved provider config: {config!r}")
        return config
