from .config_resolver import ProviderConfigResolver
from .engine import CompletionEngine, TerminationGuard
from .engine_cache import EngineCache, EngineCacheEntry
from .providers import ProviderAdapter, ProviderKind, ResolvedProviderConfig, get_adapter
from .settings_service import HttpSettingsProvider, ServerSettings, SettingsProvider, StaticSettingsProvider

__all__ = [
    "ProviderConfigResolver",
    "CompletionEngine",
    "TerminationGuard",
    "EngineCache",
    "EngineCacheEntry",
    "ProviderAdapter",
    "ProviderKind",
    "ResolvedProviderConfig",
    "get_adapter",
    "SettingsProvider",
    "StaticSettingsProvider",
    "HttpSettingsProvider",
    "ServerSettings",
]
