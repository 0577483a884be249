import os
import logging
from dataclasses import dataclass, field, fields, replace
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Optional, Union

import yaml  # type: ignore
from dotenv import load_dotenv  # type: ignore

from parley.constants import (
    DEFAULT_HISTORY_SIZE_TO_FETCH,
    DEFAULT_HTTP_TIMEOUT_SECONDS,
    DEFAULT_MAX_CONSECUTIVE_CALLS,
    DEFAULT_MAX_TOKENS,
    DEFAULT_MAX_TOKENS_PER_FUNCTION_RESULT,
    DEFAULT_TARGET_TOKEN_COUNT,
    DEFAULT_TEMPERATURE,
)
from parley.orchestration.config import OrchestrationConfig

logger = logging.getLogger(__name__)


def deep_merge_dicts(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = deep_merge_dicts(dict(base.get(key, {})), value)
        else:
            base[key] = value
    return base


def _read_yaml(path: Path) -> Dict[str, Any]:
    if not path.exists():
        logger.warning(f"Config file not found: {path}")
        return {}
    with open(path, "r") as f:
        data = yaml.safe_load(f) or {}
    return data if isinstance(data, dict) else {}


@dataclass(frozen=True)
class RouterOptions:
    """Per-call options for a conversational turn.

    Blank provider fields are resolved from the environment and then from the
    platform's server settings. ``token_limit`` of 0 disables history
    reduction.
    """

    provider: Optional[str] = None
    api_key: Optional[str] = None
    endpoint: Optional[str] = None
    deployment_name: Optional[str] = None
    model_name: Optional[str] = None
    api_version: Optional[str] = None

    temperature: float = DEFAULT_TEMPERATURE
    max_tokens: int = DEFAULT_MAX_TOKENS
    history_size_to_fetch: int = DEFAULT_HISTORY_SIZE_TO_FETCH

    token_limit: int = 0
    target_token_count: int = DEFAULT_TARGET_TOKEN_COUNT
    max_tokens_per_function_result: int = DEFAULT_MAX_TOKENS_PER_FUNCTION_RESULT

    http_timeout_seconds: int = DEFAULT_HTTP_TIMEOUT_SECONDS
    max_consecutive_calls: int = DEFAULT_MAX_CONSECUTIVE_CALLS

    @property
    def reduction_enabled(self) -> bool:
        return self.token_limit > 0

    def with_overrides(self, **changes: Any) -> "RouterOptions":
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "RouterOptions":
        """Build options from a config mapping, ignoring unknown keys."""
        data = data or {}
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            logger.debug(f"Ignoring unknown router options: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})

    def to_dict(self) -> Dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}

    def __repr__(self) -> str:
        # Keep API keys out of logs and tracebacks
        masked = "***" if self.api_key else None
        return (
            f"RouterOptions(provider={self.provider!r}, api_key={masked!r}, "
            f"endpoint={self.endpoint!r}, deployment_name={self.deployment_name!r}, "
            f"model_name={self.model_name!r}, temperature={self.temperature}, "
            f"max_tokens={self.max_tokens}, token_limit={self.token_limit})"
        )


@dataclass
class PlatformConfig:
    """Connection to the agent platform server."""

    server_url: Optional[str] = None
    api_key: Optional[str] = None
    tenant_id: Optional[str] = None
    timeout_seconds: float = 30.0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PlatformConfig":
        return cls(
            server_url=data.get("server_url"),
            api_key=data.get("api_key"),
            tenant_id=data.get("tenant_id"),
            timeout_seconds=float(data.get("timeout_seconds", 30.0)),
        )


@dataclass
class ParleyConfig:
    """Process-level configuration.

    Precedence (lowest → highest):
      1. Dataclass defaults
      2. YAML file named by ``PARLEY_CONFIG_PATH`` (or the explicit path)
      3. Environment variables (``.env`` files are loaded first)
    """

    router: RouterOptions = field(default_factory=RouterOptions)
    platform: PlatformConfig = field(default_factory=PlatformConfig)
    orchestration: OrchestrationConfig = field(default_factory=OrchestrationConfig)
    log_level: str = "INFO"
    log_path: Optional[Path] = None

    @classmethod
    def load(cls, config_path: Optional[Union[str, Path]] = None, load_env: bool = True) -> "ParleyConfig":
        if load_env:
            # Project-level .env; values already exported win
            load_dotenv(override=False)

        data: Dict[str, Any] = {}
        path = config_path or os.getenv("PARLEY_CONFIG_PATH")
        if path:
            data = deep_merge_dicts(data, _read_yaml(Path(path)))

        platform_data = dict(data.get("platform") or {})
        env_overrides = {
            "server_url": os.getenv("PARLEY_SERVER_URL"),
            "api_key": os.getenv("PARLEY_API_KEY"),
            "tenant_id": os.getenv("PARLEY_TENANT_ID"),
        }
        platform_data.update({k: v for k, v in env_overrides.items() if v})

        logging_data = data.get("logging") or {}
        log_level = os.getenv("PARLEY_LOG_LEVEL") or logging_data.get("level") or "INFO"
        log_path = logging_data.get("path")

        config = cls(
            router=RouterOptions.from_dict(data.get("router")),
            platform=PlatformConfig.from_dict(platform_data),
            orchestration=OrchestrationConfig.from_dict(data.get("orchestration") or {}),
            log_level=str(log_level).upper(),
            log_path=Path(log_path) if log_path else None,
        )
        logger.debug(f"Loaded config from {path or 'environment'}: router={config.router!r}")
        return config


_HANDLER_FLAG = "_parley_log_handler"


def configure_logging(level: Union[int, str] = logging.INFO, log_path: Optional[Union[str, Path]] = None) -> None:
    """Install console and optional rotating file handlers on the root logger.

    Calling it again replaces the handlers installed by a previous call.
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    for handler in list(root_logger.handlers):
        if getattr(handler, _HANDLER_FLAG, False):
            root_logger.removeHandler(handler)
            handler.close()

    formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    setattr(console_handler, _HANDLER_FLAG, True)
    root_logger.addHandler(console_handler)

    if log_path:
        target_path = Path(log_path)
        target_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            target_path,
            maxBytes=5 * 1024 * 1024,
            backupCount=3,
            encoding="utf-8",
        )
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        setattr(file_handler, _HANDLER_FLAG, True)
        root_logger.addHandler(file_handler)

    # Provider SDK chatter
    logging.getLogger("LiteLLM").setLevel(max(level, logging.WARNING))
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
