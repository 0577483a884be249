"""HTTP client for the agent platform server.

Thin wrapper over ``httpx.AsyncClient`` used by the HTTP message store,
the settings provider and the outbound transport. All failures surface as
``TransportError``.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx  # type: ignore

from parley.config import PlatformConfig
from parley.utils.errors import TransportError

logger = logging.getLogger(__name__)

_SECRET_KEYS = {"authorization", "apiKey", "api_key"}


def _redacted(payload: Any) -> Any:
    if isinstance(payload, dict):
        return {k: ("***" if k in _SECRET_KEYS and v else v) for k, v in payload.items()}
    return payload


class PlatformClient:
    """Authenticated JSON client for the agent platform."""

    def __init__(
        self,
        base_url: str,
        api_key: Optional[str] = None,
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        if not base_url:
            raise TransportError("Platform server URL is not configured")
        self.base_url = base_url.rstrip("/")
        headers = {"Accept": "application/json"}
        if api_key:
            headers["Authorization"] = f"Bearer {api_key}"
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers,
            timeout=timeout,
        )

    @classmethod
    def from_config(cls, config: PlatformConfig) -> "PlatformClient":
        return cls(config.server_url or "", api_key=config.api_key, timeout=config.timeout_seconds)

    async def __aenter__(self) -> "PlatformClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def get_json(self, path: str, params: Optional[Dict[str, Any]] = None) -> Any:
        return await self._request("GET", path, params=params)

    async def post_json(
        self,
        path: str,
        payload: Any = None,
        params: Optional[Dict[str, Any]] = None,
        timeout: Optional[float] = None,
    ) -> Any:
        return await self._request("POST", path, params=params, json=payload, timeout=timeout)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        params = kwargs.get("params")
        if params:
            kwargs["params"] = {k: v for k, v in params.items() if v is not None}
        if kwargs.get("timeout") is None:
            kwargs.pop("timeout", None)

        logger.debug(f"{method} {path} params={kwargs.get('params')} payload={_redacted(kwargs.get('json'))}")
        try:
            response = await self._client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Platform error on {method} {path}: {e.response.status_code} {e.response.text[:200]}")
            raise TransportError(
                f"{method} {path} failed with status {e.response.status_code}",
                details={"status_code": e.response.status_code, "path": path},
            ) from e
        except httpx.TimeoutException as e:
            logger.error(f"Platform request timed out: {method} {path}")
            raise TransportError(f"{method} {path} timed out", details={"path": path}) from e
        except httpx.RequestError as e:
            logger.error(f"Platform request failed: {method} {path}: {e}")
            raise TransportError(f"{method} {path} failed: {e}", details={"path": path}) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError:
            return response.text
