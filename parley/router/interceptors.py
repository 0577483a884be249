"""Chat interceptors and engine modifiers.

Interceptors see every inbound thread before the model is called and every
response after. Engine modifiers adjust the engine for a turn. A failing
hook is logged and skipped; it never fails the conversation.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Awaitable, Iterable, List, Optional, Protocol, Sequence, Union, runtime_checkable

from parley.llm.engine import CompletionEngine
from parley.system.thread import Thread
from parley.utils.errors import InterceptorError

logger = logging.getLogger(__name__)


@runtime_checkable
class ChatInterceptor(Protocol):
    async def intercept_incoming(self, thread: Thread) -> Thread:
        ...

    async def intercept_outgoing(self, thread: Thread, response: str) -> Optional[str]:
        ...


@runtime_checkable
class EngineModifier(Protocol):
    async def modify_engine(self, engine: CompletionEngine, thread: Thread) -> CompletionEngine:
        ...


class BaseInterceptor:
    """Interceptor that passes everything through; override what you need."""

    async def intercept_incoming(self, thread: Thread) -> Thread:
        return thread

    async def intercept_outgoing(self, thread: Thread, response: str) -> Optional[str]:
        return response


async def _maybe_await(value: Union[Any, Awaitable[Any]]) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


def _name(obj: Any) -> str:
    return type(obj).__name__


class InterceptorChain:
    """Runs interceptors in order, isolating their failures."""

    def __init__(self, interceptors: Optional[Iterable[ChatInterceptor]] = None):
        self.interceptors: List[ChatInterceptor] = [i for i in (interceptors or []) if i is not None]

    def __len__(self) -> int:
        return len(self.interceptors)

    async def incoming(self, thread: Thread) -> Thread:
        for interceptor in self.interceptors:
            try:
                result = await _maybe_await(interceptor.intercept_incoming(thread))
            except Exception as e:
                _log_failure(InterceptorError(
                    f"Error intercepting incoming message with {_name(interceptor)}: {e}",
                    details={"interceptor": _name(interceptor), "direction": "incoming"},
                ), e)
                continue
            if result is None:
                logger.warning(f"{_name(interceptor)} returned no thread, keeping the original")
                continue
            thread = result
        return thread

    async def outgoing(self, thread: Thread, response: str) -> str:
        for interceptor in self.interceptors:
            try:
                result = await _maybe_await(interceptor.intercept_outgoing(thread, response))
            except Exception as e:
                _log_failure(InterceptorError(
                    f"Error intercepting outgoing message with {_name(interceptor)}: {e}",
                    details={"interceptor": _name(interceptor), "direction": "outgoing"},
                ), e)
                continue
            if result is not None:
                response = result
        return response


async def apply_engine_modifiers(
    engine: CompletionEngine,
    thread: Thread,
    modifiers: Optional[Sequence[EngineModifier]],
) -> CompletionEngine:
    """Apply modifiers in order. A failing modifier leaves the engine as it was."""
    for modifier in modifiers or []:
        logger.debug(f"Modifying engine with {_name(modifier)}")
        try:
            result = await _maybe_await(modifier.modify_engine(engine, thread))
        except Exception as e:
            _log_failure(InterceptorError(
                f"Error modifying engine with {_name(modifier)}: {e}",
                details={"modifier": _name(modifier)},
            ), e)
            continue
        if result is not None:
            engine = result
    return engine


def _log_failure(error: InterceptorError, cause: BaseException) -> None:
    logger.error(str(error), exc_info=cause)
