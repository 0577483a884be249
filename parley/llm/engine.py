"""Completion engine.

Wraps ``litellm.acompletion`` with a table of capability plugins the model
may call. :meth:`CompletionEngine.ask` runs the automatic tool-call loop:
each tool call is executed and its result fed back until the model answers
with text, guarded against a function being called over and over.
"""

import inspect
import json
import logging
import os
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional

import litellm  # type: ignore

from parley.constants import DEFAULT_MAX_CONSECUTIVE_CALLS, WARNING_CONSECUTIVE_CALLS
from parley.llm.providers import ResolvedProviderConfig, get_adapter
from parley.tools.registry import CapabilityFunction
from parley.utils.errors import ModelInvocationError, ToolLoopTerminatedError

logger = logging.getLogger(__name__)

CompletionFn = Callable[..., Awaitable[Any]]

# Tool names are "<plugin>-<function>"
TOOL_NAME_SEPARATOR = "-"

# Rounds of automatic tool calls before the model is asked to answer without tools.
MAX_AUTO_INVOKE_ROUNDS = 128

_RECOVERABLE_LITELLM_ERRORS = tuple(
    getattr(litellm.exceptions, name)
    for name in ("RateLimitError", "APIConnectionError", "Timeout", "ServiceUnavailableError", "InternalServerError")
    if hasattr(litellm.exceptions, name)
)


class TerminationGuard:
    """Caps consecutive automatic calls of the same function.

    The count resets whenever a different function is called. Past
    ``WARNING_CONSECUTIVE_CALLS`` a warning is logged; past
    ``max_consecutive_calls`` the loop is terminated.
    """

    def __init__(self, max_consecutive_calls: int = DEFAULT_MAX_CONSECUTIVE_CALLS):
        self.max_consecutive_calls = max_consecutive_calls
        self._last_function_key: Optional[str] = None
        self._consecutive_call_count = 0

    @property
    def consecutive_call_count(self) -> int:
        return self._consecutive_call_count

    def record(self, plugin_name: str, function_name: str) -> None:
        function_key = f"{plugin_name}.{function_name}"
        if function_key == self._last_function_key:
            self._consecutive_call_count += 1
        else:
            self._consecutive_call_count = 1
            self._last_function_key = function_key

        logger.debug(f"Function {function_key} called consecutively {self._consecutive_call_count} times")

        if self._consecutive_call_count > WARNING_CONSECUTIVE_CALLS:
            logger.warning(
                f"Function {function_key} has been called consecutively {self._consecutive_call_count} times. "
                f"Will terminate if it is called more than {self.max_consecutive_calls} times."
            )

        if self._consecutive_call_count > self.max_consecutive_calls:
            logger.warning(
                f"Terminating execution: function {function_key} called consecutively "
                f"{self._consecutive_call_count} times, exceeding limit of {self.max_consecutive_calls}"
            )
            raise ToolLoopTerminatedError(
                f"Function {function_key} has been called consecutively {self._consecutive_call_count} times, "
                f"exceeding limit of {self.max_consecutive_calls} times.",
                details={"function": function_key, "count": self._consecutive_call_count},
            )


class CompletionEngine:
    """A provider connection plus the plugins exposed to the model."""

    def __init__(
        self,
        provider_config: ResolvedProviderConfig,
        timeout_seconds: Optional[float] = None,
        max_consecutive_calls: int = DEFAULT_MAX_CONSECUTIVE_CALLS,
        completion_fn: Optional[CompletionFn] = None,
    ):
        self.provider_config = provider_config
        self.adapter = get_adapter(provider_config.provider)
        self.timeout_seconds = timeout_seconds
        self.max_consecutive_calls = max_consecutive_calls
        self._completion_fn = completion_fn or litellm.acompletion
        self._connection = self.adapter.completion_params(provider_config, timeout_seconds)
        self._plugins: Dict[str, Dict[str, CapabilityFunction]] = {}
        logger.info(f"CompletionEngine initialized for model: {self._connection.get('model')}")

    @property
    def model(self) -> str:
        return self._connection["model"]

    # ------------------------------------------------------------------
    # Plugins
    # ------------------------------------------------------------------

    @property
    def plugin_names(self) -> List[str]:
        return list(self._plugins)

    def has_plugin(self, name: str) -> bool:
        return name in self._plugins

    def get_plugin(self, name: str) -> Dict[str, CapabilityFunction]:
        return dict(self._plugins.get(name, {}))

    def add_plugin(self, name: str, functions: Iterable[CapabilityFunction]) -> None:
        """Add a plugin. Adding an existing name is a no-op."""
        if name in self._plugins:
            logger.debug(f"Plugin {name} already registered, skipping")
            return
        self._plugins[name] = {f.name: f for f in functions}

    def replace_plugin(self, name: str, functions: Iterable[CapabilityFunction]) -> None:
        """Add a plugin, replacing any previous registration under the same name."""
        if name in self._plugins:
            logger.debug(f"Replacing plugin {name}")
        self._plugins[name] = {f.name: f for f in functions}

    def remove_plugin(self, name: str) -> None:
        self._plugins.pop(name, None)

    def _plugin_table(
        self, turn_plugins: Optional[Dict[str, Iterable[CapabilityFunction]]] = None
    ) -> Dict[str, Dict[str, CapabilityFunction]]:
        table = dict(self._plugins)
        for name, functions in (turn_plugins or {}).items():
            table[name] = {f.name: f for f in functions}
        return table

    def tool_schemas(
        self, turn_plugins: Optional[Dict[str, Iterable[CapabilityFunction]]] = None
    ) -> List[Dict[str, Any]]:
        tools = []
        for plugin_name, functions in self._plugin_table(turn_plugins).items():
            for function in functions.values():
                tools.append({
                    "type": "function",
                    "function": {
                        "name": f"{plugin_name}{TOOL_NAME_SEPARATOR}{function.name}",
                        "description": function.description,
                        "parameters": function.parameters,
                    },
                })
        return tools

    def _lookup(self, tool_name: str, table: Dict[str, Dict[str, CapabilityFunction]]):
        plugin_name, _, function_name = tool_name.partition(TOOL_NAME_SEPARATOR)
        function = table.get(plugin_name, {}).get(function_name)
        if function is None:
            # Plugin names may themselves contain the separator
            for candidate_plugin, functions in table.items():
                prefix = f"{candidate_plugin}{TOOL_NAME_SEPARATOR}"
                if tool_name.startswith(prefix) and tool_name[len(prefix):] in functions:
                    return candidate_plugin, functions[tool_name[len(prefix):]]
            return plugin_name, None
        return plugin_name, function

    # ------------------------------------------------------------------
    # Completion
    # ------------------------------------------------------------------

    async def ask(
        self,
        messages: List[Dict[str, Any]],
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        enable_functions: bool = True,
        turn_plugins: Optional[Dict[str, Iterable[CapabilityFunction]]] = None,
    ) -> str:
        """Send ``messages`` and return the model's final text.

        With functions enabled, tool calls are executed automatically and the
        loop continues until the model replies without calling a tool.
        ``turn_plugins`` overlay the engine's plugins for this call only.
        """
        request_id = os.urandom(4).hex()
        guard = TerminationGuard(self.max_consecutive_calls)
        conversation = list(messages)
        table = self._plugin_table(turn_plugins)
        tools = self.tool_schemas(turn_plugins) if enable_functions else []

        rounds = 0
        while True:
            offer_tools = bool(tools) and rounds < MAX_AUTO_INVOKE_ROUNDS
            response = await self._invoke(conversation, max_tokens, temperature, tools if offer_tools else None, request_id)
            message = self._first_message(response, request_id)
            tool_calls = _get(message, "tool_calls") or []

            if not tool_calls or not offer_tools:
                content = _get(message, "content") or ""
                logger.info(f"[Request:{request_id}] Completed after {rounds} tool rounds. Response length: {len(content)}")
                return content

            rounds += 1
            conversation.append({
                "role": "assistant",
                "content": _get(message, "content"),
                "tool_calls": [_tool_call_dict(call) for call in tool_calls],
            })
            for call in tool_calls:
                conversation.append(await self._run_tool_call(call, table, guard, request_id))

    async def _invoke(
        self,
        messages: List[Dict[str, Any]],
        max_tokens: Optional[int],
        temperature: Optional[float],
        tools: Optional[List[Dict[str, Any]]],
        request_id: str,
    ) -> Any:
        params = dict(self._connection)
        params["messages"] = messages
        if max_tokens is not None:
            params["max_tokens"] = max_tokens
        if temperature is not None:
            params["temperature"] = temperature
        if tools:
            params["tools"] = tools
            params["tool_choice"] = "auto"

        logger.debug(
            f"[Request:{request_id}] Calling {params['model']} with {len(messages)} messages "
            f"and {len(tools or [])} tools"
        )
        try:
            return await self._completion_fn(**params)
        except _RECOVERABLE_LITELLM_ERRORS as e:
            logger.error(f"[Request:{request_id}] Transient provider error: {e}")
            raise ModelInvocationError(
                f"LLM call to {params['model']} failed: {e}",
                recoverable=True,
                details={"model": params["model"]},
            ) from e
        except Exception as e:
            logger.error(f"[Request:{request_id}] Error during completion call: {e}", exc_info=True)
            raise ModelInvocationError(
                f"LLM call to {params['model']} failed: {e}",
                recoverable=False,
                details={"model": params["model"]},
            ) from e

    def _first_message(self, response: Any, request_id: str) -> Any:
        choices = _get(response, "choices") or []
        if not choices or _get(choices[0], "message") is None:
            logger.warning(f"[Request:{request_id}] Could not extract a message from the response: {response}")
            raise ModelInvocationError("LLM response contained no message", recoverable=False)
        return _get(choices[0], "message")

    async def _run_tool_call(
        self,
        call: Any,
        table: Dict[str, Dict[str, CapabilityFunction]],
        guard: TerminationGuard,
        request_id: str,
    ) -> Dict[str, Any]:
        call_id = _get(call, "id")
        function_block = _get(call, "function")
        tool_name = _get(function_block, "name") or ""
        plugin_name, function = self._lookup(tool_name, table)
        guard.record(plugin_name, function.name if function else tool_name)

        if function is None:
            logger.warning(f"[Request:{request_id}] Model called unknown function {tool_name}")
            content = f"Error: function {tool_name} is not available"
        else:
            content = await self._execute(function, _get(function_block, "arguments"), tool_name, request_id)

        return {"role": "tool", "tool_call_id": call_id, "name": tool_name, "content": content}

    async def _execute(
        self, function: CapabilityFunction, raw_arguments: Any, tool_name: str, request_id: str
    ) -> str:
        try:
            if isinstance(raw_arguments, dict):
                arguments = raw_arguments
            else:
                arguments = json.loads(raw_arguments or "{}")
        except (json.JSONDecodeError, TypeError) as e:
            logger.warning(f"[Request:{request_id}] Invalid arguments for {tool_name}: {e}")
            return f"Error: invalid JSON arguments for {tool_name}: {e}"
        if not isinstance(arguments, dict):
            logger.warning(f"[Request:{request_id}] Arguments for {tool_name} are not an object: {raw_arguments}")
            return f"Error: invalid JSON arguments for {tool_name}: expected an object, got {type(arguments).__name__}"

        logger.debug(f"[Request:{request_id}] Invoking {tool_name} with {list(arguments)}")
        try:
            result = function.handler(**arguments)
            if inspect.isawaitable(result):
                result = await result
        except Exception as e:
            # Reported back to the model, which may recover
            logger.error(f"[Request:{request_id}] Function {tool_name} raised: {e}", exc_info=True)
            return f"Error: {type(e).__name__}: {e}"

        if result is None:
            return ""
        if isinstance(result, str):
            return result
        return json.dumps(result, default=str)


def _get(obj: Any, key: str) -> Any:
    """Attribute or key access for LiteLLM response objects and plain dicts."""
    if obj is None:
        return None
    if isinstance(obj, dict):
        return obj.get(key)
    return getattr(obj, key, None)


def _tool_call_dict(call: Any) -> Dict[str, Any]:
    function_block = _get(call, "function")
    arguments = _get(function_block, "arguments")
    if isinstance(arguments, dict):
        arguments = json.dumps(arguments)
    return {
        "id": _get(call, "id"),
        "type": "function",
        "function": {"name": _get(function_block, "name"), "arguments": arguments or "{}"},
    }
