"""Conversational router.

Runs one turn for an inbound message:

1. RESOLVE the provider configuration
2. ENGINE: get or build the cached engine for the workflow type, attach
   static capabilities once and this turn's instance capabilities
3. INTERCEPT-IN
4. HISTORY: assemble, append the current message, reduce if configured
5. INVOKE the model with tool calling enabled
6. INTERCEPT-OUT
7. SKIP-CHECK: a capability may ask for the reply to be suppressed
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Union

from parley.config import RouterOptions
from parley.constants import DEFAULT_COMPLETION_INSTRUCTION
from parley.llm.config_resolver import ProviderConfigResolver
from parley.llm.engine import CompletionEngine, CompletionFn
from parley.llm.engine_cache import EngineCache, EngineCacheEntry
from parley.llm.providers import ResolvedProviderConfig
from parley.llm.settings_service import SettingsProvider
from parley.router.interceptors import ChatInterceptor, EngineModifier, InterceptorChain, apply_engine_modifiers
from parley.system.history import HistoryAssembler, MessageStore
from parley.system.history_reducer import HistoryReducer
from parley.system.thread import Thread
from parley.tools.date_plugin import date_plugin_descriptor
from parley.tools.registry import CapabilityDescriptor, CapabilityFunction, CapabilityKind, CapabilityRegistry
from parley.utils.errors import ValidationError
from parley.utils.token_counter import TokenCounter, default_token_counter

logger = logging.getLogger(__name__)

Capabilities = Union[CapabilityRegistry, Sequence[CapabilityDescriptor], None]
Interceptors = Union[ChatInterceptor, Sequence[ChatInterceptor], None]


@dataclass
class RouteResult:
    """Outcome of a turn: reply text, or an explicit suppressed reply."""

    text: Optional[str] = None
    is_suppressed: bool = False

    @classmethod
    def reply(cls, text: str) -> "RouteResult":
        return cls(text=text, is_suppressed=False)

    @classmethod
    def suppressed(cls) -> "RouteResult":
        return cls(text=None, is_suppressed=True)


def _descriptors(capabilities: Capabilities) -> List[CapabilityDescriptor]:
    if capabilities is None:
        return []
    if isinstance(capabilities, CapabilityRegistry):
        return capabilities.descriptors
    return list(capabilities)


def _interceptor_list(interceptors: Interceptors) -> List[ChatInterceptor]:
    if interceptors is None:
        return []
    if isinstance(interceptors, (list, tuple)):
        return list(interceptors)
    return [interceptors]


class Router:
    """Orchestrates conversational turns against a language model."""

    def __init__(
        self,
        engine_cache: Optional[EngineCache] = None,
        message_store: Optional[MessageStore] = None,
        settings_provider: Optional[SettingsProvider] = None,
        completion_fn: Optional[CompletionFn] = None,
        token_counter: TokenCounter = default_token_counter,
    ):
        self.engine_cache = engine_cache if engine_cache is not None else EngineCache()
        self.assembler = HistoryAssembler(message_store)
        self.settings_provider = settings_provider
        self.completion_fn = completion_fn
        self.token_counter = token_counter

    def _build_engine(self, provider_config: ResolvedProviderConfig, options: RouterOptions) -> CompletionEngine:
        return CompletionEngine(
            provider_config,
            timeout_seconds=options.http_timeout_seconds,
            max_consecutive_calls=options.max_consecutive_calls,
            completion_fn=self.completion_fn,
        )

    async def _resolve(self, options: RouterOptions) -> ResolvedProviderConfig:
        return await ProviderConfigResolver(self.settings_provider).resolve(options)

    async def route(
        self,
        thread: Thread,
        system_prompt: str,
        capabilities: Capabilities = None,
        interceptors: Interceptors = None,
        engine_modifiers: Optional[Sequence[EngineModifier]] = None,
        options: Optional[RouterOptions] = None,
    ) -> RouteResult:
        if not system_prompt or not system_prompt.strip():
            raise ValidationError("System prompt is required")
        options = options or RouterOptions()

        logger.info(f"Routing message for {thread.workflow_type} (workflow {thread.workflow_id})")

        # RESOLVE
        provider_config = await self._resolve(options)

        # ENGINE
        async def build() -> CompletionEngine:
            return self._build_engine(provider_config, options)

        entry = await self.engine_cache.get_or_create(thread.workflow_type, build)
        turn_plugins = self._attach_capabilities(entry, _descriptors(capabilities), thread)
        engine = await apply_engine_modifiers(entry.engine, thread, engine_modifiers)

        # INTERCEPT-IN
        received = thread
        received_text = thread.latest_text
        chain = InterceptorChain(_interceptor_list(interceptors))
        thread = await chain.incoming(thread)

        # HISTORY
        history = await self.assembler.assemble(
            thread, system_prompt, options.history_size_to_fetch, current_text=received_text
        )
        current_message = {"role": "user", "content": thread.latest_text}
        if options.reduction_enabled:
            reducer = HistoryReducer(options, engine, self.token_counter)
            history = await reducer.reduce(history, reserved_tokens=reducer.count_message(current_message))
        # The message being answered is never reduced away
        history.append(current_message)

        # INVOKE
        response = await engine.ask(
            history,
            max_tokens=options.max_tokens,
            temperature=options.temperature,
            enable_functions=True,
            turn_plugins=turn_plugins,
        )

        # INTERCEPT-OUT
        response = await chain.outgoing(thread, response)

        # SKIP-CHECK
        if received.skip_response or thread.skip_response:
            received.skip_response = False
            thread.skip_response = False
            logger.info(f"Response suppressed for {thread.workflow_id}")
            return RouteResult.suppressed()

        return RouteResult.reply(response)

    def _attach_capabilities(
        self,
        entry: EngineCacheEntry,
        descriptors: Iterable[CapabilityDescriptor],
        thread: Thread,
    ) -> Dict[str, List[CapabilityFunction]]:
        """Attach static capabilities once and bind instance ones to ``thread``.

        Returns the instance functions bound for this turn.
        """
        engine = entry.engine
        turn_plugins: Dict[str, List[CapabilityFunction]] = {}

        for descriptor in list(descriptors) + [date_plugin_descriptor()]:
            if descriptor.kind is CapabilityKind.STATIC:
                if descriptor.name in entry.static_functions:
                    continue
                logger.debug(f"Adding static capability {descriptor.name}")
                engine.add_plugin(descriptor.name, descriptor.functions)
                entry.static_functions.add(descriptor.name)
            else:
                functions = descriptor.bind(thread)
                logger.debug(f"Binding instance capability {descriptor.name} to thread {thread.thread_id}")
                engine.replace_plugin(descriptor.name, functions)
                turn_plugins[descriptor.name] = functions

        return turn_plugins

    async def complete(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        options: Optional[RouterOptions] = None,
    ) -> Optional[str]:
        """Single completion without history, capabilities or caching."""
        options = options or RouterOptions()
        instruction = system_instruction if system_instruction and system_instruction.strip() else DEFAULT_COMPLETION_INSTRUCTION

        provider_config = await self._resolve(options)
        engine = self._build_engine(provider_config, options)
        try:
            response = await engine.ask(
                [
                    {"role": "system", "content": instruction},
                    {"role": "user", "content": prompt},
                ],
                max_tokens=options.max_tokens,
                temperature=options.temperature,
                enable_functions=False,
            )
        except Exception as e:
            logger.error(f"Error in LLM completion for prompt `{prompt[:200]}`: {e}")
            raise
        return response or None
