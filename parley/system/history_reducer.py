"""Chat history reduction.

Keeps a conversation within a token limit. Oversized tool results are
truncated first; if that is not enough, the oldest turns are dropped and
replaced by a summary (or a truncation notice). System messages are always
kept.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional, Tuple

from parley.config import RouterOptions
from parley.constants import SUMMARY_SYSTEM_PROMPT
from parley.llm.engine import CompletionEngine
from parley.utils.token_counter import TokenCounter, count_message_tokens, default_token_counter

logger = logging.getLogger(__name__)

ChatMessage = Dict[str, Any]

TRUNCATION_NOTICE = "\n\n[TRUNCATED: Content was reduced to stay within token limits. Original length: {length} characters]"


class HistoryReducer:
    """Reduces chat history to fit ``options.token_limit``."""

    def __init__(
        self,
        options: RouterOptions,
        engine: Optional[CompletionEngine] = None,
        token_counter: TokenCounter = default_token_counter,
    ):
        self.options = options
        self.engine = engine
        self.token_counter = token_counter

    def count(self, messages: List[ChatMessage]) -> int:
        return sum(self.count_message(m) for m in messages)

    def count_message(self, message: ChatMessage) -> int:
        return count_message_tokens(message, self.token_counter)

    async def reduce(self, history: List[ChatMessage], reserved_tokens: int = 0) -> List[ChatMessage]:
        """Reduce ``history`` to fit the token limit.

        ``reserved_tokens`` are held back for messages appended after
        reduction, such as the message being answered.
        """
        if self.options.token_limit <= 0 or not history:
            return history
        token_limit = max(self.options.token_limit - reserved_tokens, 0)

        current = self.count(history)
        logger.debug(f"Current chat history token count: {current}, limit: {token_limit} ({reserved_tokens} reserved)")
        if current <= token_limit:
            return history

        logger.warning(f"Chat history exceeds token limit ({current} > {token_limit}). Reducing...")

        # Large function results are usually the main culprit
        reduced = self.truncate_function_results(history, self.options.max_tokens_per_function_result)
        after_truncation = self.count(reduced)
        logger.debug(f"After function result truncation: {after_truncation} tokens")

        if after_truncation > token_limit:
            target = min(self.options.target_token_count, token_limit)
            system_messages, summary, kept = await self._reduce_with_truncation(reduced, target)
            reduced = self._enforce_limit(system_messages, summary, kept, token_limit)

        logger.info(f"Reduced chat history from {current} to {self.count(reduced)} tokens")
        return reduced

    def truncate_function_results(self, history: List[ChatMessage], max_tokens_per_result: int) -> List[ChatMessage]:
        result = []
        for message in history:
            content = message.get("content")
            if message.get("role") == "tool" and isinstance(content, str):
                tokens = self.token_counter(content)
                if tokens > max_tokens_per_result:
                    truncated = self._truncate_text(content, max_tokens_per_result)
                    logger.warning(
                        f"Truncated large function result from {message.get('name')} "
                        f"({tokens} -> {self.token_counter(truncated)} tokens)"
                    )
                    message = {**message, "content": truncated}
            result.append(message)
        return result

    def _truncate_text(self, text: str, max_tokens: int) -> str:
        notice = TRUNCATION_NOTICE.format(length=len(text))
        budget = max(max_tokens - self.token_counter(notice), max_tokens // 2, 1)
        tokens = self.token_counter(text)
        keep = int(len(text) * budget / max(tokens, 1))
        while keep > 0 and self.token_counter(text[:keep]) > budget:
            keep = int(keep * 0.9)
        return text[:keep] + notice

    async def _reduce_with_truncation(
        self, history: List[ChatMessage], target: int
    ) -> Tuple[List[ChatMessage], Optional[ChatMessage], List[ChatMessage]]:
        system_messages = [m for m in history if m.get("role") == "system"]
        conversation = [m for m in history if m.get("role") != "system"]

        available = target - self.count(system_messages)
        if available <= 0:
            logger.error("System messages alone exceed target token count")
            return system_messages, None, []

        kept: List[ChatMessage] = []
        used = 0
        for message in reversed(conversation):
            tokens = self.count_message(message)
            if used + tokens > available:
                break
            kept.insert(0, message)
            used += tokens

        # A tool result cannot lead without the call that produced it
        while kept and kept[0].get("role") == "tool":
            kept.pop(0)

        dropped = conversation[:len(conversation) - len(kept)]
        summary = await self._summary_message(dropped) if dropped else None
        return system_messages, summary, kept

    async def _summary_message(self, dropped: List[ChatMessage]) -> ChatMessage:
        summary = await self.summarize(dropped) if self.engine is not None else None
        if summary:
            content = f"Previous conversation summary ({len(dropped)} messages): {summary}"
        else:
            content = f"[Note: {len(dropped)} older messages were truncated to stay within token limits]"
        return {"role": "system", "content": content}

    async def summarize(self, messages: List[ChatMessage]) -> Optional[str]:
        """Summarize ``messages`` with the engine, functions disabled. None on failure."""
        if self.engine is None or not messages:
            return None
        try:
            return await self.engine.ask(
                [
                    {"role": "system", "content": SUMMARY_SYSTEM_PROMPT},
                    {"role": "user", "content": build_summary_prompt(messages)},
                ],
                enable_functions=False,
            )
        except Exception as e:
            logger.error(f"Failed to summarize truncated messages: {e}", exc_info=True)
            return None

    def _enforce_limit(
        self,
        system_messages: List[ChatMessage],
        summary: Optional[ChatMessage],
        kept: List[ChatMessage],
        token_limit: int,
    ) -> List[ChatMessage]:
        """Drop the oldest kept turns, then the summary, until the limit holds."""
        head = system_messages + ([summary] if summary else [])
        conversation = list(kept)

        while conversation and self.count(head) + self.count(conversation) > token_limit:
            conversation.pop(0)
            while conversation and conversation[0].get("role") == "tool":
                conversation.pop(0)

        if self.count(head) + self.count(conversation) <= token_limit:
            return head + conversation

        if self.count(system_messages) > token_limit:
            logger.error(
                f"System messages alone exceed the token limit ({self.count(system_messages)} > {token_limit})"
            )
        return list(system_messages)


def build_summary_prompt(messages: List[ChatMessage]) -> str:
    lines = ["Please provide a concise summary of the following conversation, focusing on key points and context:", ""]
    for message in messages:
        role = "User" if message.get("role") == "user" else "Assistant"
        lines.append(f"{role}: {message.get('content') or ''}")
        lines.append("")
    lines.append("Summary:")
    return "\n".join(lines)
