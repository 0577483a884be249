"""Token estimation for chat histories.

Counting follows the OpenAI chat format: message content (string or list of
content parts), tool calls and tool results, plus a small per-message
overhead for role and structure.
"""

import json
import logging
from typing import Any, Callable, Dict, List

import tiktoken  # type: ignore

from parley.constants import DEFAULT_TOKEN_ENCODING

logger = logging.getLogger(__name__)

# Counts the tokens in a piece of text.
TokenCounter = Callable[[str], int]

# Role and message structure overhead.
MESSAGE_OVERHEAD_TOKENS = 4
# Per tool call / tool result structure overhead.
FUNCTION_OVERHEAD_TOKENS = 10
# Approximation for image parts.
IMAGE_TOKENS = 85

_encoding = None


def _get_encoding():
    """Lazy load tokenizer when first needed"""
    global _encoding
    if _encoding is None:
        _encoding = tiktoken.get_encoding(DEFAULT_TOKEN_ENCODING)
    return _encoding


def default_token_counter(text: str) -> int:
    """Count tokens using tiktoken."""
    if not text:
        return 0
    return len(_get_encoding().encode(text))


def _content_tokens(content: Any, counter: TokenCounter) -> int:
    if content is None:
        return 0
    if isinstance(content, str):
        return counter(content)
    if isinstance(content, list):
        total = 0
        for part in content:
            if isinstance(part, dict):
                if part.get("type") == "text":
                    total += counter(part.get("text", ""))
                elif part.get("type") in ("image", "image_url"):
                    total += IMAGE_TOKENS
                else:
                    total += counter(json.dumps(part, default=str))
            else:
                total += counter(str(part))
        return total
    return counter(str(content))


def count_message_tokens(message: Dict[str, Any], counter: TokenCounter = default_token_counter) -> int:
    """Estimate the tokens one chat message costs."""
    tokens = _content_tokens(message.get("content"), counter)

    for tool_call in message.get("tool_calls") or []:
        function = tool_call.get("function", {})
        tokens += counter(function.get("name", ""))
        tokens += counter(function.get("arguments", "") or "")
        tokens += FUNCTION_OVERHEAD_TOKENS

    if message.get("role") == "tool":
        tokens += counter(message.get("name", "") or "")
        tokens += FUNCTION_OVERHEAD_TOKENS

    return tokens + MESSAGE_OVERHEAD_TOKENS


def count_history_tokens(messages: List[Dict[str, Any]], counter: TokenCounter = default_token_counter) -> int:
    return sum(count_message_tokens(message, counter) for message in messages)
