"""Lightweight token estimation and per-model context limits.

The estimate is a character-count heuristic, not a tokenizer: CJK
ideographs carry more information per character than Latin text under
sub-word tokenization, so they are weighted at ~1.5 chars per token
against ~4 for everything else.
"""

import math
from collections.abc import Iterable
from types import MappingProxyType
from typing import Mapping, Protocol

CJK_CHARS_PER_TOKEN = 1.5
OTHER_CHARS_PER_TOKEN = 4

_CJK_FIRST = "\u4e00"
_CJK_LAST = "\u9fff"

DEFAULT_TOKEN_LIMIT = 4096

INPUT_BUDGET_RATIO = 0.8
"""Share of the context window the prompt may use.

The remaining 20% is left for the response, which the input estimate
does not cover.
"""

MODEL_TOKEN_LIMITS: Mapping[str, int] = MappingProxyType(
    {
        "gpt-3.5-turbo": 4096,
        "gpt-3.5-turbo-16k": 16384,
        "gpt-4": 8192,
        "gpt-4-32k": 32768,
        "gpt-4-turbo-preview": 128000,
        "gpt-4o": 128000,
        "gpt-4o-mini": 128000,
        "deepseek-chat": 64000,
        "deepseek-coder": 16384,
        "deepseek-reasoner": 64000,
        "deepseek-v3": 64000,
    }
)


class HasContent(Protocol):
    content: str


def estimate_tokens(text: str) -> int:
    """Return an estimated token count for *text* (0 for ``""``)."""
    cjk = sum(1 for ch in text if _CJK_FIRST <= ch <= _CJK_LAST)
    other = len(text) - cjk
    return math.ceil(cjk / CJK_CHARS_PER_TOKEN + other / OTHER_CHARS_PER_TOKEN)


def get_token_limit(model: str) -> int:
    """Return the context window of *model*, or the conservative default."""
    return MODEL_TOKEN_LIMITS.get(model, DEFAULT_TOKEN_LIMIT)


def estimate_conversation_tokens(messages: Iterable[HasContent]) -> int:
    """Estimate the tokens of all message contents concatenated."""
    return estimate_tokens("".join(m.content for m in messages))


def fits_within_limit(messages: Iterable[HasContent], model: str) -> bool:
    """True iff the estimate is strictly below 80% of *model*'s limit."""
    return estimate_conversation_tokens(messages) < (
        get_token_limit(model) * INPUT_BUDGET_RATIO
    )
