"""Token-budget conversation trimming.

Policy: the first message (the system instruction) and the last message
(the newest user turn) are kept; the oldest non-system messages in
between are dropped one at a time until the estimate fits 80% of the
model's context window, or until only two messages remain.

The result may still be over budget.  That is accepted best-effort
behaviour; the provider rejects the request if it really is too long.

``optimize_messages`` neither logs nor records metrics; ``ChatService``
reports what was dropped.
"""

from __future__ import annotations

from collections.abc import Sequence

from chatrelay.core.models import ROLE_SYSTEM, Message
from chatrelay.infra.tokens import fits_within_limit

MIN_KEPT_MESSAGES = 2


def _oldest_removable_index(messages: Sequence[Message]) -> int | None:
    """Index of the first non-system message strictly between the ends."""
    for i in range(1, len(messages) - 1):
        if messages[i].role != ROLE_SYSTEM:
            return i
    return None


def optimize_messages(messages: Sequence[Message], model: str) -> list[Message]:
    """Return a copy of *messages* trimmed to fit *model*'s token budget.

    Never removes the first or the last message, never mutates *messages*
    and never raises.
    """
    working = list(messages)

    while not fits_within_limit(working, model) and len(working) > 1:
        index = _oldest_removable_index(working)
        if index is None:
            break
        del working[index]
        if len(working) <= MIN_KEPT_MESSAGES:
            break

    return working
