"""
Scope guard for AI replies.

The triage prompt tells the model to refuse non-technical requests with
a fixed sentence. This module recognizes those refusals and counts how
many of the most recent AI replies were refusals, so the controller can
warn and eventually close tickets that keep drifting off-topic.
"""

import logging
from typing import Iterable

from tickets.models import AuthorKind
from .message_analyzer import normalize_text

logger = logging.getLogger(__name__)

# Matched against accent-stripped lowercase text.
SCOPE_VIOLATION_PHRASES = (
    "nao posso ajudar",
    "fora do escopo",
    "questoes nao tecnicas",
    "assuntos nao tecnicos",
    "i can't help with that",
    "i cannot help with that",
    "outside the scope",
    "out of scope",
    "non-technical questions",
)


class ScopeGuard:
    """
    Detects out-of-scope AI replies.

    Matching is a conservative phrase search over the system's own
    refusal wording; it never tries to judge the customer's message.
    """

    def __init__(self, phrases: Iterable[str] = SCOPE_VIOLATION_PHRASES):
        self.phrases = tuple(normalize_text(p) for p in phrases)

    def is_out_of_scope(self, text: str) -> bool:
        if not text:
            return False
        normalized = normalize_text(text)
        return any(phrase in normalized for phrase in self.phrases)

    def count_consecutive_violations(self, history: Iterable) -> int:
        """
        Count trailing out-of-scope AI replies.

        Walks the history from newest to oldest. Customer and human
        messages are skipped; the walk stops at the first in-scope AI
        reply.

        Args:
            history: Ordered messages exposing ``author`` and ``text``

        Returns:
            Number of consecutive refusals, at most the number of AI replies
        """
        count = 0
        for message in reversed(list(history)):
            if message.author != AuthorKind.AI:
                continue
            if not self.is_out_of_scope(message.text):
                break
            count += 1
        if count:
            logger.debug(f"Consecutive out-of-scope replies: {count}")
        return count
