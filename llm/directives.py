"""
Control-tag parsing for AI replies.

The AI drives the ticket lifecycle by appending tags to its free-form
reply:

    [STATUS:3]
    [NEW_TICKET:Title|Description|CategoryId|PriorityId]

DirectiveParser extracts those tags into an ActionSet and returns the
text the customer should actually see. It also scans the customer's own
message for an explicit request to talk to a human.
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Tuple

from tickets.models import TicketStatus
from .message_analyzer import normalize_text

logger = logging.getLogger(__name__)

# Canonical tag grammar, as emitted by the system prompt.
STATUS_TAG_PATTERN = re.compile(r"\[STATUS:(\d+)\]")
NEW_TICKET_TAG_PATTERN = re.compile(r"\[NEW_TICKET:(.+?)\|(.+?)\|(\d+)?\|(\d+)?\]")

# Accepted on input: STATUS with any code, NEW_TICKET with any body (split
# on '|' by the parser). One alternation, so the reply is scanned once.
_ANY_TAG = re.compile(r"\[STATUS:(\d+)\]|\[NEW_TICKET:([^\]]*)\]")

# Words that only ever mean "a person, not the bot".
HUMAN_REQUEST_KEYWORDS = (
    "human", "agent", "operator",
    "atendente", "humano", "agente", "operador",
)
# Words that also show up in ordinary problem reports ("problema tecnico",
# "alguem mexeu na rede") count only inside a request phrase.
HUMAN_REQUEST_PHRASES = (
    r"(falar|conversar) com (um |uma |o |a |algum |alguma )?(tecnico|pessoa|alguem)",
    r"cham(e|a|ar) (um |o |algum )?tecnico",
    r"(talk|speak) (to|with) (someone|a person|a real person)",
)
_HUMAN_REQUEST_PATTERN = re.compile(
    r"\b(" + "|".join(HUMAN_REQUEST_KEYWORDS) + r")\b|" + "|".join(HUMAN_REQUEST_PHRASES)
)


@dataclass(frozen=True)
class LinkedTicketSpec:
    """Related ticket requested by the AI."""
    title: str
    description: str
    category_id: Optional[int] = None
    priority_id: Optional[int] = None


@dataclass
class ActionSet:
    """Lifecycle actions extracted from one AI reply."""
    new_status: Optional[TicketStatus] = None
    new_linked_ticket: Optional[LinkedTicketSpec] = None
    human_requested: bool = False

    @property
    def is_empty(self) -> bool:
        return (
            self.new_status is None
            and self.new_linked_ticket is None
            and not self.human_requested
        )


def _optional_id(raw: str) -> Optional[int]:
    raw = raw.strip()
    return int(raw) if raw.isdigit() else None


def parse_linked_ticket(body: str) -> Optional[LinkedTicketSpec]:
    """
    Parse the body of a NEW_TICKET tag.

    Extra '|' characters are kept in the description, mirroring how the
    canonical pattern backtracks. Returns None when the title or the
    description is missing.
    """
    parts = body.split("|")
    if len(parts) < 2:
        return None

    title = parts[0].strip()
    category_raw = priority_raw = ""
    if len(parts) == 2:
        description = parts[1]
    elif len(parts) == 3:
        description, category_raw = parts[1], parts[2]
    else:
        description = "|".join(parts[1:-2])
        category_raw, priority_raw = parts[-2], parts[-1]

    description = description.strip()
    if not title or not description:
        return None

    return LinkedTicketSpec(
        title=title,
        description=description,
        category_id=_optional_id(category_raw),
        priority_id=_optional_id(priority_raw),
    )


class DirectiveParser:
    """
    Extracts lifecycle directives from AI text.

    Unrecognized tags (unknown status codes, NEW_TICKET without a title
    or description) are left in the text untouched.
    """

    def parse(
        self, ai_text: str, customer_message: Optional[str] = None
    ) -> Tuple[str, ActionSet]:
        """
        Parse an AI reply.

        Args:
            ai_text: Raw provider output
            customer_message: The customer message being answered

        Returns:
            (clean_text, actions). clean_text equals ai_text when no
            recognized tag was found.
        """
        actions = ActionSet(human_requested=self.is_human_request(customer_message))
        statuses: List[TicketStatus] = []
        linked: List[LinkedTicketSpec] = []

        def _strip(match: re.Match) -> str:
            status_code, ticket_body = match.group(1), match.group(2)
            if status_code is not None:
                code = int(status_code)
                if code not in TicketStatus._value2member_map_:
                    logger.warning(f"Ignoring STATUS tag with unknown code: {match.group(0)}")
                    return match.group(0)
                statuses.append(TicketStatus(code))
                return ""
            spec = parse_linked_ticket(ticket_body)
            if spec is None:
                logger.warning(f"Ignoring malformed NEW_TICKET tag: {match.group(0)}")
                return match.group(0)
            linked.append(spec)
            return ""

        # Single pass over the original reply: text that only looks like a
        # tag after a neighbouring tag is removed stays visible as-is.
        text = _ANY_TAG.sub(_strip, ai_text)
        if not statuses and not linked:
            return ai_text, actions

        if statuses:
            actions.new_status = statuses[-1]
        if linked:
            actions.new_linked_ticket = linked[0]
            if len(linked) > 1:
                logger.info(f"Using first of {len(linked)} NEW_TICKET tags")

        return text.strip(), actions

    @staticmethod
    def is_human_request(message: Optional[str]) -> bool:
        """True when the message asks for a human (accent/case-insensitive)."""
        if not message:
            return False
        return _HUMAN_REQUEST_PATTERN.search(normalize_text(message)) is not None
