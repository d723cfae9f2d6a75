"""
In-memory TicketStore.

Used when no DATABASE_URL is configured and by the test suite.
"""

import asyncio
import logging
from dataclasses import replace
from datetime import datetime
from typing import Dict, List, Optional

from llm.errors import StoreError, TicketNotFoundError

from .models import (
    AiMeta, AuthorKind, Interaction, Ticket, TicketSpec, TicketStatus, User,
)

logger = logging.getLogger(__name__)


class InMemoryTicketStore:
    """Dict-backed ticket store."""

    def __init__(self):
        self._tickets: Dict[int, Ticket] = {}
        self._users: Dict[int, User] = {}
        self._interactions: Dict[int, List[Interaction]] = {}
        self._status_history: List[Dict] = []
        self._next_ticket_id = 1
        self._next_interaction_id = 1
        self._lock = asyncio.Lock()

    # ── Seeding helpers ───────────────────────────────────

    def add_user(self, user: User) -> User:
        self._users[user.id] = user
        return user

    def add_ticket(self, ticket: Ticket) -> Ticket:
        if not ticket.number:
            ticket = replace(ticket, number=_ticket_number(ticket.id))
        self._tickets[ticket.id] = ticket
        self._interactions.setdefault(ticket.id, [])
        self._next_ticket_id = max(self._next_ticket_id, ticket.id + 1)
        return ticket

    @property
    def status_history(self) -> List[Dict]:
        return list(self._status_history)

    # ── TicketStore protocol ──────────────────────────────

    async def get_ticket(self, ticket_id: int) -> Optional[Ticket]:
        return self._tickets.get(ticket_id)

    async def list_interactions(self, ticket_id: int) -> List[Interaction]:
        return list(self._interactions.get(ticket_id, []))

    async def append_interaction(
        self,
        ticket_id: int,
        author: AuthorKind,
        text: str,
        ai_meta: Optional[AiMeta] = None,
        author_user_id: Optional[int] = None,
    ) -> Interaction:
        async with self._lock:
            if ticket_id not in self._tickets:
                raise TicketNotFoundError(f"Ticket {ticket_id} not found")
            interaction = Interaction(
                id=self._next_interaction_id,
                ticket_id=ticket_id,
                author=author,
                text=text,
                author_user_id=author_user_id,
                ai_meta=ai_meta,
            )
            self._next_interaction_id += 1
            self._interactions[ticket_id].append(interaction)
            return interaction

    async def set_status(
        self, ticket_id: int, new_status: TicketStatus, acting_user_id: int
    ) -> Ticket:
        async with self._lock:
            ticket = self._tickets.get(ticket_id)
            if not ticket:
                raise TicketNotFoundError(f"Ticket {ticket_id} not found")
            self._status_history.append({
                "ticket_id": ticket_id,
                "from": ticket.status,
                "to": new_status,
                "user_id": acting_user_id,
                "at": datetime.utcnow(),
            })
            ticket = replace(ticket, status=new_status)
            self._tickets[ticket_id] = ticket
            return ticket

    async def create_ticket(self, spec: TicketSpec) -> Ticket:
        async with self._lock:
            if spec.requester_id not in self._users:
                raise StoreError(f"Requester {spec.requester_id} not found")
            ticket_id = self._next_ticket_id
            self._next_ticket_id += 1
            ticket = Ticket(
                id=ticket_id,
                tenant_id=spec.tenant_id,
                title=spec.title,
                description=spec.description,
                requester_id=spec.requester_id,
                priority=spec.priority,
                category_id=spec.category_id,
                channel=spec.channel,
                number=_ticket_number(ticket_id),
            )
            self._tickets[ticket_id] = ticket
            self._interactions[ticket_id] = []
            logger.info(f"Ticket created: {ticket.number} (tenant {spec.tenant_id})")
            return ticket

    async def get_user(self, user_id: int) -> Optional[User]:
        return self._users.get(user_id)


def _ticket_number(ticket_id: int) -> str:
    return f"TCK-{ticket_id:06d}"
