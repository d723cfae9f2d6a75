"""
TicketStore protocol for the triage engine.

Abstracts ticket persistence so the controller can work with either
the in-memory store or a database backend. Implementations raise
StoreError on failure.
"""

from typing import List, Optional, Protocol, runtime_checkable

from .models import AiMeta, AuthorKind, Interaction, Ticket, TicketSpec, TicketStatus, User


@runtime_checkable
class TicketStore(Protocol):
    """Protocol for ticket persistence."""

    async def get_ticket(self, ticket_id: int) -> Optional[Ticket]:
        """Fetch a ticket by id."""
        ...

    async def list_interactions(self, ticket_id: int) -> List[Interaction]:
        """List a ticket's interactions, oldest first."""
        ...

    async def append_interaction(
        self,
        ticket_id: int,
        author: AuthorKind,
        text: str,
        ai_meta: Optional[AiMeta] = None,
        author_user_id: Optional[int] = None,
    ) -> Interaction:
        """Append one interaction to a ticket."""
        ...

    async def set_status(
        self, ticket_id: int, new_status: TicketStatus, acting_user_id: int
    ) -> Ticket:
        """Change a ticket's status."""
        ...

    async def create_ticket(self, spec: TicketSpec) -> Ticket:
        """Create a new ticket."""
        ...

    async def get_user(self, user_id: int) -> Optional[User]:
        """Fetch a user by id."""
        ...
