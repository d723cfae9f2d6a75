"""
Ticket domain types and TicketStore implementations.
"""

from .models import (
    AI_INELIGIBLE_STATUSES,
    FINISHED_STATUSES,
    AiMeta,
    AuthorKind,
    Interaction,
    Ticket,
    TicketChannel,
    TicketPriority,
    TicketSpec,
    TicketStatus,
    User,
    UserKind,
)
from .store import TicketStore
from .memory_store import InMemoryTicketStore

__all__ = [
    "AI_INELIGIBLE_STATUSES",
    "FINISHED_STATUSES",
    "AiMeta",
    "AuthorKind",
    "Interaction",
    "Ticket",
    "TicketChannel",
    "TicketPriority",
    "TicketSpec",
    "TicketStatus",
    "User",
    "UserKind",
    "TicketStore",
    "InMemoryTicketStore",
]
