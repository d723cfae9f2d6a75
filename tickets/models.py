"""
Domain types shared by the triage engine and ticket stores.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum, IntEnum
from typing import FrozenSet, Optional


class TicketStatus(IntEnum):
    """Ticket lifecycle states."""
    OPEN = 1
    IN_PROGRESS = 2
    PENDING = 3
    RESOLVED = 4
    CLOSED = 5
    CANCELLED = 6

    @property
    def label(self) -> str:
        return _STATUS_LABELS[self]


_STATUS_LABELS = {
    TicketStatus.OPEN: "Aberto",
    TicketStatus.IN_PROGRESS: "Em Andamento",
    TicketStatus.PENDING: "Pendente",
    TicketStatus.RESOLVED: "Resolvido",
    TicketStatus.CLOSED: "Fechado",
    TicketStatus.CANCELLED: "Cancelado",
}

FINISHED_STATUSES: FrozenSet[TicketStatus] = frozenset({
    TicketStatus.RESOLVED,
    TicketStatus.CLOSED,
    TicketStatus.CANCELLED,
})

# InProgress means a human agent owns the ticket.
AI_INELIGIBLE_STATUSES: FrozenSet[TicketStatus] = FINISHED_STATUSES | {TicketStatus.IN_PROGRESS}


class TicketPriority(IntEnum):
    LOW = 1
    MEDIUM = 2
    HIGH = 3
    URGENT = 4


class TicketChannel(IntEnum):
    WEB = 1
    DESKTOP = 2
    MOBILE = 3
    CHATBOT = 4


class UserKind(IntEnum):
    CUSTOMER = 1
    TECHNICIAN = 2
    ADMINISTRATOR = 3
    BOT = 4


class AuthorKind(Enum):
    """Who wrote an interaction."""
    CUSTOMER = "customer"
    AI = "ai"
    HUMAN = "human"


@dataclass(frozen=True)
class AiMeta:
    """AI provenance attached to an interaction."""
    provider: str
    model: str
    confidence: Optional[float] = None
    reasoning_summary: Optional[str] = None


@dataclass
class User:
    id: int
    tenant_id: int
    full_name: str
    kind: UserKind = UserKind.CUSTOMER
    email: Optional[str] = None


@dataclass
class Ticket:
    id: int
    tenant_id: int
    title: str
    requester_id: int
    status: TicketStatus = TicketStatus.OPEN
    priority: TicketPriority = TicketPriority.MEDIUM
    description: Optional[str] = None
    category_id: Optional[int] = None
    channel: TicketChannel = TicketChannel.WEB
    number: str = ""
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass(frozen=True)
class Interaction:
    """One immutable message in a ticket thread."""
    id: int
    ticket_id: int
    author: AuthorKind
    text: str
    author_user_id: Optional[int] = None
    ai_meta: Optional[AiMeta] = None
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class TicketSpec:
    """Input for creating a ticket."""
    tenant_id: int
    title: str
    description: str
    requester_id: int
    priority: TicketPriority = TicketPriority.MEDIUM
    category_id: Optional[int] = None
    channel: TicketChannel = TicketChannel.WEB
