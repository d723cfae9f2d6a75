"""
Repository classes for the triage data access layer.

Each repository encapsulates the queries for one model. Callers own the
session and its transaction.
"""

import logging
from datetime import datetime
from typing import List, Optional

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from .models import AiRunLog, Ticket, TicketInteraction, TicketStatusHistory, User

logger = logging.getLogger(__name__)


class TicketRepository:
    """Data access for tickets, their interactions and status history."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> Ticket:
        ticket = Ticket(**kwargs)
        self.session.add(ticket)
        await self.session.flush()
        if not ticket.number:
            ticket.number = f"TCK-{ticket.id:06d}"
            await self.session.flush()
        return ticket

    async def get_by_id(self, ticket_id: int) -> Optional[Ticket]:
        result = await self.session.execute(
            select(Ticket).where(Ticket.id == ticket_id)
        )
        return result.scalar_one_or_none()

    async def set_status(
        self, ticket_id: int, from_status: int, to_status: int, acting_user_id: Optional[int]
    ) -> None:
        await self.session.execute(
            update(Ticket)
            .where(Ticket.id == ticket_id)
            .values(status=to_status, updated_at=datetime.utcnow())
        )
        self.session.add(TicketStatusHistory(
            ticket_id=ticket_id,
            from_status=from_status,
            to_status=to_status,
            acting_user_id=acting_user_id,
        ))
        await self.session.flush()

    async def add_interaction(self, ticket_id: int, **kwargs) -> TicketInteraction:
        interaction = TicketInteraction(ticket_id=ticket_id, **kwargs)
        self.session.add(interaction)
        await self.session.flush()
        return interaction

    async def get_interactions(self, ticket_id: int) -> List[TicketInteraction]:
        result = await self.session.execute(
            select(TicketInteraction)
            .where(TicketInteraction.ticket_id == ticket_id)
            .order_by(TicketInteraction.id.asc())
        )
        return list(result.scalars().all())

    async def get_status_history(self, ticket_id: int) -> List[TicketStatusHistory]:
        result = await self.session.execute(
            select(TicketStatusHistory)
            .where(TicketStatusHistory.ticket_id == ticket_id)
            .order_by(TicketStatusHistory.id.asc())
        )
        return list(result.scalars().all())


class UserRepository:
    """Data access for users."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, **kwargs) -> User:
        user = User(**kwargs)
        self.session.add(user)
        await self.session.flush()
        return user

    async def get_by_id(self, user_id: int) -> Optional[User]:
        result = await self.session.execute(select(User).where(User.id == user_id))
        return result.scalar_one_or_none()


class AiRunLogRepository:
    """Append-only AI run log."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def log(self, **kwargs) -> AiRunLog:
        entry = AiRunLog(**kwargs)
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_recent(self, tenant_id: Optional[int] = None, limit: int = 100) -> List[AiRunLog]:
        q = select(AiRunLog).order_by(AiRunLog.id.desc()).limit(limit)
        if tenant_id is not None:
            q = q.where(AiRunLog.tenant_id == tenant_id)
        result = await self.session.execute(q)
        return list(result.scalars().all())

    async def count(self, tenant_id: Optional[int] = None) -> int:
        q = select(func.count(AiRunLog.id))
        if tenant_id is not None:
            q = q.where(AiRunLog.tenant_id == tenant_id)
        result = await self.session.execute(q)
        return result.scalar() or 0
