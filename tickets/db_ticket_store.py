"""
Database-backed TicketStore.

Implements the TicketStore protocol using the repository layer. Each
call runs in its own session and commits before returning.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from database import models as orm
from database.repositories import TicketRepository, UserRepository
from llm.errors import StoreError, TicketNotFoundError

from .models import (
    AiMeta, AuthorKind, Interaction, Ticket, TicketChannel, TicketPriority,
    TicketSpec, TicketStatus, User, UserKind,
)

logger = logging.getLogger(__name__)


def _to_ticket(row: orm.Ticket) -> Ticket:
    return Ticket(
        id=row.id,
        tenant_id=row.tenant_id,
        title=row.title,
        requester_id=row.requester_id,
        status=TicketStatus(row.status),
        priority=TicketPriority(row.priority),
        description=row.description,
        category_id=row.category_id,
        channel=TicketChannel(row.channel),
        number=row.number or "",
        created_at=row.created_at,
    )


def _to_interaction(row: orm.TicketInteraction) -> Interaction:
    meta = None
    if row.ai_provider:
        meta = AiMeta(
            provider=row.ai_provider,
            model=row.ai_model or "",
            confidence=row.ai_confidence,
            reasoning_summary=row.ai_reasoning,
        )
    return Interaction(
        id=row.id,
        ticket_id=row.ticket_id,
        author=AuthorKind(row.author),
        text=row.text,
        author_user_id=row.author_user_id,
        ai_meta=meta,
        created_at=row.created_at,
    )


def _to_user(row: orm.User) -> User:
    return User(
        id=row.id,
        tenant_id=row.tenant_id,
        full_name=row.full_name,
        kind=UserKind(row.kind),
        email=row.email,
    )


class SqlTicketStore:
    """Persistent ticket store backed by SQLAlchemy (PostgreSQL or SQLite)."""

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    async def get_ticket(self, ticket_id: int) -> Optional[Ticket]:
        try:
            async with self._session_factory() as session:
                row = await TicketRepository(session).get_by_id(ticket_id)
                return _to_ticket(row) if row else None
        except SQLAlchemyError as e:
            raise StoreError(f"get_ticket({ticket_id}) failed: {e}") from e

    async def list_interactions(self, ticket_id: int) -> List[Interaction]:
        try:
            async with self._session_factory() as session:
                rows = await TicketRepository(session).get_interactions(ticket_id)
                return [_to_interaction(r) for r in rows]
        except SQLAlchemyError as e:
            raise StoreError(f"list_interactions({ticket_id}) failed: {e}") from e

    async def append_interaction(
        self,
        ticket_id: int,
        author: AuthorKind,
        text: str,
        ai_meta: Optional[AiMeta] = None,
        author_user_id: Optional[int] = None,
    ) -> Interaction:
        try:
            async with self._session_factory() as session:
                repo = TicketRepository(session)
                if await repo.get_by_id(ticket_id) is None:
                    raise TicketNotFoundError(f"Ticket {ticket_id} not found")
                row = await repo.add_interaction(
                    ticket_id,
                    author=author.value,
                    text=text,
                    author_user_id=author_user_id,
                    ai_provider=ai_meta.provider if ai_meta else None,
                    ai_model=ai_meta.model if ai_meta else None,
                    ai_confidence=ai_meta.confidence if ai_meta else None,
                    ai_reasoning=ai_meta.reasoning_summary if ai_meta else None,
                )
                await session.commit()
                return _to_interaction(row)
        except SQLAlchemyError as e:
            raise StoreError(f"append_interaction({ticket_id}) failed: {e}") from e

    async def set_status(
        self, ticket_id: int, new_status: TicketStatus, acting_user_id: int
    ) -> Ticket:
        try:
            async with self._session_factory() as session:
                repo = TicketRepository(session)
                row = await repo.get_by_id(ticket_id)
                if row is None:
                    raise TicketNotFoundError(f"Ticket {ticket_id} not found")
                await repo.set_status(ticket_id, row.status, int(new_status), acting_user_id)
                await session.commit()
                await session.refresh(row)
                return _to_ticket(row)
        except SQLAlchemyError as e:
            raise StoreError(f"set_status({ticket_id}) failed: {e}") from e

    async def create_ticket(self, spec: TicketSpec) -> Ticket:
        try:
            async with self._session_factory() as session:
                if await UserRepository(session).get_by_id(spec.requester_id) is None:
                    raise StoreError(f"Requester {spec.requester_id} not found")
                row = await TicketRepository(session).create(
                    tenant_id=spec.tenant_id,
                    title=spec.title,
                    description=spec.description,
                    requester_id=spec.requester_id,
                    status=int(TicketStatus.OPEN),
                    priority=int(spec.priority),
                    category_id=spec.category_id,
                    channel=int(spec.channel),
                )
                await session.commit()
                logger.info(f"Ticket created: {row.number} (tenant {spec.tenant_id})")
                return _to_ticket(row)
        except SQLAlchemyError as e:
            raise StoreError(f"create_ticket failed: {e}") from e

    async def get_user(self, user_id: int) -> Optional[User]:
        try:
            async with self._session_factory() as session:
                row = await UserRepository(session).get_by_id(user_id)
                return _to_user(row) if row else None
        except SQLAlchemyError as e:
            raise StoreError(f"get_user({user_id}) failed: {e}") from e
