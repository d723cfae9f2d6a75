"""Tests for the SQLAlchemy-backed ticket store and audit sink."""

import pytest
import pytest_asyncio

from database.repositories import AiRunLogRepository, TicketRepository, UserRepository
from database.session import close_db, init_db, normalize_database_url
from llm.audit import AuditEntry, AuditOutcome, DbAuditSink, RunAuditLog
from llm.errors import StoreError, TicketNotFoundError
from tickets.db_ticket_store import SqlTicketStore
from tickets.models import (
    AiMeta, AuthorKind, TicketChannel, TicketPriority, TicketSpec, TicketStatus, UserKind,
)


@pytest_asyncio.fixture
async def session_factory(tmp_path):
    factory = await init_db(f"sqlite+aiosqlite:///{tmp_path / 'triage.db'}")
    async with factory() as session:
        users = UserRepository(session)
        await users.create(tenant_id=1, full_name="Maria Souza")
        await users.create(tenant_id=1, full_name="Carlos Lima", kind=int(UserKind.TECHNICIAN))
        await session.commit()
    yield factory
    await close_db()


@pytest.fixture
def db_store(session_factory):
    return SqlTicketStore(session_factory)


def _spec(**overrides):
    values = dict(
        tenant_id=1,
        title="Impressora offline",
        description="A impressora do 2º andar não responde",
        requester_id=1,
        priority=TicketPriority.HIGH,
        category_id=3,
        channel=TicketChannel.CHATBOT,
    )
    values.update(overrides)
    return TicketSpec(**values)


def test_normalize_database_url():
    assert normalize_database_url("postgresql://u:p@db/x") == "postgresql+asyncpg://u:p@db/x"
    assert normalize_database_url("sqlite:///t.db") == "sqlite+aiosqlite:///t.db"
    assert normalize_database_url("sqlite+aiosqlite:///t.db") == "sqlite+aiosqlite:///t.db"


@pytest.mark.asyncio
async def test_create_and_get_ticket(db_store):
    created = await db_store.create_ticket(_spec())

    loaded = await db_store.get_ticket(created.id)

    assert loaded.number == f"TCK-{created.id:06d}"
    assert loaded.status == TicketStatus.OPEN
    assert loaded.priority == TicketPriority.HIGH
    assert loaded.channel == TicketChannel.CHATBOT
    assert loaded.category_id == 3


@pytest.mark.asyncio
async def test_missing_ticket_and_user(db_store):
    assert await db_store.get_ticket(999) is None
    assert await db_store.get_user(999) is None


@pytest.mark.asyncio
async def test_get_user_maps_kind(db_store):
    technician = await db_store.get_user(2)
    assert technician.kind == UserKind.TECHNICIAN
    assert technician.full_name == "Carlos Lima"


@pytest.mark.asyncio
async def test_create_with_unknown_requester_fails(db_store):
    with pytest.raises(StoreError):
        await db_store.create_ticket(_spec(requester_id=999))


@pytest.mark.asyncio
async def test_interactions_keep_order_and_meta(db_store):
    ticket = await db_store.create_ticket(_spec())

    await db_store.append_interaction(ticket.id, AuthorKind.CUSTOMER, "alguma novidade?", author_user_id=1)
    await db_store.append_interaction(
        ticket.id, AuthorKind.AI, "Reinicie a impressora.",
        ai_meta=AiMeta(provider="openrouter", model="gpt-4o-mini", confidence=0.8),
    )

    interactions = await db_store.list_interactions(ticket.id)
    assert [i.author for i in interactions] == [AuthorKind.CUSTOMER, AuthorKind.AI]
    assert interactions[0].ai_meta is None
    assert interactions[1].ai_meta.provider == "openrouter"
    assert interactions[1].ai_meta.confidence == 0.8


@pytest.mark.asyncio
async def test_append_to_missing_ticket(db_store):
    with pytest.raises(TicketNotFoundError):
        await db_store.append_interaction(999, AuthorKind.AI, "oi")


@pytest.mark.asyncio
async def test_set_status_writes_history(db_store, session_factory):
    ticket = await db_store.create_ticket(_spec())

    updated = await db_store.set_status(ticket.id, TicketStatus.PENDING, 0)

    assert updated.status == TicketStatus.PENDING
    assert (await db_store.get_ticket(ticket.id)).status == TicketStatus.PENDING
    async with session_factory() as session:
        history = await TicketRepository(session).get_status_history(ticket.id)
    assert [(h.from_status, h.to_status, h.acting_user_id) for h in history] == [(1, 3, 0)]


@pytest.mark.asyncio
async def test_set_status_on_missing_ticket(db_store):
    with pytest.raises(TicketNotFoundError):
        await db_store.set_status(999, TicketStatus.CLOSED, 0)


@pytest.mark.asyncio
async def test_db_audit_sink_persists_entries(session_factory):
    audit = RunAuditLog([DbAuditSink(session_factory)])

    await audit.record(AuditEntry(
        tenant_id=1, ticket_id=5, prompt_hash="a" * 64, outcome=AuditOutcome.OK,
        provider="openai", model="gpt-4o-mini", input_tokens=10, output_tokens=4,
    ))
    await audit.record(AuditEntry(
        tenant_id=2, ticket_id=6, prompt_hash="b" * 64, outcome=AuditOutcome.EXHAUSTED,
    ))

    async with session_factory() as session:
        repo = AiRunLogRepository(session)
        assert await repo.count() == 2
        assert await repo.count(tenant_id=1) == 1
        recent = await repo.get_recent(tenant_id=2)
    assert recent[0].outcome == "exhausted"
    assert recent[0].provider is None
