"""Shared fixtures for triage engine tests."""

import os
from typing import List, Optional, Union

import pytest
from fastapi.testclient import TestClient

# Only the offline heuristic responder runs under test
os.environ["AI_PROVIDER_ORDER"] = ""
os.environ.pop("DATABASE_URL", None)
os.environ.setdefault("RATE_LIMIT_PER_MINUTE", "1000")

from llm.audit import RunAuditLog
from llm.conversation_store import ConversationStateStore
from llm.errors import StoreError
from llm.orchestrator import TicketLifecycleController
from llm.providers.base import AiResponse
from tickets.memory_store import InMemoryTicketStore
from tickets.models import Ticket, TicketStatus, User, UserKind

TENANT_ID = 1
CUSTOMER_ID = 10
TECHNICIAN_ID = 20
TICKET_ID = 100


class SpyTicketStore(InMemoryTicketStore):
    """In-memory store that counts writes and can be told to fail."""

    def __init__(self):
        super().__init__()
        self.set_status_calls = 0
        self.append_calls = 0
        self.create_calls = 0
        self.fail_append = False
        self.fail_create = False
        self.fail_set_status = False

    async def append_interaction(self, ticket_id, author, text, ai_meta=None, author_user_id=None):
        self.append_calls += 1
        if self.fail_append:
            raise StoreError("append failed")
        return await super().append_interaction(ticket_id, author, text, ai_meta, author_user_id)

    async def set_status(self, ticket_id, new_status, acting_user_id):
        self.set_status_calls += 1
        if self.fail_set_status:
            raise StoreError("set_status failed")
        return await super().set_status(ticket_id, new_status, acting_user_id)

    async def create_ticket(self, spec):
        self.create_calls += 1
        if self.fail_create:
            raise StoreError("create failed")
        return await super().create_ticket(spec)


class ScriptedResponder:
    """Responder that replays canned texts or raises canned errors."""

    def __init__(
        self,
        script: List[Union[str, Exception]],
        name: str = "scripted",
        enabled: bool = True,
    ):
        self.script = list(script)
        self.name = name
        self.enabled = enabled
        self.prompts: List[str] = []
        self.systems: List[Optional[str]] = []

    def is_enabled(self) -> bool:
        return self.enabled

    async def respond(self, prompt: str, system: Optional[str] = None) -> AiResponse:
        self.prompts.append(prompt)
        self.systems.append(system)
        item = self.script.pop(0) if len(self.script) > 1 else self.script[0]
        if isinstance(item, Exception):
            raise item
        return AiResponse(
            provider=self.name,
            model=f"{self.name}-model",
            text=item,
            confidence=0.9,
            input_tokens=12,
            output_tokens=8,
            cost_usd=0.0001,
        )

    @property
    def calls(self) -> int:
        return len(self.prompts)


class FakeClock:
    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class MemoryAuditSink:
    def __init__(self):
        self.entries = []

    async def write(self, entry):
        self.entries.append(entry)


def seed_store(store: InMemoryTicketStore, status: TicketStatus = TicketStatus.OPEN):
    store.add_user(User(id=CUSTOMER_ID, tenant_id=TENANT_ID, full_name="Maria Souza"))
    store.add_user(User(
        id=TECHNICIAN_ID, tenant_id=TENANT_ID, full_name="Carlos Lima", kind=UserKind.TECHNICIAN,
    ))
    store.add_ticket(Ticket(
        id=TICKET_ID,
        tenant_id=TENANT_ID,
        title="VPN não conecta",
        requester_id=CUSTOMER_ID,
        status=status,
        description="Não consigo conectar na VPN desde ontem",
        category_id=7,
    ))
    return store


@pytest.fixture
def store():
    return seed_store(SpyTicketStore())


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def sessions(clock):
    return ConversationStateStore(ttl_seconds=3600, clock=clock)


@pytest.fixture
def audit_sink():
    return MemoryAuditSink()


@pytest.fixture
def make_responder():
    return ScriptedResponder


@pytest.fixture
def make_controller(store, sessions, audit_sink):
    """Build a controller around a scripted responder."""

    def _make(script, **kwargs):
        responder = script if not isinstance(script, list) else ScriptedResponder(script)
        controller = TicketLifecycleController(
            store=store,
            responder=responder,
            sessions=sessions,
            audit=RunAuditLog([audit_sink]),
            **kwargs,
        )
        return controller, responder

    return _make


@pytest.fixture
def client(store):
    """FastAPI test client wired to a seeded in-memory store."""
    from api.main import app
    from api.services import Services, get_services

    services = Services()
    services.initialize(store=store)
    app.dependency_overrides[get_services] = lambda: services
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
