"""
Service initialization and dependency injection for the triage API.

Creates and manages all service instances used by the API.
"""

import logging
from typing import Callable, Dict, List, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from config.settings import get_settings, Settings
from llm.audit import DbAuditSink, LoggingAuditSink, RunAuditLog
from llm.chatbot import ChatBotService
from llm.conversation_store import ConversationStateStore
from llm.orchestrator import TicketLifecycleController
from llm.prompt_templates import PromptTemplates
from llm.providers import (
    AiResponder, BedrockProvider, HeuristicResponder, OpenAIProvider, OpenRouterProvider,
)
from llm.responder_chain import ResponderChain
from tickets.db_ticket_store import SqlTicketStore
from tickets.memory_store import InMemoryTicketStore
from tickets.store import TicketStore

logger = logging.getLogger(__name__)


def _openrouter(s: Settings) -> AiResponder:
    return OpenRouterProvider(
        api_key=s.openrouter_api_key,
        model_id=s.openrouter_model,
        base_url=s.openrouter_base_url,
        referer=s.openrouter_referer,
        app_title=s.brand_name,
        max_tokens=s.max_tokens,
        temperature=s.temperature,
        timeout=s.ai_timeout_seconds,
    )


def _openai(s: Settings) -> AiResponder:
    return OpenAIProvider(
        api_key=s.openai_api_key,
        model_id=s.openai_llm_model,
        max_tokens=s.max_tokens,
        temperature=s.temperature,
        timeout=s.ai_timeout_seconds,
    )


def _bedrock(s: Settings) -> AiResponder:
    return BedrockProvider(
        model_id=s.bedrock_llm_model_id,
        region=s.aws_region,
        max_tokens=s.max_tokens,
        temperature=s.temperature,
    )


PROVIDER_FACTORIES: Dict[str, Callable[[Settings], AiResponder]] = {
    "openrouter": _openrouter,
    "openai": _openai,
    "bedrock": _bedrock,
}


def build_providers(settings: Settings, include_heuristic: bool = True) -> List[AiResponder]:
    """Instantiate providers in AI_PROVIDER_ORDER; the heuristic always goes last."""
    providers: List[AiResponder] = []
    for name in settings.provider_order:
        factory = PROVIDER_FACTORIES.get(name)
        if factory is None:
            logger.warning(f"Unknown AI provider in AI_PROVIDER_ORDER: {name}")
            continue
        providers.append(factory(settings))
    if include_heuristic:
        providers.append(HeuristicResponder())
    return providers


class Services:
    """Container for all application services."""

    def __init__(self):
        self.settings: Optional[Settings] = None
        self.store: Optional[TicketStore] = None
        self.sessions: Optional[ConversationStateStore] = None
        self.responder: Optional[ResponderChain] = None
        self.audit: Optional[RunAuditLog] = None
        self.controller: Optional[TicketLifecycleController] = None
        self.chatbot: Optional[ChatBotService] = None
        self._initialized = False

    def initialize(
        self,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        store: Optional[TicketStore] = None,
        settings: Optional[Settings] = None,
    ):
        """
        Initialize all services.

        Args:
            session_factory: Database sessions; None keeps tickets in memory
            store: Explicit ticket store (overrides session_factory)
            settings: Explicit settings (defaults to environment)
        """
        if self._initialized:
            return

        self.settings = settings or get_settings()
        s = self.settings

        if store is not None:
            self.store = store
        elif session_factory is not None:
            self.store = SqlTicketStore(session_factory)
        else:
            logger.warning("DATABASE_URL not set, tickets are kept in memory")
            self.store = InMemoryTicketStore()

        self.sessions = ConversationStateStore(ttl_seconds=s.session_ttl_seconds)
        self.responder = ResponderChain(build_providers(s), timeout_seconds=s.ai_timeout_seconds)
        logger.info(f"AI provider chain: {self.responder.provider_names}")

        sinks = [LoggingAuditSink()]
        if session_factory is not None:
            sinks.append(DbAuditSink(session_factory))
        self.audit = RunAuditLog(sinks)

        templates = PromptTemplates(brand_name=s.brand_name)
        self.controller = TicketLifecycleController(
            store=self.store,
            responder=self.responder,
            sessions=self.sessions,
            audit=self.audit,
            templates=templates,
            max_message_length=s.max_message_length,
            bot_user_id=s.bot_user_id,
        )

        nlu = None
        if s.chatbot_use_nlu:
            nlu = ResponderChain(
                build_providers(s, include_heuristic=False), timeout_seconds=s.ai_timeout_seconds
            )
        self.chatbot = ChatBotService(
            store=self.store,
            sessions=self.sessions,
            nlu=nlu,
            templates=templates,
            max_message_length=s.max_message_length,
            bot_user_id=s.bot_user_id,
            brand_name=s.brand_name,
        )

        self._initialized = True
        logger.info("All services initialized successfully")

    @property
    def is_ready(self) -> bool:
        return self._initialized and self.controller is not None

    def health(self) -> dict:
        """Return health status of all services."""
        return {
            "initialized": self._initialized,
            "store": type(self.store).__name__ if self.store else None,
            "providers": self.responder.provider_names if self.responder else [],
            "active_sessions": len(self.sessions) if self.sessions else 0,
        }


# Singleton
_services = Services()


def get_services() -> Services:
    """Get the global services instance, initializing in-memory defaults on first use."""
    if not _services.is_ready:
        _services.initialize()
    return _services


def initialize_services(session_factory: Optional[async_sessionmaker[AsyncSession]] = None):
    """Initialize all services (called at startup)."""
    _services.initialize(session_factory=session_factory)
