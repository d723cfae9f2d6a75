"""
Ticket Lifecycle Controller.

Runs one AI triage turn for a ticket: loads the ticket and its
conversation, asks the responder chain for a reply, turns the reply's
control tags into status changes and linked tickets, enforces the scope
policy, and persists the visible reply.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from tickets.models import (
    AI_INELIGIBLE_STATUSES, AiMeta, AuthorKind, Ticket, TicketPriority,
    TicketSpec, TicketStatus, User, UserKind,
)
from tickets.store import TicketStore
from .audit import AuditEntry, AuditOutcome, RunAuditLog, hash_prompt
from .conversation_store import ConversationSession, ConversationStateStore, SessionKey
from .directives import ActionSet, DirectiveParser, LinkedTicketSpec
from .errors import (
    AiProvidersExhaustedError, EligibilityError, TicketNotFoundError,
    TriageError, ValidationError,
)
from .guardrails import ScopeGuard
from .metrics import record_scope_violation, record_transition, record_turn
from .prompt_templates import PromptTemplates, PromptType
from .providers.base import AiResponder, AiResponse

logger = logging.getLogger(__name__)

FORCED_CLOSURE_MARKER = "⚠️ [ENCERRADO]"

FORCED_CLOSURE_NOTICE = (
    f"{FORCED_CLOSURE_MARKER} Este chamado foi encerrado automaticamente após "
    "repetidas solicitações não relacionadas ao suporte técnico."
)

SCOPE_WARNING = (
    "⚠️ Atenção: este canal atende apenas questões técnicas. Se a próxima "
    "solicitação também não for técnica, o chamado será encerrado automaticamente."
)

HUMAN_AGENT_REQUIRED_REPLY = (
    "Este chamado está com um agente humano ou já foi finalizado. "
    "Um atendente dará continuidade ao seu atendimento."
)

AI_UNAVAILABLE_REPLY = (
    "O assistente está temporariamente indisponível. "
    "Por favor, tente novamente em alguns instantes."
)

EMPTY_REPLY_FALLBACK = "Seu chamado foi atualizado."


@dataclass
class TriageResult:
    """Outcome of one controller operation."""
    success: bool
    reply_text: str
    status_changed: bool = False
    new_status: Optional[TicketStatus] = None
    linked_ticket_id: Optional[int] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    error: Optional[TriageError] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "reply_text": self.reply_text,
            "status_changed": self.status_changed,
            "new_status": int(self.new_status) if self.new_status is not None else None,
            "linked_ticket_id": self.linked_ticket_id,
            "provider": self.provider,
            "model": self.model,
            "error": type(self.error).__name__ if self.error else None,
        }


class TicketLifecycleController:
    """
    Orchestrates AI triage turns for tickets.

    Pipeline:
    1. Validate input and load the ticket (tenant-checked)
    2. Refuse tickets a human owns or that are finished
    3. Fetch or hydrate the conversation session
    4. Build the prompt and call the responder chain
    5. Parse control tags and apply the scope policy
    6. Apply status change, create linked ticket, persist the reply
    7. Commit the session
    """

    def __init__(
        self,
        store: TicketStore,
        responder: AiResponder,
        sessions: ConversationStateStore,
        audit: Optional[RunAuditLog] = None,
        parser: Optional[DirectiveParser] = None,
        scope_guard: Optional[ScopeGuard] = None,
        templates: Optional[PromptTemplates] = None,
        max_message_length: int = 2000,
        bot_user_id: int = 0,
    ):
        self.store = store
        self.responder = responder
        self.sessions = sessions
        self.audit = audit or RunAuditLog()
        self.parser = parser or DirectiveParser()
        self.scope_guard = scope_guard or ScopeGuard()
        self.templates = templates or PromptTemplates()
        self.max_message_length = max_message_length
        self.bot_user_id = bot_user_id

    # ── Public operations ─────────────────────────────────

    async def process_new_ticket(self, ticket_id: int, tenant_id: int) -> TriageResult:
        """
        Run the first AI turn for a freshly opened ticket.

        Raises:
            TicketNotFoundError: ticket missing or owned by another tenant
            StoreError: the store failed while applying a status change
        """
        ticket = await self._load_ticket(ticket_id, tenant_id)
        if ticket.status in AI_INELIGIBLE_STATUSES:
            return self._ineligible(ticket, "process_new_ticket")

        requester = await self.store.get_user(ticket.requester_id)
        if requester is None or requester.kind != UserKind.CUSTOMER:
            logger.info(f"Ticket {ticket_id} skipped: requester is not a customer")
            record_turn("process_new_ticket", "skipped")
            return TriageResult(
                success=False,
                reply_text="",
                new_status=ticket.status,
                error=ValidationError(f"requester of ticket {ticket_id} is not a customer"),
            )

        session = await self._load_session(ticket)
        return await self._run_turn(
            ticket, requester, session,
            customer_text=ticket.description or ticket.title,
            operation="process_new_ticket",
        )

    async def process_customer_message(
        self, ticket_id: int, tenant_id: int, text: str
    ) -> TriageResult:
        """
        Answer a customer message on an existing ticket.

        Raises:
            ValidationError: empty or oversized message
            TicketNotFoundError: ticket missing or owned by another tenant
            StoreError: the store failed while applying a status change
        """
        text = self.validate_message(text)
        ticket = await self._load_ticket(ticket_id, tenant_id)
        if ticket.status in AI_INELIGIBLE_STATUSES:
            return self._ineligible(ticket, "process_customer_message")

        requester = await self.store.get_user(ticket.requester_id)
        session = await self._load_session(ticket)
        last = session.last_message
        if last is None or last.author != AuthorKind.CUSTOMER or last.text != text:
            session.add_message(AuthorKind.CUSTOMER, text)

        return await self._run_turn(
            ticket, requester, session,
            customer_text=text,
            operation="process_customer_message",
        )

    async def record_customer_message(self, ticket_id: int, tenant_id: int, text: str):
        """Persist an inbound customer message before it is triaged."""
        text = self.validate_message(text)
        ticket = await self._load_ticket(ticket_id, tenant_id)
        return await self.store.append_interaction(
            ticket.id, AuthorKind.CUSTOMER, text, author_user_id=ticket.requester_id
        )

    def validate_message(self, text: Optional[str]) -> str:
        if text is None or not text.strip():
            raise ValidationError("message must not be empty")
        if len(text) > self.max_message_length:
            raise ValidationError(
                f"message exceeds {self.max_message_length} characters"
            )
        return text.strip()

    # ── Turn pipeline ─────────────────────────────────────

    async def _run_turn(
        self,
        ticket: Ticket,
        requester: Optional[User],
        session: ConversationSession,
        customer_text: Optional[str],
        operation: str,
    ) -> TriageResult:
        prior_violations = self.scope_guard.count_consecutive_violations(session.history)

        system = self.templates.get_system_prompt(PromptType.TICKET_TRIAGE)
        prompt = self.templates.build_ticket_context(ticket, requester, session.history)
        prompt_hash = hash_prompt(system, prompt)

        try:
            response = await self.responder.respond(prompt, system=system)
        except AiProvidersExhaustedError as e:
            logger.error(f"No AI provider available for ticket {ticket.id}: {e}")
            await self.audit.record(AuditEntry(
                tenant_id=ticket.tenant_id,
                ticket_id=ticket.id,
                prompt_hash=prompt_hash,
                outcome=AuditOutcome.EXHAUSTED,
            ))
            record_turn(operation, "exhausted")
            return TriageResult(
                success=False,
                reply_text=AI_UNAVAILABLE_REPLY,
                new_status=ticket.status,
                error=e,
            )

        await self.audit.record(
            AuditEntry.from_response(ticket.tenant_id, ticket.id, prompt_hash, response)
        )

        clean_text, actions = self.parser.parse(response.text, customer_text)
        reply_text, force_close = self._apply_scope_policy(clean_text, prior_violations)
        target = self._resolve_status(ticket.status, actions, force_close)

        status_changed = False
        new_status = ticket.status
        if target is not None and target != ticket.status:
            await self.store.set_status(ticket.id, target, self.bot_user_id)
            record_transition(ticket.status.name, target.name)
            logger.info(f"Ticket {ticket.id} status {ticket.status.name} -> {target.name}")
            status_changed = True
            new_status = target

        linked_ticket_id = None
        if actions.new_linked_ticket is not None:
            linked_ticket_id = await self._create_linked_ticket(ticket, actions.new_linked_ticket)

        if not reply_text.strip():
            reply_text = EMPTY_REPLY_FALLBACK
        await self._append_reply(ticket, reply_text, response)

        session.add_message(AuthorKind.AI, clean_text or reply_text)
        session.linked_ticket_id = ticket.id
        self.sessions.put(session)

        record_turn(operation, "ok")
        return TriageResult(
            success=True,
            reply_text=reply_text,
            status_changed=status_changed,
            new_status=new_status,
            linked_ticket_id=linked_ticket_id,
            provider=response.provider,
            model=response.model,
        )

    def _apply_scope_policy(self, clean_text: str, prior_violations: int):
        """Returns (visible reply, force close)."""
        if not self.scope_guard.is_out_of_scope(clean_text):
            return clean_text, False
        if prior_violations >= 2:
            record_scope_violation("closed")
            return f"{FORCED_CLOSURE_NOTICE}\n\n{clean_text}", True
        if prior_violations == 1:
            record_scope_violation("warning")
            return f"{clean_text}\n\n{SCOPE_WARNING}", False
        record_scope_violation("none")
        return clean_text, False

    @staticmethod
    def _resolve_status(
        current: TicketStatus, actions: ActionSet, force_close: bool
    ) -> Optional[TicketStatus]:
        # Forced closure beats a human request, which beats the AI's own tag.
        if force_close:
            return TicketStatus.CLOSED
        if actions.human_requested and current == TicketStatus.PENDING:
            return TicketStatus.IN_PROGRESS
        return actions.new_status

    async def _create_linked_ticket(
        self, ticket: Ticket, linked: LinkedTicketSpec
    ) -> Optional[int]:
        priority = ticket.priority
        if linked.priority_id in TicketPriority._value2member_map_:
            priority = TicketPriority(linked.priority_id)
        spec = TicketSpec(
            tenant_id=ticket.tenant_id,
            title=linked.title,
            description=linked.description,
            requester_id=ticket.requester_id,
            priority=priority,
            category_id=linked.category_id if linked.category_id is not None else ticket.category_id,
            channel=ticket.channel,
        )
        try:
            created = await self.store.create_ticket(spec)
        except Exception as e:
            logger.error(f"Linked ticket creation failed for ticket {ticket.id}: {e}")
            return None
        logger.info(f"Linked ticket {created.id} created from ticket {ticket.id}")
        return created.id

    async def _append_reply(self, ticket: Ticket, reply_text: str, response: AiResponse):
        meta = AiMeta(
            provider=response.provider,
            model=response.model,
            confidence=response.confidence,
            reasoning_summary=response.reasoning_summary,
        )
        try:
            await self.store.append_interaction(
                ticket.id,
                AuthorKind.AI,
                reply_text,
                ai_meta=meta,
                author_user_id=self.bot_user_id or None,
            )
        except Exception as e:
            logger.error(f"Failed to save AI reply for ticket {ticket.id}: {e}")

    # ── Helpers ───────────────────────────────────────────

    async def _load_ticket(self, ticket_id: int, tenant_id: int) -> Ticket:
        ticket = await self.store.get_ticket(ticket_id)
        if ticket is None or ticket.tenant_id != tenant_id:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")
        return ticket

    async def _load_session(self, ticket: Ticket) -> ConversationSession:
        key = SessionKey(ticket.tenant_id, ticket.requester_id, ticket.id)
        session = self.sessions.get(key)
        if session.is_fresh:
            for interaction in await self.store.list_interactions(ticket.id):
                session.add_message(
                    interaction.author,
                    interaction.text,
                    interaction.created_at.timestamp(),
                )
            session.linked_ticket_id = ticket.id
        return session

    def _ineligible(self, ticket: Ticket, operation: str) -> TriageResult:
        logger.info(f"Ticket {ticket.id} not eligible for AI (status={ticket.status.name})")
        record_turn(operation, "ineligible")
        return TriageResult(
            success=False,
            reply_text=HUMAN_AGENT_REQUIRED_REPLY,
            new_status=ticket.status,
            error=EligibilityError(ticket.id, ticket.status),
        )
