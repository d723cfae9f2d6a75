"""
Pre-ticket chatbot.

Handles free-form messages from users who have not opened a ticket yet:
answers small talk, offers troubleshooting steps, and opens a ticket
once the user confirms. When the conversation is already tied to a
ticket, messages are recorded on that ticket instead.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from tickets.models import FINISHED_STATUSES, AiMeta, AuthorKind, TicketChannel, TicketSpec
from tickets.store import TicketStore
from .conversation_store import ConversationSession, ConversationStateStore, SessionKey
from .errors import AiError, TicketNotFoundError, ValidationError
from .message_analyzer import MessageAnalysis, MessageAnalyzer, MessageIntent, normalize_text
from .prompt_templates import PromptTemplates, PromptType
from .providers.base import AiResponder

logger = logging.getLogger(__name__)

CREATE_TICKET_ACTION = "create_ticket"

AFFIRMATIVE_ANSWERS = {"sim", "s", "yes", "y", "ok", "confirmo", "confirmar", "confirm"}
NEGATIVE_ANSWERS = {"nao", "n", "no", "nao confirmo", "cancelar"}

TITLE_MAX_WORDS = 10
TITLE_MAX_LENGTH = 60

CHATBOT_META = AiMeta(
    provider="chatbot",
    model="keyword-rules-v1",
    reasoning_summary="Resposta automática do ChatBot",
)


@dataclass
class ChatBotReply:
    """Reply to one chatbot message."""
    reply_text: str
    suggestions: List[str] = field(default_factory=list)
    awaiting_confirmation: bool = False
    confirmation_type: Optional[str] = None
    created_ticket_id: Optional[int] = None
    ticket_id: Optional[int] = None
    escalate_to_human: bool = False
    suggested_action: Optional[str] = None
    context: Dict[str, str] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "reply_text": self.reply_text,
            "suggestions": self.suggestions,
            "awaiting_confirmation": self.awaiting_confirmation,
            "confirmation_type": self.confirmation_type,
            "created_ticket_id": self.created_ticket_id,
            "ticket_id": self.ticket_id,
            "escalate_to_human": self.escalate_to_human,
            "suggested_action": self.suggested_action,
            "context": self.context,
        }


def build_ticket_title(message: str) -> str:
    """First ten words of the message, capped at 60 characters."""
    title = " ".join(message.split()[:TITLE_MAX_WORDS])
    if len(title) > TITLE_MAX_LENGTH:
        title = title[:TITLE_MAX_LENGTH - 3] + "..."
    return title


def build_ticket_description(session: ConversationSession, problem: str) -> str:
    """Numbered transcript of the customer's messages plus the problem statement."""
    lines = [m.text for m in session.history if m.author == AuthorKind.CUSTOMER]
    if not lines:
        return problem
    transcript = "\n".join(f"{i}. {text}" for i, text in enumerate(lines, start=1))
    return (
        "Histórico da conversa com o ChatBot:\n\n"
        f"{transcript}\n\n"
        f"Problema identificado: {problem}"
    )


class ChatBotService:
    """
    Conversational front door of the helpdesk.

    States per session: free conversation, awaiting confirmation to
    create a ticket, and linked to a ticket.
    """

    def __init__(
        self,
        store: TicketStore,
        sessions: ConversationStateStore,
        analyzer: Optional[MessageAnalyzer] = None,
        nlu: Optional[AiResponder] = None,
        templates: Optional[PromptTemplates] = None,
        max_message_length: int = 2000,
        bot_user_id: int = 0,
        brand_name: str = "TechDesk",
    ):
        self.store = store
        self.sessions = sessions
        self.analyzer = analyzer or MessageAnalyzer()
        self.nlu = nlu
        self.templates = templates or PromptTemplates(brand_name)
        self.max_message_length = max_message_length
        self.bot_user_id = bot_user_id
        self.brand_name = brand_name

    async def process_freeform_message(
        self,
        tenant_id: int,
        user_id: int,
        text: str,
        ticket_id: Optional[int] = None,
    ) -> ChatBotReply:
        """
        Handle one chatbot message.

        Raises:
            ValidationError: empty/oversized text or invalid ids
            TicketNotFoundError: the linked ticket belongs to another tenant
        """
        text = self._validate(tenant_id, user_id, text)

        session = self.sessions.get(SessionKey(tenant_id, user_id, ticket_id or 0))
        if ticket_id:
            session.linked_ticket_id = ticket_id
        elif session.linked_ticket_id:
            session = await self._release_finished_ticket(session)
        session.add_message(AuthorKind.CUSTOMER, text)

        if session.linked_ticket_id:
            return await self._handle_ticket_message(session, text)

        if session.awaiting_confirmation and session.pending_action:
            return await self._handle_confirmation(session, text)

        analysis = await self._analyze(text)
        if analysis.needs_ticket:
            return self._ask_confirmation(session, text, analysis)

        reply = self._general_reply(analysis)
        session.topic = analysis.topic.value
        session.add_message(AuthorKind.AI, reply.reply_text)
        self.sessions.put(session)
        return reply

    # ── Analysis ──────────────────────────────────────────

    async def _analyze(self, text: str) -> MessageAnalysis:
        analysis = self.analyzer.analyze(text)
        if self.nlu is None or not self.nlu.is_enabled():
            return analysis

        try:
            response = await self.nlu.respond(
                text, system=self.templates.get_system_prompt(PromptType.CHATBOT_NLU)
            )
        except AiError as e:
            logger.warning(f"NLU failed, using keyword analysis: {e}")
            return analysis

        nlu_intent = self.analyzer.detect_intent(normalize_text(response.text))
        if nlu_intent != MessageIntent.GENERAL and analysis.intent != MessageIntent.GREETING:
            analysis.intent = nlu_intent
        if nlu_intent == MessageIntent.REPORT_PROBLEM:
            analysis.needs_ticket = True
        logger.info(
            f"NLU processed message: intent={analysis.intent.value} needs_ticket={analysis.needs_ticket}"
        )
        return analysis

    # ── Free conversation ─────────────────────────────────

    def _ask_confirmation(
        self, session: ConversationSession, text: str, analysis: MessageAnalysis
    ) -> ChatBotReply:
        reply_text = (
            f"Compreendi seu problema relacionado a {analysis.topic.label}. "
            "Para que nossa equipe técnica possa ajudar, preciso criar um chamado no sistema.\n\n"
            f"Resumo do problema:\n{text}\n\n"
            "Você deseja que eu crie este chamado agora? (Responda 'sim' ou 'não')"
        )
        session.awaiting_confirmation = True
        session.pending_action = CREATE_TICKET_ACTION
        session.topic = analysis.topic.value
        session.trigger_message = text
        session.add_message(AuthorKind.AI, reply_text)
        self.sessions.put(session)

        return ChatBotReply(
            reply_text=reply_text,
            suggestions=analysis.suggestions,
            awaiting_confirmation=True,
            confirmation_type=CREATE_TICKET_ACTION,
            context={
                "original_message": text,
                "topic": analysis.topic.value,
                "urgency": str(int(analysis.urgency)),
            },
        )

    def _general_reply(self, analysis: MessageAnalysis) -> ChatBotReply:
        intent = analysis.intent
        if intent == MessageIntent.GREETING:
            text = (
                f"Olá! 👋 Sou seu assistente técnico do {self.brand_name}. "
                "Estou aqui para ajudar com questões de sistema, rede e logs. Como posso ajudar?"
            )
        elif intent == MessageIntent.THANKS:
            text = "De nada! 😊 Fico feliz em ajudar. Se precisar de mais alguma coisa, estarei aqui!"
        elif intent == MessageIntent.FAREWELL:
            text = "Até logo! 👋 Foi um prazer ajudar. Volte sempre que precisar!"
        elif intent == MessageIntent.STATUS_QUERY:
            text = (
                "Para consultar seus chamados, acesse o menu 'Chamados' no sistema. "
                "Lá você verá todos os seus tickets e poderá acompanhar o status de cada um."
            )
        elif intent == MessageIntent.REQUEST_HELP:
            text = (
                "Claro! Posso ajudar com questões técnicas:\n\n"
                "• Problemas de sistema (lentidão, travamentos, bugs)\n"
                "• Problemas de rede (conexão, DNS, IP)\n"
                "• Análise de logs (erros, auditoria)\n"
                "• Autenticação e acesso\n\n"
                "Descreva sua necessidade técnica e eu tentarei diagnosticar ou criar um chamado."
            )
        elif analysis.suggestions:
            text = (
                f"Diagnostiquei um assunto relacionado a {analysis.topic.label}. "
                "Antes de criar um chamado, que tal tentar estas soluções?\n\n"
                + "\n".join(analysis.suggestions)
                + "\n\nSe não resolver, descreva o problema e posso criar um chamado para nossa equipe técnica."
            )
        else:
            text = (
                "Entendi sua mensagem. Descreva o problema técnico que está enfrentando "
                "e eu posso criar um chamado para nossa equipe analisar."
            )
        return ChatBotReply(reply_text=text, suggestions=analysis.suggestions)

    # ── Confirmation ──────────────────────────────────────

    async def _handle_confirmation(self, session: ConversationSession, text: str) -> ChatBotReply:
        answer = normalize_text(text).strip(" .!?")
        confirmed = answer in AFFIRMATIVE_ANSWERS

        if not confirmed and answer not in NEGATIVE_ANSWERS:
            reply_text = (
                "Não entendi sua resposta. Por favor, responda 'sim' para criar "
                "o chamado ou 'não' para cancelar."
            )
            session.add_message(AuthorKind.AI, reply_text)
            self.sessions.put(session)
            return ChatBotReply(
                reply_text=reply_text,
                awaiting_confirmation=True,
                confirmation_type=session.pending_action,
            )

        if not confirmed:
            reply_text = (
                "Entendido! Se mudar de ideia, é só me avisar e posso criar o chamado. "
                "Estou aqui para ajudar! 😊"
            )
            session.clear_pending()
            session.add_message(AuthorKind.AI, reply_text)
            self.sessions.put(session)
            return ChatBotReply(reply_text=reply_text)

        return await self._create_ticket(session)

    async def _create_ticket(self, session: ConversationSession) -> ChatBotReply:
        problem = session.trigger_message or session.history[-1].text
        # The confirmation answer itself is not part of the transcript.
        transcript_session = ConversationSession(key=session.key, history=session.history[:-1])
        spec = TicketSpec(
            tenant_id=session.key.tenant_id,
            title=build_ticket_title(problem),
            description=build_ticket_description(transcript_session, problem),
            requester_id=session.key.user_id,
            priority=self.analyzer.detect_urgency(normalize_text(problem)),
            channel=TicketChannel.CHATBOT,
        )
        logger.info(
            f"Creating ticket from chatbot: tenant={spec.tenant_id} user={spec.requester_id} "
            f"topic={session.topic}"
        )

        try:
            ticket = await self.store.create_ticket(spec)
        except Exception as e:
            logger.error(f"Chatbot ticket creation failed: {e}")
            session.clear_pending()
            self.sessions.put(session)
            return ChatBotReply(
                reply_text=(
                    "Ocorreu um erro ao criar o chamado. Por favor, tente novamente "
                    "ou entre em contato com o suporte."
                ),
                escalate_to_human=True,
            )

        greeting = (
            "Olá! Criei este chamado com base na sua solicitação. "
            f"Um técnico entrará em contato em breve. Chamado #{ticket.number}"
        )
        await self._append_best_effort(ticket.id, AuthorKind.AI, greeting, CHATBOT_META, self.bot_user_id or None)

        reply_text = (
            "✅ Chamado criado com sucesso!\n\n"
            f"📋 Número do chamado: #{ticket.number}\n"
            f"📝 Título: {ticket.title}\n\n"
            "Nossa equipe técnica foi notificada e entrará em contato em breve. "
            "Você pode acompanhar o andamento na seção 'Chamados' do sistema.\n\n"
            "Se precisar adicionar mais informações, é só me avisar!"
        )
        session.clear_pending()
        session.linked_ticket_id = ticket.id
        session.add_message(AuthorKind.AI, reply_text)
        self.sessions.put(session)

        return ChatBotReply(
            reply_text=reply_text,
            created_ticket_id=ticket.id,
            ticket_id=ticket.id,
            suggested_action="Acompanhar chamado",
        )

    # ── Linked ticket ─────────────────────────────────────

    async def _release_finished_ticket(self, session: ConversationSession) -> ConversationSession:
        """Start over once the ticket this conversation opened is finished."""
        ticket = await self.store.get_ticket(session.linked_ticket_id)
        if ticket is not None and ticket.status not in FINISHED_STATUSES:
            return session
        logger.info(
            f"Chatbot session {tuple(session.key)} released ticket {session.linked_ticket_id}"
        )
        return ConversationSession(key=session.key)

    async def _handle_ticket_message(self, session: ConversationSession, text: str) -> ChatBotReply:
        ticket_id = session.linked_ticket_id
        ticket = await self.store.get_ticket(ticket_id)
        if ticket is None or ticket.tenant_id != session.key.tenant_id:
            raise TicketNotFoundError(f"Ticket {ticket_id} not found")

        await self._append_best_effort(ticket_id, AuthorKind.CUSTOMER, text, None, session.key.user_id)

        analysis = await self._analyze(text)
        if analysis.intent == MessageIntent.STATUS_QUERY:
            reply_text = (
                f"Este é o chamado #{ticket.number} ({ticket.status.label}). Você pode acompanhar "
                "o status na seção 'Chamados' do sistema. Nossa equipe está trabalhando na sua solicitação."
            )
        elif analysis.intent == MessageIntent.THANKS:
            reply_text = (
                "Obrigado pela sua paciência! Estamos trabalhando para resolver "
                "seu chamado o mais rápido possível."
            )
        else:
            reply_text = (
                f"Recebi sua mensagem! Ela foi adicionada ao chamado #{ticket.number} e nossa "
                "equipe técnica foi notificada. Continue me informando sobre o problema e eu "
                "registrarei tudo no chamado."
            )

        await self._append_best_effort(ticket_id, AuthorKind.AI, reply_text, CHATBOT_META, self.bot_user_id or None)

        session.add_message(AuthorKind.AI, reply_text)
        self.sessions.put(session)
        return ChatBotReply(reply_text=reply_text, ticket_id=ticket_id)

    async def _append_best_effort(
        self,
        ticket_id: int,
        author: AuthorKind,
        text: str,
        meta: Optional[AiMeta],
        author_user_id: Optional[int],
    ):
        try:
            await self.store.append_interaction(
                ticket_id, author, text, ai_meta=meta, author_user_id=author_user_id
            )
        except Exception as e:
            logger.warning(f"Could not add {author.value} message to ticket {ticket_id}: {e}")

    def _validate(self, tenant_id: int, user_id: int, text: Optional[str]) -> str:
        if text is None or not text.strip():
            raise ValidationError("message must not be empty")
        if len(text) > self.max_message_length:
            raise ValidationError(f"message exceeds {self.max_message_length} characters")
        if not tenant_id or tenant_id <= 0:
            raise ValidationError("invalid tenant id")
        if not user_id or user_id <= 0:
            raise ValidationError("invalid user id")
        return text.strip()
