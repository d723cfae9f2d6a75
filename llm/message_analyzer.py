"""
Rule-based message analysis for the triage engine.

Classifies a free-form support message into an intent, a technical
topic and an urgency level, and decides whether it describes a problem
worth opening a ticket for. Used by the chatbot flow and by the
deterministic fallback responder.
"""

import logging
import re
import unicodedata
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, List

from tickets.models import TicketPriority

logger = logging.getLogger(__name__)


def normalize_text(text: str) -> str:
    """Lowercase and strip accents so 'Não' and 'nao' compare equal."""
    decomposed = unicodedata.normalize("NFKD", text.strip().lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


class MessageIntent(Enum):
    """What the user is trying to do."""
    GREETING = "greeting"
    THANKS = "thanks"
    FAREWELL = "farewell"
    STATUS_QUERY = "status_query"
    REPORT_PROBLEM = "report_problem"
    REQUEST_HELP = "request_help"
    GENERAL = "general"


class Topic(Enum):
    """Technical area of the request."""
    AUTHENTICATION = "authentication"
    NETWORK = "network"
    LOGS = "logs"
    SYSTEM = "system"
    TICKETS = "tickets"
    GENERAL = "general"

    @property
    def label(self) -> str:
        return _TOPIC_LABELS[self]


_TOPIC_LABELS = {
    Topic.AUTHENTICATION: "acesso",
    Topic.NETWORK: "rede",
    Topic.LOGS: "logs",
    Topic.SYSTEM: "sistema",
    Topic.TICKETS: "chamados",
    Topic.GENERAL: "suporte",
}


@dataclass
class MessageAnalysis:
    """Result of analyzing one message."""
    original_message: str
    intent: MessageIntent = MessageIntent.GENERAL
    topic: Topic = Topic.GENERAL
    urgency: TicketPriority = TicketPriority.MEDIUM
    needs_ticket: bool = False
    suggestions: List[str] = field(default_factory=list)


class MessageAnalyzer:
    """
    Keyword classifier for support messages (Portuguese and English).

    Patterns run against accent-stripped lowercase text, so they are
    written without accents.
    """

    GREETING_PATTERN = re.compile(r"^(oi|ola|bom dia|boa tarde|boa noite|hello|hi|hey)[!.]*$")

    # Order matters: first match wins.
    INTENT_PATTERNS = [
        (MessageIntent.THANKS, re.compile(r"(obrigad[oa]|thanks|thank you|valeu|agradeco)")),
        (MessageIntent.FAREWELL, re.compile(r"\b(tchau|ate logo|bye|encerrar|sair)\b")),
        (MessageIntent.STATUS_QUERY, re.compile(r"\b(status|andamento|como esta|quando)\b")),
        (MessageIntent.REPORT_PROBLEM, re.compile(r"(problema|erro|bug|nao funciona|quebrado|not working|broken)")),
        (MessageIntent.REQUEST_HELP, re.compile(r"\b(ajuda|help|como|instrucao|tutorial)\b")),
    ]

    TOPIC_PATTERNS = [
        (Topic.AUTHENTICATION, re.compile(r"(login|senha|acesso|entrar|logar|autenticacao|credenciais|password)")),
        (Topic.NETWORK, re.compile(r"(rede|conexao|wi-?fi|internet|dns|\bip\b|ping|conectividade|vpn|network)")),
        (Topic.LOGS, re.compile(r"(\blogs?\b|registros?|exception|trace|debug|auditoria)")),
        (Topic.SYSTEM, re.compile(r"(sistema|lento|carregando|travado|bug|crash|erro 500|timeout|performance)")),
        (Topic.TICKETS, re.compile(r"(chamado|ticket|protocolo|solicitacao)")),
    ]

    PROBLEM_PATTERNS = [
        r"nao funciona", r"nao esta funcionando", r"erro", r"bug", r"problema",
        r"quebrado", r"travado", r"lento", r"falha", r"defeito",
        r"preciso de ajuda", r"preciso de suporte", r"nao consigo",
        r"como faco para", r"nao sei como", r"ajuda com",
        r"urgente", r"emergencia", r"critico",
        r"not working", r"can'?t connect", r"cannot", r"broken", r"error",
    ]

    URGENT_PATTERN = re.compile(r"(urgente|emergencia|critico|imediato|agora|urgent|asap)")
    HIGH_PATTERN = re.compile(r"(importante|rapido|logo|important)")

    SUGGESTIONS: Dict[Topic, List[str]] = {
        Topic.AUTHENTICATION: [
            "• Verifique se você está usando as credenciais corretas",
            "• Tente limpar o cache do navegador",
            "• Verifique se a senha não expirou (use a recuperação de senha se necessário)",
        ],
        Topic.NETWORK: [
            "• Verifique sua conexão com a internet",
            "• Teste o ping para o servidor",
            "• Verifique se o firewall não está bloqueando a conexão",
            "• Tente desconectar e reconectar à rede",
        ],
        Topic.LOGS: [
            "• Verifique os logs mais recentes no sistema",
            "• Procure por erros ou exceções nas últimas 24 horas",
            "• Verifique se há padrões recorrentes nos registros",
        ],
        Topic.SYSTEM: [
            "• Tente atualizar a página (F5 ou Ctrl+R)",
            "• Limpe o cache do navegador",
            "• Verifique se há atualizações pendentes do sistema",
            "• Se for erro de timeout, tente novamente em alguns instantes",
        ],
    }

    SLOWNESS_PATTERN = re.compile(r"(lento|travado|carregando)")
    SLOWNESS_SUGGESTIONS = [
        "• Limpe o cache do navegador",
        "• Feche outras abas/processos que possam estar consumindo recursos",
        "• Verifique sua conexão com a internet",
    ]

    def analyze(self, message: str) -> MessageAnalysis:
        """
        Analyze a message.

        Args:
            message: Raw user message

        Returns:
            MessageAnalysis with intent, topic, urgency and suggestions
        """
        text = normalize_text(message)
        analysis = MessageAnalysis(
            original_message=message,
            intent=self.detect_intent(text),
            topic=self.detect_topic(text),
            urgency=self.detect_urgency(text),
        )
        analysis.needs_ticket = any(re.search(p, text) for p in self.PROBLEM_PATTERNS)

        # Plain greetings never open tickets
        if self.GREETING_PATTERN.match(text):
            analysis.intent = MessageIntent.GREETING
            analysis.needs_ticket = False

        analysis.suggestions = self.suggestions_for(analysis.topic, text)
        logger.debug(
            f"Message analyzed: intent={analysis.intent.value} topic={analysis.topic.value} "
            f"needs_ticket={analysis.needs_ticket}"
        )
        return analysis

    def detect_intent(self, text: str) -> MessageIntent:
        if self.GREETING_PATTERN.match(text):
            return MessageIntent.GREETING
        for intent, pattern in self.INTENT_PATTERNS:
            if pattern.search(text):
                return intent
        return MessageIntent.GENERAL

    def detect_topic(self, text: str) -> Topic:
        for topic, pattern in self.TOPIC_PATTERNS:
            if pattern.search(text):
                return topic
        return Topic.GENERAL

    def detect_urgency(self, text: str) -> TicketPriority:
        if self.URGENT_PATTERN.search(text):
            return TicketPriority.URGENT
        if self.HIGH_PATTERN.search(text):
            return TicketPriority.HIGH
        return TicketPriority.MEDIUM

    def suggestions_for(self, topic: Topic, text: str) -> List[str]:
        if topic in self.SUGGESTIONS:
            return list(self.SUGGESTIONS[topic])
        if self.SLOWNESS_PATTERN.search(text):
            return list(self.SLOWNESS_SUGGESTIONS)
        return []
