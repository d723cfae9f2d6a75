"""
Prompt Templates for the triage engine.

Builds the system prompt and the ticket context (ticket facts plus
conversation history) sent to the AI providers.
"""

from enum import Enum
from typing import Dict, Iterable, Optional

from tickets.models import AuthorKind, Ticket, TicketStatus, User


class PromptType(Enum):
    """Types of prompts."""
    TICKET_TRIAGE = "ticket_triage"
    CHATBOT_NLU = "chatbot_nlu"


# Labels used for history lines; the heuristic responder reads them back.
HISTORY_LABELS: Dict[AuthorKind, str] = {
    AuthorKind.CUSTOMER: "Cliente",
    AuthorKind.AI: "IA",
    AuthorKind.HUMAN: "Agente",
}


class PromptTemplates:
    """
    Manages prompt templates for the triage engine.

    The refusal wording in the triage prompt is the same wording the
    scope guard looks for; keep them in sync.
    """

    SYSTEM_PROMPTS = {
        PromptType.TICKET_TRIAGE: """Você é o assistente de suporte técnico do {brand_name}, responsável por atender chamados abertos por clientes antes que cheguem a um agente humano.

Seu objetivo é:
- Entender o problema do cliente
- Tentar resolver de forma autônoma sempre que possível
- Manter uma conversa clara, educada e objetiva
- Atualizar o status do chamado conforme o andamento
- Encaminhar para um agente humano quando necessário
- Criar novos chamados relacionados, quando fizer sentido

ESCOPO:
Você atende apenas questões técnicas de sistemas, redes, acesso e logs.
Se o cliente pedir algo fora disso, responda exatamente com a frase
"Não posso ajudar com isso, pois está fora do escopo do suporte técnico." e
convide o cliente a descrever um problema técnico.

ATUALIZAÇÃO DE STATUS (use as tags no final da resposta):
- [STATUS:2] para encaminhar para agente (Em Andamento)
- [STATUS:3] para marcar como pendente (aguardando resposta do cliente)
- [STATUS:5] para fechar o chamado quando resolvido

CRIAÇÃO DE NOVOS CHAMADOS:
- Se surgir outra demanda relacionada, use [NEW_TICKET:Título|Descrição|CategoriaId|PrioridadeId]

SEMPRE mantenha o cliente informado sobre o que você está fazendo.""",

        PromptType.CHATBOT_NLU: """Você classifica mensagens de usuários de um helpdesk de TI.
Responda com uma frase curta descrevendo a intenção do usuário.""",
    }

    def __init__(self, brand_name: str = "TechDesk"):
        self.brand_name = brand_name

    def get_system_prompt(self, prompt_type: PromptType = PromptType.TICKET_TRIAGE) -> str:
        return self.SYSTEM_PROMPTS[prompt_type].format(brand_name=self.brand_name)

    def build_ticket_context(
        self,
        ticket: Ticket,
        requester: Optional[User],
        history: Iterable,
    ) -> str:
        """
        Build the user prompt for a ticket turn.

        Args:
            ticket: Ticket being handled
            requester: Ticket requester, if known
            history: Ordered messages exposing ``author`` and ``text``

        Returns:
            Prompt text
        """
        lines = [
            "INFORMAÇÕES DO CHAMADO:",
            f"- Número: {ticket.number or ticket.id}",
            f"- Título: {ticket.title}",
            f"- Descrição: {ticket.description or 'Sem descrição'}",
            f"- Status Atual: {ticket.status.label}",
            f"- Prioridade: {ticket.priority.name.title()}",
            f"- Cliente: {requester.full_name if requester else 'Desconhecido'}",
            "",
            "STATUS DISPONÍVEIS:",
        ]
        lines.extend(f"- {s.value} = {s.label}" for s in TicketStatus)
        lines.extend([
            "",
            "DIRETRIZES:",
            "- Se acreditar que o problema foi resolvido, pergunte explicitamente ao cliente se a situação foi solucionada.",
            "- Se o cliente confirmar que está tudo certo, atualize o status para 5 (Fechado).",
            "- Se o cliente disser que ainda não está resolvido, pergunte se deseja que o chamado seja direcionado para um agente humano.",
            "- Se faltar informação essencial, pergunte de forma clara e atualize o status para 3 (Pendente).",
            "",
            "HISTÓRICO DE CONVERSA:",
        ])

        history_lines = [
            f"[{HISTORY_LABELS[msg.author]}] {msg.text}" for msg in history
        ]
        lines.extend(history_lines or ["Nenhuma mensagem anterior."])
        lines.extend([
            "",
            "Agora, analise o chamado e responda ao cliente de forma clara e objetiva.",
        ])
        return "\n".join(lines)
