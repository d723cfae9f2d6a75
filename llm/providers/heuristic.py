"""
Deterministic fallback responder.

Last link of the provider chain: no network, no credentials, never
fails. It reads the most recent customer line out of the ticket prompt
and answers with topic-based troubleshooting steps.
"""

import logging
import re
import time
from typing import Optional

from ..message_analyzer import MessageAnalyzer, MessageIntent
from ..prompt_templates import HISTORY_LABELS
from tickets.models import AuthorKind
from .base import AiResponse

logger = logging.getLogger(__name__)


class HeuristicResponder:
    """Keyword-driven responder that always produces an answer."""

    name = "heuristic"
    MODEL = "keyword-rules-v1"

    _CUSTOMER_LINE = re.compile(
        r"^\[" + re.escape(HISTORY_LABELS[AuthorKind.CUSTOMER]) + r"\]\s*(.+)$", re.MULTILINE
    )
    _DESCRIPTION_LINE = re.compile(r"^- Descrição:\s*(.+)$", re.MULTILINE)

    def __init__(self, analyzer: Optional[MessageAnalyzer] = None):
        self.analyzer = analyzer or MessageAnalyzer()

    def is_enabled(self) -> bool:
        return True

    async def respond(self, prompt: str, system: Optional[str] = None) -> AiResponse:
        start = time.time()
        message = self._latest_customer_text(prompt)
        analysis = self.analyzer.analyze(message)

        if analysis.intent == MessageIntent.THANKS:
            text = "Fico feliz em ajudar! Se o problema voltar, é só responder por aqui."
        elif analysis.suggestions:
            steps = "\n".join(analysis.suggestions)
            text = (
                f"Identifiquei um problema relacionado a {analysis.topic.label}. "
                f"Enquanto analisamos, tente estes passos:\n\n{steps}\n\n"
                "Responda informando se funcionou. Se preferir, posso encaminhar o chamado para um agente."
                " [STATUS:3]"
            )
        else:
            text = (
                "Recebi sua solicitação. Para que eu possa ajudar, descreva o que aconteceu, "
                "quando começou e qualquer mensagem de erro exibida. [STATUS:3]"
            )

        return AiResponse(
            provider=self.name,
            model=self.MODEL,
            text=text,
            confidence=0.3,
            reasoning_summary=f"Regras de palavras-chave (tema={analysis.topic.value})",
            input_tokens=0,
            output_tokens=0,
            cost_usd=0.0,
            latency_ms=round((time.time() - start) * 1000, 2),
        )

    def _latest_customer_text(self, prompt: str) -> str:
        matches = self._CUSTOMER_LINE.findall(prompt)
        if matches:
            return matches[-1]
        description = self._DESCRIPTION_LINE.search(prompt)
        if description:
            return description.group(1)
        return prompt
