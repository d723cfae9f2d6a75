"""Tests for the scope guard."""

import pytest

from llm.conversation_store import SessionMessage
from llm.guardrails import ScopeGuard
from tickets.models import AuthorKind

REFUSAL = "Não posso ajudar com isso, pois está fora do escopo do suporte técnico."


def ai(text):
    return SessionMessage(AuthorKind.AI, text)


def customer(text):
    return SessionMessage(AuthorKind.CUSTOMER, text)


@pytest.fixture
def guard():
    return ScopeGuard()


class TestIsOutOfScope:

    @pytest.mark.parametrize("text", [
        REFUSAL,
        "NAO POSSO AJUDAR com receitas.",
        "Isso está fora do escopo.",
        "Sorry, I can't help with that.",
        "That request is out of scope for IT support.",
    ])
    def test_refusals(self, guard, text):
        assert guard.is_out_of_scope(text)

    @pytest.mark.parametrize("text", [
        "Tente reiniciar o roteador e me avise.",
        "Posso ajudar com sua VPN.",
        "",
    ])
    def test_in_scope(self, guard, text):
        assert not guard.is_out_of_scope(text)


class TestConsecutiveViolations:

    def test_empty_history(self, guard):
        assert guard.count_consecutive_violations([]) == 0

    def test_counts_trailing_refusals_across_customer_messages(self, guard):
        history = [
            customer("receita de bolo?"), ai(REFUSAL),
            customer("e de pizza?"), ai(REFUSAL),
            customer("e lasanha?"),
        ]
        assert guard.count_consecutive_violations(history) == 2

    def test_in_scope_reply_resets_count(self, guard):
        history = [
            ai(REFUSAL), customer("ok, minha VPN caiu"),
            ai("Verifique o cliente VPN."), customer("piada?"), ai(REFUSAL),
        ]
        assert guard.count_consecutive_violations(history) == 1

    def test_human_messages_are_skipped(self, guard):
        history = [ai(REFUSAL), SessionMessage(AuthorKind.HUMAN, "Olá, sou o técnico"), ai(REFUSAL)]
        assert guard.count_consecutive_violations(history) == 2

    def test_never_exceeds_ai_reply_count(self, guard):
        history = [customer(REFUSAL), customer(REFUSAL), ai(REFUSAL)]
        assert guard.count_consecutive_violations(history) == 1
