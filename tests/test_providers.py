"""Tests for the AI provider variants."""

import io
import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import httpx
import openai
import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from llm.errors import AiError, AiErrorKind
from llm.guardrails import ScopeGuard
from llm.prompt_templates import PromptTemplates
from llm.providers import BedrockProvider, HeuristicResponder, OpenAIProvider, OpenRouterProvider
from llm.conversation_store import SessionMessage
from tickets.models import AuthorKind, Ticket, User

OPENROUTER_KEY = "sk-or-v1-test"
OPENAI_KEY = "sk-test"


def _completion(content="Tente reiniciar o cliente VPN.", cost=0.0002):
    return {
        "model": "openai/gpt-4o-mini",
        "choices": [{"message": {"role": "assistant", "content": content}}],
        "usage": {"prompt_tokens": 120, "completion_tokens": 30, "total_tokens": 150, "cost": cost},
    }


def _openrouter(handler) -> OpenRouterProvider:
    return OpenRouterProvider(api_key=OPENROUTER_KEY, transport=httpx.MockTransport(handler))


# ── OpenRouter ────────────────────────────────────────────────────

class TestOpenRouterProvider:

    @pytest.mark.parametrize("key, enabled", [
        (OPENROUTER_KEY, True),
        ("sk-plain-openai", False),
        ("", False),
        (None, False),
    ])
    def test_enabled_only_with_openrouter_key(self, key, enabled):
        assert OpenRouterProvider(api_key=key).is_enabled() is enabled

    @pytest.mark.asyncio
    async def test_successful_completion(self):
        seen = {}

        def handler(request: httpx.Request):
            seen["auth"] = request.headers["Authorization"]
            seen["body"] = json.loads(request.content)
            seen["path"] = request.url.path
            return httpx.Response(200, json=_completion())

        response = await _openrouter(handler).respond("prompt", system="system")

        assert response.provider == "openrouter"
        assert response.text == "Tente reiniciar o cliente VPN."
        assert response.input_tokens == 120
        assert response.output_tokens == 30
        assert response.cost_usd == 0.0002
        assert seen["auth"] == f"Bearer {OPENROUTER_KEY}"
        assert seen["path"].endswith("/chat/completions")
        assert seen["body"]["messages"][0] == {"role": "system", "content": "system"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status, kind", [
        (401, AiErrorKind.UNAUTHORIZED),
        (403, AiErrorKind.UNAUTHORIZED),
        (429, AiErrorKind.RATE_LIMITED),
        (502, AiErrorKind.UNREACHABLE),
        (400, AiErrorKind.UNKNOWN),
    ])
    async def test_http_errors_are_classified(self, status, kind):
        provider = _openrouter(lambda request: httpx.Response(status, json={"error": "x"}))
        with pytest.raises(AiError) as exc:
            await provider.respond("prompt")
        assert exc.value.kind == kind
        assert exc.value.provider == "openrouter"

    @pytest.mark.asyncio
    async def test_timeout_is_unreachable(self):
        def handler(request):
            raise httpx.ReadTimeout("slow", request=request)

        with pytest.raises(AiError) as exc:
            await _openrouter(handler).respond("prompt")
        assert exc.value.kind == AiErrorKind.UNREACHABLE

    @pytest.mark.asyncio
    async def test_empty_content(self):
        provider = _openrouter(lambda request: httpx.Response(200, json=_completion(content="  ")))
        with pytest.raises(AiError) as exc:
            await provider.respond("prompt")
        assert exc.value.kind == AiErrorKind.EMPTY_RESPONSE

    @pytest.mark.asyncio
    async def test_disabled_provider_refuses(self):
        with pytest.raises(AiError) as exc:
            await OpenRouterProvider(api_key=None).respond("prompt")
        assert exc.value.kind == AiErrorKind.UNAUTHORIZED


# ── OpenAI ────────────────────────────────────────────────────────

def _fake_openai_client(result=None, error=None):
    create = AsyncMock(return_value=result, side_effect=error)
    return SimpleNamespace(chat=SimpleNamespace(completions=SimpleNamespace(create=create)))


def _status_error(cls, status):
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    return cls("failed", response=httpx.Response(status, request=request), body=None)


class TestOpenAIProvider:

    @pytest.mark.parametrize("key, enabled", [
        (OPENAI_KEY, True),
        (OPENROUTER_KEY, False),
        ("pk-test", False),
        (None, False),
    ])
    def test_enabled_only_with_openai_key(self, key, enabled):
        assert OpenAIProvider(api_key=key, client=_fake_openai_client()).is_enabled() is enabled

    @pytest.mark.asyncio
    async def test_successful_completion(self):
        result = SimpleNamespace(
            choices=[SimpleNamespace(message=SimpleNamespace(content=" Verifique o DNS. "))],
            usage=SimpleNamespace(prompt_tokens=1000, completion_tokens=1000, total_tokens=2000),
        )
        provider = OpenAIProvider(api_key=OPENAI_KEY, model_id="gpt-4o-mini", client=_fake_openai_client(result))

        response = await provider.respond("prompt", system="system")

        assert response.provider == "openai"
        assert response.text == "Verifique o DNS."
        assert response.cost_usd == pytest.approx(0.00075)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("error, kind", [
        (_status_error(openai.AuthenticationError, 401), AiErrorKind.UNAUTHORIZED),
        (_status_error(openai.RateLimitError, 429), AiErrorKind.RATE_LIMITED),
        (_status_error(openai.InternalServerError, 500), AiErrorKind.UNREACHABLE),
        (_status_error(openai.BadRequestError, 400), AiErrorKind.UNKNOWN),
        (
            openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com")),
            AiErrorKind.UNREACHABLE,
        ),
    ])
    async def test_sdk_errors_are_classified(self, error, kind):
        provider = OpenAIProvider(api_key=OPENAI_KEY, client=_fake_openai_client(error=error))
        with pytest.raises(AiError) as exc:
            await provider.respond("prompt")
        assert exc.value.kind == kind

    @pytest.mark.asyncio
    async def test_empty_choices(self):
        result = SimpleNamespace(choices=[], usage=None)
        provider = OpenAIProvider(api_key=OPENAI_KEY, client=_fake_openai_client(result))
        with pytest.raises(AiError) as exc:
            await provider.respond("prompt")
        assert exc.value.kind == AiErrorKind.EMPTY_RESPONSE


# ── Bedrock ───────────────────────────────────────────────────────

def _bedrock_body(text):
    payload = {
        "content": [{"type": "text", "text": text}],
        "usage": {"input_tokens": 50, "output_tokens": 20},
    }
    return {"body": io.BytesIO(json.dumps(payload).encode("utf-8"))}


class TestBedrockProvider:

    @pytest.mark.asyncio
    async def test_successful_invocation(self):
        client = MagicMock()
        client.invoke_model.return_value = _bedrock_body("Reinicie o serviço.")
        provider = BedrockProvider(model_id="test-model", client=client)

        response = await provider.respond("prompt", system="system")

        assert response.provider == "bedrock"
        assert response.text == "Reinicie o serviço."
        assert response.input_tokens == 50
        request = json.loads(client.invoke_model.call_args.kwargs["body"])
        assert request["system"] == "system"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code, kind", [
        ("AccessDeniedException", AiErrorKind.UNAUTHORIZED),
        ("ThrottlingException", AiErrorKind.RATE_LIMITED),
        ("ServiceUnavailableException", AiErrorKind.UNREACHABLE),
        ("ValidationException", AiErrorKind.UNKNOWN),
    ])
    async def test_client_errors_are_classified(self, code, kind):
        client = MagicMock()
        client.invoke_model.side_effect = ClientError(
            {"Error": {"Code": code, "Message": "nope"}}, "InvokeModel"
        )
        with pytest.raises(AiError) as exc:
            await BedrockProvider(client=client).respond("prompt")
        assert exc.value.kind == kind

    @pytest.mark.asyncio
    async def test_connection_error_is_unreachable(self):
        client = MagicMock()
        client.invoke_model.side_effect = EndpointConnectionError(endpoint_url="https://bedrock")
        with pytest.raises(AiError) as exc:
            await BedrockProvider(client=client).respond("prompt")
        assert exc.value.kind == AiErrorKind.UNREACHABLE

    @pytest.mark.asyncio
    async def test_empty_content(self):
        client = MagicMock()
        client.invoke_model.return_value = _bedrock_body("")
        with pytest.raises(AiError) as exc:
            await BedrockProvider(client=client).respond("prompt")
        assert exc.value.kind == AiErrorKind.EMPTY_RESPONSE


# ── Heuristic ─────────────────────────────────────────────────────

class TestHeuristicResponder:

    def _prompt(self, *customer_lines):
        ticket = Ticket(
            id=1, tenant_id=1, title="Sem acesso", requester_id=10,
            description="Não consigo fazer login no sistema",
        )
        history = [SessionMessage(AuthorKind.CUSTOMER, line) for line in customer_lines]
        return PromptTemplates().build_ticket_context(ticket, User(10, 1, "Ana"), history)

    def test_always_enabled(self):
        assert HeuristicResponder().is_enabled()

    @pytest.mark.asyncio
    async def test_uses_latest_customer_line(self):
        response = await HeuristicResponder().respond(self._prompt("oi", "a internet caiu, sem conexão"))
        assert response.provider == "heuristic"
        assert "rede" in response.text
        assert "Verifique sua conexão com a internet" in response.text

    @pytest.mark.asyncio
    async def test_falls_back_to_ticket_description(self):
        response = await HeuristicResponder().respond(self._prompt())
        assert "acesso" in response.text

    @pytest.mark.asyncio
    async def test_reply_is_always_in_scope(self):
        guard = ScopeGuard()
        for line in ("receita de bolo", "obrigado!", "o sistema está lento", "???"):
            response = await HeuristicResponder().respond(self._prompt(line))
            assert not guard.is_out_of_scope(response.text)
