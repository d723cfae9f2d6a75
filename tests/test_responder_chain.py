"""Tests for the provider fallback chain."""

import asyncio

import pytest

from llm.errors import AiError, AiErrorKind, AiProvidersExhaustedError
from llm.providers import HeuristicResponder
from llm.responder_chain import ResponderChain


class SlowResponder:
    name = "slow"

    def is_enabled(self):
        return True

    async def respond(self, prompt, system=None):
        await asyncio.sleep(5)


@pytest.mark.asyncio
async def test_first_enabled_provider_answers(make_responder):
    primary = make_responder(["primeira"], name="openrouter")
    secondary = make_responder(["segunda"], name="openai")

    response = await ResponderChain([primary, secondary]).respond("prompt")

    assert response.provider == "openrouter"
    assert secondary.calls == 0


@pytest.mark.asyncio
async def test_unauthorized_falls_through_to_next(make_responder):
    primary = make_responder([AiError(AiErrorKind.UNAUTHORIZED, "bad key")], name="openrouter")
    secondary = make_responder(["ok"], name="openai")

    response = await ResponderChain([primary, secondary]).respond("prompt", system="sys")

    assert response.provider == "openai"
    assert primary.calls == 1
    assert secondary.systems == ["sys"]


@pytest.mark.asyncio
async def test_disabled_providers_are_skipped(make_responder):
    disabled = make_responder(["nunca"], name="openrouter", enabled=False)
    fallback = make_responder(["ok"], name="openai")

    response = await ResponderChain([disabled, fallback]).respond("prompt")

    assert response.provider == "openai"
    assert disabled.calls == 0


@pytest.mark.asyncio
async def test_timeout_counts_as_unreachable(make_responder):
    fallback = make_responder(["ok"], name="openai")
    chain = ResponderChain([SlowResponder(), fallback], timeout_seconds=0.01)

    response = await chain.respond("prompt")

    assert response.provider == "openai"


@pytest.mark.asyncio
async def test_exhaustion_carries_every_failure(make_responder):
    chain = ResponderChain([
        make_responder([AiError(AiErrorKind.RATE_LIMITED)], name="openrouter"),
        make_responder([AiError(AiErrorKind.EMPTY_RESPONSE)], name="openai"),
        make_responder(["x"], name="bedrock", enabled=False),
    ])

    with pytest.raises(AiProvidersExhaustedError) as exc:
        await chain.respond("prompt")

    assert [(name, err.kind) for name, err in exc.value.failures] == [
        ("openrouter", AiErrorKind.RATE_LIMITED),
        ("openai", AiErrorKind.EMPTY_RESPONSE),
    ]


@pytest.mark.asyncio
async def test_empty_chain_is_exhausted():
    with pytest.raises(AiProvidersExhaustedError):
        await ResponderChain([]).respond("prompt")


@pytest.mark.asyncio
async def test_heuristic_guarantees_an_answer(make_responder):
    chain = ResponderChain([
        make_responder([AiError(AiErrorKind.UNAUTHORIZED)], name="openrouter"),
        HeuristicResponder(),
    ])
    response = await chain.respond("[Cliente] minha senha expirou")
    assert response.provider == "heuristic"
    assert response.text


@pytest.mark.asyncio
async def test_cancellation_is_not_converted(make_responder):
    chain = ResponderChain([SlowResponder(), make_responder(["ok"])], timeout_seconds=10)
    task = asyncio.ensure_future(chain.respond("prompt"))
    await asyncio.sleep(0.01)
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task
