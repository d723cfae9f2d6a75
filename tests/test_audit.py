"""Tests for AI run auditing."""

import logging

import pytest

from llm.audit import AuditEntry, AuditOutcome, LoggingAuditSink, RunAuditLog, hash_prompt
from llm.providers.base import AiResponse


class BrokenSink:
    async def write(self, entry):
        raise RuntimeError("disk full")


def _entry(**overrides):
    values = dict(tenant_id=1, ticket_id=100, prompt_hash=hash_prompt("s", "p"), outcome=AuditOutcome.OK)
    values.update(overrides)
    return AuditEntry(**values)


def test_hash_prompt_is_stable_sha256():
    first = hash_prompt("system", "prompt")
    assert len(first) == 64
    assert first == hash_prompt("system", "prompt")
    assert first != hash_prompt("system", "other prompt")
    assert hash_prompt(None, "prompt") == hash_prompt("", "prompt")


def test_entry_from_response():
    response = AiResponse(
        provider="openai", model="gpt-4o-mini", text="ok", confidence=0.7,
        input_tokens=10, output_tokens=5, latency_ms=120.0, cost_usd=0.001,
    )
    entry = AuditEntry.from_response(1, 100, "h" * 64, response)

    data = entry.to_dict()
    assert data["outcome"] == "ok"
    assert data["provider"] == "openai"
    assert data["input_tokens"] == 10
    assert isinstance(data["created_at"], str)


@pytest.mark.asyncio
async def test_failing_sink_does_not_raise(audit_sink, caplog):
    audit = RunAuditLog([BrokenSink(), audit_sink])

    with caplog.at_level(logging.WARNING):
        await audit.record(_entry())

    assert len(audit_sink.entries) == 1
    assert any("BrokenSink" in r.message for r in caplog.records)


@pytest.mark.asyncio
async def test_logging_sink_never_logs_prompt_text(caplog):
    with caplog.at_level(logging.INFO, logger="triage.audit"):
        await LoggingAuditSink().write(_entry(provider="bedrock", model="claude"))

    record = caplog.records[-1]
    assert "provider=bedrock" in record.message
    assert "outcome=ok" in record.message
    assert "prompt=" + hash_prompt("s", "p")[:12] in record.message
