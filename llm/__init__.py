"""
AI triage engine for the helpdesk.

This module handles:
- AI provider abstraction with ordered fallback
- Control-tag parsing and scope policy
- Conversation sessions and the ticket lifecycle controller
- The pre-ticket chatbot
"""

from .audit import AuditEntry, AuditOutcome, RunAuditLog
from .chatbot import ChatBotReply, ChatBotService
from .conversation_store import ConversationSession, ConversationStateStore, SessionKey
from .directives import ActionSet, DirectiveParser, LinkedTicketSpec
from .guardrails import ScopeGuard
from .orchestrator import TicketLifecycleController, TriageResult
from .prompt_templates import PromptTemplates, PromptType
from .responder_chain import ResponderChain

__all__ = [
    "ActionSet",
    "AuditEntry",
    "AuditOutcome",
    "ChatBotReply",
    "ChatBotService",
    "ConversationSession",
    "ConversationStateStore",
    "DirectiveParser",
    "LinkedTicketSpec",
    "PromptTemplates",
    "PromptType",
    "ResponderChain",
    "RunAuditLog",
    "ScopeGuard",
    "SessionKey",
    "TicketLifecycleController",
    "TriageResult",
]
