"""
Error taxonomy for the triage engine.

AiError is raised by providers and consumed by the responder chain.
EligibilityError is carried in results, never retried. StoreError is
raised by TicketStore implementations and passes through untouched.
"""

from enum import Enum
from typing import List, Optional, Tuple


class TriageError(Exception):
    """Base class for all triage errors."""


class AiErrorKind(Enum):
    """Provider failure categories."""
    UNAUTHORIZED = "unauthorized"
    RATE_LIMITED = "rate_limited"
    UNREACHABLE = "unreachable"
    EMPTY_RESPONSE = "empty_response"
    UNKNOWN = "unknown"


class AiError(TriageError):
    """A single provider failed to produce a reply."""

    def __init__(self, kind: AiErrorKind, message: str = "", provider: Optional[str] = None):
        self.kind = kind
        self.provider = provider
        super().__init__(message or kind.value)

    def __str__(self) -> str:
        prefix = f"{self.provider}: " if self.provider else ""
        return f"{prefix}{self.kind.value}: {self.args[0]}"


class AiProvidersExhaustedError(AiError):
    """Every provider in the fallback chain failed or was disabled."""

    def __init__(self, failures: List[Tuple[str, AiError]]):
        self.failures = failures
        summary = ", ".join(f"{name}={err.kind.value}" for name, err in failures) or "no providers enabled"
        super().__init__(AiErrorKind.UNKNOWN, f"all providers failed ({summary})")


class EligibilityError(TriageError):
    """Ticket is escalated or terminal; the AI must not touch it."""

    def __init__(self, ticket_id: int, status):
        self.ticket_id = ticket_id
        self.status = status
        super().__init__(f"ticket {ticket_id} is not eligible for AI processing (status={status.name})")


class StoreError(TriageError):
    """Failure reported by the ticket store."""


class TicketNotFoundError(StoreError):
    """Ticket does not exist or belongs to another tenant."""


class ValidationError(TriageError):
    """Malformed inbound message."""
