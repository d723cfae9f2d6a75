"""
API Routes for the triage engine.
"""

from . import chatbot, triage

__all__ = ["chatbot", "triage"]
