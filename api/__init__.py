"""
API Module for the helpdesk triage engine.

FastAPI application with routes for:
- AI triage of new tickets
- Customer messages on existing tickets
- The pre-ticket chatbot
"""

from .main import create_app, app

__all__ = ["create_app", "app"]
