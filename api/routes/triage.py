"""
Ticket triage API routes.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, Field

from ..services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Request / Response Models ─────────────────────────────────────

class CustomerMessageRequest(BaseModel):
    message: str = Field(..., min_length=1)


class TriageResponse(BaseModel):
    success: bool
    reply_text: str
    status_changed: bool = False
    new_status: Optional[int] = None
    linked_ticket_id: Optional[int] = None
    provider: Optional[str] = None
    model: Optional[str] = None
    error: Optional[str] = None


# ── Endpoints ─────────────────────────────────────────────────────

@router.post("/tickets/{ticket_id}/triage", response_model=TriageResponse)
async def triage_ticket(
    ticket_id: int,
    x_tenant_id: int = Header(...),
    services: Services = Depends(get_services),
):
    """Run the first AI turn on a newly opened ticket."""
    result = await services.controller.process_new_ticket(ticket_id, x_tenant_id)
    return TriageResponse(**result.to_dict())


@router.post("/tickets/{ticket_id}/messages", response_model=TriageResponse)
async def post_customer_message(
    ticket_id: int,
    request: CustomerMessageRequest,
    x_tenant_id: int = Header(...),
    services: Services = Depends(get_services),
):
    """
    Record a customer message on a ticket and let the AI answer it.

    The message is stored even when the ticket is with a human agent;
    only the AI reply is skipped in that case.
    """
    controller = services.controller
    await controller.record_customer_message(ticket_id, x_tenant_id, request.message)
    result = await controller.process_customer_message(ticket_id, x_tenant_id, request.message)
    return TriageResponse(**result.to_dict())
