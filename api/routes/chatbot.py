"""
Chatbot API routes.
"""

import logging
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends, Header
from pydantic import BaseModel, Field

from ..services import Services, get_services

logger = logging.getLogger(__name__)

router = APIRouter()


class ChatBotMessageRequest(BaseModel):
    user_id: int = Field(..., gt=0)
    message: str = Field(..., min_length=1)
    ticket_id: Optional[int] = None


class ChatBotMessageResponse(BaseModel):
    reply_text: str
    suggestions: List[str] = []
    awaiting_confirmation: bool = False
    confirmation_type: Optional[str] = None
    created_ticket_id: Optional[int] = None
    ticket_id: Optional[int] = None
    escalate_to_human: bool = False
    suggested_action: Optional[str] = None
    context: Dict[str, str] = {}


@router.post("/chatbot/messages", response_model=ChatBotMessageResponse)
async def chatbot_message(
    request: ChatBotMessageRequest,
    x_tenant_id: int = Header(...),
    services: Services = Depends(get_services),
):
    """Send a free-form message to the support chatbot."""
    reply = await services.chatbot.process_freeform_message(
        tenant_id=x_tenant_id,
        user_id=request.user_id,
        text=request.message,
        ticket_id=request.ticket_id,
    )
    return ChatBotMessageResponse(**reply.to_dict())
