# studygram/api/chat.py
"""
AI study-assistant chat endpoint.
"""
import logging
from typing import Any, Dict

from fastapi import APIRouter, Depends

from studygram.api.dependencies import get_chat_service
from studygram.api.schemas import ChatRequest
from studygram.services.chat_service import ChatService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/chat")
async def chat(
    body: ChatRequest, service: ChatService = Depends(get_chat_service)
) -> Dict[str, Any]:
    logger.info(
        "Chat request user=%s course=%s history=%d",
        body.user_id,
        body.course_id,
        len(body.conversation_history),
    )
    return await service.chat(
        message=body.message,
        user_id=body.user_id,
        course_id=body.course_id,
        conversation_history=body.conversation_history,
    )
