# studygram/services/chat_service.py
"""
AI study-assistant chat pipeline.

validate -> assemble context -> one completion call -> usage upsert -> reply.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from studygram.errors import BadRequest, ServiceMisconfigured, UpstreamFailure
from studygram.services.completion_client import CompletionClient, is_credential_error
from studygram.services.context_assembler import ContextAssembler
from studygram.services.study_data_service import StudyDataService

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are StudyGram AI, an intelligent study assistant designed to help students learn more effectively. You are knowledgeable, encouraging, and focused on education.

Your capabilities include:
- Explaining complex concepts in simple terms
- Creating study summaries and notes
- Generating practice questions and quizzes
- Providing study strategies and tips
- Helping with homework and assignments
- Breaking down difficult topics into manageable parts

Guidelines:
- Always be encouraging and supportive
- Provide clear, structured responses
- Use examples when explaining concepts
- Suggest follow-up questions or activities
- Keep responses focused on learning and education
- If you don't know something, admit it and suggest resources

"""

FALLBACK_RESPONSE = "I apologize, but I could not generate a response. Please try again."

CHAT_PARAMS: Dict[str, Any] = {
    "max_tokens": 1000,
    "temperature": 0.7,
    "presence_penalty": 0.1,
    "frequency_penalty": 0.1,
}


def build_messages(
    context: str, history: List[Dict[str, Any]], message: str
) -> List[Dict[str, Any]]:
    """System instruction, then history turns as given, then the new user message."""
    messages: List[Dict[str, Any]] = [{"role": "system", "content": SYSTEM_PROMPT + context}]
    messages.extend({"role": turn.get("role"), "content": turn.get("content")} for turn in history)
    messages.append({"role": "user", "content": message})
    return messages


class ChatService:

    def __init__(
        self,
        study_data: StudyDataService,
        completion: CompletionClient,
        assembler: Optional[ContextAssembler] = None,
    ):
        self.study_data = study_data
        self.completion = completion
        self.assembler = assembler or ContextAssembler(study_data)

    async def chat(
        self,
        message: Optional[str],
        user_id: Optional[str],
        course_id: Optional[str] = None,
        conversation_history: Optional[List[Dict[str, Any]]] = None,
    ) -> Dict[str, Any]:
        if not message or not user_id:
            raise BadRequest("Message and userId are required")

        context = await self.assembler.build_context(user_id, course_id)
        messages = build_messages(context, conversation_history or [], message)

        try:
            result = await self.completion.complete(messages, **CHAT_PARAMS)
        except Exception as exc:
            logger.exception("OpenAI API error for user=%s: %s", user_id, exc)
            if is_credential_error(exc):
                raise ServiceMisconfigured("OpenAI API key not configured") from exc
            raise UpstreamFailure("Failed to get AI response") from exc

        response = result.content or FALLBACK_RESPONSE

        usage_res = await self.study_data.record_ai_query(user_id)
        if not usage_res.get("ok"):
            logger.warning(
                "Usage tracking failed for user=%s: %s", user_id, usage_res.get("error")
            )

        return {
            "response": response,
            "usage": {
                "prompt_tokens": result.usage.get("prompt_tokens", 0),
                "completion_tokens": result.usage.get("completion_tokens", 0),
                "total_tokens": result.usage.get("total_tokens", 0),
            },
        }
