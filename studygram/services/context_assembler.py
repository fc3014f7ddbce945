# studygram/services/context_assembler.py
"""
Builds the course/study-history context appended to the chat system prompt.

Both lookups are best-effort: a missing row and a failed query both
contribute nothing, so chat keeps working when auxiliary context is
unavailable.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from studygram.services.lookup import Found, Lookup, LookupFailed
from studygram.services.study_data_service import StudyDataService

logger = logging.getLogger(__name__)

UNKNOWN_COURSE = "Unknown Course"


def format_course_context(course: Dict[str, Any]) -> str:
    return (
        f'Course Context: You are helping with "{course.get("name")}" '
        f'({course.get("subject")}). {course.get("description") or ""}'
    )


def _session_course_name(session: Dict[str, Any]) -> str:
    joined = session.get("courses")
    # PostgREST returns a many-to-one embed as an object, older setups as a list
    if isinstance(joined, list):
        joined = joined[0] if joined else None
    if isinstance(joined, dict) and joined.get("name"):
        return joined["name"]
    return UNKNOWN_COURSE


def format_study_context(sessions: List[Dict[str, Any]]) -> str:
    activities = ", ".join(
        f"{s.get('activity_type')} in {_session_course_name(s)}" for s in sessions
    )
    return f"Recent Study Activities: {activities}"


class ContextAssembler:

    def __init__(self, study_data: StudyDataService):
        self.study_data = study_data

    async def build_context(self, user_id: str, course_id: Optional[str] = None) -> str:
        course_context = ""
        if course_id:
            course_context = self._course_part(
                await self.study_data.get_course_for_user(course_id, user_id), course_id
            )

        study_context = self._study_part(
            await self.study_data.get_recent_study_sessions(user_id), user_id
        )

        context = ""
        if course_context:
            context += f"\n\n{course_context}"
        if study_context:
            context += f"\n\n{study_context}"
        return context

    @staticmethod
    def _course_part(result: Lookup, course_id: str) -> str:
        if isinstance(result, Found):
            return format_course_context(result.value)
        if isinstance(result, LookupFailed):
            logger.warning(
                "Course lookup failed for course=%s, continuing without it: %s",
                course_id,
                result.reason,
            )
        else:
            logger.debug("No course %s for this user; skipping course context", course_id)
        return ""

    @staticmethod
    def _study_part(result: Lookup, user_id: str) -> str:
        if isinstance(result, Found):
            return format_study_context(result.value) if result.value else ""
        if isinstance(result, LookupFailed):
            logger.warning(
                "Study session lookup failed for user=%s, continuing without it: %s",
                user_id,
                result.reason,
            )
        return ""
