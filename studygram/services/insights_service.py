# studygram/services/insights_service.py
"""
AI learning insights built from a user's progress, sessions and assessments.

Each insight type has its own system message and prompt; all of them share
the same metrics, computed once per request from best-effort reads.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from studygram.errors import BadRequest, UpstreamFailure
from studygram.services.completion_client import CompletionClient
from studygram.services.lookup import value_or
from studygram.services.study_data_service import StudyDataService, rows

logger = logging.getLogger(__name__)

INSIGHT_TYPES = (
    "study_recommendations",
    "performance_analysis",
    "goal_suggestions",
    "motivation_boost",
)

FALLBACK_INSIGHT = "Unable to generate insight at this time."

INSIGHT_PARAMS: Dict[str, Any] = {"max_tokens": 500, "temperature": 0.7}


def _fmt_number(value: float) -> str:
    """Shortest round-trip form; whole numbers without a trailing `.0`."""
    value = float(value)
    if value.is_integer():
        return str(int(value))
    return repr(value)


def _fmt_date(value: Any) -> str:
    if not value:
        return "unknown date"
    try:
        dt = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return str(value)
    return f"{dt.month}/{dt.day}/{dt.year}"


@dataclass
class LearningMetrics:
    progress: Dict[str, Any] = field(default_factory=dict)
    courses: List[Dict[str, Any]] = field(default_factory=list)
    sessions: List[Dict[str, Any]] = field(default_factory=list)
    attempts: List[Dict[str, Any]] = field(default_factory=list)
    achievements: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def total_study_minutes(self) -> int:
        return sum(int(s.get("duration") or 0) for s in self.sessions)

    @property
    def study_hours(self) -> int:
        return self.total_study_minutes // 60

    @property
    def percentages(self) -> List[float]:
        return [
            (a.get("score") or 0) / a["total_points"] * 100
            for a in self.attempts
            if a.get("total_points")
        ]

    @property
    def average_score(self) -> float:
        scores = self.percentages
        return sum(scores) / len(scores) if scores else 0.0

    @property
    def recent_performance(self) -> List[float]:
        return self.percentages[:5]

    @property
    def streak(self) -> int:
        return int(self.progress.get("current_streak") or 0)

    @property
    def completed_courses(self) -> int:
        return len([c for c in self.courses if (c.get("file_count") or 0) > 0])

    @property
    def recent_scores_text(self) -> str:
        return ", ".join(_fmt_number(p) for p in self.recent_performance)

    @property
    def trend(self) -> str:
        recent = self.recent_performance
        if len(recent) > 1:
            return "Scores trending upward" if recent[0] > recent[-1] else "Consistent performance"
        return "Getting started"


def build_prompt(insight_type: str, m: LearningMetrics) -> Dict[str, str]:
    """Return {"system": ..., "prompt": ...} for one insight type."""
    avg = f"{m.average_score:.1f}"
    if insight_type == "study_recommendations":
        recent = ", ".join(f"{s.get('activity_type')} ({s.get('duration')}min)" for s in m.sessions[:5])
        return {
            "system": "You are an AI study advisor. Provide personalized study recommendations based on the user's learning data.",
            "prompt": f"""Based on this learning data, provide 3-4 specific study recommendations:

Learning Statistics:
- Total study time: {m.study_hours} hours
- Current streak: {m.streak} days
- Average assessment score: {avg}%
- Recent scores: {m.recent_scores_text}%
- Active courses: {len(m.courses)}
- Completed courses: {m.completed_courses}

Recent study sessions: {recent}

Provide actionable recommendations to improve their learning efficiency and performance.""",
        }
    if insight_type == "performance_analysis":
        patterns = ", ".join(
            f"{s.get('activity_type')} on {_fmt_date(s.get('start_time'))}" for s in m.sessions[:10]
        )
        return {
            "system": "You are an AI learning analyst. Analyze the user's performance patterns and provide insights.",
            "prompt": f"""Analyze this learning performance data and provide insights:

Performance Metrics:
- Average score: {avg}%
- Recent assessment scores: {m.recent_scores_text}%
- Study consistency: {m.streak} day streak
- Total study time: {m.study_hours} hours
- Study sessions: {len(m.sessions)} recent sessions

Study patterns: {patterns}

Identify strengths, weaknesses, and trends in their learning performance.""",
        }
    if insight_type == "goal_suggestions":
        subjects = ", ".join(str(c.get("subject")) for c in m.courses) or "None"
        recent = ", ".join(str(s.get("activity_type")) for s in m.sessions[:3])
        return {
            "system": "You are an AI goal-setting coach. Suggest realistic and motivating learning goals.",
            "prompt": f"""Based on this learning profile, suggest 3-4 SMART learning goals:

Current Status:
- Study streak: {m.streak} days
- Weekly study time: {m.study_hours} hours total
- Performance level: {avg}% average
- Active subjects: {subjects}
- Achievements unlocked: {len(m.achievements)}

Recent activity: {recent}

Suggest specific, measurable, achievable goals for the next week and month.""",
        }
    if insight_type == "motivation_boost":
        return {
            "system": "You are an AI motivational coach. Provide encouraging and inspiring messages based on the user's progress.",
            "prompt": f"""Create a motivational message celebrating progress and encouraging continued learning:

Achievements:
- {m.streak} day study streak
- {m.study_hours} total hours studied
- {avg}% average performance
- {len(m.achievements)} achievements unlocked
- {len(m.courses)} courses in progress

Recent improvements: {m.trend}

Provide an encouraging message that acknowledges their efforts and motivates continued learning.""",
        }
    raise BadRequest("Invalid insight type")


class InsightsService:

    def __init__(self, study_data: StudyDataService, completion: CompletionClient):
        self.study_data = study_data
        self.completion = completion

    async def load_metrics(self, user_id: str) -> LearningMetrics:
        progress = value_or(await self.study_data.get_user_progress(user_id), {})
        courses = rows(await self.study_data.list_courses(user_id))
        sessions = rows(await self.study_data.list_study_sessions(user_id, limit=20))
        attempts = rows(await self.study_data.list_assessment_attempts(user_id, limit=10))
        achievements = rows(
            await self.study_data.list_achievements(progress.get("achievements") or [])
        )
        return LearningMetrics(
            progress=progress,
            courses=courses,
            sessions=sessions,
            attempts=attempts,
            achievements=achievements,
        )

    async def generate(self, user_id: Optional[str], insight_type: Optional[str]) -> Dict[str, Any]:
        if not user_id:
            raise BadRequest("UserId is required")
        if insight_type not in INSIGHT_TYPES:
            raise BadRequest("Invalid insight type")

        metrics = await self.load_metrics(user_id)
        prompt = build_prompt(insight_type, metrics)
        messages = [
            {"role": "system", "content": prompt["system"]},
            {"role": "user", "content": prompt["prompt"]},
        ]

        try:
            result = await self.completion.complete(messages, **INSIGHT_PARAMS)
        except Exception as exc:
            logger.exception("OpenAI Insights API error for user=%s: %s", user_id, exc)
            raise UpstreamFailure("Failed to generate insights") from exc

        usage_res = await self.study_data.record_ai_query(user_id)
        if not usage_res.get("ok"):
            logger.warning("Usage tracking failed for user=%s: %s", user_id, usage_res.get("error"))

        return {
            "insight": result.content or FALLBACK_INSIGHT,
            "type": insight_type,
            "generated_at": datetime.now(timezone.utc).isoformat(),
        }
