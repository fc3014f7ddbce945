# studygram/services/achievement_service.py
"""
XP awards and achievement unlocking.

Activity stats are gathered with best-effort reads; an achievement unlocks
when any one of its requirement thresholds is met.
"""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List

from studygram.services.lookup import Found, value_or
from studygram.services.study_data_service import StudyDataService, rows

logger = logging.getLogger(__name__)

XP_PER_LEVEL = 100


def level_for_xp(xp: int) -> int:
    return xp // XP_PER_LEVEL + 1


def requirement_met(requirements: Dict[str, Any], stats: Dict[str, int]) -> bool:
    """
    True when any requirement threshold is reached.

    `stats` maps requirement keys to the user's current values; unknown or
    zero thresholds are ignored.
    """
    for key, threshold in (requirements or {}).items():
        if not threshold or key not in stats:
            continue
        if stats[key] >= threshold:
            return True
    return False


class AchievementService:

    def __init__(self, study_data: StudyDataService):
        self.study_data = study_data

    async def collect_stats(self, user_id: str, progress: Dict[str, Any]) -> Dict[str, int]:
        courses = rows(await self.study_data.list_courses(user_id))
        sessions = rows(await self.study_data.list_study_sessions(user_id))
        attempts = rows(await self.study_data.list_assessment_attempts(user_id))
        xp_activities = rows(await self.study_data.list_xp_activities(user_id))
        groups = rows(await self.study_data.list_group_memberships(user_id))

        total_minutes = sum(int(s.get("duration") or 0) for s in sessions)
        activity_types = [a.get("activity_type") for a in xp_activities]
        return {
            # completion is counted from uploaded courses
            "courses_completed": len(courses),
            "courses_uploaded": len(courses),
            "study_sessions": len([s for s in sessions if s.get("end_time") is not None]),
            "study_hours": total_minutes // 60,
            "assessments_completed": len(attempts),
            "streak_days": int(progress.get("current_streak") or 0),
            "longest_streak": int(progress.get("longest_streak") or 0),
            "xp_earned": int(progress.get("xp") or 0),
            "files_viewed": activity_types.count("file_view"),
            "sessions_completed": activity_types.count("session_complete"),
            "groups_joined": len(groups),
        }

    async def check_and_unlock(self, user_id: str) -> List[Dict[str, Any]]:
        try:
            return await self._check_and_unlock(user_id)
        except Exception as exc:
            logger.exception("Error checking achievements for user=%s: %s", user_id, exc)
            return []

    async def _check_and_unlock(self, user_id: str) -> List[Dict[str, Any]]:
        progress_res = await self.study_data.get_user_progress(user_id)
        if not isinstance(progress_res, Found):
            return []
        progress = progress_res.value

        stats = await self.collect_stats(user_id, progress)
        all_res = await self.study_data.list_achievements()
        if not isinstance(all_res, Found):
            return []

        unlocked_names = list(progress.get("achievements") or [])
        xp = int(progress.get("xp") or 0)
        newly_unlocked: List[Dict[str, Any]] = []

        for achievement in all_res.value:
            name = achievement.get("name")
            if name in unlocked_names:
                continue
            if not requirement_met(achievement.get("requirements") or {}, stats):
                continue

            reward = int(achievement.get("xp_reward") or 0)
            unlocked_names.append(name)
            xp += reward
            await self.study_data.update_user_progress(
                user_id, {"achievements": list(unlocked_names), "xp": xp}
            )
            await self.study_data.insert_xp_activity(
                user_id, "achievement_unlock", reward, f"Unlocked achievement: {name}"
            )
            logger.info("🏆 Achievement unlocked user=%s name=%s", user_id, name)
            newly_unlocked.append(achievement)

        return newly_unlocked

    async def award_xp(
        self, user_id: str, amount: int, activity: str, description: str
    ) -> List[Dict[str, Any]]:
        """Add XP, log the activity, then return any achievements it unlocked."""
        try:
            current = value_or(await self.study_data.get_user_progress(user_id), {})
            new_xp = int(current.get("xp") or 0) + amount
            current_streak = int(current.get("current_streak") or 0)

            await self.study_data.upsert_user_progress(
                {
                    "user_id": user_id,
                    "xp": new_xp,
                    "level": level_for_xp(new_xp),
                    "current_streak": current_streak,
                    "longest_streak": max(current_streak, int(current.get("longest_streak") or 0)),
                    "last_activity": datetime.now(timezone.utc).isoformat(),
                }
            )
            await self.study_data.insert_xp_activity(user_id, activity, amount, description)
        except Exception as exc:
            logger.exception("Error awarding XP to user=%s: %s", user_id, exc)
            return []

        return await self.check_and_unlock(user_id)
