# studygram/api/progress.py
"""
XP and achievement endpoints.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from studygram.api.dependencies import get_achievement_service
from studygram.api.schemas import AchievementCheckRequest, AwardXpRequest
from studygram.errors import BadRequest
from studygram.services.achievement_service import AchievementService

router = APIRouter()


@router.post("/xp")
async def award_xp(
    body: AwardXpRequest, service: AchievementService = Depends(get_achievement_service)
) -> Dict[str, Any]:
    if not body.user_id:
        raise BadRequest("userId is required")
    unlocked = await service.award_xp(body.user_id, body.amount, body.activity, body.description)
    return {"unlocked": unlocked}


@router.post("/achievements/check")
async def check_achievements(
    body: AchievementCheckRequest,
    service: AchievementService = Depends(get_achievement_service),
) -> Dict[str, Any]:
    if not body.user_id:
        raise BadRequest("userId is required")
    return {"unlocked": await service.check_and_unlock(body.user_id)}
