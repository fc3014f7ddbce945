# studygram/api/insights.py
"""
AI learning insights endpoint.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from studygram.api.dependencies import get_insights_service
from studygram.api.schemas import InsightRequest
from studygram.services.insights_service import InsightsService

router = APIRouter()


@router.post("/insights")
async def generate_insight(
    body: InsightRequest, service: InsightsService = Depends(get_insights_service)
) -> Dict[str, Any]:
    return await service.generate(body.user_id, body.type)
