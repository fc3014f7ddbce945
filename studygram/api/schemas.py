# studygram/api/schemas.py
"""
Request bodies.

Required fields are declared Optional on purpose: the services validate
them and answer with `{"error": ...}` / 400 instead of FastAPI's 422.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class ChatRequest(CamelModel):
    message: Optional[str] = None
    user_id: Optional[str] = Field(default=None, alias="userId")
    course_id: Optional[str] = Field(default=None, alias="courseId")
    # turns are passed through verbatim, roles included
    conversation_history: List[Dict[str, Any]] = Field(
        default_factory=list, alias="conversationHistory"
    )


class InsightRequest(CamelModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    type: Optional[str] = None


class CheckoutSessionRequest(CamelModel):
    price_id: Optional[str] = Field(default=None, alias="priceId")
    user_id: Optional[str] = Field(default=None, alias="userId")


class PortalSessionRequest(CamelModel):
    customer_id: Optional[str] = Field(default=None, alias="customerId")
    return_url: Optional[str] = Field(default=None, alias="returnUrl")


class AwardXpRequest(CamelModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
    amount: int = 0
    activity: str = "manual"
    description: str = ""


class AchievementCheckRequest(CamelModel):
    user_id: Optional[str] = Field(default=None, alias="userId")
