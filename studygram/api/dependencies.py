# studygram/api/dependencies.py
"""
FastAPI dependencies that hand route handlers their services.

Everything comes from `request.app.state.services`, set by `main.create_app`.
"""
from fastapi import Request

from studygram.config.settings import Settings
from studygram.services.achievement_service import AchievementService
from studygram.services.billing_service import BillingService
from studygram.services.chat_service import ChatService
from studygram.services.container import Services
from studygram.services.insights_service import InsightsService
from studygram.services.upload_service import UploadService


def get_services(request: Request) -> Services:
    return request.app.state.services


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_chat_service(request: Request) -> ChatService:
    return get_services(request).chat


def get_insights_service(request: Request) -> InsightsService:
    return get_services(request).insights


def get_upload_service(request: Request) -> UploadService:
    return get_services(request).uploads


def get_billing_service(request: Request) -> BillingService:
    return get_services(request).billing


def get_achievement_service(request: Request) -> AchievementService:
    return get_services(request).achievements
