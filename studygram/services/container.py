# studygram/services/container.py
"""
Service container built once per application.

`main.create_app` builds (or receives) a `Services` instance and stores it
on `app.state.services`; route dependencies read it from there, which is
also where tests plug in fakes.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from studygram.config.settings import Settings
from studygram.config.supabase import SupabaseClient
from studygram.services.achievement_service import AchievementService
from studygram.services.billing_service import BillingService
from studygram.services.blob_storage import BlobStorageClient
from studygram.services.chat_service import ChatService
from studygram.services.completion_client import CompletionClient
from studygram.services.insights_service import InsightsService
from studygram.services.study_data_service import StudyDataService
from studygram.services.upload_service import UploadService

logger = logging.getLogger(__name__)


@dataclass
class Services:
    supabase: SupabaseClient
    study_data: StudyDataService
    completion: CompletionClient
    chat: ChatService
    insights: InsightsService
    uploads: UploadService
    billing: BillingService
    achievements: AchievementService


def build_services(
    settings: Settings,
    supabase: Optional[SupabaseClient] = None,
    completion: Optional[CompletionClient] = None,
    blob: Optional[BlobStorageClient] = None,
    stripe_api: Any = None,
) -> Services:
    """Wire every service from `settings`; any collaborator can be passed in pre-built."""
    supabase = supabase or SupabaseClient(settings)
    completion = completion or CompletionClient(settings)
    blob = blob or BlobStorageClient(settings)

    study_data = StudyDataService(supabase)
    billing = (
        BillingService(settings, study_data, stripe_api)
        if stripe_api is not None
        else BillingService(settings, study_data)
    )
    services = Services(
        supabase=supabase,
        study_data=study_data,
        completion=completion,
        chat=ChatService(study_data, completion),
        insights=InsightsService(study_data, completion),
        uploads=UploadService(blob),
        billing=billing,
        achievements=AchievementService(study_data),
    )
    logger.info("Services wired (supabase=%s)", supabase.diagnostics())
    return services
