# studygram/api/system.py
"""
Environment configuration check.
"""
from typing import Any, Dict

from fastapi import APIRouter, Depends

from studygram.api.dependencies import get_settings
from studygram.config.settings import Settings

router = APIRouter()


def environment_checks(settings: Settings) -> Dict[str, Any]:
    """Which integrations are configured; never exposes the values themselves."""
    checks = {
        "blobToken": bool(settings.blob_read_write_token),
        "openaiKey": bool(settings.openai_api_key),
        "supabaseUrl": bool(settings.supabase_url),
        "supabaseKey": bool(settings.supabase_anon_key),
        "environment": settings.environment,
    }
    all_good = checks["blobToken"] and checks["supabaseUrl"] and checks["supabaseKey"]
    return {
        "status": "ready" if all_good else "missing_config",
        "checks": checks,
        "message": (
            "All required environment variables are configured"
            if all_good
            else "Some required environment variables are missing"
        ),
    }


@router.get("/check-env")
async def check_env(settings: Settings = Depends(get_settings)) -> Dict[str, Any]:
    return environment_checks(settings)
