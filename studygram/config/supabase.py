# studygram/config/supabase.py
"""
Supabase client wrapper and lightweight health check.

This module:
  - Keeps initialization synchronous (main uses asyncio.to_thread to call health_check).
  - Validates configuration early and exposes `.client`, `.health_check()`,
    and `.diagnostics()`.
  - Avoids logging secrets; diagnostics return structural info only.

One instance is built per application by `main.create_app` and handed to the
services that need it.
"""
from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional
from urllib.parse import urlparse

from supabase import Client, create_client

from studygram.config.settings import Settings

logger = logging.getLogger(__name__)

# Hosted projects (https + project ref + .supabase.co) or the local supabase CLI stack
_SUPABASE_URL_RE = re.compile(
    r"^(https://[A-Za-z0-9\-]+\.supabase\.co|http://(localhost|127\.0\.0\.1):\d+)/?$"
)


class SupabaseClient:
    """
    Lightweight wrapper around the supabase-py `Client`.

    Use:
        wrapper = SupabaseClient(settings)
        client = wrapper.client  # may be None if not configured
    """

    def __init__(self, settings: Settings, client: Optional[Client] = None) -> None:
        self._settings = settings
        self._client: Optional[Client] = client
        self._initialized: bool = client is not None
        if client is None:
            self._initialize_client()

    def _validate_url(self, url: Optional[str]) -> bool:
        return bool(url and _SUPABASE_URL_RE.match(url))

    def _initialize_client(self) -> None:
        supabase_url = (self._settings.supabase_url or "").strip()
        supabase_key = self._settings.supabase_service_role_key or ""

        if not supabase_url or not supabase_key:
            logger.debug(
                "Supabase credentials not present at init: url=%r key_present=%s",
                supabase_url,
                bool(supabase_key),
            )
            self._client = None
            self._initialized = True
            return

        if not self._validate_url(supabase_url):
            logger.error(
                "Supabase URL format invalid: %r. Expected https://<project>.supabase.co",
                supabase_url,
            )
            self._client = None
            self._initialized = True
            return

        try:
            self._client = create_client(supabase_url, supabase_key)
            logger.info(
                "Initialized Supabase client for host=%s", urlparse(supabase_url).netloc
            )
        except Exception as exc:
            logger.exception("Failed to initialize Supabase client: %s", exc)
            self._client = None
        self._initialized = True

    @property
    def client(self) -> Optional[Client]:
        """
        Return the underlying supabase client or None when not configured.

        Callers should not assume network connectivity; call `health_check()`
        to verify runtime connectivity.
        """
        return self._client

    def diagnostics(self) -> Dict[str, Any]:
        """Non-sensitive diagnostics, safe for logs and API responses."""
        diag: Dict[str, Any] = {
            "configured": bool(
                self._settings.supabase_url and self._settings.supabase_service_role_key
            ),
            "client_present": self._client is not None,
            "host": None,
        }
        if self._settings.supabase_url:
            diag["host"] = urlparse(self._settings.supabase_url).netloc
        return diag

    def health_check(self) -> bool:
        """
        Synchronous health check.

        Runs a tiny `select id limit 1` against the users table. Any exception
        or an error-looking response counts as unhealthy.
        """
        client = self.client
        if client is None:
            logger.debug("Supabase health_check: no client configured")
            return False

        try:
            res = client.table("users").select("id", count="exact").limit(1).execute()
            if getattr(res, "error", None):
                logger.warning(
                    "Supabase health_check returned error object: %s", res.error
                )
                return False
            status_code = getattr(res, "status_code", None)
            if isinstance(status_code, int) and status_code >= 400:
                logger.warning("Supabase health_check HTTP status: %s", status_code)
                return False
            return True
        except Exception as exc:
            logger.exception("Exception during Supabase health_check: %s", exc)
            return False
