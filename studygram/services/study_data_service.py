# studygram/services/study_data_service.py
"""
Study data service: every Supabase read and write the API performs.

Design:
- Blocking supabase-py calls run in a worker thread (asyncio.to_thread) so
  the event loop is never blocked.
- SDK responses (object with .data OR dict with "data") are normalized.
- Reads return `Found | Missing | LookupFailed`; writes return the
  standard result shape {"ok": bool, "data"|"error": ..., "diagnostics": {...}}.
- Nothing here raises on database errors: they are logged and reported
  through the return value.
"""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional

from studygram.config.supabase import SupabaseClient
from studygram.models import (
    Achievement,
    AssessmentAttempt,
    Course,
    GroupMember,
    StudySession,
    SubscriptionPlan,
    UsageStat,
    User,
    UserProgress,
    XpActivity,
)
from studygram.services.lookup import Found, Lookup, LookupFailed, Missing

logger = logging.getLogger(__name__)

RECENT_SESSIONS_LIMIT = 5


# -----------------------
# Utility helpers
# -----------------------
def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _parse_supabase_response(resp: Any) -> Dict[str, Any]:
    """
    Turn Supabase SDK responses (object with .data or dict) into a predictable dict.
    Returns {ok, data, status_code, raw}
    """
    if resp is None:
        return {"ok": False, "data": None, "status_code": None, "raw": None}

    if hasattr(resp, "data"):
        data = getattr(resp, "data")
        status_code = getattr(resp, "status_code", None)
        return {"ok": data is not None, "data": data, "status_code": status_code, "raw": resp}

    if isinstance(resp, dict):
        data = resp.get("data")
        status_code = resp.get("status_code", resp.get("status"))
        return {"ok": data is not None, "data": data, "status_code": status_code, "raw": resp}

    return {"ok": False, "data": None, "status_code": None, "raw": str(resp)}


async def _run_blocking(fn: Callable, *args, **kwargs) -> Any:
    return await asyncio.to_thread(lambda: fn(*args, **kwargs))


def _make_result(
    ok: bool,
    data: Any = None,
    error: Optional[str] = None,
    diagnostics: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    res: Dict[str, Any] = {"ok": ok}
    if ok:
        res["data"] = data
    else:
        res["error"] = error or "unknown_error"
    res["diagnostics"] = diagnostics or {}
    return res


def _fn_name(fn: Callable) -> str:
    return getattr(fn, "__name__", str(fn))


# -----------------------
# StudyDataService
# -----------------------
class StudyDataService:

    def __init__(self, supabase: SupabaseClient):
        self.client = supabase.client
        if self.client is None:
            logger.warning(
                "StudyDataService: Supabase client not available. DB operations will fail."
            )
        else:
            logger.debug("StudyDataService: initialized with Supabase client")

    def _table(self, name: str):
        return self.client.table(name)

    async def _call_db(self, fn: Callable, *args, **kwargs) -> Dict[str, Any]:
        """
        Run a blocking DB function in a thread and normalize its response.
        `fn` invokes the supabase SDK and returns its raw response.
        """
        if self.client is None:
            return _make_result(False, error="no_supabase_client")
        try:
            logger.debug("DB call: %s args=%s", _fn_name(fn), args)
            raw = await _run_blocking(fn, *args, **kwargs)
            parsed = _parse_supabase_response(raw)
            diagnostics = {
                "called": _fn_name(fn),
                "status_code": parsed.get("status_code"),
            }
            return _make_result(
                parsed.get("ok", False),
                data=parsed.get("data"),
                diagnostics=diagnostics,
                error=None if parsed.get("ok") else "db_no_data",
            )
        except Exception as exc:
            logger.exception("DB call %s raised exception: %s", _fn_name(fn), exc)
            return _make_result(False, error=str(exc), diagnostics={"fn": _fn_name(fn)})

    async def _lookup_one(self, fn: Callable, *args) -> Lookup:
        res = await self._call_db(fn, *args)
        if not res["ok"]:
            if res["error"] == "db_no_data":
                return Missing()
            return LookupFailed(res["error"])
        data = res["data"]
        if isinstance(data, list):
            return Found(data[0]) if data else Missing()
        return Found(data) if data else Missing()

    async def _lookup_many(self, fn: Callable, *args) -> Lookup:
        res = await self._call_db(fn, *args)
        if not res["ok"]:
            if res["error"] == "db_no_data":
                return Found([])
            return LookupFailed(res["error"])
        data = res["data"]
        if isinstance(data, list):
            return Found(data)
        return Found([data] if data else [])

    # -----------------------
    # Courses & sessions
    # -----------------------
    async def get_course_for_user(self, course_id: str, user_id: str) -> Lookup:
        """Single course filtered by id AND owning user."""
        logger.info("get_course_for_user course=%s user=%s", course_id, user_id)

        def _fn(cid, uid):
            return (
                self._table(Course.__tablename__)
                .select("name, subject, description")
                .eq("id", cid)
                .eq("user_id", uid)
                .limit(1)
                .execute()
            )

        return await self._lookup_one(_fn, course_id, user_id)

    async def get_recent_study_sessions(
        self, user_id: str, limit: int = RECENT_SESSIONS_LIMIT
    ) -> Lookup:
        """Most recent sessions by start_time, each joined to its course name/subject."""

        def _fn(uid, n):
            return (
                self._table(StudySession.__tablename__)
                .select("activity_type, notes, start_time, courses(name, subject)")
                .eq("user_id", uid)
                .order("start_time", desc=True)
                .limit(n)
                .execute()
            )

        return await self._lookup_many(_fn, user_id, limit)

    async def list_study_sessions(self, user_id: str, limit: Optional[int] = None) -> Lookup:

        def _fn(uid, n):
            query = (
                self._table(StudySession.__tablename__)
                .select("*")
                .eq("user_id", uid)
                .order("start_time", desc=True)
            )
            if n:
                query = query.limit(n)
            return query.execute()

        return await self._lookup_many(_fn, user_id, limit)

    async def list_courses(self, user_id: str) -> Lookup:

        def _fn(uid):
            return self._table(Course.__tablename__).select("*").eq("user_id", uid).execute()

        return await self._lookup_many(_fn, user_id)

    async def list_assessment_attempts(
        self, user_id: str, limit: Optional[int] = None
    ) -> Lookup:

        def _fn(uid, n):
            query = (
                self._table(AssessmentAttempt.__tablename__)
                .select("*")
                .eq("user_id", uid)
                .order("completed_at", desc=True)
            )
            if n:
                query = query.limit(n)
            return query.execute()

        return await self._lookup_many(_fn, user_id, limit)

    # -----------------------
    # Progress & achievements
    # -----------------------
    async def get_user_progress(self, user_id: str) -> Lookup:

        def _fn(uid):
            return (
                self._table(UserProgress.__tablename__)
                .select("*")
                .eq("user_id", uid)
                .limit(1)
                .execute()
            )

        return await self._lookup_one(_fn, user_id)

    async def list_achievements(self, names: Optional[Iterable[str]] = None) -> Lookup:
        """All achievements, or only those whose name is in `names`."""
        wanted = list(names) if names is not None else None
        if wanted is not None and not wanted:
            return Found([])

        def _fn(ns):
            query = self._table(Achievement.__tablename__).select("*")
            if ns is not None:
                query = query.in_("name", ns)
            return query.execute()

        return await self._lookup_many(_fn, wanted)

    async def list_xp_activities(self, user_id: str) -> Lookup:

        def _fn(uid):
            return (
                self._table(XpActivity.__tablename__)
                .select("activity_type")
                .eq("user_id", uid)
                .execute()
            )

        return await self._lookup_many(_fn, user_id)

    async def list_group_memberships(self, user_id: str) -> Lookup:

        def _fn(uid):
            return self._table(GroupMember.__tablename__).select("id").eq("user_id", uid).execute()

        return await self._lookup_many(_fn, user_id)

    async def upsert_user_progress(self, row: Dict[str, Any]) -> Dict[str, Any]:

        def _fn(payload):
            return (
                self._table(UserProgress.__tablename__)
                .upsert(payload, on_conflict="user_id")
                .execute()
            )

        return await self._call_db(_fn, row)

    async def update_user_progress(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:

        def _fn(uid, payload):
            return (
                self._table(UserProgress.__tablename__)
                .update(payload)
                .eq("user_id", uid)
                .execute()
            )

        return await self._call_db(_fn, user_id, fields)

    async def insert_xp_activity(
        self, user_id: str, activity_type: str, xp_earned: int, description: str
    ) -> Dict[str, Any]:
        row = {
            "user_id": user_id,
            "activity_type": activity_type,
            "xp_earned": xp_earned,
            "description": description,
        }

        def _fn(payload):
            return self._table(XpActivity.__tablename__).insert(payload).execute()

        return await self._call_db(_fn, row)

    # -----------------------
    # Usage stats
    # -----------------------
    async def record_ai_query(self, user_id: str) -> Dict[str, Any]:
        """
        Upsert the per-user usage row keyed on user_id.

        Writes the literal value 1 rather than incrementing, so the stored
        count does not accumulate across queries.
        """
        logger.info("record_ai_query user=%s", user_id)

        def _fn(uid):
            return (
                self._table(UsageStat.__tablename__)
                .upsert({"user_id": uid, "ai_queries_used": 1}, on_conflict="user_id")
                .execute()
            )

        return await self._call_db(_fn, user_id)

    async def reset_usage_stats(self, user_id: str) -> Dict[str, Any]:
        logger.info("reset_usage_stats user=%s", user_id)
        fields = {
            "ai_queries_used": 0,
            "audio_minutes_used": 0,
            "project_generations_used": 0,
            "reset_date": _now_iso(),
        }

        def _fn(uid, payload):
            return (
                self._table(UsageStat.__tablename__)
                .update(payload)
                .eq("user_id", uid)
                .execute()
            )

        return await self._call_db(_fn, user_id, fields)

    # -----------------------
    # Users & plans (billing)
    # -----------------------
    async def get_user(self, user_id: str) -> Lookup:

        def _fn(uid):
            return (
                self._table(User.__tablename__)
                .select("id, email, stripe_customer_id")
                .eq("id", uid)
                .limit(1)
                .execute()
            )

        return await self._lookup_one(_fn, user_id)

    async def get_user_by_customer_id(self, customer_id: str) -> Lookup:

        def _fn(cid):
            return (
                self._table(User.__tablename__)
                .select("id, subscription_plan, subscription_status")
                .eq("stripe_customer_id", cid)
                .limit(1)
                .execute()
            )

        return await self._lookup_one(_fn, customer_id)

    async def update_user(self, user_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        logger.info("update_user user=%s fields=%s", user_id, sorted(fields))

        def _fn(uid, payload):
            return self._table(User.__tablename__).update(payload).eq("id", uid).execute()

        return await self._call_db(_fn, user_id, fields)

    async def get_plan_by_price_id(self, price_id: str) -> Lookup:

        def _fn(pid):
            return (
                self._table(SubscriptionPlan.__tablename__)
                .select("name, duration_months")
                .eq("stripe_price_id", pid)
                .limit(1)
                .execute()
            )

        return await self._lookup_one(_fn, price_id)


def rows(result: Lookup) -> List[Dict[str, Any]]:
    """List rows from a list lookup; empty for Missing/LookupFailed."""
    if isinstance(result, Found) and isinstance(result.value, list):
        return result.value
    return []
