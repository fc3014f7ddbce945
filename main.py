# main.py
"""
FastAPI entry point for the StudyGram API.

Startup/readiness checks against Supabase, request-id middleware with
structured request logging, and JSON rendering of service errors.
`create_app` takes explicit settings and services so tests can inject fakes.
"""
import asyncio
import logging
import uuid
from contextlib import asynccontextmanager
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from studygram.api.billing import router as billing_router
from studygram.api.chat import router as chat_router
from studygram.api.insights import router as insights_router
from studygram.api.progress import router as progress_router
from studygram.api.system import router as system_router
from studygram.api.uploads import router as uploads_router
from studygram.config.settings import Settings, get_settings
from studygram.errors import BadRequest, StudyGramError
from studygram.models import init_db
from studygram.services.container import Services, build_services

logger = logging.getLogger("uvicorn.error")


async def _run_sync_with_timeout(fn, *args, timeout: float):
    """Run a blocking function in a worker thread, raising TimeoutError after `timeout`."""
    return await asyncio.wait_for(asyncio.to_thread(fn, *args), timeout=timeout)


async def _supabase_health(app: FastAPI, timeout: Optional[float] = None) -> bool:
    settings: Settings = app.state.settings
    supabase = app.state.services.supabase
    try:
        return bool(
            await _run_sync_with_timeout(
                supabase.health_check, timeout=timeout or settings.health_check_timeout
            )
        )
    except asyncio.TimeoutError:
        logger.warning("⚠️ Supabase health_check timed out")
        return False
    except Exception as exc:
        logger.exception("❌ Unexpected error calling supabase health_check: %s", exc)
        return False


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info("🚀 Starting StudyGram API (env=%s)...", settings.environment)

    if settings.create_tables_on_startup and settings.database_url:
        await asyncio.to_thread(init_db, settings.database_url)

    app.state.supabase_healthy = await _supabase_health(app)
    logger.info("Supabase health: %s", app.state.supabase_healthy)

    if not app.state.supabase_healthy and settings.fail_on_db_startup:
        logger.error("FAIL_ON_DB_STARTUP enabled and Supabase unhealthy. Aborting startup.")
        raise RuntimeError("Supabase unhealthy on startup")

    yield

    logger.info("Shutting down StudyGram API...")


def create_app(
    settings: Optional[Settings] = None, services: Optional[Services] = None
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = FastAPI(
        title="StudyGram API",
        description="Course-aware AI study assistant, uploads and subscription billing",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.services = services or build_services(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def add_request_id_and_log(request: Request, call_next):
        request_id = request.headers.get("X-Request-Id") or str(uuid.uuid4())
        request.state.request_id = request_id
        logger.info(
            "→ Incoming request %s %s id=%s", request.method, request.url.path, request_id
        )
        try:
            response: Response = await call_next(request)
        except Exception as exc:
            logger.exception("Handler error for request id=%s: %s", request_id, exc)
            return JSONResponse(
                {"error": "Internal server error"},
                status_code=500,
                headers={"X-Request-Id": request_id},
            )
        logger.info(
            "← Completed request id=%s status=%s",
            request_id,
            getattr(response, "status_code", None),
        )
        response.headers["X-Request-Id"] = request_id
        return response

    @app.exception_handler(StudyGramError)
    async def handle_service_error(request: Request, exc: StudyGramError):
        log = logger.warning if exc.status_code < 500 else logger.error
        log(
            "%s on %s: %s", type(exc).__name__, request.url.path, exc.message
        )
        return JSONResponse(exc.to_dict(), status_code=exc.status_code)

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        logger.warning("Invalid request body on %s: %s", request.url.path, errors)
        first = errors[0] if errors else {}
        field = ".".join(str(p) for p in first.get("loc", ()) if p != "body")
        detail = f"{field}: {first.get('msg')}" if field else first.get("msg")
        return JSONResponse(
            BadRequest("Invalid request body", details=detail).to_dict(), status_code=400
        )

    app.include_router(chat_router, prefix="/api", tags=["chat"])
    app.include_router(insights_router, prefix="/api", tags=["insights"])
    app.include_router(uploads_router, prefix="/api", tags=["uploads"])
    app.include_router(billing_router, prefix="/api/billing", tags=["billing"])
    app.include_router(progress_router, prefix="/api/progress", tags=["progress"])
    app.include_router(system_router, prefix="/api", tags=["system"])

    @app.get("/")
    async def root() -> Dict[str, str]:
        return {"message": "StudyGram API is running!", "status": "healthy"}

    @app.get("/health")
    async def health_check():
        """Liveness with a bounded Supabase check; reports degraded instead of failing."""
        db_ok = await _supabase_health(app)
        return JSONResponse(
            {
                "status": "healthy" if db_ok else "degraded",
                "service": "studygram-api",
                "database": "connected" if db_ok else "disconnected",
            },
            status_code=200 if db_ok else 503,
        )

    @app.get("/ready")
    async def readiness_check():
        """Readiness from the startup result; one bounded check if startup never ran."""
        supabase_state: Optional[Any] = getattr(app.state, "supabase_healthy", None)
        if supabase_state is None:
            supabase_state = await _supabase_health(app, timeout=2.0)

        if supabase_state:
            return JSONResponse({"ready": True, "database": "connected"}, status_code=200)
        return JSONResponse({"ready": False, "database": "disconnected"}, status_code=503)

    return app


app = create_app()


if __name__ == "__main__":
    import os

    import uvicorn

    uvicorn.run("main:app", host=os.getenv("HOST", "0.0.0.0"), port=int(os.getenv("PORT", 8000)), reload=True)
