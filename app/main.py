"""
Main FastAPI application for the Report Forge backend.
Handles CORS, request logging and session middleware, lifespan events, and
router registration.
"""
import logging
import time
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.config import settings
from app.database import DatabaseUnavailableError, ReportDatabase
from app.dependencies.session import is_valid_session_id, new_session_id
from app.routers import ai, health, parameters, reports, templates, ui
from app.services.seeding import seed_database
from app.services.sql_assistant import SqlAssistantService

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Startup / shutdown helpers
# ---------------------------------------------------------------------------

async def _open_database() -> ReportDatabase:
    """Open the report database and seed it if configured.  Raises on failure."""
    database = ReportDatabase()
    try:
        await database.open()
        logger.info("✓ Database connection OK")
    except DatabaseUnavailableError as exc:
        logger.error("✗ Database connection failed: %s", exc)
        raise

    if settings.SEED_DATABASE:
        seeded = await seed_database(database)
        if seeded:
            logger.info("✓ Demo data seeded")
        else:
            logger.info("✓ Demo data already present")
    return database


async def _check_ollama() -> bool:
    """
    Verify Ollama is reachable.  Never raises; the report pipeline works
    without it and only the AI suggest / verify features are affected.
    """
    reachable = await SqlAssistantService().check_health()
    if reachable:
        logger.info("✓ Ollama reachable at %s (model '%s')",
                    settings.OLLAMA_BASE_URL, settings.OLLAMA_LLM_MODEL)
    else:
        logger.warning(
            "⚠ Ollama unreachable at %s; AI suggest / verify will fail until "
            "it is up (run: ollama serve)",
            settings.OLLAMA_BASE_URL,
        )
    return reachable


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown event handler."""
    logger.info("=" * 60)
    logger.info("  Starting Report Forge backend …")
    logger.info("=" * 60)

    # 1 - Database (required; raises on failure)
    app.state.database = await _open_database()

    # 2 - Ollama (optional; logs warnings but continues)
    await _check_ollama()

    logger.info("=" * 60)
    logger.info("  Report Forge ready on http://%s:%d", settings.HOST, settings.PORT)
    logger.info("  Swagger UI : http://%s:%d/docs", settings.HOST, settings.PORT)
    logger.info("  Health     : http://%s:%d/api/health/", settings.HOST, settings.PORT)
    logger.info("=" * 60)

    yield  # ← server is running

    logger.info("Shutting down Report Forge backend …")
    await app.state.database.close()
    logger.info("✓ Shutdown complete.")


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Report Forge API",
    description=(
        "**Report Forge** - fill Word templates with data from SQL.\n\n"
        "Upload a .docx template containing `[$name]` placeholders, bind each "
        "name to a SQL query, pick a report month and download the generated "
        "document.\n\n"
        "Key endpoints:\n"
        "- `POST /api/templates/upload` - upload a template into the session\n"
        "- `GET  /api/parameters/` - list the session parameters\n"
        "- `POST /api/reports/session` - generate from the session\n"
        "- `POST /api/reports/generate` - stateless generation (base64)\n"
        "- `POST /api/ai/suggest-sql` - AI query suggestion\n"
        "- `POST /api/ai/verify-sql` - AI query verification\n"
    ),
    version="0.1.0",
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url="/openapi.json",
)


# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.get_allowed_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Session cookie middleware
# ---------------------------------------------------------------------------

@app.middleware("http")
async def attach_session(request: Request, call_next):
    """
    Resolve the browser session id from its cookie, issuing a new one when
    missing or malformed.  The id is exposed as ``request.state.session_id``.
    """
    session_id = request.cookies.get(settings.SESSION_COOKIE_NAME)
    issued = not is_valid_session_id(session_id)
    if issued:
        session_id = new_session_id()
    request.state.session_id = session_id

    response = await call_next(request)

    if issued:
        response.set_cookie(
            settings.SESSION_COOKIE_NAME,
            session_id,
            httponly=True,
            samesite="lax",
        )
    return response


# ---------------------------------------------------------------------------
# Request / response logging middleware
# ---------------------------------------------------------------------------

@app.middleware("http")
async def log_requests(request: Request, call_next):
    """
    Log every request with method, path, status code, and elapsed time.
    Attaches an ``X-Process-Time`` header (milliseconds) to every response.
    """
    t0 = time.monotonic()
    response = await call_next(request)
    elapsed_ms = round((time.monotonic() - t0) * 1000, 2)

    # Skip noisy health-check polling
    if request.url.path not in ("/api/health/", "/api/health"):
        logger.info(
            "%s %s → %d  (%.2f ms)",
            request.method,
            request.url.path,
            response.status_code,
            elapsed_ms,
        )

    response.headers["X-Process-Time"] = f"{elapsed_ms}ms"
    return response


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------

@app.exception_handler(DatabaseUnavailableError)
async def database_unavailable_handler(request: Request, exc: DatabaseUnavailableError):
    logger.error("Database unavailable on %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)},
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return a structured JSON error for any unhandled exception."""
    logger.error(
        "Unhandled exception on %s %s: %s",
        request.method,
        request.url.path,
        exc,
        exc_info=True,
    )
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "detail": "Internal server error",
            "error": str(exc),
            "path": str(request.url.path),
            "timestamp": datetime.utcnow().isoformat(),
        },
    )


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

app.include_router(health.router,      prefix="/api/health",     tags=["Health"])
app.include_router(parameters.router,  prefix="/api/parameters", tags=["Parameters"])
app.include_router(templates.router,   prefix="/api/templates",  tags=["Templates"])
app.include_router(reports.router,     prefix="/api/reports",    tags=["Reports"])
app.include_router(ai.router,          prefix="/api/ai",         tags=["AI"])
app.include_router(ui.router)


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=True,
        log_level="info",
    )
