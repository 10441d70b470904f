"""
StudyShelf backend: admin HTTP API plus the Telegram storefront bot.

ARCHITECTURE:
- Telegram Bot: students browse, search and download study PDFs
- FastAPI Backend: catalog CRUD, analytics, user dashboard, CSV export
- SQL database: catalog, users, download history and the chunked file store

The bot runs in long polling mode in a background thread, or inside this
event loop when WEBHOOK_URL is set.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from app.api.routes import materials, users, webhook
from app.core.config import settings
from app.core.exceptions import BusinessError, StudyShelfError, http_error_for
from app.db.init_db import init_db
from app.telegram import bot

logger = logging.getLogger(__name__)


def configure_logging():
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    # httpx logs every Telegram API call (including the token in the URL) at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler.

    Startup:
    1. Configure logging and report disabled subsystems
    2. Initialize database tables (failure here stops the process)
    3. Start the Telegram bot (failure here is logged, the API keeps running)

    Shutdown:
    1. Stop the Telegram bot
    """
    configure_logging()
    settings.warn_missing()

    logger.info("[*] Initializing database...")
    init_db()

    webhook_mode = bool(settings.WEBHOOK_URL)
    try:
        if webhook_mode:
            await bot.start_webhook()
        else:
            bot.start_bot_background()
    except Exception as e:
        logger.error(f"[TELEGRAM] Bot startup failed, continuing without it: {e}", exc_info=True)

    yield

    try:
        if webhook_mode:
            await bot.stop_webhook()
        else:
            bot.stop_bot_background()
    except Exception as e:
        logger.error(f"[TELEGRAM] Shutdown error: {e}")


app = FastAPI(
    title="StudyShelf API",
    description="NCLEX study material catalog, analytics and Telegram storefront.",
    version="0.1.0",
    lifespan=lifespan,
)

# SECURITY: Restrict CORS to configured origins (no wildcards)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Accept", "Origin"],
    max_age=600,
    expose_headers=["Content-Type", "Content-Disposition"],
)


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
    return response


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "message": exc.detail},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    field = ".".join(str(p) for p in first.get("loc", ())[1:]) or "request"
    return JSONResponse(
        status_code=400,
        content={"success": False, "message": f"Invalid {field}: {first.get('msg', 'bad value')}"},
    )


@app.exception_handler(StudyShelfError)
async def domain_exception_handler(request: Request, exc: StudyShelfError):
    return await http_exception_handler(request, http_error_for(exc))


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    return await http_exception_handler(request, BusinessError.server_error(exc))


app.include_router(materials.router, prefix="/api/materials", tags=["materials"])
app.include_router(users.router, prefix="/api/users", tags=["users"])
app.include_router(webhook.router, prefix="/webhook", tags=["telegram"])


@app.get("/health")
def health():
    return {
        "status": "ok",
        "environment": settings.ENVIRONMENT,
        "bot": "running" if bot.get_application() is not None else "disabled",
    }
