import logging
import time
import uuid

import uvicorn
from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import IntegrityError

from fittrack.config import settings
from fittrack.core import exceptions
from fittrack.core.logging_config import setup_logging
from fittrack.database import AsyncSessionLocal, create_tables
from fittrack.routers.analytics import router as analytics_router
from fittrack.routers.challenges import router as challenges_router
from fittrack.routers.exercises import router as exercises_router
from fittrack.routers.users import router as users_router
from fittrack.routers.workouts import router as workouts_router

setup_logging(settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    openapi_url=f"{settings.API_V1_STR}/openapi.json"
)

# CORS must be added before other middleware
configured_origins = [str(origin).rstrip("/") for origin in settings.BACKEND_CORS_ORIGINS]
default_origins = [
    "http://localhost:3000",
    "http://127.0.0.1:3000",
    "http://localhost:5173",
    "http://127.0.0.1:5173",
]
allow_origins = configured_origins if settings.APP_ENV == "production" else list(dict.fromkeys([*default_origins, *configured_origins]))

app.add_middleware(
    CORSMiddleware,
    allow_origins=allow_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def attach_request_id(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    started = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "%s %s -> %s (%.1f ms) [%s]",
        request.method,
        request.url.path,
        response.status_code,
        (time.perf_counter() - started) * 1000,
        request_id,
    )
    return response

# Exception Handlers
app.add_exception_handler(exceptions.DomainError, exceptions.domain_exception_handler)  # type: ignore
app.add_exception_handler(RequestValidationError, exceptions.validation_exception_handler)  # type: ignore
app.add_exception_handler(IntegrityError, exceptions.integrity_exception_handler)  # type: ignore
app.add_exception_handler(Exception, exceptions.unhandled_exception_handler)

# Routers
app.include_router(users_router, prefix=f"{settings.API_V1_STR}/users", tags=["Users"])
app.include_router(analytics_router, prefix=f"{settings.API_V1_STR}/users", tags=["Analytics"])
app.include_router(exercises_router, prefix=settings.API_V1_STR, tags=["Exercises"])
app.include_router(workouts_router, prefix=f"{settings.API_V1_STR}/workouts", tags=["Workouts"])
app.include_router(challenges_router, prefix=settings.API_V1_STR, tags=["Challenges"])


@app.get("/health")
async def health_check():
    return {"status": "ok"}


@app.get("/healthz")
async def healthz():
    try:
        async with AsyncSessionLocal() as db:
            await db.execute(text("SELECT 1"))
    except Exception as exc:
        logger.exception("Health check failed")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="database unavailable",
        ) from exc
    return {"status": "ok", "database": "ok"}


@app.on_event("startup")
async def startup() -> None:
    _validate_security_settings()
    if settings.database_mode != "postgres":
        # PostgreSQL schemas come from alembic; the SQLite modes build theirs directly
        await create_tables()
    logger.info(
        "%s %s started (env=%s db=%s auth=%s tz=%s)",
        settings.PROJECT_NAME,
        settings.VERSION,
        settings.APP_ENV,
        settings.database_mode,
        settings.AUTH_MODE,
        settings.APP_TIMEZONE,
    )


def _validate_security_settings() -> None:
    if settings.APP_ENV != "production":
        if settings.AUTH_MODE == "dev":
            logger.warning("AUTH_MODE=dev: every request acts as %s", settings.DEV_USER_ID)
        return

    errors: list[str] = []
    if len(settings.SECRET_KEY.strip()) < 24:
        errors.append("SECRET_KEY must be at least 24 characters in production.")
    if settings.AUTH_MODE == "dev":
        errors.append("AUTH_MODE=dev is not allowed in production.")
    if not settings.BACKEND_CORS_ORIGINS:
        errors.append("BACKEND_CORS_ORIGINS must be explicitly configured in production.")

    if errors:
        raise RuntimeError("; ".join(errors))


def run() -> None:
    """Serve the API with uvicorn on the configured host and port."""
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
