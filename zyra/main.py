# zyra/main.py
import asyncio
import logging
import time
from contextlib import asynccontextmanager, suppress

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from sqlalchemy.exc import OperationalError

from zyra.api import auth_router, router as api_router
from zyra.core.config import settings
from zyra.core.exceptions import (
    ForbiddenException,
    NotFoundException,
    StorageConfigurationException,
    UnauthorizedException,
    UpstreamServiceException,
    ValidationException,
)
from zyra.core.limiter import limiter
from zyra.core.redis_client import RedisClient
from zyra.db.database import Database

logger = logging.getLogger(__name__)

MAX_RETRIES = 10
RETRY_DELAY = 3
INITIALIZATION_GRACE_PERIOD = 30
HEALTH_IDLE_THRESHOLD_SECONDS = 600
database_ready_event = asyncio.Event()
_last_non_health_activity = time.time()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # --- Startup Logic ---
    startup_task = asyncio.create_task(_initialize_database())

    try:
        await asyncio.wait_for(asyncio.shield(startup_task), timeout=INITIALIZATION_GRACE_PERIOD)
    except asyncio.TimeoutError:
        logger.warning(
            "Database initialization is taking longer than expected. "
            "Continuing startup while initialization finishes in the background."
        )
    except Exception as exc:
        logger.error("Database initialization task raised an unexpected error: %s", exc)

    try:
        yield
    finally:
        # --- Shutdown Logic ---
        if startup_task and not startup_task.done():
            startup_task.cancel()
            with suppress(asyncio.CancelledError):
                await startup_task

        await Database.close()
        await RedisClient.close_client()
        logger.info("Closed database engine and Redis connection.")

async def _initialize_database():
    """Create the relational schema, retrying while the database is still coming up."""
    database_ready_event.clear()
    for attempt in range(MAX_RETRIES):
        try:
            logger.info("Initializing database (attempt %d/%d)...", attempt + 1, MAX_RETRIES)
            await Database.create_all()
            logger.info("Database initialization complete.")
            database_ready_event.set()
            return
        except OperationalError as exc:
            if attempt + 1 == MAX_RETRIES:
                logger.error("Could not reach the database after %d attempts. Last error: %s", MAX_RETRIES, exc)
                raise
            backoff = RETRY_DELAY * (attempt + 1)
            logger.warning("Database not ready (%s). Retrying in %d seconds...", exc, backoff)
            await asyncio.sleep(backoff)
        except asyncio.CancelledError:
            logger.info("Database initialization task cancelled.")
            raise


app = FastAPI(
    title="Zyra API",
    description="Canvas of note, chat and PDF blocks with AI chat grounded on connected blocks.",
    version="1.0.0",
    lifespan=lifespan
)

# Add Limiter to the application state
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Exempt all OPTIONS requests from rate limiting to prevent CORS preflight issues
app.state.limiter.exempt_methods = ["OPTIONS"]

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["Content-Type", "Idempotency-Key"],
)

def _error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"message": message})

@app.exception_handler(UnauthorizedException)
async def unauthorized_exception_handler(request: Request, exc: UnauthorizedException):
    return _error_response(status.HTTP_401_UNAUTHORIZED, exc.message)

@app.exception_handler(ForbiddenException)
async def forbidden_exception_handler(request: Request, exc: ForbiddenException):
    return _error_response(status.HTTP_403_FORBIDDEN, exc.message)

@app.exception_handler(NotFoundException)
async def not_found_exception_handler(request: Request, exc: NotFoundException):
    return _error_response(status.HTTP_404_NOT_FOUND, exc.message)

@app.exception_handler(ValidationException)
async def validation_exception_handler(request: Request, exc: ValidationException):
    return _error_response(status.HTTP_400_BAD_REQUEST, exc.message)

@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    message = f"{location}: {first.get('msg')}" if location else "Invalid request"
    return _error_response(status.HTTP_400_BAD_REQUEST, message)

@app.exception_handler(UpstreamServiceException)
async def upstream_exception_handler(request: Request, exc: UpstreamServiceException):
    if exc.status_code == status.HTTP_429_TOO_MANY_REQUESTS:
        return _error_response(status.HTTP_429_TOO_MANY_REQUESTS, exc.message)
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message)

@app.exception_handler(StorageConfigurationException)
async def storage_configuration_exception_handler(request: Request, exc: StorageConfigurationException):
    return _error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, exc.message)

app.include_router(auth_router.router)
app.include_router(api_router.router)

@app.middleware("http")
async def track_activity(request: Request, call_next):
    response = await call_next(request)
    if not request.url.path.startswith("/healthz"):
        global _last_non_health_activity
        _last_non_health_activity = time.time()
    return response

@app.get("/")
async def root():
    return {"message": "Welcome to the Zyra API"}

@app.get("/healthz", tags=["Health"], status_code=status.HTTP_200_OK)
async def health_check():
    """
    Returns the operational status of the service and indicates whether
    clients should keep polling.
    """
    idle_seconds = time.time() - _last_non_health_activity
    polling_allowed = idle_seconds < HEALTH_IDLE_THRESHOLD_SECONDS
    return {
        "status": "ok",
        "database_ready": database_ready_event.is_set(),
        "polling_allowed": polling_allowed,
        "idle_seconds": int(idle_seconds)
    }

@app.get("/redis-health", tags=["Health"], status_code=status.HTTP_200_OK)
async def redis_health_check():
    """Lightweight Redis readiness probe."""
    redis_client = RedisClient.get_client()
    try:
        pong = await redis_client.ping()
    except Exception as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Redis unavailable: {exc}"
        ) from exc
    return {"status": "ok", "ping": pong}
