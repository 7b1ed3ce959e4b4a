# fleetdesk/main.py
"""
FastAPI application entry point.
Includes security middleware, global error handlers, and all routers.
"""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from fleetdesk.routers import workflow, deployments, vehicles, alerts, trip_stats, health
from fleetdesk.database import create_tables
from fleetdesk.config import settings
from fleetdesk.exceptions import (
    DataIntegrityError,
    DeploymentError,
    DirectionConflictError,
    RemoteError,
    ValidationError,
)
from fleetdesk.utils.logger import get_logger
import time

logger = get_logger(__name__)

app = FastAPI(
    title="Fleetdesk Deployment API",
    description="Vehicle OUT/IN deployment tracking with checklist comparison and trip summaries.",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
)

# ── CORS (allow the console to call the API) ─────────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],   # Restrict to console origin in production
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── API Key Middleware ───────────────────────────────────────────────────────
class APIKeyMiddleware(BaseHTTPMiddleware):
    """
    Optional lightweight API key auth.
    Set API_KEY in .env. Leave empty to disable auth.
    """
    async def dispatch(self, request: Request, call_next):
        open_paths = {"/api/v1/health", "/docs", "/redoc", "/openapi.json"}
        if request.url.path in open_paths or not settings.API_KEY:
            return await call_next(request)

        api_key = request.headers.get("X-API-Key") or request.query_params.get("api_key")
        if api_key != settings.API_KEY:
            return JSONResponse(
                status_code=status.HTTP_401_UNAUTHORIZED,
                content={"detail": "Invalid or missing API key"},
            )
        return await call_next(request)


if settings.API_KEY:
    app.add_middleware(APIKeyMiddleware)


# ── Request Timing Middleware ────────────────────────────────────────────────
@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.time()
    response = await call_next(request)
    duration = round((time.time() - start) * 1000, 2)
    logger.debug(f"{request.method} {request.url.path} → {response.status_code} ({duration}ms)")
    return response


# ── Exception Handlers ───────────────────────────────────────────────────────
_STATUS_BY_ERROR = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    DirectionConflictError: status.HTTP_409_CONFLICT,
    DataIntegrityError: status.HTTP_409_CONFLICT,
}


@app.exception_handler(DeploymentError)
async def deployment_error_handler(request: Request, exc: DeploymentError):
    if isinstance(exc, RemoteError):
        code = exc.status_code if exc.status_code and 400 <= exc.status_code < 500 else status.HTTP_502_BAD_GATEWAY
    else:
        code = _STATUS_BY_ERROR.get(type(exc), status.HTTP_400_BAD_REQUEST)
    logger.warning(f"{type(exc).__name__} on {request.url.path}: {exc.message}")
    return JSONResponse(status_code=code, content={"detail": exc.message, "error": exc.to_dict()})


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    logger.error(f"Unhandled exception on {request.url.path}: {exc}", exc_info=True)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal server error"},
    )


# ── Routers ──────────────────────────────────────────────────────────────────
app.include_router(workflow.router,    prefix="/api/v1", tags=["Deployment Workflow"])
app.include_router(deployments.router, prefix="/api/v1", tags=["Deployments"])
app.include_router(vehicles.router,    prefix="/api/v1", tags=["Vehicles"])
app.include_router(alerts.router,      prefix="/api/v1", tags=["Alerts"])
app.include_router(trip_stats.router,  prefix="/api/v1", tags=["Stats"])
app.include_router(health.router,      prefix="/api/v1", tags=["Health"])


# ── Startup ───────────────────────────────────────────────────────────────────
@app.on_event("startup")
async def startup():
    logger.info(f"Fleetdesk backend starting up ({settings.HUB_NAME})...")
    if settings.RECORD_STORE_BACKEND == "sql":
        create_tables()
        logger.info("Database tables ready")
    else:
        logger.info(f"Using remote record store at {settings.RECORD_STORE_URL}")
    logger.info(f"Listening on http://{settings.BACKEND_HOST}:{settings.BACKEND_PORT}")
    logger.info("API docs at /docs")


@app.on_event("shutdown")
async def shutdown():
    logger.info("Fleetdesk backend shutting down...")
