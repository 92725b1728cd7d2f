"""
api/main.py -- FastAPI application entry point for FleetAdvisor.

Exposes the classification engine over HTTP: upload exports, list and
inspect classified devices, toggle the retired flag, and read the dashboard
summary and chart series. Also keeps the loaner laptop pool and the manual
equipment inventory, which no export covers.

Install deps:  pip install -e .
Run with:      uvicorn api.main:app --reload

Middleware, as a request meets it:
  1. log_requests          -- one access-log line per request with latency
  2. TrustedHostMiddleware -- 400 for a Host header outside the allow-list
  3. CORSMiddleware        -- credentialed CORS for the dashboard origins
  4. SlowAPIMiddleware     -- per-route limits from api.limiter
  5. SessionMiddleware     -- signed cookie holding OIDC state and ?next

Starlette wraps each add_middleware() call around everything registered
before it, so the stack is registered innermost first.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.openapi.docs import get_redoc_html, get_swagger_ui_html
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.middleware.sessions import SessionMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.dashboard import router as dashboard_router
from api.routes.v1.devices import router as devices_router
from api.routes.v1.inventory import router as inventory_router
from api.routes.v1.loaners import router as loaners_router
from api.routes.v1.models import router as models_router
from api.routes.v1.uploads import router as uploads_router
from auth.dependencies import get_current_user
from auth.models import User
from auth.oauth import oauth as oauth_client
from auth.tokens import _SECRET_KEY
from cmdb.store import FleetStore
from core.config import get_settings
from core.fetcher import fetch_os_policy

VERSION = "0.1.0"

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("fleetadvisor.api")


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open the store and resolve the OS policy before the first request.

    Startup order:
      1. Store -- routes read app.state.store.
      2. OS policy -- the versions in settings, refreshed from endoflife.date
         when OS_POLICY_SOURCE=endoflife. Families the refresh cannot read
         keep their configured versions.
      3. OAuth registry.
    """
    settings = get_settings()
    logger.info("FleetAdvisor API starting up")
    app.state.store = FleetStore(settings.database_url)

    policy = settings.os_policy()
    if settings.os_policy_source == "endoflife":
        policy = fetch_os_policy(policy)
    app.state.os_policy = policy
    logger.info(
        "OS policy (%s): %s",
        settings.os_policy_source,
        ", ".join(f"{name} >= {p.min_supported}" for name, p in policy.families.items()),
    )

    app.state.oauth = oauth_client

    yield

    app.state.store.close()
    logger.info("FleetAdvisor API stopped")


app = FastAPI(
    title="FleetAdvisor API",
    description="IT asset lifecycle dashboard. Data from Jamf, Intune, Qualys and campus directory exports.",
    version=VERSION,
    lifespan=lifespan,
    # /docs and /redoc are served below, behind auth.
    docs_url=None,
    redoc_url=None,
)

# ---------------------------------------------------------------------------
# Middleware (innermost first)
# ---------------------------------------------------------------------------

app.add_middleware(SessionMiddleware, secret_key=_SECRET_KEY, https_only=get_settings().secure_cookies)
app.add_middleware(SlowAPIMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost", "http://localhost:3000", "http://127.0.0.1"],
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization", "X-API-Key"],
    allow_credentials=True,
    max_age=3600,
)
app.add_middleware(TrustedHostMiddleware, allowed_hosts=["localhost", "127.0.0.1", "*.localhost"])

# SlowAPIMiddleware finds the limiter on app.state.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    elapsed_ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        request.client.host if request.client else "unknown",
    )
    return response


app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(uploads_router, prefix="/api/v1", tags=["Uploads"])
app.include_router(devices_router, prefix="/api/v1", tags=["Devices"])
app.include_router(dashboard_router, prefix="/api/v1", tags=["Dashboard"])
app.include_router(models_router, prefix="/api/v1", tags=["Models"])
app.include_router(loaners_router, prefix="/api/v1", tags=["Loaners"])
app.include_router(inventory_router, prefix="/api/v1", tags=["Inventory"])


@app.get("/docs", include_in_schema=False)
async def docs(user: User = Depends(get_current_user)):
    return get_swagger_ui_html(openapi_url="/openapi.json", title="FleetAdvisor API")


@app.get("/redoc", include_in_schema=False)
async def redoc(user: User = Depends(get_current_user)):
    return get_redoc_html(openapi_url="/openapi.json", title="FleetAdvisor API")


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every error body is an ErrorResponse: {"error": {code, message, detail}}.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail)).model_dump(),
    )


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """429 with Retry-After taken from slowapi's exc.retry_after (seconds)."""
    response = _error(429, "rate_limited", "Too many requests.", str(exc))
    response.headers["Retry-After"] = str(int(getattr(exc, "retry_after", 60)))
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return _error(422, "validation_error", "Request validation failed.", str(exc.errors()))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Routes raise HTTPException(detail=ErrorDetail(...).model_dump()).

    A dict detail is passed through as the error body; anything else (e.g.
    Starlette's own 404/405) is wrapped with an http_<status> code.
    """
    if isinstance(exc.detail, dict):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Log the traceback server-side; the client only sees a generic 500."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health
#
# Public and never rate limited: load balancers poll it.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Liveness, version and a database round trip."""
    database = "ok" if request.app.state.store.ping() else "error"
    return HealthResponse(
        status="ok" if database == "ok" else "degraded",
        version=VERSION,
        components={"app": "ok", "database": database},
    )
