"""FastAPI application factory.

Learn: App factory pattern — create_app() returns a configured FastAPI
instance. Lifespan manages startup/shutdown (Redis pool, database engine).
Middleware, CORS, error handlers and routers are all registered here.

Every AuthError a service raises becomes a JSON response with the
error's status code: {"error": "<kind>", "reason": "<text>"}.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from accountgate import __version__
from accountgate.api import api_router
from accountgate.auth.errors import AuthError, MalformedInput
from accountgate.config import settings

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup and shutdown lifecycle.

    Learn: Anything before `yield` runs at startup, after `yield` runs at shutdown.
    """
    logger.info(
        "accountgate.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    from accountgate.cache import close_redis, init_redis
    try:
        await init_redis()
        logger.info("accountgate.redis_connected", url=settings.redis_url)
    except Exception as e:
        logger.warning("accountgate.redis_unavailable", error=str(e))
        # Redis is optional; only rate limiting depends on it

    yield

    logger.info("accountgate.shutdown")
    await close_redis()

    from accountgate.db.engine import dispose_engine
    await dispose_engine()


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    logger.info(
        "auth.request_failed",
        error=exc.kind,
        status_code=exc.status_code,
        reason=exc.reason,
    )
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.kind, "reason": exc.reason},
    )


async def validation_error_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """Unparsable JSON is MalformedInput (400); anything else stays a 422."""
    errors = exc.errors()
    if any(e.get("type") == "json_invalid" for e in errors):
        err = MalformedInput()
        return JSONResponse(
            status_code=err.status_code,
            content={"error": err.kind, "reason": err.reason},
        )
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "reason": "Request validation failed",
            "details": [
                {"loc": list(e.get("loc", ())), "msg": e.get("msg")} for e in errors
            ],
        },
    )


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    app = FastAPI(
        title="accountgate",
        description="Account / multi-user authentication and session service",
        version=__version__,
        lifespan=lifespan,
    )

    # ── Middleware stack ──────────────────────────────────────
    # Note: Starlette middleware executes in reverse order of registration.
    # Request flow: CORS → RateLimit → Security → RequestId → handler

    from accountgate.middleware.rate_limit import RateLimitMiddleware
    from accountgate.middleware.request_id import RequestIdMiddleware
    from accountgate.middleware.security import SecurityHeadersMiddleware

    app.add_middleware(RequestIdMiddleware)
    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        RateLimitMiddleware,
        default_rpm=settings.rate_limit_rpm,
        auth_rpm=settings.rate_limit_auth_rpm,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: accountgate.main:app)
app = create_app()
