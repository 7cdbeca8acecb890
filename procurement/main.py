import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from procurement.api.v1.router import v1_router
from procurement.core.config import get_settings
from procurement.core.logging import configure_logging
from procurement.core.middleware import RequestIdMiddleware
from procurement.core.middleware_rate_limit import BidRateLimitMiddleware
from procurement.core.rate_limit import bid_limiter

logger = logging.getLogger(__name__)


async def database_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error(
        "database error",
        exc_info=exc,
        extra={
            "request_id": getattr(request.state, "request_id", None),
            "path": request.url.path,
        },
    )
    return JSONResponse(
        status_code=503,
        content={"detail": "Database temporarily unavailable.", "error": "transient"},
    )


def create_app() -> FastAPI:
    settings = get_settings()
    configure_logging(settings)

    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
    )

    # Middleware: bid rate limit (inner), request id (outer)
    app.add_middleware(
        BidRateLimitMiddleware,
        limiter=bid_limiter(
            settings.bid_rate_limit_capacity, settings.bid_rate_limit_per_minute
        ),
        api_prefix=settings.api_prefix,
        actor_header=settings.actor_header,
    )
    app.add_middleware(RequestIdMiddleware, header_name=settings.request_id_header)

    app.add_exception_handler(SQLAlchemyError, database_error_handler)

    # API v1
    app.include_router(v1_router, prefix=settings.api_prefix)

    return app


app = create_app()
