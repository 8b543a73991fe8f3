"""FastAPI application factory.

Learn: create_app() returns a configured FastAPI instance. Lifespan logs
startup and disposes the engine at shutdown. Middleware, CORS, exception
handlers, and routers are all registered here; each concern lives in its
own module.
"""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from purposelog import __version__
from purposelog.api import api_router
from purposelog.config import settings
from purposelog.errors import register_exception_handlers
from purposelog.logging_config import configure_logging
from purposelog.middleware.request_context import RequestContextMiddleware

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(
        "purposelog.starting",
        version=__version__,
        environment=settings.environment,
        port=settings.port,
    )

    yield

    logger.info("purposelog.shutdown")
    from purposelog.db.engine import engine
    await engine.dispose()


def create_app() -> FastAPI:
    """Build and return the FastAPI application."""
    configure_logging(settings)

    app = FastAPI(
        title="PurposeLog API",
        description="Personal task tracker with cookie-based JWT sessions",
        version=__version__,
        lifespan=lifespan,
    )

    # Starlette runs middleware in reverse order of registration:
    # RequestContext → CORS → handler
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestContextMiddleware)

    register_exception_handlers(app)
    app.include_router(api_router)

    return app


# Default app instance (used by uvicorn: purposelog.main:app)
app = create_app()
