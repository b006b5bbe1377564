"""FastAPI application factory.

Creates the FastAPI app with lifespan management, exception handlers,
and OpenAPI metadata.
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from voter_analytics.api.errors import register_exception_handlers
from voter_analytics.core.config import Settings, get_settings
from voter_analytics.core.database import dispose_engine, get_session_factory, init_engine
from voter_analytics.core.logging import setup_logging
from voter_analytics.lib.result_cache import ResultCache
from voter_analytics.services.aggregation_service import AggregationEngine


def build_aggregation_engine(settings: Settings) -> AggregationEngine:
    """Create the aggregation engine and its baseline cache from settings."""
    cache = ResultCache(
        max_entries=settings.result_cache_max_entries,
        ttl_seconds=settings.result_cache_ttl_seconds,
    )
    return AggregationEngine(
        get_session_factory(),
        cache,
        concurrency=settings.aggregation_concurrency,
        query_timeout=settings.aggregation_query_timeout_seconds,
    )


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifecycle: init engine on startup, dispose on shutdown."""
    settings = get_settings()
    setup_logging(settings.log_level, log_dir=settings.log_dir)
    init_engine(
        settings.database_url,
        echo=False,
        schema=settings.database_schema,
        statement_timeout_ms=settings.database_statement_timeout_ms,
        pool_size=settings.database_pool_size,
    )
    app.state.aggregation_engine = build_aggregation_engine(settings)

    yield

    app.state.aggregation_engine = None
    await dispose_engine()


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    settings = get_settings()

    app = FastAPI(
        title="Voter Analytics API",
        description="Filtered voter lists and combinatorial voter-count charts over a PostGIS voter file",
        version="0.1.0",
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    # Register middleware and routers
    from voter_analytics.api.router import create_router, setup_middleware

    setup_middleware(app, settings)
    app.include_router(create_router(settings))

    return app
