"""FastAPI dependency injection for database sessions and shared services."""

from collections.abc import AsyncGenerator

from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession

from voter_analytics.core.database import get_session_factory
from voter_analytics.services.aggregation_service import AggregationEngine


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Yield an async database session with per-request lifecycle."""
    factory = get_session_factory()
    async with factory() as session:
        yield session


def get_aggregation_engine(request: Request) -> AggregationEngine:
    """Return the process-wide aggregation engine created at startup.

    Raises:
        RuntimeError: If the application lifespan has not created it.
    """
    engine: AggregationEngine | None = getattr(request.app.state, "aggregation_engine", None)
    if engine is None:
        msg = "Aggregation engine not initialized. Is the application lifespan running?"
        raise RuntimeError(msg)
    return engine
