"""Exception handlers mapping filter and store errors to HTTP responses."""

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from voter_analytics.lib.query_filters import FilterValidationError, NoFiltersSelectedError, UpstreamStoreError


async def filter_validation_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """400 with the rejected key's allow-list when there is one."""
    content: dict[str, object] = {"detail": str(exc)}
    if isinstance(exc, FilterValidationError) and exc.allowed:
        content["allowedFilters"] = exc.allowed
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content=content)


async def no_filters_selected_handler(request: Request, exc: Exception) -> JSONResponse:
    """400 telling the caller to select filters, distinct from an empty result."""
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc), "code": "no_filters_selected"},
    )


async def upstream_store_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """503 with a generic message; the cause is logged where it was raised."""
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc)},
    )


async def value_error_handler(request: Request, exc: Exception) -> JSONResponse:
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Register all exception handlers on the FastAPI app.

    Args:
        app: The FastAPI application.
    """
    app.add_exception_handler(FilterValidationError, filter_validation_error_handler)
    app.add_exception_handler(NoFiltersSelectedError, no_filters_selected_handler)
    app.add_exception_handler(UpstreamStoreError, upstream_store_error_handler)
    app.add_exception_handler(ValueError, value_error_handler)
