"""Common Pydantic v2 schemas shared across the API.

Provides pagination and error response schemas.
"""

from pydantic import BaseModel, ConfigDict, Field


class PaginationMeta(BaseModel):
    """Pagination metadata included in paginated responses."""

    total: int = Field(description="Total number of items")
    page: int = Field(description="Current page number")
    page_size: int = Field(description="Items per page")
    total_pages: int = Field(description="Total number of pages")


class ErrorResponse(BaseModel):
    """Standard error response body."""

    model_config = ConfigDict(populate_by_name=True)

    detail: str = Field(description="Human-readable error message")
    allowed_filters: list[str] | None = Field(
        default=None,
        alias="allowedFilters",
        description="Filter keys accepted by the endpoint, when a key was rejected",
    )
