"""Voter API endpoints for filtered lists, summaries, charts, map stats, and households.

Filter dimensions arrive as repeated query parameters (``?race=Black&race=White``)
and are validated against an allow-list before anything is compiled.
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from voter_analytics.core.config import Settings, get_settings
from voter_analytics.core.dependencies import get_aggregation_engine, get_async_session
from voter_analytics.lib.query_filters import (
    ALL_DIMENSIONS,
    COMBINABLE_DIMENSIONS,
    extract_filter_spec,
    validate_registration_number,
)
from voter_analytics.schemas.aggregation import (
    ChartType,
    CombinationCountsResponse,
    SeriesResponse,
    SnapshotResponse,
)
from voter_analytics.schemas.common import ErrorResponse, PaginationMeta
from voter_analytics.schemas.voter import (
    LookupValuesResponse,
    MapStatsResponse,
    PaginatedVoterResponse,
    VoterSummaryResponse,
)
from voter_analytics.services.aggregation_service import AggregationEngine, build_combinations, unique_years
from voter_analytics.services.voter_list_service import (
    find_household_members,
    get_lookup_values,
    get_map_stats,
    list_voters,
    parse_bbox,
)

voters_router = APIRouter(prefix="/voters", tags=["voters"])

_FILTER_ERRORS: dict[int | str, dict[str, object]] = {
    400: {"model": ErrorResponse, "description": "Unknown filter key or malformed value"},
    503: {"model": ErrorResponse, "description": "Voter data store unavailable"},
}

MAX_CHART_COMBINATIONS = 200


def _parse_years(raw: str | None, default: list[int]) -> list[int]:
    if raw is None or not raw.strip():
        return default
    try:
        parsed = [int(y.strip()) for y in raw.split(",") if y.strip()]
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"Invalid years: {raw}") from exc
    return unique_years(parsed)


@voters_router.get(
    "",
    response_model=PaginatedVoterResponse,
    responses=_FILTER_ERRORS,
)
async def list_voters_endpoint(
    request: Request,
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100, alias="pageSize"),
    sort_field: str = Query("name", alias="sortField"),
    sort_direction: str = Query("asc", alias="sortDirection"),
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
) -> PaginatedVoterResponse:
    """List voters matching any combination of filter dimensions."""
    spec = extract_filter_spec(
        request.query_params,
        ALL_DIMENSIONS,
        ignored={"page", "pageSize", "sortField", "sortDirection"},
    )
    voters, total = await list_voters(
        session,
        spec,
        page=page,
        page_size=page_size,
        sort_field=sort_field,
        sort_direction=sort_direction,
    )
    return PaginatedVoterResponse(
        items=[VoterSummaryResponse.model_validate(v) for v in voters],
        pagination=PaginationMeta(
            total=total,
            page=page,
            page_size=page_size,
            total_pages=(total + page_size - 1) // page_size,
        ),
    )


@voters_router.get(
    "/summary",
    response_model=SnapshotResponse,
    responses=_FILTER_ERRORS,
)
async def voter_summary(
    request: Request,
    group_by: str = Query(..., alias="groupBy"),
    engine: AggregationEngine = Depends(get_aggregation_engine),  # noqa: B008
) -> SnapshotResponse:
    """Grouped voter counts for one dimension under the given filters."""
    spec = extract_filter_spec(request.query_params, ALL_DIMENSIONS, ignored={"groupBy"})
    return await engine.snapshot(spec, group_by)


@voters_router.get(
    "/chart-data",
    response_model=CombinationCountsResponse | SeriesResponse,
    responses=_FILTER_ERRORS,
)
async def chart_data(
    request: Request,
    chart_type: ChartType = Query(ChartType.VOTER_COMBINATION_COUNTS, alias="chartType"),
    years: str | None = Query(None, description="Comma-separated election years"),
    engine: AggregationEngine = Depends(get_aggregation_engine),  # noqa: B008
    settings: Settings = Depends(get_settings),  # noqa: B008
) -> CombinationCountsResponse | SeriesResponse:
    """Chart payload for every combination of the selected combinable filters.

    Non-combinable filters (score range, census brackets, radius, ...) apply
    to every combination.
    """
    spec = extract_filter_spec(
        request.query_params,
        ALL_DIMENSIONS,
        ignored={"chartType", "years"},
        normalize_case=False,
    )
    combinations = build_combinations(spec, COMBINABLE_DIMENSIONS, max_combinations=MAX_CHART_COMBINATIONS)
    base = spec.without(*COMBINABLE_DIMENSIONS)

    if chart_type == ChartType.VOTER_COMBINATION_COUNTS:
        return await engine.combination_counts(combinations, base)
    year_list = _parse_years(years, settings.chart_year_list)
    return await engine.counts_over_time(
        combinations,
        year_list,
        base,
        ratio=chart_type == ChartType.DEMOGRAPHIC_RATIO_OVER_TIME,
    )


@voters_router.get(
    "/map-stats",
    response_model=MapStatsResponse,
    responses=_FILTER_ERRORS,
)
async def map_stats(
    request: Request,
    bbox: str = Query(..., description="xmin,ymin,xmax,ymax in WGS84 degrees"),
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
) -> MapStatsResponse:
    """Average participation score and voter count inside a map viewport."""
    bounds = parse_bbox(bbox)
    spec = extract_filter_spec(request.query_params, ALL_DIMENSIONS, ignored={"bbox"})
    return await get_map_stats(session, spec, bounds)


@voters_router.get(
    "/lookup",
    response_model=LookupValuesResponse,
    responses=_FILTER_ERRORS,
)
async def lookup_values(
    field: list[str] = Query(..., description="Lookup field name; repeat for several"),  # noqa: B008
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
) -> LookupValuesResponse:
    """Distinct values for filter dropdowns."""
    return LookupValuesResponse(values=await get_lookup_values(session, field))


@voters_router.get(
    "/{registration_number}/household",
    response_model=list[VoterSummaryResponse],
)
async def household_members(
    registration_number: str,
    session: AsyncSession = Depends(get_async_session),  # noqa: B008
) -> list[VoterSummaryResponse]:
    """Other voters registered at the same residence address."""
    identifier = validate_registration_number(registration_number)
    members = await find_household_members(session, identifier)
    if members is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Voter not found")
    return [VoterSummaryResponse.model_validate(v) for v in members]
