"""Aggregation engine: snapshot, per-combination, and over-time voter counts.

Per-combination queries run concurrently, each on its own session, behind a
semaphore.  A failing combination is logged and reported as zero; queries
that every combination depends on (baselines, snapshots) raise
UpstreamStoreError instead.  Results are always assembled in combination
order, never completion order.
"""

import asyncio
from collections.abc import Awaitable, Callable, Iterable, Sequence
from typing import Any, TypeVar

from loguru import logger
from sqlalchemy import ColumnElement, Integer, Select, any_, column, func, select, true, values
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from voter_analytics.lib.query_filters import (
    COMBINABLE_DIMENSIONS,
    CombinationKey,
    FilterSpec,
    FilterValidationError,
    NoFiltersSelectedError,
    UpstreamStoreError,
    age_bucket_case,
    combination_count,
    compile_predicate,
    generate_combinations,
    score_bucket_case,
)
from voter_analytics.lib.result_cache import CacheStore, memoize
from voter_analytics.models.voter import Voter
from voter_analytics.schemas.aggregation import (
    CategoryCount,
    CombinationCount,
    CombinationCountsResponse,
    CombinationSeries,
    SeriesResponse,
    SnapshotResponse,
)

T = TypeVar("T")

DEFAULT_CHART_YEARS: tuple[int, ...] = tuple(range(2004, 2025, 2))

# Grouping dimension -> builder of the grouped expression
GROUPINGS: dict[str, Callable[[int | None], ColumnElement[Any]]] = {
    "status": lambda _year: Voter.status,
    "statusReason": lambda _year: Voter.status_reason,
    "county": lambda _year: Voter.county_name,
    "congressionalDistrict": lambda _year: Voter.congressional_district,
    "stateSenateDistrict": lambda _year: Voter.state_senate_district,
    "stateHouseDistrict": lambda _year: Voter.state_house_district,
    "race": lambda _year: Voter.race,
    "gender": lambda _year: Voter.gender,
    "party": lambda _year: Voter.last_party_voted,
    "residenceCity": lambda _year: Voter.residence_city,
    "residenceZipcode": lambda _year: Voter.residence_zipcode,
    "ageRange": lambda year: age_bucket_case(Voter, year),
    "scoreRange": lambda _year: score_bucket_case(Voter),
}

_STORE_ERRORS = (SQLAlchemyError, OSError, TimeoutError)


def safe_ratio(numerator: float | None, denominator: float | None) -> float | None:
    """Divide, returning None for a zero or missing denominator.

    Args:
        numerator: The count being normalized; missing counts as zero.
        denominator: The baseline count.

    Returns:
        ``numerator / denominator``, or None when the denominator is 0 or None.
    """
    if not denominator:
        return None
    return (numerator or 0) / denominator


def unique_years(years: Iterable[int]) -> list[int]:
    """Drop repeated years, keeping first-appearance order.

    Raises:
        FilterValidationError: If no year remains.
    """
    result = list(dict.fromkeys(years))
    if not result:
        msg = "At least one election year is required"
        raise FilterValidationError(msg, key="years")
    return result


def build_combinations(
    spec: FilterSpec,
    combinable: Sequence[str] = COMBINABLE_DIMENSIONS,
    *,
    max_combinations: int | None = None,
) -> list[CombinationKey]:
    """Generate chart combinations, enforcing the caller-facing usage rules.

    Args:
        spec: The normalized filter spec.
        combinable: Dimensions that may be crossed.
        max_combinations: Optional upper bound on the product size.

    Returns:
        The combinations in deterministic order.

    Raises:
        NoFiltersSelectedError: If no combinable dimension carries a value.
        FilterValidationError: If the product exceeds ``max_combinations``.
    """
    count = combination_count(spec, combinable)
    if count == 0:
        raise NoFiltersSelectedError
    if max_combinations is not None and count > max_combinations:
        msg = f"Too many filter combinations ({count}); select at most {max_combinations}"
        raise FilterValidationError(msg)
    return generate_combinations(spec, combinable)


def count_statement(predicate: ColumnElement[bool]) -> Select[tuple[int]]:
    """``SELECT count(*) FROM voter_registrations WHERE <predicate>``."""
    return select(func.count()).select_from(Voter).where(predicate)


def counts_by_year_statement(predicate: ColumnElement[bool], years: Sequence[int]) -> Select[tuple[int, int]]:
    """Voter counts per election year using the derived participated-years array.

    Renders as a join against ``(VALUES (y1), (y2), ...) AS years(year)`` on
    ``years.year = ANY(participated_election_years)``, grouped by year.

    Raises:
        FilterValidationError: If ``years`` is empty.
    """
    years_table = values(column("year", Integer), name="years").data([(year,) for year in unique_years(years)])
    return (
        select(years_table.c.year, func.count().label("count"))
        .select_from(Voter)
        .join(years_table, years_table.c.year == any_(Voter.participated_election_years))
        .where(predicate)
        .group_by(years_table.c.year)
    )


class AggregationEngine:
    """Run aggregation queries against the voter table.

    Args:
        session_factory: Factory for per-query sessions.
        cache: Store for filter-independent baselines.
        concurrency: Maximum per-combination queries in flight.
        query_timeout: Optional timeout in seconds for a single query.
        current_year: Calendar year for age computations (defaults to today).
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        cache: CacheStore,
        *,
        concurrency: int = 8,
        query_timeout: float | None = None,
        current_year: int | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._semaphore = asyncio.Semaphore(concurrency)
        self._query_timeout = query_timeout
        self._current_year = current_year
        self.total_voters_by_year: Callable[[Sequence[int]], Awaitable[dict[int, int]]] = memoize(
            cache,
            "total_voters_by_year",
            key_args=lambda years: ((list(years),), {}),
        )(self._total_voters_by_year)

    async def _execute(self, statement: Select[Any], reader: Callable[[Any], T]) -> T:
        """Execute one statement on its own session and read the result inside it."""
        async with self._semaphore, self._session_factory() as session:
            call = session.execute(statement)
            if self._query_timeout is not None:
                result = await asyncio.wait_for(call, timeout=self._query_timeout)
            else:
                result = await call
            return reader(result)

    def _predicate(self, spec: FilterSpec) -> ColumnElement[bool]:
        return compile_predicate(spec, current_year=self._current_year)

    async def snapshot(self, spec: FilterSpec, group_by: str) -> SnapshotResponse:
        """Count voters matching ``spec`` grouped by one dimension.

        Args:
            spec: Filters applied before grouping.
            group_by: A key of ``GROUPINGS``.

        Returns:
            Category counts ordered by count descending.

        Raises:
            FilterValidationError: If ``group_by`` is not groupable.
            UpstreamStoreError: If the query fails.
        """
        builder = GROUPINGS.get(group_by)
        if builder is None:
            msg = f"Invalid groupBy: {group_by}"
            raise FilterValidationError(msg, key="groupBy", allowed=sorted(GROUPINGS))
        category = builder(self._current_year).label("category")
        statement = (
            select(category, func.count().label("count"))
            .select_from(Voter)
            .where(self._predicate(spec))
            .group_by("category")
            .order_by(func.count().desc())
        )
        try:
            rows = await self._execute(statement, lambda result: list(result.all()))
        except _STORE_ERRORS as exc:
            logger.exception("Snapshot query failed for groupBy={}", group_by)
            raise UpstreamStoreError from exc

        categories = [CategoryCount(category=row[0], count=row[1]) for row in rows]
        return SnapshotResponse(
            group_by=group_by,
            total=sum(c.count for c in categories),
            categories=categories,
        )

    async def _count_combination(self, index: int, combination: CombinationKey, base: FilterSpec) -> int:
        try:
            return await self._execute(
                count_statement(self._predicate(base.merge(combination.filters))),
                lambda result: int(result.scalar_one() or 0),
            )
        except Exception:
            logger.exception("Count failed for combination {} ({})", index, combination.label)
            return 0

    async def combination_counts(
        self,
        combinations: Sequence[CombinationKey],
        base: FilterSpec | None = None,
        *,
        include_total: bool = True,
    ) -> CombinationCountsResponse:
        """Count voters for every combination concurrently.

        Args:
            combinations: Combinations in display order.
            base: Filters applied to every combination.
            include_total: Whether to sum the counts.

        Returns:
            One result per combination, in input order, and the optional total.
        """
        base = base or FilterSpec()
        counts = await asyncio.gather(
            *(self._count_combination(i, combo, base) for i, combo in enumerate(combinations))
        )
        results = [
            CombinationCount(name=combo.label, filters=combo.filters, count=count)
            for combo, count in zip(combinations, counts, strict=True)
        ]
        return CombinationCountsResponse(
            results=results,
            total_combined_count=sum(counts) if include_total else None,
        )

    async def _combination_years(
        self, index: int, combination: CombinationKey, base: FilterSpec, years: Sequence[int]
    ) -> dict[int, int]:
        try:
            return await self._execute(
                counts_by_year_statement(self._predicate(base.merge(combination.filters)), years),
                lambda result: {int(year): int(count) for year, count in result.all()},
            )
        except Exception:
            logger.exception("Year counts failed for combination {} ({})", index, combination.label)
            return {}

    async def _total_voters_by_year(self, years: Sequence[int]) -> dict[int, int]:
        try:
            return await self._execute(
                counts_by_year_statement(true(), years),
                lambda result: {int(year): int(count) for year, count in result.all()},
            )
        except _STORE_ERRORS as exc:
            logger.exception("Total voters by year query failed")
            raise UpstreamStoreError from exc

    async def counts_over_time(
        self,
        combinations: Sequence[CombinationKey],
        years: Sequence[int] = DEFAULT_CHART_YEARS,
        base: FilterSpec | None = None,
        *,
        ratio: bool = False,
    ) -> SeriesResponse:
        """Per-year counts, or ratios against all voters, for every combination.

        Args:
            combinations: Combinations in display order.
            years: Election years; every series aligns with this order.
                Repeated years are collapsed to their first position.
            base: Filters applied to every combination.
            ratio: Divide by the unfiltered voter total of each year.

        Returns:
            One series per combination, in input order.

        Raises:
            FilterValidationError: If ``years`` is empty.
            UpstreamStoreError: If ``ratio`` is set and the baseline query fails.
        """
        base = base or FilterSpec()
        years = unique_years(years)
        # Baseline first: a failure here aborts before any per-combination work starts
        totals = await self.total_voters_by_year(years) if ratio else {}
        counts = await asyncio.gather(
            *(self._combination_years(i, combo, base, years) for i, combo in enumerate(combinations))
        )

        series = []
        for combo, by_year in zip(combinations, counts, strict=True):
            if ratio:
                data: list[int | float | None] = [safe_ratio(by_year.get(y, 0), totals.get(y)) for y in years]
            else:
                data = [by_year.get(y, 0) for y in years]
            series.append(CombinationSeries(name=combo.label, filters=combo.filters, data=data))
        return SeriesResponse(years=years, series=series)
