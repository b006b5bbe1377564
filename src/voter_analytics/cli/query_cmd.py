"""Query CLI commands: compile filters, inspect SQL, count voters, list combinations."""

import asyncio

import typer

from voter_analytics.lib.query_filters import (
    ALL_DIMENSIONS,
    COMBINABLE_DIMENSIONS,
    CombinationKey,
    FilterSpec,
    FilterValidationError,
    NoFiltersSelectedError,
    compile_predicate,
    extract_filter_spec,
    render_predicate,
)
from voter_analytics.schemas.aggregation import CombinationCountsResponse

query_app = typer.Typer()

_FILTER_HELP = "Filter as KEY=VALUE, repeat for several (e.g. --filter race=Black --filter county=Fulton)"


def _parse_filters(filters: list[str] | None, *, normalize_case: bool = True) -> FilterSpec:
    """Turn ``KEY=VALUE`` options into a validated FilterSpec, exiting on bad input."""
    pairs: list[tuple[str, str]] = []
    for item in filters or []:
        key, sep, value = item.partition("=")
        if not sep:
            typer.echo(f"Error: filter must be KEY=VALUE, got {item!r}", err=True)
            raise typer.Exit(code=1)
        pairs.append((key.strip(), value))
    try:
        return extract_filter_spec(pairs, ALL_DIMENSIONS, normalize_case=normalize_case)
    except FilterValidationError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e


@query_app.command("explain")
def query_explain(
    filters: list[str] | None = typer.Option(None, "--filter", "-f", help=_FILTER_HELP),
) -> None:
    """Print the parameterized WHERE clause and its parameters without touching the database."""
    spec = _parse_filters(filters)
    rendered = render_predicate(compile_predicate(spec))
    if not rendered.sql:
        typer.echo("(no filters: matches every voter)")
        return
    typer.echo(rendered.sql)
    for position, value in enumerate(rendered.params, start=1):
        typer.echo(f"  ${position} = {value!r}")


@query_app.command("combinations")
def query_combinations(
    filters: list[str] | None = typer.Option(None, "--filter", "-f", help=_FILTER_HELP),
    counts: bool = typer.Option(False, "--counts", help="Also count voters for each combination"),
) -> None:
    """List the chart combinations the filters produce, optionally with counts."""
    from voter_analytics.services.aggregation_service import build_combinations

    spec = _parse_filters(filters, normalize_case=False)
    try:
        combinations = build_combinations(spec, COMBINABLE_DIMENSIONS)
    except (NoFiltersSelectedError, FilterValidationError) as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(code=1) from e

    if not counts:
        for combo in combinations:
            typer.echo(combo.label)
        typer.echo(f"\n{len(combinations)} combination(s)")
        return

    response = asyncio.run(_combination_counts(spec, combinations))
    for result in response.results:
        typer.echo(f"{result.count:>10,}  {result.name}")
    typer.echo(f"{response.total_combined_count or 0:>10,}  Total")


async def _combination_counts(spec: FilterSpec, combinations: list[CombinationKey]) -> CombinationCountsResponse:
    """Async implementation of combination counting."""
    from voter_analytics.core.config import get_settings
    from voter_analytics.core.database import dispose_engine, init_engine
    from voter_analytics.main import build_aggregation_engine

    settings = get_settings()
    init_engine(
        settings.database_url,
        schema=settings.database_schema,
        statement_timeout_ms=settings.database_statement_timeout_ms,
    )
    try:
        engine = build_aggregation_engine(settings)
        return await engine.combination_counts(combinations, spec.without(*COMBINABLE_DIMENSIONS))
    finally:
        await dispose_engine()


@query_app.command("count")
def query_count(
    filters: list[str] | None = typer.Option(None, "--filter", "-f", help=_FILTER_HELP),
) -> None:
    """Count voters matching the filters."""
    spec = _parse_filters(filters)
    total = asyncio.run(_count(spec))
    typer.echo(f"{total:,} voter(s)")


async def _count(spec: FilterSpec) -> int:
    """Async implementation of the voter count."""
    from voter_analytics.core.config import get_settings
    from voter_analytics.core.database import dispose_engine, get_session_factory, init_engine
    from voter_analytics.services.aggregation_service import count_statement

    settings = get_settings()
    init_engine(
        settings.database_url,
        schema=settings.database_schema,
        statement_timeout_ms=settings.database_statement_timeout_ms,
    )
    try:
        factory = get_session_factory()
        async with factory() as session:
            result = await session.execute(count_statement(compile_predicate(spec)))
            return int(result.scalar_one())
    finally:
        await dispose_engine()
