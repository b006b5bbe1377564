"""Voter list service: filtered listing, household lookup, map stats, and dropdown values."""

from collections.abc import Sequence

from loguru import logger
from sqlalchemy import ColumnElement, and_, func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from voter_analytics.lib.query_filters import (
    FilterSpec,
    FilterValidationError,
    PredicateCompiler,
    ResidentAddress,
    UpstreamStoreError,
    compile_predicate,
)
from voter_analytics.lib.query_filters.spatial import envelope
from voter_analytics.models.voter import Voter
from voter_analytics.schemas.voter import MapStatsResponse

SORT_FIELDS: dict[str, tuple[ColumnElement, ...]] = {
    "name": (Voter.last_name, Voter.first_name),
    "id": (Voter.voter_registration_number,),
    "county": (Voter.county_name,),
    "status": (Voter.status,),
    "address": (Voter.residence_street_name, Voter.residence_street_number),
    "score": (Voter.participation_score,),
}

LOOKUP_FIELDS: dict[str, ColumnElement] = {
    "county": Voter.county_name,
    "status": Voter.status,
    "statusReason": Voter.status_reason,
    "congressionalDistrict": Voter.congressional_district,
    "stateSenateDistrict": Voter.state_senate_district,
    "stateHouseDistrict": Voter.state_house_district,
    "countyPrecinct": Voter.county_precinct,
    "municipalPrecinct": Voter.municipal_precinct,
    "party": Voter.last_party_voted,
    "race": Voter.race,
    "gender": Voter.gender,
    "residenceCity": Voter.residence_city,
    "residenceZipcode": Voter.residence_zipcode,
}


def parse_bbox(value: str) -> tuple[float, float, float, float]:
    """Parse ``"xmin,ymin,xmax,ymax"`` in WGS84 degrees.

    Raises:
        FilterValidationError: If the value is malformed or out of range.
    """
    try:
        xmin, ymin, xmax, ymax = (float(p) for p in value.split(","))
    except ValueError as exc:
        msg = f"bbox must be 'xmin,ymin,xmax,ymax', got {value!r}"
        raise FilterValidationError(msg, key="bbox") from exc
    if not (-180 <= xmin <= xmax <= 180 and -90 <= ymin <= ymax <= 90):
        msg = f"bbox is out of range or inverted: {value!r}"
        raise FilterValidationError(msg, key="bbox")
    return xmin, ymin, xmax, ymax


async def list_voters(
    session: AsyncSession,
    spec: FilterSpec,
    *,
    page: int = 1,
    page_size: int = 20,
    sort_field: str = "name",
    sort_direction: str = "asc",
) -> tuple[list[Voter], int]:
    """List voters matching a filter spec.

    Args:
        session: Database session.
        spec: Normalized filters.
        page: Page number (1-based).
        page_size: Items per page.
        sort_field: Key of ``SORT_FIELDS``.
        sort_direction: ``asc`` or ``desc``.

    Returns:
        Tuple of (voters, total count).

    Raises:
        FilterValidationError: If the sort field or direction is unknown.
        UpstreamStoreError: If the store fails.
    """
    columns = SORT_FIELDS.get(sort_field)
    if columns is None:
        msg = f"Invalid sortField: {sort_field}"
        raise FilterValidationError(msg, key="sortField", allowed=sorted(SORT_FIELDS))
    if sort_direction not in ("asc", "desc"):
        msg = f"Invalid sortDirection: {sort_direction}"
        raise FilterValidationError(msg, key="sortDirection", allowed=["asc", "desc"])

    predicate = compile_predicate(spec)
    order_by = [c.desc().nulls_last() if sort_direction == "desc" else c.asc().nulls_last() for c in columns]
    query = (
        select(Voter)
        .where(predicate)
        .order_by(*order_by, Voter.voter_registration_number)
        .offset((page - 1) * page_size)
        .limit(page_size)
    )
    count_query = select(func.count()).select_from(Voter).where(predicate)

    try:
        total = (await session.execute(count_query)).scalar_one()
        result = await session.execute(query)
    except SQLAlchemyError as exc:
        logger.exception("Voter list query failed")
        raise UpstreamStoreError from exc
    return list(result.scalars().all()), total


def household_address(voter: Voter) -> ResidentAddress | None:
    """Read a voter's residence address fields as stored.

    Returns:
        The address, or None when every field is blank.
    """
    address = ResidentAddress(
        street_number=voter.residence_street_number or "",
        pre_direction=voter.residence_pre_direction or "",
        street_name=voter.residence_street_name or "",
        street_type=voter.residence_street_type or "",
        post_direction=voter.residence_post_direction or "",
        apt_unit_number=voter.residence_apt_unit_number or "",
        city=voter.residence_city or "",
        zipcode=voter.residence_zipcode or "",
    )
    return None if address.is_empty else address


async def find_household_members(session: AsyncSession, registration_number: str) -> list[Voter] | None:
    """Find other voters registered at the same residence address.

    Args:
        session: Database session.
        registration_number: The voter whose household is requested.

    Returns:
        Other voters at the address (possibly empty), or None if the voter
        does not exist.

    Raises:
        UpstreamStoreError: If the store fails.
    """
    try:
        result = await session.execute(select(Voter).where(Voter.voter_registration_number == registration_number))
        voter = result.scalar_one_or_none()
        if voter is None:
            return None

        address = household_address(voter)
        # Stored fields may contain commas, so never round-trip through the joined form
        predicate = PredicateCompiler().address_predicate(address) if address is not None else None
        if predicate is None:
            logger.debug("Voter {} has no residence address; no household lookup", registration_number)
            return []

        query = (
            select(Voter)
            .where(predicate, Voter.voter_registration_number != registration_number)
            .order_by(Voter.last_name, Voter.first_name)
        )
        members = await session.execute(query)
    except SQLAlchemyError as exc:
        logger.exception("Household lookup failed for voter {}", registration_number)
        raise UpstreamStoreError from exc
    return list(members.scalars().all())


async def get_map_stats(
    session: AsyncSession,
    spec: FilterSpec,
    bbox: tuple[float, float, float, float],
) -> MapStatsResponse:
    """Average participation score and voter count within a viewport.

    Args:
        session: Database session.
        spec: Filters applied in addition to the viewport.
        bbox: ``(xmin, ymin, xmax, ymax)`` in WGS84 degrees.

    Returns:
        MapStatsResponse with the rounded average score and count.
    """
    predicate = and_(Voter.geom.is_not(None), Voter.geom.intersects(envelope(*bbox)), compile_predicate(spec))
    query = select(func.avg(Voter.participation_score), func.count()).select_from(Voter).where(predicate)
    try:
        row = (await session.execute(query)).one()
    except SQLAlchemyError as exc:
        logger.exception("Map stats query failed")
        raise UpstreamStoreError from exc
    average, count = row
    return MapStatsResponse(
        score=round(float(average), 1) if average is not None else None,
        voter_count=int(count or 0),
    )


async def get_lookup_values(session: AsyncSession, fields: Sequence[str]) -> dict[str, list[str]]:
    """Distinct non-blank values for dropdown fields.

    Args:
        session: Database session.
        fields: Keys of ``LOOKUP_FIELDS``.

    Returns:
        Sorted distinct values per requested field.

    Raises:
        FilterValidationError: If a field is not a lookup field.
        UpstreamStoreError: If the store fails.
    """
    unknown = [f for f in fields if f not in LOOKUP_FIELDS]
    if unknown:
        msg = f"Invalid lookup field: {unknown[0]}"
        raise FilterValidationError(msg, key=unknown[0], allowed=sorted(LOOKUP_FIELDS))

    values: dict[str, list[str]] = {}
    for name in dict.fromkeys(fields):
        column = LOOKUP_FIELDS[name]
        query = select(column).where(column.is_not(None), func.trim(column) != "").distinct().order_by(column)
        try:
            result = await session.execute(query)
        except SQLAlchemyError as exc:
            logger.exception("Lookup query failed for field {}", name)
            raise UpstreamStoreError from exc
        values[name] = [row[0] for row in result.all()]
    return values
