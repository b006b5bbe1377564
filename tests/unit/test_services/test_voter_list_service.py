"""Tests for voter_list_service: filtered listing, households, map stats, and lookups."""

from decimal import Decimal
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.dialects import postgresql
from sqlalchemy.exc import OperationalError

from voter_analytics.lib.query_filters import FilterSpec, FilterValidationError, PredicateCompiler, UpstreamStoreError
from voter_analytics.services.voter_list_service import (
    find_household_members,
    get_lookup_values,
    get_map_stats,
    household_address,
    list_voters,
    parse_bbox,
)


def _sql(statement: Any) -> str:
    return str(statement.compile(dialect=postgresql.dialect()))


def _scalars_result(items: list[Any]) -> MagicMock:
    result = MagicMock()
    result.scalars.return_value.all.return_value = items
    return result


def _count_result(total: int) -> MagicMock:
    result = MagicMock()
    result.scalar_one.return_value = total
    return result


def _voter(**overrides: Any) -> MagicMock:
    voter = MagicMock()
    voter.voter_registration_number = "00012345"
    voter.residence_street_number = "123"
    voter.residence_pre_direction = None
    voter.residence_street_name = "MAIN"
    voter.residence_street_type = "ST"
    voter.residence_post_direction = None
    voter.residence_apt_unit_number = None
    voter.residence_city = "ATLANTA"
    voter.residence_zipcode = "30303"
    for key, value in overrides.items():
        setattr(voter, key, value)
    return voter


class TestParseBbox:
    """Tests for parse_bbox."""

    def test_valid(self) -> None:
        assert parse_bbox("-84.5,33.6,-84.3,33.9") == (-84.5, 33.6, -84.3, 33.9)

    @pytest.mark.parametrize("value", ["1,2,3", "a,b,c,d", "-84.3,33.6,-84.5,33.9", "0,-91,1,0"])
    def test_invalid(self, value: str) -> None:
        with pytest.raises(FilterValidationError) as exc_info:
            parse_bbox(value)
        assert exc_info.value.key == "bbox"


class TestListVoters:
    """Tests for list_voters."""

    @pytest.mark.asyncio
    async def test_returns_page_and_total(self) -> None:
        voters = [_voter(), _voter(voter_registration_number="2")]
        session = AsyncMock()
        session.execute.side_effect = [_count_result(42), _scalars_result(voters)]

        items, total = await list_voters(session, FilterSpec({"county": ["FULTON"]}), page=2, page_size=2)

        assert total == 42
        assert items == voters
        list_sql = _sql(session.execute.await_args_list[1].args[0])
        assert "upper(voter_registrations.county_name) = " in list_sql
        assert "LIMIT" in list_sql
        assert "OFFSET" in list_sql

    @pytest.mark.asyncio
    async def test_sort_descending_by_score(self) -> None:
        session = AsyncMock()
        session.execute.side_effect = [_count_result(0), _scalars_result([])]

        await list_voters(session, FilterSpec(), sort_field="score", sort_direction="desc")

        list_sql = _sql(session.execute.await_args_list[1].args[0])
        assert "ORDER BY voter_registrations.participation_score DESC NULLS LAST" in list_sql

    @pytest.mark.asyncio
    async def test_invalid_sort_field(self) -> None:
        session = AsyncMock()
        with pytest.raises(FilterValidationError) as exc_info:
            await list_voters(session, FilterSpec(), sort_field="shoeSize")
        assert exc_info.value.key == "sortField"
        session.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invalid_sort_direction(self) -> None:
        with pytest.raises(FilterValidationError):
            await list_voters(AsyncMock(), FilterSpec(), sort_direction="sideways")

    @pytest.mark.asyncio
    async def test_store_failure(self) -> None:
        session = AsyncMock()
        session.execute.side_effect = OperationalError("SELECT 1", {}, Exception("down"))
        with pytest.raises(UpstreamStoreError):
            await list_voters(session, FilterSpec())


class TestHousehold:
    """Tests for household lookups."""

    def test_household_address_reads_stored_fields(self) -> None:
        address = household_address(_voter())
        assert address is not None
        assert address.present_fields() == [
            ("street_number", "123"),
            ("street_name", "MAIN"),
            ("street_type", "ST"),
            ("city", "ATLANTA"),
            ("zipcode", "30303"),
        ]

    def test_comma_inside_a_field_still_constrains_the_address(self) -> None:
        address = household_address(_voter(residence_apt_unit_number="A,1"))
        assert address is not None
        assert address.apt_unit_number == "A,1"

        predicate = PredicateCompiler().address_predicate(address)
        assert predicate is not None
        sql = _sql(predicate)
        assert "upper(voter_registrations.residence_apt_unit_number) = " in sql
        assert "voter_registrations.residence_zipcode = " in sql

    def test_household_address_without_address(self) -> None:
        voter = _voter(
            residence_street_number=None,
            residence_street_name=None,
            residence_street_type=None,
            residence_city=None,
            residence_zipcode=None,
        )
        assert household_address(voter) is None

    @pytest.mark.asyncio
    async def test_unknown_voter_returns_none(self) -> None:
        session = AsyncMock()
        lookup = MagicMock()
        lookup.scalar_one_or_none.return_value = None
        session.execute.return_value = lookup

        assert await find_household_members(session, "99999") is None

    @pytest.mark.asyncio
    async def test_members_exclude_the_voter(self) -> None:
        member = _voter(voter_registration_number="00054321")
        lookup = MagicMock()
        lookup.scalar_one_or_none.return_value = _voter()
        session = AsyncMock()
        session.execute.side_effect = [lookup, _scalars_result([member])]

        members = await find_household_members(session, "00012345")

        assert members == [member]
        members_sql = _sql(session.execute.await_args_list[1].args[0])
        assert "voter_registrations.voter_registration_number != " in members_sql
        assert "voter_registrations.residence_zipcode = " in members_sql

    @pytest.mark.asyncio
    async def test_comma_in_apartment_does_not_match_every_voter(self) -> None:
        lookup = MagicMock()
        lookup.scalar_one_or_none.return_value = _voter(residence_apt_unit_number="A,1")
        session = AsyncMock()
        session.execute.side_effect = [lookup, _scalars_result([])]

        assert await find_household_members(session, "00012345") == []

        statement = session.execute.await_args_list[1].args[0]
        assert "residence_apt_unit_number" in _sql(statement)
        assert "A,1" in statement.compile(dialect=postgresql.dialect()).params.values()

    @pytest.mark.asyncio
    async def test_store_failure_raises_upstream_error(self) -> None:
        session = AsyncMock()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("connection reset"))

        with pytest.raises(UpstreamStoreError):
            await find_household_members(session, "00012345")

    @pytest.mark.asyncio
    async def test_voter_without_address_has_no_household(self) -> None:
        lookup = MagicMock()
        lookup.scalar_one_or_none.return_value = _voter(
            residence_street_number=None,
            residence_street_name=None,
            residence_street_type=None,
            residence_city=None,
            residence_zipcode=None,
        )
        session = AsyncMock()
        session.execute.return_value = lookup

        assert await find_household_members(session, "00012345") == []
        session.execute.assert_awaited_once()


class TestMapStats:
    """Tests for get_map_stats."""

    @pytest.mark.asyncio
    async def test_rounds_average(self) -> None:
        result = MagicMock()
        result.one.return_value = (Decimal("6.5432"), 12)
        session = AsyncMock()
        session.execute.return_value = result

        stats = await get_map_stats(session, FilterSpec(), (-84.5, 33.6, -84.3, 33.9))

        assert stats.score == 6.5
        assert stats.voter_count == 12
        assert stats.model_dump(by_alias=True) == {"score": 6.5, "voterCount": 12}
        assert "ST_MakeEnvelope" in _sql(session.execute.await_args.args[0])

    @pytest.mark.asyncio
    async def test_no_voters(self) -> None:
        result = MagicMock()
        result.one.return_value = (None, 0)
        session = AsyncMock()
        session.execute.return_value = result

        stats = await get_map_stats(session, FilterSpec(), (-84.5, 33.6, -84.3, 33.9))

        assert stats.score is None
        assert stats.voter_count == 0


class TestLookupValues:
    """Tests for get_lookup_values."""

    @pytest.mark.asyncio
    async def test_distinct_values_per_field(self) -> None:
        counties = MagicMock()
        counties.all.return_value = [("COBB",), ("FULTON",)]
        statuses = MagicMock()
        statuses.all.return_value = [("A",), ("I",)]
        session = AsyncMock()
        session.execute.side_effect = [counties, statuses]

        values = await get_lookup_values(session, ["county", "status", "county"])

        assert values == {"county": ["COBB", "FULTON"], "status": ["A", "I"]}
        assert session.execute.await_count == 2

    @pytest.mark.asyncio
    async def test_unknown_field(self) -> None:
        with pytest.raises(FilterValidationError, match="Invalid lookup field: ssn"):
            await get_lookup_values(AsyncMock(), ["county", "ssn"])

    @pytest.mark.asyncio
    async def test_store_failure_raises_upstream_error(self) -> None:
        session = AsyncMock()
        session.execute.side_effect = OperationalError("SELECT", {}, Exception("connection reset"))

        with pytest.raises(UpstreamStoreError):
            await get_lookup_values(session, ["county"])
