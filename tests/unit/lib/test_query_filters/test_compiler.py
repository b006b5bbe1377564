"""Unit tests for compiling FilterSpecs into parameterized SQL predicates."""

from typing import Any

import pytest
from sqlalchemy import ColumnElement
from sqlalchemy.dialects import postgresql
from sqlalchemy.orm import aliased

from voter_analytics.lib.query_filters import (
    FilterSpec,
    PredicateCompiler,
    Requirement,
    ResidentAddress,
    compile_fragments,
    compile_predicate,
    render_predicate,
)
from voter_analytics.models.voter import Voter

YEAR = 2024


def _sql(expression: ColumnElement[Any]) -> str:
    return str(expression.compile(dialect=postgresql.dialect()))


def _params(expression: ColumnElement[Any]) -> list[Any]:
    return list(expression.compile(dialect=postgresql.dialect()).params.values())


def _compile(**filters: Any) -> ColumnElement[bool]:
    return compile_predicate(FilterSpec(filters), current_year=YEAR)


class TestExactId:
    """An exact identifier overrides every other dimension."""

    def test_exact_id_alone(self) -> None:
        expression = _compile(exactId=["00012345"])
        assert _sql(expression) == (
            "voter_registrations.voter_registration_number = %(voter_registration_number_1)s"
        )
        assert _params(expression) == ["00012345"]

    def test_other_dimensions_are_ignored(self) -> None:
        alone = _compile(exactId=["00012345"])
        combined = _compile(
            race=["BLACK"],
            county=["FULTON"],
            scoreRange=["power_voter"],
            radiusFilter=["33.749,-84.388,5"],
            exactId=["00012345"],
        )
        assert _sql(combined) == _sql(alone)
        assert _params(combined) == _params(alone)

    def test_single_fragment(self) -> None:
        fragments = compile_fragments(FilterSpec({"race": ["BLACK"], "exactId": ["1"]}))
        assert [f.dimension for f in fragments] == ["exactId"]


class TestEmptySpec:
    """Tests for unconstrained specs."""

    def test_empty_spec_is_true(self) -> None:
        assert _sql(_compile()) == "true"

    def test_render_empty_spec(self) -> None:
        rendered = render_predicate(_compile())
        assert rendered.sql == ""
        assert rendered.params == ()


class TestScalarDimensions:
    """Tests for scalar column dimensions."""

    def test_single_value_is_equality(self) -> None:
        sql = _sql(_compile(county=["FULTON"]))
        assert "upper(voter_registrations.county_name) = " in sql

    def test_multiple_values_are_in(self) -> None:
        expression = _compile(race=["BLACK", "WHITE"])
        assert "upper(voter_registrations.race) IN" in _sql(expression)
        assert _params(expression) == [["BLACK", "WHITE"]]

    def test_race_labels_map_to_stored_values(self) -> None:
        expression = _compile(race=["Hispanic"])
        assert _params(expression) == ["HISPANIC/LATINO"]

    def test_district_is_plain_equality(self) -> None:
        expression = _compile(congressionalDistrict=["05"])
        assert _sql(expression) == "voter_registrations.congressional_district = %(congressional_district_1)s"

    def test_party_targets_last_party_voted(self) -> None:
        assert "last_party_voted" in _sql(_compile(party=["DEMOCRAT"]))

    def test_dimensions_are_anded_in_spec_order(self) -> None:
        sql = _sql(_compile(county=["FULTON"], gender=["F"]))
        assert " AND " in sql
        assert sql.index("county_name") < sql.index("gender")

    def test_values_never_appear_in_sql_text(self) -> None:
        sql = _sql(_compile(lastName=["O'Brien"], county=["FULTON'); DROP TABLE voters; --"]))
        assert "O'BRIEN" not in sql
        assert "DROP TABLE" not in sql


class TestNamePrefix:
    """Tests for name prefix matching."""

    def test_prefix_like(self) -> None:
        expression = _compile(lastName=["smi"])
        assert "upper(voter_registrations.last_name) LIKE" in _sql(expression)
        assert _params(expression) == ["SMI%"]

    def test_wildcards_are_escaped(self) -> None:
        expression = _compile(firstName=["a_b%"])
        assert _params(expression) == ["A\\_B\\%%"]


class TestAge:
    """Tests for age buckets and explicit bounds."""

    def test_age_bucket_birth_years(self) -> None:
        expression = _compile(ageRange=["25-44"])
        sql = _sql(expression)
        assert "voter_registrations.birth_year <= " in sql
        assert "voter_registrations.birth_year >= " in sql
        assert sorted(_params(expression)) == [1980, 1999]

    def test_open_ended_bucket(self) -> None:
        expression = _compile(ageRange=["75+"])
        assert _params(expression) == [1949]

    def test_multiple_buckets_are_ored(self) -> None:
        assert " OR " in _sql(_compile(ageRange=["18-23", "75+"]))

    def test_buckets_take_precedence_over_bounds(self) -> None:
        fragments = compile_fragments(
            FilterSpec({"ageMin": ["30"], "ageRange": ["25-44"], "ageMax": ["40"]}), current_year=YEAR
        )
        assert [f.dimension for f in fragments] == ["ageRange"]

    def test_explicit_bounds(self) -> None:
        expression = _compile(ageMin=["30"], ageMax=["40"])
        assert _params(expression) == [1994, 1984]

    def test_unparseable_bound_is_ignored(self) -> None:
        assert compile_fragments(FilterSpec({"ageMin": ["thirty"]})) == []


class TestScoreRange:
    """Tests for participation score brackets."""

    def test_power_voter_is_inclusive(self) -> None:
        expression = _compile(scoreRange=["Power Voter"])
        assert "voter_registrations.participation_score BETWEEN" in _sql(expression)
        assert _params(expression) == [6.5, 9.9]

    def test_super_power_voter_is_equality(self) -> None:
        expression = _compile(scoreRange=["super_power_voter"])
        assert _sql(expression) == "voter_registrations.participation_score = %(participation_score_1)s"
        assert _params(expression) == [10.0]

    def test_unknown_label_contributes_nothing(self) -> None:
        assert compile_fragments(FilterSpec({"scoreRange": ["legendary"]})) == []


class TestCensusBrackets:
    """Tests for census tract bracket subqueries."""

    def test_income_is_tract_subquery(self) -> None:
        expression = _compile(income=["50k_75k"])
        sql = _sql(expression)
        assert "voter_registrations.census_tract IN (SELECT census_tracts.tract_id" in sql
        assert "census_tracts.median_household_income >= " in sql
        assert "census_tracts.median_household_income < " in sql
        assert _params(expression) == [50_000, 75_000]

    def test_open_ended_income(self) -> None:
        sql = _sql(_compile(income=["over_300k"]))
        assert "median_household_income >= " in sql
        assert "median_household_income < " not in sql

    def test_requires_census(self) -> None:
        fragments = compile_fragments(FilterSpec({"education": ["high_education"]}))
        assert fragments[0].requires == frozenset({Requirement.CENSUS})


class TestDerivedHistory:
    """Tests for the derived participation family."""

    def test_never_voted(self) -> None:
        assert _sql(_compile(neverVoted=["true"])) == "voter_registrations.derived_last_vote_date IS NULL"

    def test_never_voted_false_is_ignored(self) -> None:
        assert compile_fragments(FilterSpec({"neverVoted": ["false"]})) == []

    def test_not_voted_since_includes_never_voted(self) -> None:
        never_sql = _sql(_compile(neverVoted=["true"]))
        since = _compile(notVotedSinceYear=["2020"])
        since_sql = _sql(since)
        # Every never-voted voter also satisfies not-voted-since
        assert never_sql in since_sql
        assert " OR " in since_sql
        assert "voter_registrations.derived_last_vote_date < " in since_sql

    def test_election_year_overlap(self) -> None:
        expression = _compile(electionYear=["2020", "2022"])
        sql = _sql(expression)
        assert "voter_registrations.participated_election_years && " in sql
        assert "INTEGER[]" in sql

    def test_requires_derived_history(self) -> None:
        fragments = compile_fragments(FilterSpec({"electionYear": ["2020"]}))
        assert fragments[0].requires == frozenset({Requirement.DERIVED_HISTORY})


class TestVotingEvents:
    """Tests for the live JSONB event family."""

    def test_election_type_containment(self) -> None:
        expression = _compile(electionType=["general"])
        assert "voter_registrations.voting_events @> " in _sql(expression)
        assert _params(expression) == [[{"election_type": "GENERAL"}]]

    def test_event_party_is_upper_cased(self) -> None:
        expression = _compile(eventParty=["Democrat"])
        assert _params(expression) == [[{"party": "DEMOCRAT"}]]

    def test_ballot_style_keeps_value(self) -> None:
        expression = _compile(ballotStyle=["Mail-in"])
        assert _params(expression) == [[{"ballot_style": "Mail-in"}]]

    def test_voter_event_method_flag(self) -> None:
        expression = _compile(voterEventMethod=["Absentee", "bogus"])
        assert _params(expression) == [[{"absentee": "Y"}]]

    def test_election_date_turned_out(self) -> None:
        expression = _compile(electionDate=["2024-11-05"])
        assert _params(expression) == [[{"election_date": "2024-11-05"}]]
        assert "NOT" not in _sql(expression)

    def test_election_date_sat_out_includes_voters_without_events(self) -> None:
        sql = _sql(_compile(electionDate=["2024-11-05"], electionParticipation=["satOut"]))
        assert "voter_registrations.voting_events IS NULL OR NOT" in sql

    def test_requires_voting_events(self) -> None:
        fragments = compile_fragments(FilterSpec({"electionType": ["GENERAL"]}))
        assert fragments[0].requires == frozenset({Requirement.VOTING_EVENTS})


class TestResidentAddress:
    """Tests for composite address matching."""

    def test_only_present_fields_are_constrained(self) -> None:
        expression = _compile(residentAddress=["123,,MAIN,,,,,30303"])
        sql = _sql(expression)
        assert "voter_registrations.residence_street_number = " in sql
        assert "upper(voter_registrations.residence_street_name) LIKE" in sql
        assert "voter_registrations.residence_zipcode = " in sql
        assert "residence_city" not in sql
        assert "residence_pre_direction" not in sql
        assert _params(expression) == ["123", "MAIN%", "30303"]

    def test_empty_and_missing_fields_are_equivalent(self) -> None:
        with_blanks = _compile(residentAddress=["123, ,MAIN,,,,,30303"])
        without = _compile(residentAddress=["123,,MAIN,,,,,30303"])
        assert _sql(with_blanks) == _sql(without)

    def test_wrong_field_count_is_ignored(self) -> None:
        assert compile_fragments(FilterSpec({"residentAddress": ["123,MAIN"]})) == []

    def test_address_predicate_keeps_commas_inside_fields(self) -> None:
        address = ResidentAddress(street_number="12", apt_unit_number="A,1", zipcode="30303")
        expression = PredicateCompiler(current_year=YEAR).address_predicate(address)
        assert expression is not None
        assert "upper(voter_registrations.residence_apt_unit_number) = " in _sql(expression)
        assert _params(expression) == ["12", "A,1", "30303"]

    def test_address_predicate_for_blank_address(self) -> None:
        assert PredicateCompiler().address_predicate(ResidentAddress()) is None


class TestRedistricting:
    """Tests for redistricting flags."""

    def test_any_checks_every_flag(self) -> None:
        sql = _sql(_compile(redistrictingAffected=["any"]))
        assert "redistricting_cong_affected IS true" in sql
        assert "redistricting_senate_affected IS true" in sql
        assert "redistricting_house_affected IS true" in sql

    def test_named_flag(self) -> None:
        sql = _sql(_compile(redistrictingAffected=["senate"]))
        assert sql == "voter_registrations.redistricting_senate_affected IS true"


class TestRadius:
    """Tests for the spatial radius dimension."""

    def test_two_stage_predicate(self) -> None:
        sql = _sql(_compile(radiusFilter=["33.749,-84.388,5"]))
        assert "voter_registrations.geom IS NOT NULL" in sql
        assert "ST_MakeEnvelope" in sql
        assert "ST_DWithin" in sql

    def test_requires_spatial(self) -> None:
        fragments = compile_fragments(FilterSpec({"radiusFilter": ["33.749,-84.388,5"]}))
        assert fragments[0].requires == frozenset({Requirement.SPATIAL})

    @pytest.mark.parametrize("value", ["33.749,-84.388", "abc,def,1", "95,0,1", "33.7,-84.3,-2"])
    def test_invalid_radius_is_ignored(self, value: str) -> None:
        assert compile_fragments(FilterSpec({"radiusFilter": [value]})) == []


class TestAliasedVoter:
    """Predicates compile against an alias of the voter table."""

    def test_alias_prefix(self) -> None:
        voter = aliased(Voter, name="v")
        expression = PredicateCompiler(voter, YEAR).compile(FilterSpec({"county": ["FULTON"]}))
        assert "upper(v.county_name)" in _sql(expression)


class TestRenderPredicate:
    """Tests for positional rendering for raw drivers."""

    def test_positional_placeholders(self) -> None:
        rendered = render_predicate(_compile(county=["FULTON"], gender=["F"]))
        assert "$1" in rendered.sql
        assert "$2" in rendered.sql
        assert "FULTON" not in rendered.sql
        assert rendered.params == ("FULTON", "F")

    def test_in_list_is_expanded(self) -> None:
        rendered = render_predicate(_compile(race=["BLACK", "WHITE"]))
        assert "$1" in rendered.sql
        assert "$2" in rendered.sql
        assert rendered.params == ("BLACK", "WHITE")
