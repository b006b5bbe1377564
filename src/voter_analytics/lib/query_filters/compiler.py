"""Predicate compiler: FilterSpec to a single parameterized boolean expression.

Each constrained dimension compiles to one PredicateFragment; fragments are
ANDed.  Every literal travels as a bound parameter.  Voting history is
queried through two deliberately separate families:

* live event containment on the ``voting_events`` JSONB array
  (``voting_events @> '[{"field": value}]'``), and
* derived summaries maintained by batch jobs
  (``participated_election_years``, ``derived_last_vote_date``).
"""

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import date
from enum import StrEnum
from typing import Any

from loguru import logger
from sqlalchemy import ColumnElement, Integer, and_, case, cast, func, not_, or_, select, true
from sqlalchemy.dialects.postgresql import ARRAY, array
from sqlalchemy.dialects.postgresql.asyncpg import PGDialect_asyncpg
from sqlalchemy.sql.elements import True_

from voter_analytics.lib.query_filters.brackets import (
    AGE_BUCKETS,
    EDUCATION_BRACKETS,
    INCOME_BRACKETS,
    SCORE_RANGES,
    UNEMPLOYMENT_BRACKETS,
    NumericBracket,
    find_age_bucket,
    find_bracket,
    race_store_value,
)
from voter_analytics.lib.query_filters.extractor import parse_int
from voter_analytics.lib.query_filters.spatial import RadiusFilter, radius_predicate
from voter_analytics.lib.query_filters.spec import Dimension, FilterSpec, ResidentAddress
from voter_analytics.models.census_tract import CensusTract
from voter_analytics.models.voter import Voter

_RENDER_DIALECT = PGDialect_asyncpg()

Handler = Callable[[FilterSpec, tuple[str, ...]], ColumnElement[bool] | None]


class Requirement(StrEnum):
    """Non-scalar sources a fragment reads."""

    CENSUS = "census"
    SPATIAL = "spatial"
    VOTING_EVENTS = "voting_events"
    DERIVED_HISTORY = "derived_history"


_REQUIREMENTS: dict[str, frozenset[Requirement]] = {
    Dimension.INCOME: frozenset({Requirement.CENSUS}),
    Dimension.EDUCATION: frozenset({Requirement.CENSUS}),
    Dimension.UNEMPLOYMENT: frozenset({Requirement.CENSUS}),
    Dimension.RADIUS_FILTER: frozenset({Requirement.SPATIAL}),
    Dimension.ELECTION_TYPE: frozenset({Requirement.VOTING_EVENTS}),
    Dimension.BALLOT_STYLE: frozenset({Requirement.VOTING_EVENTS}),
    Dimension.EVENT_PARTY: frozenset({Requirement.VOTING_EVENTS}),
    Dimension.VOTER_EVENT_METHOD: frozenset({Requirement.VOTING_EVENTS}),
    Dimension.ELECTION_DATE: frozenset({Requirement.VOTING_EVENTS}),
    Dimension.ELECTION_YEAR: frozenset({Requirement.DERIVED_HISTORY}),
    Dimension.NEVER_VOTED: frozenset({Requirement.DERIVED_HISTORY}),
    Dimension.NOT_VOTED_SINCE_YEAR: frozenset({Requirement.DERIVED_HISTORY}),
}

_EVENT_METHODS = ("absentee", "provisional", "supplemental")

_REDISTRICTING_FLAGS = {
    "congressional": "redistricting_cong_affected",
    "congress": "redistricting_cong_affected",
    "senate": "redistricting_senate_affected",
    "house": "redistricting_house_affected",
}


@dataclass(frozen=True)
class PredicateFragment:
    """One dimension's compiled boolean expression."""

    dimension: str
    expression: ColumnElement[bool]
    requires: frozenset[Requirement] = field(default_factory=frozenset)


@dataclass(frozen=True)
class RenderedPredicate:
    """A predicate rendered to PostgreSQL text with ``$n`` placeholders.

    An empty ``sql`` means the predicate is always true.
    """

    sql: str
    params: tuple[Any, ...] = ()


def _match(column: ColumnElement, values: Sequence[Any]) -> ColumnElement[bool]:
    """Equality for one value, IN for several."""
    if len(values) == 1:
        return column == values[0]
    return column.in_(list(values))


def _upper_match(column: ColumnElement, values: Sequence[str]) -> ColumnElement[bool]:
    return _match(func.upper(column), list(dict.fromkeys(v.upper() for v in values)))


def _escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _prefix_match(column: ColumnElement, value: str) -> ColumnElement[bool]:
    """Case-insensitive left-anchored prefix match."""
    return func.upper(column).like(f"{_escape_like(value.upper())}%", escape="\\")


def _any_of(clauses: Sequence[ColumnElement[bool]]) -> ColumnElement[bool] | None:
    if not clauses:
        return None
    if len(clauses) == 1:
        return clauses[0]
    return or_(*clauses)


def bracket_predicate(column: ColumnElement, bracket: NumericBracket) -> ColumnElement[bool]:
    """Compile a numeric bracket against a column.

    Closed brackets with equal bounds become equality, other closed brackets
    an inclusive BETWEEN, and half-open brackets ``>= min AND < max`` (or
    just ``>= min`` when open-ended).
    """
    if bracket.maximum is None:
        return column >= bracket.minimum
    if bracket.closed:
        if bracket.minimum == bracket.maximum:
            return column == bracket.minimum
        return column.between(bracket.minimum, bracket.maximum)
    return and_(column >= bracket.minimum, column < bracket.maximum)


def event_contains(voter: Any, event_field: str, value: str) -> ColumnElement[bool]:
    """Live history: some entry of ``voting_events`` has ``event_field = value``."""
    return voter.voting_events.contains([{event_field: value}])


def participated_in_any_year(voter: Any, years: Sequence[int]) -> ColumnElement[bool]:
    """Derived history: ``participated_election_years && ARRAY[years]::INTEGER[]``."""
    return voter.participated_election_years.overlap(cast(array(list(years)), ARRAY(Integer)))


def age_bucket_case(voter: Any = None, current_year: int | None = None) -> ColumnElement[str | None]:
    """CASE expression labelling each voter with its age bucket key (NULL when none applies)."""
    voter = voter if voter is not None else Voter
    year = current_year or date.today().year
    whens = []
    for bucket in AGE_BUCKETS:
        earliest, latest = bucket.birth_year_bounds(year)
        condition = voter.birth_year <= latest
        if earliest is not None:
            condition = and_(condition, voter.birth_year >= earliest)
        whens.append((condition, bucket.key))
    return case(*whens, else_=None)


def score_bucket_case(voter: Any = None) -> ColumnElement[str | None]:
    """CASE expression labelling each voter with its participation score bucket label."""
    voter = voter if voter is not None else Voter
    whens = [(bracket_predicate(voter.participation_score, b), b.label) for b in SCORE_RANGES]
    return case(*whens, else_=None)


class PredicateCompiler:
    """Compile FilterSpecs against the voter table or an alias of it.

    Args:
        voter: The ``Voter`` entity or an ``aliased(Voter)``; columns render
            with that alias as prefix.
        current_year: Calendar year used for age computations.  Defaults
            to the current year at construction.
    """

    def __init__(self, voter: Any = None, current_year: int | None = None) -> None:
        self.voter = voter if voter is not None else Voter
        self.current_year = current_year or date.today().year
        self._handlers: dict[str, Handler] = {
            Dimension.COUNTY: self._folded("county_name"),
            Dimension.CONGRESSIONAL_DISTRICT: self._plain("congressional_district"),
            Dimension.STATE_SENATE_DISTRICT: self._plain("state_senate_district"),
            Dimension.STATE_HOUSE_DISTRICT: self._plain("state_house_district"),
            Dimension.COUNTY_PRECINCT: self._folded("county_precinct"),
            Dimension.MUNICIPAL_PRECINCT: self._folded("municipal_precinct"),
            Dimension.STATUS: self._folded("status"),
            Dimension.STATUS_REASON: self._folded("status_reason"),
            Dimension.PARTY: self._folded("last_party_voted"),
            Dimension.GENDER: self._folded("gender"),
            Dimension.RACE: self._race,
            Dimension.FIRST_NAME: self._name_prefix("first_name"),
            Dimension.LAST_NAME: self._name_prefix("last_name"),
            Dimension.AGE_RANGE: self._age_range,
            Dimension.AGE_MIN: self._age_bound(minimum=True),
            Dimension.AGE_MAX: self._age_bound(minimum=False),
            Dimension.SCORE_RANGE: self._score_range,
            Dimension.INCOME: self._census("median_household_income", INCOME_BRACKETS),
            Dimension.EDUCATION: self._census("pct_bachelors_degree_or_higher", EDUCATION_BRACKETS),
            Dimension.UNEMPLOYMENT: self._census("unemployment_rate", UNEMPLOYMENT_BRACKETS),
            Dimension.NEVER_VOTED: self._never_voted,
            Dimension.NOT_VOTED_SINCE_YEAR: self._not_voted_since,
            Dimension.ELECTION_YEAR: self._election_year,
            Dimension.ELECTION_TYPE: self._event_field("election_type", upper=True),
            Dimension.BALLOT_STYLE: self._event_field("ballot_style"),
            Dimension.EVENT_PARTY: self._event_field("party", upper=True),
            Dimension.VOTER_EVENT_METHOD: self._event_method,
            Dimension.ELECTION_DATE: self._election_date,
            Dimension.RESIDENT_ADDRESS: self._resident_address,
            Dimension.REDISTRICTING_AFFECTED: self._redistricting,
            Dimension.RADIUS_FILTER: self._radius,
        }

    def compile_fragments(self, spec: FilterSpec) -> list[PredicateFragment]:
        """Compile every constrained dimension, in spec order.

        Args:
            spec: The filter spec.

        Returns:
            One fragment per dimension that produced a predicate.  When an
            exact identifier is present, only its fragment is returned.
        """
        exact_id = spec.exact_id
        if exact_id is not None:
            return [PredicateFragment(Dimension.EXACT_ID, self.voter.voter_registration_number == exact_id)]

        fragments: list[PredicateFragment] = []
        for name, values in spec.items():
            handler = self._handlers.get(name)
            if handler is None:
                continue
            expression = handler(spec, values)
            if expression is not None:
                fragments.append(PredicateFragment(name, expression, _REQUIREMENTS.get(name, frozenset())))
        return fragments

    def compile(self, spec: FilterSpec) -> ColumnElement[bool]:
        """Compile a spec into one expression; ``true()`` when unconstrained."""
        fragments = self.compile_fragments(spec)
        if not fragments:
            return true()
        if len(fragments) == 1:
            return fragments[0].expression
        return and_(*(f.expression for f in fragments))

    # Scalar columns

    def _plain(self, column: str) -> Handler:
        return lambda spec, values: _match(getattr(self.voter, column), values)

    def _folded(self, column: str) -> Handler:
        return lambda spec, values: _upper_match(getattr(self.voter, column), values)

    def _name_prefix(self, column: str) -> Handler:
        return lambda spec, values: _prefix_match(getattr(self.voter, column), values[0])

    def _race(self, spec: FilterSpec, values: tuple[str, ...]) -> ColumnElement[bool]:
        return _upper_match(self.voter.race, [race_store_value(v) for v in values])

    # Age

    def _age_range(self, spec: FilterSpec, values: tuple[str, ...]) -> ColumnElement[bool] | None:
        clauses = []
        for value in values:
            bucket = find_age_bucket(value)
            if bucket is None:
                continue
            earliest, latest = bucket.birth_year_bounds(self.current_year)
            if earliest is None:
                clauses.append(self.voter.birth_year <= latest)
            else:
                clauses.append(and_(self.voter.birth_year <= latest, self.voter.birth_year >= earliest))
        return _any_of(clauses)

    def _age_bound(self, *, minimum: bool) -> Handler:
        def handler(spec: FilterSpec, values: tuple[str, ...]) -> ColumnElement[bool] | None:
            # Named buckets take precedence over explicit bounds
            if Dimension.AGE_RANGE in spec:
                return None
            age = parse_int(values[0])
            if age is None:
                return None
            birth_year = self.current_year - age
            return self.voter.birth_year <= birth_year if minimum else self.voter.birth_year >= birth_year

        return handler

    # Brackets

    def _score_range(self, spec: FilterSpec, values: tuple[str, ...]) -> ColumnElement[bool] | None:
        brackets = [b for b in (find_bracket(SCORE_RANGES, v) for v in values) if b is not None]
        return _any_of([bracket_predicate(self.voter.participation_score, b) for b in brackets])

    def _census(self, stat: str, table: tuple[NumericBracket, ...]) -> Handler:
        def handler(spec: FilterSpec, values: tuple[str, ...]) -> ColumnElement[bool] | None:
            clauses = []
            for value in values:
                bracket = find_bracket(table, value)
                if bracket is None:
                    continue
                tracts = select(CensusTract.tract_id).where(bracket_predicate(getattr(CensusTract, stat), bracket))
                clauses.append(self.voter.census_tract.in_(tracts))
            return _any_of(clauses)

        return handler

    # Derived participation history

    def _never_voted(self, spec: FilterSpec, values: tuple[str, ...]) -> ColumnElement[bool] | None:
        if values[0].strip().lower() != "true":
            return None
        return self.voter.derived_last_vote_date.is_(None)

    def _not_voted_since(self, spec: FilterSpec, values: tuple[str, ...]) -> ColumnElement[bool] | None:
        year = parse_int(values[0])
        if year is None or not (1 <= year <= 9999):
            return None
        column = self.voter.derived_last_vote_date
        return or_(column.is_(None), column < date(year, 1, 1))

    def _election_year(self, spec: FilterSpec, values: tuple[str, ...]) -> ColumnElement[bool] | None:
        years = [y for y in (parse_int(v) for v in values) if y is not None]
        if not years:
            return None
        return participated_in_any_year(self.voter, years)

    # Live voting events

    def _event_field(self, event_field: str, *, upper: bool = False) -> Handler:
        def handler(spec: FilterSpec, values: tuple[str, ...]) -> ColumnElement[bool] | None:
            return _any_of([event_contains(self.voter, event_field, v.upper() if upper else v) for v in values])

        return handler

    def _event_method(self, spec: FilterSpec, values: tuple[str, ...]) -> ColumnElement[bool] | None:
        methods = [m for m in dict.fromkeys(v.strip().lower() for v in values) if m in _EVENT_METHODS]
        return _any_of([event_contains(self.voter, m, "Y") for m in methods])

    def _election_date(self, spec: FilterSpec, values: tuple[str, ...]) -> ColumnElement[bool] | None:
        expression = _any_of([event_contains(self.voter, "election_date", v) for v in values])
        if expression is None:
            return None
        participation = (spec.first(Dimension.ELECTION_PARTICIPATION) or "turnedOut").strip().lower()
        if participation == "satout":
            # A voter with no recorded events also sat the election out
            return or_(self.voter.voting_events.is_(None), not_(expression))
        return expression

    # Composites

    def address_predicate(self, address: ResidentAddress) -> ColumnElement[bool] | None:
        """AND of the address's non-empty fields; None when every field is blank."""
        if address.is_empty:
            return None
        return and_(*(self._address_field(name, part) for name, part in address.present_fields()))

    def _resident_address(self, spec: FilterSpec, values: tuple[str, ...]) -> ColumnElement[bool] | None:
        clauses = []
        for value in values:
            address = ResidentAddress.parse(value)
            if address is None:
                continue
            clause = self.address_predicate(address)
            if clause is not None:
                clauses.append(clause)
        return _any_of(clauses)

    def _address_field(self, name: str, value: str) -> ColumnElement[bool]:
        column = getattr(self.voter, f"residence_{name}")
        if name == "street_name":
            return _prefix_match(column, value)
        if name in ("street_number", "zipcode"):
            return column == value
        return func.upper(column) == value.upper()

    def _redistricting(self, spec: FilterSpec, values: tuple[str, ...]) -> ColumnElement[bool] | None:
        selected = [v.strip().lower() for v in values]
        if "any" in selected:
            columns = list(dict.fromkeys(_REDISTRICTING_FLAGS.values()))
        else:
            columns = list(dict.fromkeys(_REDISTRICTING_FLAGS[v] for v in selected if v in _REDISTRICTING_FLAGS))
        return _any_of([getattr(self.voter, c).is_(True) for c in columns])

    def _radius(self, spec: FilterSpec, values: tuple[str, ...]) -> ColumnElement[bool] | None:
        try:
            radius = RadiusFilter.parse(values[0])
        except ValueError as exc:
            logger.debug("Ignoring radius filter {!r}: {}", values[0], exc)
            return None
        return radius_predicate(self.voter.geom, radius)


def compile_fragments(
    spec: FilterSpec, voter: Any = None, *, current_year: int | None = None
) -> list[PredicateFragment]:
    """Compile a spec into per-dimension fragments.  See :class:`PredicateCompiler`."""
    return PredicateCompiler(voter, current_year).compile_fragments(spec)


def compile_predicate(spec: FilterSpec, voter: Any = None, *, current_year: int | None = None) -> ColumnElement[bool]:
    """Compile a spec into one boolean expression.

    Args:
        spec: The filter spec.
        voter: Optional ``aliased(Voter)`` used as the column prefix.
        current_year: Calendar year for age computations.

    Returns:
        The ANDed predicate, or ``true()`` when the spec constrains nothing.
    """
    return PredicateCompiler(voter, current_year).compile(spec)


def render_predicate(expression: ColumnElement[bool]) -> RenderedPredicate:
    """Render an expression for a raw PostgreSQL driver.

    Args:
        expression: A compiled predicate.

    Returns:
        SQL text with ``$1..$n`` placeholders and the values in placeholder
        order, or an empty RenderedPredicate for an always-true expression.
    """
    if isinstance(expression, True_):
        return RenderedPredicate("")
    compiled = expression.compile(dialect=_RENDER_DIALECT, compile_kwargs={"render_postcompile": True})
    params = compiled.params
    return RenderedPredicate(str(compiled), tuple(params[name] for name in compiled.positiontup or ()))
