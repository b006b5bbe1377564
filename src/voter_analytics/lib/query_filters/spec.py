"""FilterSpec: the normalized, immutable filter description handed to the compiler.

A FilterSpec maps a dimension name to a non-empty tuple of selected values.
Values within a dimension are ORed; dimensions are ANDed.  Dimension order
is the order of first appearance and is preserved by every derived spec.
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import astuple, dataclass, fields
from enum import StrEnum


class Dimension(StrEnum):
    """Filter dimension names accepted from callers."""

    EXACT_ID = "exactId"
    COUNTY = "county"
    CONGRESSIONAL_DISTRICT = "congressionalDistrict"
    STATE_SENATE_DISTRICT = "stateSenateDistrict"
    STATE_HOUSE_DISTRICT = "stateHouseDistrict"
    COUNTY_PRECINCT = "countyPrecinct"
    MUNICIPAL_PRECINCT = "municipalPrecinct"
    STATUS = "status"
    STATUS_REASON = "statusReason"
    PARTY = "party"
    FIRST_NAME = "firstName"
    LAST_NAME = "lastName"
    AGE_MIN = "ageMin"
    AGE_MAX = "ageMax"
    AGE_RANGE = "ageRange"
    GENDER = "gender"
    RACE = "race"
    SCORE_RANGE = "scoreRange"
    INCOME = "income"
    EDUCATION = "education"
    UNEMPLOYMENT = "unemployment"
    NEVER_VOTED = "neverVoted"
    NOT_VOTED_SINCE_YEAR = "notVotedSinceYear"
    ELECTION_TYPE = "electionType"
    ELECTION_YEAR = "electionYear"
    ELECTION_DATE = "electionDate"
    ELECTION_PARTICIPATION = "electionParticipation"
    BALLOT_STYLE = "ballotStyle"
    EVENT_PARTY = "eventParty"
    VOTER_EVENT_METHOD = "voterEventMethod"
    RESIDENT_ADDRESS = "residentAddress"
    REDISTRICTING_AFFECTED = "redistrictingAffected"
    RADIUS_FILTER = "radiusFilter"


ALL_DIMENSIONS: frozenset[str] = frozenset(d.value for d in Dimension)

# Persisted upper-cased in the voter file, so normalized on the way in
UPPERCASE_DIMENSIONS: frozenset[str] = frozenset(
    {
        Dimension.COUNTY,
        Dimension.PARTY,
        Dimension.STATUS,
        Dimension.STATUS_REASON,
        Dimension.RACE,
        Dimension.GENDER,
        Dimension.EVENT_PARTY,
        Dimension.ELECTION_TYPE,
    }
)

# Dimensions whose values may be crossed into chart combinations
COMBINABLE_DIMENSIONS: tuple[str, ...] = (
    Dimension.COUNTY,
    Dimension.CONGRESSIONAL_DISTRICT,
    Dimension.STATE_SENATE_DISTRICT,
    Dimension.STATE_HOUSE_DISTRICT,
    Dimension.STATUS,
    Dimension.STATUS_REASON,
    Dimension.EVENT_PARTY,
    Dimension.AGE_RANGE,
    Dimension.GENDER,
    Dimension.RACE,
    Dimension.ELECTION_TYPE,
    Dimension.BALLOT_STYLE,
)


class FilterSpec(Mapping[str, tuple[str, ...]]):
    """Immutable ordered mapping of dimension name to selected values.

    Dimensions with no values are dropped on construction, so ``name in spec``
    always means the dimension constrains the query.
    """

    __slots__ = ("_items",)

    def __init__(self, items: Mapping[str, Iterable[str]] | Iterable[tuple[str, Iterable[str]]] = ()) -> None:
        pairs = items.items() if isinstance(items, Mapping) else items
        store: dict[str, tuple[str, ...]] = {}
        for name, values in pairs:
            selected = (values,) if isinstance(values, str) else tuple(values)
            if selected:
                store[name] = store.get(name, ()) + selected
        self._items = store

    def __getitem__(self, name: str) -> tuple[str, ...]:
        return self._items[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._items)

    def __len__(self) -> int:
        return len(self._items)

    def __repr__(self) -> str:
        return f"FilterSpec({self._items!r})"

    def first(self, name: str) -> str | None:
        """Return the first selected value of a dimension, or None."""
        values = self._items.get(name)
        return values[0] if values else None

    @property
    def exact_id(self) -> str | None:
        """The exact registration identifier, when one was supplied."""
        value = self.first(Dimension.EXACT_ID)
        if value is None or not value.strip():
            return None
        return value.strip()

    def restrict(self, names: Iterable[str]) -> "FilterSpec":
        """Return a spec holding only the named dimensions, in this spec's order."""
        wanted = set(names)
        return FilterSpec((name, values) for name, values in self._items.items() if name in wanted)

    def without(self, *names: str) -> "FilterSpec":
        """Return a spec with the named dimensions removed."""
        return FilterSpec((name, values) for name, values in self._items.items() if name not in names)

    def merge(self, override: Mapping[str, Iterable[str]]) -> "FilterSpec":
        """Return a spec where each dimension of ``override`` replaces this spec's values.

        Args:
            override: Dimensions to set.  Existing dimensions keep their
                position; new ones are appended in ``override`` order.

        Returns:
            The merged spec.
        """
        merged: dict[str, tuple[str, ...]] = dict(self._items)
        for name, values in override.items():
            merged[name] = (values,) if isinstance(values, str) else tuple(values)
        return FilterSpec(merged)

    def to_dict(self) -> dict[str, list[str]]:
        """Return a JSON-friendly copy."""
        return {name: list(values) for name, values in self._items.items()}


@dataclass(frozen=True)
class ResidentAddress:
    """Residence address composite split from its 8-field comma-joined form.

    Empty fields are stored as empty strings and contribute nothing to a
    predicate; a field that is blank and one that is missing are equivalent.
    """

    street_number: str = ""
    pre_direction: str = ""
    street_name: str = ""
    street_type: str = ""
    post_direction: str = ""
    apt_unit_number: str = ""
    city: str = ""
    zipcode: str = ""

    FIELD_COUNT = 8

    @classmethod
    def parse(cls, value: str) -> "ResidentAddress | None":
        """Split a comma-joined address into its positional fields.

        Args:
            value: ``"num,pre,name,type,post,apt,city,zip"``.

        Returns:
            The parsed address, or None when the field count is not 8.
        """
        parts = value.split(",")
        if len(parts) != cls.FIELD_COUNT:
            return None
        return cls(*(part.strip() for part in parts))

    @property
    def is_empty(self) -> bool:
        """True when every field is blank."""
        return not any(astuple(self))

    def present_fields(self) -> list[tuple[str, str]]:
        """Return ``(field_name, value)`` pairs for the non-empty fields, in positional order."""
        return [(f.name, getattr(self, f.name)) for f in fields(self) if getattr(self, f.name)]

    def to_param(self) -> str:
        """Return the comma-joined parameter form."""
        return ",".join(astuple(self))
