"""Static bracket tables that translate a selected label into a numeric range.

Tables are ordered tuples built at import time and never mutated.  Labels
are matched case-insensitively against either the bracket key (the value a
client sends) or its display label.
"""

from dataclasses import dataclass


@dataclass(frozen=True)
class NumericBracket:
    """A named numeric range.

    ``maximum=None`` marks an open-ended top bracket.  ``closed`` makes the
    upper bound inclusive; otherwise the bracket is half-open ``[min, max)``.
    """

    key: str
    label: str
    minimum: float
    maximum: float | None
    closed: bool = False

    def matches(self, value: str) -> bool:
        """Return True if ``value`` names this bracket by key or label."""
        folded = value.strip().casefold()
        return folded in (self.key.casefold(), self.label.casefold())

    def contains(self, value: float) -> bool:
        """Return True if ``value`` falls inside the bracket bounds."""
        if value < self.minimum:
            return False
        if self.maximum is None:
            return True
        return value <= self.maximum if self.closed else value < self.maximum


@dataclass(frozen=True)
class AgeBucket:
    """A named age range converted to birth years relative to a calendar year."""

    key: str
    min_age: int
    max_age: int | None

    def birth_year_bounds(self, current_year: int) -> tuple[int | None, int]:
        """Return ``(earliest, latest)`` birth years for the bucket.

        Args:
            current_year: The calendar year ages are measured against.

        Returns:
            Tuple of the earliest birth year (None when open-ended) and the
            latest birth year, both inclusive.
        """
        latest = current_year - self.min_age
        earliest = None if self.max_age is None else current_year - self.max_age
        return earliest, latest


# Participation score buckets; the top bucket is the single value 10.0
SCORE_RANGES: tuple[NumericBracket, ...] = (
    NumericBracket("needs_attention", "Needs Attention", 1.0, 2.9, closed=True),
    NumericBracket("needs_review", "Needs Review", 3.0, 4.9, closed=True),
    NumericBracket("participates", "Participates", 5.0, 6.4, closed=True),
    NumericBracket("power_voter", "Power Voter", 6.5, 9.9, closed=True),
    NumericBracket("super_power_voter", "Super Power Voter", 10.0, 10.0, closed=True),
)

# Census tract median household income (USD)
INCOME_BRACKETS: tuple[NumericBracket, ...] = (
    NumericBracket("under_25k", "Under $25,000", 0, 25_000),
    NumericBracket("25k_50k", "$25,000 - $50,000", 25_000, 50_000),
    NumericBracket("50k_75k", "$50,000 - $75,000", 50_000, 75_000),
    NumericBracket("75k_100k", "$75,000 - $100,000", 75_000, 100_000),
    NumericBracket("100k_150k", "$100,000 - $150,000", 100_000, 150_000),
    NumericBracket("150k_200k", "$150,000 - $200,000", 150_000, 200_000),
    NumericBracket("200k_300k", "$200,000 - $300,000", 200_000, 300_000),
    NumericBracket("over_300k", "Over $300,000", 300_000, None),
)

# Census tract percent of adults with a bachelor's degree or higher
EDUCATION_BRACKETS: tuple[NumericBracket, ...] = (
    NumericBracket("very_low_education", "Very Low (0-20%)", 0, 20),
    NumericBracket("low_education", "Low (20-35%)", 20, 35),
    NumericBracket("moderate_education", "Moderate (35-50%)", 35, 50),
    NumericBracket("high_education", "High (50-65%)", 50, 65),
    NumericBracket("very_high_education", "Very High (65-80%)", 65, 80),
    NumericBracket("extremely_high_education", "Extremely High (80-100%)", 80, 100),
)

# Census tract unemployment rate (percent)
UNEMPLOYMENT_BRACKETS: tuple[NumericBracket, ...] = (
    NumericBracket("very_low_unemployment", "Very Low (0-2%)", 0, 2),
    NumericBracket("low_unemployment", "Low (2-4%)", 2, 4),
    NumericBracket("moderate_unemployment", "Moderate (4-6%)", 4, 6),
    NumericBracket("above_avg_unemployment", "Above Average (6-8%)", 6, 8),
    NumericBracket("high_unemployment", "High (8-10%)", 8, 10),
    NumericBracket("very_high_unemployment", "Very High (10-15%)", 10, 15),
    NumericBracket("extremely_high_unemployment", "Extremely High (15%+)", 15, 100),
)

AGE_BUCKETS: tuple[AgeBucket, ...] = (
    AgeBucket("18-23", 18, 23),
    AgeBucket("25-44", 25, 44),
    AgeBucket("45-64", 45, 64),
    AgeBucket("65-74", 65, 74),
    AgeBucket("75+", 75, None),
)

# Race label as selected by a client -> value persisted in the voter file
RACE_VALUES: dict[str, str] = {
    "WHITE": "WHITE",
    "BLACK": "BLACK",
    "HISPANIC": "HISPANIC/LATINO",
    "ASIAN": "ASIAN/PACIFIC ISLANDER",
    "OTHER": "OTHER",
}


def find_bracket(table: tuple[NumericBracket, ...], value: str) -> NumericBracket | None:
    """Look up a bracket by key or label.

    Args:
        table: One of the bracket tables in this module.
        value: The selected key or display label.

    Returns:
        The matching bracket, or None when nothing matches.
    """
    for bracket in table:
        if bracket.matches(value):
            return bracket
    return None


def find_age_bucket(value: str) -> AgeBucket | None:
    """Look up an age bucket by its key (e.g. ``"25-44"``)."""
    key = value.strip()
    for bucket in AGE_BUCKETS:
        if bucket.key == key:
            return bucket
    return None


def race_store_value(value: str) -> str:
    """Map a race label to the upper-cased value stored in the voter file."""
    folded = value.strip().upper()
    return RACE_VALUES.get(folded, folded)
