"""Cartesian-product generation of single-valued filter combinations."""

import re
from collections.abc import Iterable, Iterator
from dataclasses import dataclass

from voter_analytics.lib.query_filters.spec import Dimension, FilterSpec

_CAMEL_BOUNDARY = re.compile(r"(?<!^)(?=[A-Z])")


def format_dimension_name(name: str) -> str:
    """Turn ``stateHouseDistrict`` into ``State House District``."""
    spaced = _CAMEL_BOUNDARY.sub(" ", name)
    return spaced[:1].upper() + spaced[1:]


def format_combination_name(assignments: Iterable[tuple[str, str]]) -> str:
    """Build the display label for a combination.

    Args:
        assignments: ``(dimension, value)`` pairs in dimension order.

    Returns:
        Label such as ``"Race: Black, Gender: Female"``.
    """
    return ", ".join(f"{format_dimension_name(name)}: {value}" for name, value in assignments)


@dataclass(frozen=True)
class CombinationKey:
    """Exactly one selected value per dimension."""

    assignments: tuple[tuple[str, str], ...]

    @property
    def label(self) -> str:
        """Deterministic display label."""
        return format_combination_name(self.assignments)

    @property
    def filters(self) -> dict[str, str]:
        """The assignments as a plain mapping."""
        return dict(self.assignments)

    def to_spec(self) -> FilterSpec:
        """Return the single-valued FilterSpec for this combination."""
        return FilterSpec((name, (value,)) for name, value in self.assignments)


def iter_product(spec: FilterSpec) -> Iterator[CombinationKey]:
    """Yield the Cartesian product of a spec's values, first dimension slowest.

    Uses an odometer over per-dimension indexes: the last position is
    incremented and carries leftward, so no recursion depth is involved.
    """
    names = list(spec.keys())
    choices = [spec[name] for name in names]
    if not names or any(not values for values in choices):
        return
    indexes = [0] * len(names)
    while True:
        yield CombinationKey(tuple((names[i], choices[i][indexes[i]]) for i in range(len(names))))
        position = len(names) - 1
        while position >= 0:
            indexes[position] += 1
            if indexes[position] < len(choices[position]):
                break
            indexes[position] = 0
            position -= 1
        if position < 0:
            return


def generate_combinations(spec: FilterSpec, combinable: Iterable[str]) -> list[CombinationKey]:
    """Generate every combination of the combinable dimensions of a spec.

    Args:
        spec: The normalized filter spec.
        combinable: Dimensions that may be crossed.  Dimension order follows
            ``spec``, not this argument.

    Returns:
        The combinations in deterministic order, a single exact-identifier
        combination when ``exactId`` is set, or an empty list when no
        combinable dimension carries a value.
    """
    exact_id = spec.exact_id
    if exact_id is not None:
        return [CombinationKey(((Dimension.EXACT_ID.value, exact_id),))]
    return list(iter_product(spec.restrict(combinable)))


def combination_count(spec: FilterSpec, combinable: Iterable[str]) -> int:
    """Number of combinations ``generate_combinations`` would return, without building them."""
    if spec.exact_id is not None:
        return 1
    restricted = spec.restrict(combinable)
    if not restricted:
        return 0
    total = 1
    for values in restricted.values():
        total *= len(values)
    return total
