"""Build a FilterSpec from raw multi-valued request parameters."""

import re
from collections.abc import Collection, Iterable, Mapping
from typing import Protocol

from loguru import logger

from voter_analytics.lib.query_filters.errors import FilterValidationError
from voter_analytics.lib.query_filters.spec import UPPERCASE_DIMENSIONS, Dimension, FilterSpec, ResidentAddress

_REGISTRATION_NUMBER_RE = re.compile(r"^[A-Za-z0-9]{1,20}$")


class MultiItems(Protocol):
    """Anything exposing Starlette-style ``multi_items()``."""

    def multi_items(self) -> list[tuple[str, str]]: ...


RawParams = MultiItems | Mapping[str, str | Iterable[str]] | Iterable[tuple[str, str]]


def _iter_pairs(params: RawParams) -> Iterable[tuple[str, str]]:
    """Flatten any supported parameter collection into ``(key, value)`` pairs in arrival order."""
    if hasattr(params, "multi_items"):
        yield from params.multi_items()  # type: ignore[union-attr]
        return
    if isinstance(params, Mapping):
        for key, value in params.items():
            if isinstance(value, str):
                yield key, value
            else:
                for item in value:
                    yield key, item
        return
    yield from params  # type: ignore[misc]


def validate_registration_number(value: str) -> str:
    """Validate a voter registration number.

    Args:
        value: The raw identifier.

    Returns:
        The stripped identifier.

    Raises:
        FilterValidationError: If the identifier is not 1-20 alphanumeric characters.
    """
    stripped = value.strip()
    if not _REGISTRATION_NUMBER_RE.match(stripped):
        msg = f"Invalid voter registration number: {value!r}"
        raise FilterValidationError(msg, key=Dimension.EXACT_ID)
    return stripped


def normalize_value(dimension: str, value: str, *, normalize_case: bool = True) -> str | None:
    """Normalize a single raw value for a dimension.

    Args:
        dimension: The dimension name.
        value: The raw value.
        normalize_case: Upper-case categorical values.  Chart requests turn
            this off to keep display labels as typed; the compiler folds
            case for those dimensions either way.

    Returns:
        The normalized value, or None when the value should be dropped.
    """
    stripped = value.strip()
    if not stripped:
        return None
    if dimension in UPPERCASE_DIMENSIONS:
        return stripped.upper() if normalize_case else stripped
    if dimension == Dimension.RESIDENT_ADDRESS:
        address = ResidentAddress.parse(value)
        if address is None:
            logger.debug("Dropping resident address with wrong field count: {}", value)
            return None
        if address.is_empty:
            return None
        return address.to_param()
    if dimension == Dimension.EXACT_ID:
        return validate_registration_number(stripped)
    return stripped


def extract_filter_spec(
    params: RawParams,
    allowed: Collection[str],
    *,
    ignored: Collection[str] = (),
    normalize_case: bool = True,
) -> FilterSpec:
    """Validate raw parameters against an allow-list and normalize them.

    Args:
        params: Multi-valued key/value parameters in arrival order.
        allowed: Dimension names the current operation accepts.
        ignored: Non-filter keys that may appear alongside filters (e.g.
            ``chartType``, ``page``) and are skipped silently.
        normalize_case: Upper-case categorical values (see ``normalize_value``).

    Returns:
        The normalized FilterSpec, ordered by first appearance of each key.

    Raises:
        FilterValidationError: On the first key that is neither allowed nor
            ignored, or on a malformed exact identifier.
    """
    collected: dict[str, list[str]] = {}
    for key, raw in _iter_pairs(params):
        if key in ignored:
            continue
        if key not in allowed:
            msg = f"Invalid filter key: {key}"
            raise FilterValidationError(msg, key=key, allowed=sorted(allowed))
        value = normalize_value(key, raw, normalize_case=normalize_case)
        if value is None:
            continue
        bucket = collected.setdefault(key, [])
        if value not in bucket:
            bucket.append(value)
    return FilterSpec(collected)


def parse_int(value: str | None) -> int | None:
    """Parse an integer permissively, returning None instead of raising."""
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None
