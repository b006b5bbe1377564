"""Exceptions raised while extracting, compiling, and executing voter filters."""


class FilterValidationError(ValueError):
    """A filter parameter was rejected before any query was built.

    Attributes:
        key: The offending parameter name, when the failure is tied to one.
        allowed: Sorted names of the parameters the caller may use.
    """

    def __init__(self, message: str, *, key: str | None = None, allowed: list[str] | None = None) -> None:
        super().__init__(message)
        self.key = key
        self.allowed = allowed or []


class NoFiltersSelectedError(ValueError):
    """No combinable dimension carried a value, so no combination can be generated."""

    def __init__(self, message: str = "Please select filter options to generate the chart.") -> None:
        super().__init__(message)


class UpstreamStoreError(RuntimeError):
    """The voter store failed or timed out on a query that cannot degrade gracefully."""

    def __init__(self, message: str = "The voter data store is unavailable. Please try again later.") -> None:
        super().__init__(message)
