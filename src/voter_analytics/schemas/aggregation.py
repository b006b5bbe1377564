"""Pydantic v2 schemas for snapshot, combination, and over-time aggregations.

Field names serialize in camelCase to match the chart client contract.
"""

from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ChartType(StrEnum):
    """Chart payloads the chart-data endpoint can produce."""

    VOTER_COMBINATION_COUNTS = "voterCombinationCounts"
    VOTER_COUNTS_OVER_TIME = "voterCountsOverTime"
    DEMOGRAPHIC_RATIO_OVER_TIME = "demographicRatioOverTime"


class _CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CategoryCount(_CamelModel):
    """Voter count for one category of a grouping dimension."""

    category: str | None
    count: int


class SnapshotResponse(_CamelModel):
    """Grouped counts for a single dimension."""

    group_by: str
    total: int
    categories: list[CategoryCount]


class CombinationCount(_CamelModel):
    """Voter count for one filter combination."""

    name: str
    filters: dict[str, str]
    count: int


class CombinationCountsResponse(_CamelModel):
    """Counts per combination and their sum."""

    results: list[CombinationCount]
    total_combined_count: int | None = None


class CombinationSeries(_CamelModel):
    """Per-year values for one combination, aligned to the response ``years``."""

    name: str
    filters: dict[str, str]
    data: list[int | float | None] = Field(description="Count or ratio per year; null where no data")


class SeriesResponse(_CamelModel):
    """Over-time series for every combination."""

    years: list[int]
    series: list[CombinationSeries]
