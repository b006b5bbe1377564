"""Query filters library: voter filter parsing, SQL predicate compilation, and combinations.

Public API:
    - FilterSpec: Immutable ordered mapping of dimension to selected values
    - Dimension: Accepted filter dimension names
    - ResidentAddress: 8-field residence address composite
    - extract_filter_spec: Validate and normalize raw request parameters
    - validate_registration_number: Validate an exact voter identifier
    - PredicateCompiler / compile_predicate / compile_fragments: FilterSpec to SQL
    - render_predicate: Render a predicate as ``$n``-parameterized SQL text
    - RadiusFilter / radius_predicate: Two-stage geospatial radius filter
    - generate_combinations / CombinationKey: Cartesian product of dimension values
    - FilterValidationError / NoFiltersSelectedError / UpstreamStoreError
"""

from voter_analytics.lib.query_filters.brackets import (
    AGE_BUCKETS,
    EDUCATION_BRACKETS,
    INCOME_BRACKETS,
    SCORE_RANGES,
    UNEMPLOYMENT_BRACKETS,
    NumericBracket,
    find_bracket,
)
from voter_analytics.lib.query_filters.combinations import (
    CombinationKey,
    combination_count,
    format_combination_name,
    generate_combinations,
)
from voter_analytics.lib.query_filters.compiler import (
    PredicateCompiler,
    PredicateFragment,
    RenderedPredicate,
    Requirement,
    age_bucket_case,
    compile_fragments,
    compile_predicate,
    render_predicate,
    score_bucket_case,
)
from voter_analytics.lib.query_filters.errors import (
    FilterValidationError,
    NoFiltersSelectedError,
    UpstreamStoreError,
)
from voter_analytics.lib.query_filters.extractor import extract_filter_spec, validate_registration_number
from voter_analytics.lib.query_filters.spatial import RadiusFilter, radius_predicate
from voter_analytics.lib.query_filters.spec import (
    ALL_DIMENSIONS,
    COMBINABLE_DIMENSIONS,
    Dimension,
    FilterSpec,
    ResidentAddress,
)

__all__ = [
    "AGE_BUCKETS",
    "ALL_DIMENSIONS",
    "COMBINABLE_DIMENSIONS",
    "EDUCATION_BRACKETS",
    "INCOME_BRACKETS",
    "SCORE_RANGES",
    "UNEMPLOYMENT_BRACKETS",
    "CombinationKey",
    "Dimension",
    "FilterSpec",
    "FilterValidationError",
    "NoFiltersSelectedError",
    "NumericBracket",
    "PredicateCompiler",
    "PredicateFragment",
    "RadiusFilter",
    "RenderedPredicate",
    "Requirement",
    "ResidentAddress",
    "UpstreamStoreError",
    "age_bucket_case",
    "combination_count",
    "compile_fragments",
    "compile_predicate",
    "extract_filter_spec",
    "find_bracket",
    "format_combination_name",
    "generate_combinations",
    "radius_predicate",
    "render_predicate",
    "score_bucket_case",
    "validate_registration_number",
]
