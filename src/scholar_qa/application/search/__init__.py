"""
Search application services.

- QueryExpander: translation + alternative phrasings
- QueryAggregator: fan-out, dedup, balance, rank, cache
- RelevanceFilter: model-selected subset of the ranked papers
"""

from .query_expander import QueryExpander, dedupe_terms, is_non_english
from .relevance_filter import RelevanceFilter, format_candidates, parse_selection
from .result_aggregator import (
    AggregationStats,
    QueryAggregator,
    RankingConfig,
    balance_sources,
    deduplicate,
    normalize_title,
    rank,
    score,
)

__all__ = [
    "AggregationStats",
    "QueryAggregator",
    "QueryExpander",
    "RankingConfig",
    "RelevanceFilter",
    "balance_sources",
    "dedupe_terms",
    "deduplicate",
    "format_candidates",
    "is_non_english",
    "normalize_title",
    "parse_selection",
    "rank",
    "score",
]
