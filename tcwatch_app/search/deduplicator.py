"""
================================================================================
TCWatch v1.0 - Aggregation Result Deduplicator
================================================================================
Removes duplicate aggregations from a batch search.

Problem:
  Searching "Ted Bundy" hits the same documentary on Watchmode, the TMDb
  movie index and the TMDb TV index, so it gets aggregated more than once.

Solution:
  One key per result, the first available of:
    1. tmdb:<TMDb id>
    2. imdb:<IMDb id>
    3. watchmode:<Watchmode id>
    4. title:<lowercased alphanumerics of the title>
  First occurrence wins; later duplicates are dropped.
================================================================================
"""

from typing import List, Sequence
import logging

from ..metadata.matcher import normalize_title_key
from ..metadata.models import AggregationResult, ExternalIdSource

logger = logging.getLogger(__name__)

KEY_PRIORITY = (ExternalIdSource.TMDB, ExternalIdSource.IMDB, ExternalIdSource.WATCHMODE)


def dedup_key(result: AggregationResult) -> str:
    for source in KEY_PRIORITY:
        value = result.content.get_external_id(source)
        if value not in (None, ""):
            return f"{source.value}:{value}"
    return f"title:{normalize_title_key(result.content.title)}"


class ResultDeduplicator:
    """Stable, first-wins deduplication of aggregation results."""

    def deduplicate(self, results: Sequence[AggregationResult]) -> List[AggregationResult]:
        seen = set()
        unique = []
        for result in results:
            key = dedup_key(result)
            if key in seen:
                logger.debug(f"Dropping duplicate result {key}")
                continue
            seen.add(key)
            unique.append(result)

        if len(unique) < len(results):
            logger.info(f"Deduplicated {len(results)} results -> {len(unique)}")
        return unique


def deduplicate_results(results: Sequence[AggregationResult]) -> List[AggregationResult]:
    return ResultDeduplicator().deduplicate(results)
