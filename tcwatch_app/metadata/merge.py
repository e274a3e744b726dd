"""
================================================================================
TCWatch v1.0 - Merge Engine
================================================================================
Combines provider contributions into one AggregatedContent.

Precedence (highest first): TMDb > Watchmode > TheTVDB > TVMaze

  - Scalar fields: first non-empty value in precedence order wins
  - Genres / keywords: case-insensitive union, first spelling kept
  - Platforms: Watchmode only
  - Cast / crew: TMDb only, top 10 each
  - Ratings: one slot per provider, never averaged
  - External ids: first write wins per key
================================================================================
"""

import logging
from numbers import Number
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Tuple

from .models import (
    AggregatedContent, ContentContribution, ContentType, ExternalIdSource, ProviderName,
    Ratings, SeriesKey,
)


logger = logging.getLogger(__name__)

PROVIDER_PRECEDENCE: Tuple[ProviderName, ...] = (
    ProviderName.TMDB,
    ProviderName.WATCHMODE,
    ProviderName.TVDB,
    ProviderName.TVMAZE,
)

PRIMARY_PROVIDERS = (ProviderName.TMDB, ProviderName.WATCHMODE)

MAX_CREDITS = 10

DOCUMENTARY_GENRE = "documentary"


def _setter(attr: str) -> Callable[[AggregatedContent, Any], None]:
    def apply(content: AggregatedContent, value: Any) -> None:
        setattr(content, attr, value)
    return apply


# (contribution field, setter on the merged record); resolved in precedence order
SCALAR_FIELDS: Sequence[Tuple[str, Callable[[AggregatedContent, Any], None]]] = (
    ("title", _setter("title")),
    ("original_title", _setter("original_title")),
    ("description", _setter("description")),
    ("release_date", _setter("release_date")),
    ("end_date", _setter("end_date")),
    ("runtime_minutes", _setter("runtime_minutes")),
    ("total_seasons", _setter("total_seasons")),
    ("total_episodes", _setter("total_episodes")),
    ("status", _setter("status")),
    ("poster_url", _setter("poster_url")),
    ("backdrop_url", _setter("backdrop_url")),
    ("trailer_url", _setter("trailer_url")),
    ("popularity", _setter("popularity")),
)


def is_empty(value: Any) -> bool:
    """None, blank strings, empty collections and numeric zero are empty."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, bool):
        return False
    if isinstance(value, Number):
        return value == 0
    if isinstance(value, (list, tuple, dict, set)):
        return not value
    return False


def first_non_empty(candidates: Iterable[Tuple[ProviderName, Any]]) -> Tuple[Optional[ProviderName], Any]:
    """Return the first (provider, value) pair whose value is not empty."""
    for provider, value in candidates:
        if not is_empty(value):
            return provider, value
    return None, None


def union_tags(*tag_lists: Iterable[str]) -> List[str]:
    """Case-insensitive union keeping first-seen order and spelling."""
    seen = set()
    merged = []
    for tags in tag_lists:
        for tag in tags:
            if not tag or not tag.strip():
                continue
            key = tag.strip().lower()
            if key not in seen:
                seen.add(key)
                merged.append(tag.strip())
    return merged


def ranked(contributions: Dict[ProviderName, ContentContribution]) -> List[Tuple[ProviderName, ContentContribution]]:
    return [(p, contributions[p]) for p in PROVIDER_PRECEDENCE if p in contributions]


def derive_content_type(
    contributions: Dict[ProviderName, ContentContribution],
    genres: Iterable[str],
) -> ContentType:
    """Series flag from the highest-ranked provider that states one, documentary by genre."""
    for _, contribution in ranked(contributions):
        if contribution.is_series is not None:
            if contribution.is_series:
                return ContentType.TV_SERIES
            break
    if any(g.lower() == DOCUMENTARY_GENRE for g in genres):
        return ContentType.DOCUMENTARY
    return ContentType.MOVIE


def merge_contributions(contributions: Dict[ProviderName, ContentContribution]) -> AggregatedContent:
    """
    Merge every responding provider's contribution.

    Args:
        contributions: Provider -> contribution, responders only

    Returns:
        New AggregatedContent (scores and sync stamp left for the caller)
    """
    content = AggregatedContent()
    ordered = ranked(contributions)

    for field_name, apply in SCALAR_FIELDS:
        provider, value = first_non_empty((p, getattr(c, field_name)) for p, c in ordered)
        if provider is not None:
            apply(content, value)

    content.genre_tags = union_tags(*(c.genres for _, c in ordered))
    content.keywords = union_tags(*(c.keywords for _, c in ordered))
    content.content_type = derive_content_type(contributions, content.genre_tags)

    for _, contribution in ordered:
        for source, value in contribution.external_ids.items():
            if not is_empty(value) and source not in content.external_ids:
                content.external_ids[source] = value

    availability = contributions.get(ProviderName.WATCHMODE)
    if availability:
        content.platforms = list(availability.platforms)

    primary = contributions.get(ProviderName.TMDB)
    if primary:
        content.cast = list(primary.cast[:MAX_CREDITS])
        content.crew = list(primary.crew[:MAX_CREDITS])

    content.ratings = Ratings(
        tmdb=_rating(contributions, ProviderName.TMDB),
        tvdb=_rating(contributions, ProviderName.TVDB),
        tvmaze=_rating(contributions, ProviderName.TVMAZE),
        user=availability.user_rating if availability else None,
    )

    logger.debug(
        f"Merged '{content.title}' from {', '.join(p.value for p, _ in ordered) or 'no providers'}"
    )
    return content


def series_key(contributions: Dict[ProviderName, ContentContribution]) -> Optional[SeriesKey]:
    """
    Identifiers for the series-only providers, or None if the content is not a series.

    The series flag comes from the highest-ranked provider that states one.
    """
    ordered = ranked(contributions)
    is_series = next((c.is_series for _, c in ordered if c.is_series is not None), None)
    if not is_series:
        return None

    ids: Dict[ExternalIdSource, Any] = {}
    for _, contribution in ordered:
        for source, value in contribution.external_ids.items():
            if not is_empty(value):
                ids.setdefault(source, value)

    key = SeriesKey(
        tmdb_id=ids.get(ExternalIdSource.TMDB),
        imdb_id=ids.get(ExternalIdSource.IMDB),
        tvdb_id=ids.get(ExternalIdSource.TVDB),
    )
    if key.tmdb_id is None and key.imdb_id is None and key.tvdb_id is None:
        return None
    return key


def _rating(contributions: Dict[ProviderName, ContentContribution], provider: ProviderName) -> Optional[float]:
    contribution = contributions.get(provider)
    return contribution.rating if contribution else None


# =============================================================================
# VALIDATION
# =============================================================================

def validate_content(content: AggregatedContent, responded: Iterable[ProviderName]) -> List[str]:
    """Human-readable warnings about gaps in the merged record."""
    warnings = []
    if not content.title:
        warnings.append("Missing title")
    if not content.description:
        warnings.append("Missing description")
    if not content.release_date:
        warnings.append("Missing release date")
    if not content.genre_tags:
        warnings.append("No genre information available")
    if not content.platforms:
        warnings.append("No streaming platform information available")

    responded = set(responded)
    if not any(p in responded for p in PRIMARY_PROVIDERS):
        warnings.append("No primary source available for content")
    return warnings
