"""
Source confidence and data completeness scores.

source_confidence: weighted share of the providers that actually responded,
out of those that could have responded for this content type. The series-only
providers (TheTVDB, TVMaze) are not expected for movies or documentaries.

data_completeness: share of a fixed 12-item checklist that the merged record
satisfies.
"""

from typing import Callable, Dict, Iterable, Sequence, Tuple

from .models import AggregatedContent, ContentType, ProviderName

PROVIDER_WEIGHTS: Dict[ProviderName, float] = {
    ProviderName.TMDB: 0.4,
    ProviderName.WATCHMODE: 0.3,
    ProviderName.TVDB: 0.2,
    ProviderName.TVMAZE: 0.1,
}

SERIES_ONLY_PROVIDERS = (ProviderName.TVDB, ProviderName.TVMAZE)

COMPLETENESS_CHECKLIST: Sequence[Tuple[str, Callable[[AggregatedContent], bool]]] = (
    ("title", lambda c: bool(c.title)),
    ("description", lambda c: bool(c.description)),
    ("release_date", lambda c: bool(c.release_date)),
    ("poster", lambda c: bool(c.poster_url)),
    ("genres", lambda c: bool(c.genre_tags)),
    ("platforms", lambda c: bool(c.platforms)),
    ("cast", lambda c: bool(c.cast)),
    ("rating", lambda c: c.ratings.has_any()),
    ("external_id", lambda c: bool(c.external_ids)),
    # Never satisfied for non-series content
    ("season_count", lambda c: c.content_type == ContentType.TV_SERIES and bool(c.total_seasons)),
    ("runtime", lambda c: bool(c.runtime_minutes)),
    ("keywords", lambda c: bool(c.keywords)),
)


def expected_providers(content_type: ContentType) -> Tuple[ProviderName, ...]:
    if content_type == ContentType.TV_SERIES:
        return tuple(PROVIDER_WEIGHTS)
    return tuple(p for p in PROVIDER_WEIGHTS if p not in SERIES_ONLY_PROVIDERS)


def source_confidence(responded: Iterable[ProviderName], content_type: ContentType) -> float:
    expected = expected_providers(content_type)
    possible = sum(PROVIDER_WEIGHTS[p] for p in expected)
    if possible <= 0:
        return 0.0
    achieved = sum(PROVIDER_WEIGHTS[p] for p in set(responded) if p in expected)
    return round(min(1.0, achieved / possible), 4)


def data_completeness(content: AggregatedContent) -> float:
    satisfied = sum(1 for _, check in COMPLETENESS_CHECKLIST if check(content))
    return round(satisfied / len(COMPLETENESS_CHECKLIST), 4)


def score_content(content: AggregatedContent, responded: Iterable[ProviderName]) -> AggregatedContent:
    """Fill in both scores on content and return it."""
    content.source_confidence = source_confidence(responded, content.content_type)
    content.data_completeness = data_completeness(content)
    return content
