"""
================================================================================
TCWatch v1.0 - Content Models
================================================================================
Canonical models for multi-provider content aggregation.

Providers and their role in the merge (highest precedence first):
  1. TMDb       - primary catalog metadata, cast and crew
  2. Watchmode  - streaming availability (only source of platforms)
  3. TheTVDB    - detailed season/episode data for series
  4. TVMaze     - schedule and status data for series

Wikidata is a knowledge base used only for true-crime case enrichment.

Provider-native payloads never leave their adapter; each adapter converts its
own result into a ContentContribution which the merge engine combines.
================================================================================
"""

from dataclasses import dataclass, field, asdict
from typing import Optional, List, Dict, Any, Union
from datetime import datetime
from enum import Enum


# =============================================================================
# ENUMS
# =============================================================================

class ProviderName(str, Enum):
    """Adapters known to the engine."""
    TMDB = "tmdb"
    WATCHMODE = "watchmode"
    TVDB = "tvdb"
    TVMAZE = "tvmaze"
    WIKIDATA = "wikidata"

    @property
    def display_name(self) -> str:
        return _PROVIDER_DISPLAY_NAMES[self]


_PROVIDER_DISPLAY_NAMES = {
    ProviderName.TMDB: "TMDb",
    ProviderName.WATCHMODE: "Watchmode",
    ProviderName.TVDB: "TVDB",
    ProviderName.TVMAZE: "TVMaze",
    ProviderName.WIKIDATA: "Wikidata",
}


class ExternalIdSource(str, Enum):
    """Allowed keys of AggregatedContent.external_ids."""
    TMDB = "tmdb"
    WATCHMODE = "watchmode"
    TVDB = "tvdb"
    TVMAZE = "tvmaze"
    IMDB = "imdb"


class MediaKind(str, Enum):
    """Caller-supplied type hint."""
    MOVIE = "movie"
    TV = "tv"


class ContentType(str, Enum):
    MOVIE = "movie"
    TV_SERIES = "tv_series"
    DOCUMENTARY = "documentary"
    PODCAST = "podcast"


class AccessType(str, Enum):
    SUBSCRIPTION = "subscription"
    FREE = "free"
    PURCHASE = "purchase"
    RENT = "rent"


class VideoQuality(str, Enum):
    SD = "SD"
    HD = "HD"
    UHD = "UHD"


class RelationshipKind(str, Enum):
    """How a title relates to a real-world case."""
    DIRECTLY_BASED_ON = "directly_based_on"
    INSPIRED_BY = "inspired_by"
    COVERS_CASE = "covers_case"
    FEATURES_PERSON = "features_person"
    SAME_PERPETRATOR = "same_perpetrator"
    SAME_LOCATION = "same_location"


class HistoricalAccuracy(str, Enum):
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"
    DRAMATIZED = "dramatized"


class TimelineAccuracy(str, Enum):
    ACCURATE = "accurate"
    COMPRESSED = "compressed"
    ALTERED = "altered"


# =============================================================================
# INPUT
# =============================================================================

@dataclass(frozen=True)
class ContentMatchingParams:
    """Loose identifier of the content to aggregate."""
    title: str
    year: Optional[int] = None
    kind: Optional[MediaKind] = None
    tmdb_id: Optional[int] = None
    imdb_id: Optional[str] = None

    def has_identifiers(self) -> bool:
        return self.tmdb_id is not None or bool(self.imdb_id)


@dataclass(frozen=True)
class SeriesKey:
    """Identifiers handed to dependent (series-only) providers."""
    tmdb_id: Optional[int] = None
    imdb_id: Optional[str] = None
    tvdb_id: Optional[int] = None


# =============================================================================
# CANONICAL SUB-RECORDS
# =============================================================================

@dataclass
class PlatformUrls:
    web: Optional[str] = None
    ios: Optional[str] = None
    android: Optional[str] = None


@dataclass
class PlatformAvailability:
    """One streaming offer for a title."""
    platform_id: str
    platform_name: str
    access_type: AccessType
    region: str = "US"
    price: Optional[float] = None
    quality: Optional[VideoQuality] = None
    urls: PlatformUrls = field(default_factory=PlatformUrls)
    seasons: List[int] = field(default_factory=list)
    episodes: List[int] = field(default_factory=list)


@dataclass
class PersonCredit:
    """Cast or crew member. Crew entries carry a department."""
    name: str
    role: str = ""  # Character for cast, job for crew
    department: Optional[str] = None
    provider_id: Optional[int] = None
    profile_image: Optional[str] = None
    is_main_cast: bool = False
    wikidata_id: Optional[str] = None


@dataclass
class Ratings:
    """Per-provider ratings on each provider's own scale."""
    tmdb: Optional[float] = None
    tvdb: Optional[float] = None
    tvmaze: Optional[float] = None
    user: Optional[float] = None

    def has_any(self) -> bool:
        return any(v is not None for v in (self.tmdb, self.tvdb, self.tvmaze, self.user))


@dataclass
class RelatedCase:
    wikidata_id: str
    case_name: str
    relationship: RelationshipKind
    confidence: float


@dataclass
class FactualBasis:
    """Heuristic judgement of factual grounding (not authoritative)."""
    is_based_on_true_events: bool
    historical_accuracy: Optional[HistoricalAccuracy] = None
    timeline_accuracy: Optional[TimelineAccuracy] = None


# =============================================================================
# PARTIAL RECORD PRODUCED BY EACH ADAPTER
# =============================================================================

@dataclass
class ContentContribution:
    """
    Canonical partial record built by a provider adapter.

    Scalar fields compete under precedence; list fields are unioned or taken
    from their designated provider by the merge engine.
    """
    title: Optional[str] = None
    original_title: Optional[str] = None
    description: Optional[str] = None
    release_date: Optional[str] = None
    end_date: Optional[str] = None
    runtime_minutes: Optional[int] = None
    total_seasons: Optional[int] = None
    total_episodes: Optional[int] = None
    status: Optional[str] = None
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None
    trailer_url: Optional[str] = None
    popularity: Optional[float] = None

    # None = provider does not say; True/False = series or not
    is_series: Optional[bool] = None

    genres: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    external_ids: Dict[ExternalIdSource, Union[int, str]] = field(default_factory=dict)
    platforms: List[PlatformAvailability] = field(default_factory=list)
    cast: List[PersonCredit] = field(default_factory=list)
    crew: List[PersonCredit] = field(default_factory=list)
    rating: Optional[float] = None
    user_rating: Optional[float] = None


# =============================================================================
# AGGREGATED OUTPUT
# =============================================================================

@dataclass
class AggregatedContent:
    """
    Normalized content record merged from every responding provider.

    Scores are in [0, 1]. Tag lists hold no case-insensitive duplicates.
    Cast and crew keep provider prominence order and at most 10 entries.
    """

    # Identity
    title: str = ""
    original_title: Optional[str] = None
    content_type: ContentType = ContentType.MOVIE
    description: Optional[str] = None

    # Temporal
    release_date: Optional[str] = None
    end_date: Optional[str] = None
    runtime_minutes: Optional[int] = None
    total_seasons: Optional[int] = None
    total_episodes: Optional[int] = None
    status: Optional[str] = None

    # Imagery
    poster_url: Optional[str] = None
    backdrop_url: Optional[str] = None
    trailer_url: Optional[str] = None

    # Classification
    genre_tags: List[str] = field(default_factory=list)
    case_tags: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)

    external_ids: Dict[ExternalIdSource, Union[int, str]] = field(default_factory=dict)
    platforms: List[PlatformAvailability] = field(default_factory=list)
    cast: List[PersonCredit] = field(default_factory=list)
    crew: List[PersonCredit] = field(default_factory=list)
    ratings: Ratings = field(default_factory=Ratings)
    popularity: Optional[float] = None

    # Knowledge-base enrichment
    related_cases: List[RelatedCase] = field(default_factory=list)
    factual_basis: Optional[FactualBasis] = None

    # Quality
    source_confidence: float = 0.0
    data_completeness: float = 0.0
    last_synced_at: Optional[datetime] = None

    def get_external_id(self, source: ExternalIdSource) -> Optional[Union[int, str]]:
        return self.external_ids.get(source)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to a JSON-ready dict."""
        data = asdict(self)
        data['content_type'] = self.content_type.value
        data['external_ids'] = {k.value: v for k, v in self.external_ids.items()}
        data['platforms'] = [
            {
                **asdict(p),
                'access_type': p.access_type.value,
                'quality': p.quality.value if p.quality else None,
            }
            for p in self.platforms
        ]
        data['related_cases'] = [
            {**asdict(c), 'relationship': c.relationship.value}
            for c in self.related_cases
        ]
        if self.factual_basis:
            data['factual_basis'] = {
                'is_based_on_true_events': self.factual_basis.is_based_on_true_events,
                'historical_accuracy': (
                    self.factual_basis.historical_accuracy.value
                    if self.factual_basis.historical_accuracy else None
                ),
                'timeline_accuracy': (
                    self.factual_basis.timeline_accuracy.value
                    if self.factual_basis.timeline_accuracy else None
                ),
            }
        data['last_synced_at'] = self.last_synced_at.isoformat() if self.last_synced_at else None
        return data


@dataclass
class SearchCandidate:
    """Raw free-text search hit, classified before full aggregation."""
    provider: ProviderName
    title: str
    year: Optional[int] = None
    kind: Optional[MediaKind] = None
    genres: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    tmdb_id: Optional[int] = None
    imdb_id: Optional[str] = None

    def to_params(self) -> ContentMatchingParams:
        return ContentMatchingParams(
            title=self.title,
            year=self.year,
            kind=self.kind,
            tmdb_id=self.tmdb_id,
            imdb_id=self.imdb_id,
        )


@dataclass(frozen=True)
class AggregationResult:
    """Envelope returned by ContentAggregator.aggregate()."""
    content: AggregatedContent
    sources: Dict[ProviderName, Optional[Any]]
    warnings: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
