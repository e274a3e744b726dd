"""
================================================================================
TCWatch v1.0 - Watchmode Provider
================================================================================
Streaming availability. The only source of platform offers.

API: https://api.watchmode.com/v1
Auth: apiKey query parameter
Rate Limit: 120 requests / minute
================================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..matcher import get_matcher
from ..models import (
    AccessType, ContentContribution, ContentMatchingParams, ExternalIdSource, MediaKind,
    PlatformAvailability, PlatformUrls, ProviderName, SearchCandidate, VideoQuality,
)
from .base import ContentProvider, HttpProvider, ProviderRecord, SearchableProvider


logger = logging.getLogger(__name__)

SERIES_TYPES = {"tv_series", "tv_miniseries"}

SEARCH_TYPES = "movie,tv"

ACCESS_TYPES = {
    "sub": AccessType.SUBSCRIPTION,
    "tve": AccessType.SUBSCRIPTION,
    "free": AccessType.FREE,
    "buy": AccessType.PURCHASE,
    "purchase": AccessType.PURCHASE,
    "rent": AccessType.RENT,
}

QUALITIES = {
    "4K": VideoQuality.UHD,
    "HD": VideoQuality.HD,
    "SD": VideoQuality.SD,
}


@dataclass
class WatchmodeSource:
    source_id: int
    name: str
    type: str
    region: str = "US"
    web_url: Optional[str] = None
    ios_url: Optional[str] = None
    android_url: Optional[str] = None
    format: Optional[str] = None
    price: Optional[float] = None
    seasons: List[int] = field(default_factory=list)
    episodes: List[int] = field(default_factory=list)

    def to_platform(self) -> PlatformAvailability:
        return PlatformAvailability(
            platform_id=str(self.source_id),
            platform_name=self.name,
            access_type=ACCESS_TYPES.get(self.type, AccessType.SUBSCRIPTION),
            region=self.region,
            price=self.price,
            quality=QUALITIES.get(self.format or "", VideoQuality.SD),
            urls=PlatformUrls(web=self.web_url, ios=self.ios_url, android=self.android_url),
            seasons=list(self.seasons),
            episodes=list(self.episodes),
        )


@dataclass
class WatchmodeTitle(ProviderRecord):
    watchmode_id: int
    title: str
    type: str = "movie"
    original_title: Optional[str] = None
    plot_overview: Optional[str] = None
    runtime_minutes: Optional[int] = None
    year: Optional[int] = None
    release_date: Optional[str] = None
    imdb_id: Optional[str] = None
    tmdb_id: Optional[int] = None
    genre_names: List[str] = field(default_factory=list)
    user_rating: Optional[float] = None
    poster: Optional[str] = None
    backdrop: Optional[str] = None
    trailer: Optional[str] = None
    sources: List[WatchmodeSource] = field(default_factory=list)

    @property
    def is_series(self) -> bool:
        return self.type in SERIES_TYPES

    def to_contribution(self) -> ContentContribution:
        external_ids: Dict[ExternalIdSource, Any] = {ExternalIdSource.WATCHMODE: self.watchmode_id}
        if self.imdb_id:
            external_ids[ExternalIdSource.IMDB] = self.imdb_id
        if self.tmdb_id:
            external_ids[ExternalIdSource.TMDB] = self.tmdb_id

        return ContentContribution(
            title=self.title,
            original_title=self.original_title,
            description=self.plot_overview,
            release_date=self.release_date,
            runtime_minutes=self.runtime_minutes,
            poster_url=self.poster,
            backdrop_url=self.backdrop,
            trailer_url=self.trailer,
            is_series=self.is_series,
            genres=list(self.genre_names),
            external_ids=external_ids,
            platforms=[source.to_platform() for source in self.sources],
            user_rating=self.user_rating,
        )


class WatchmodeProvider(HttpProvider, ContentProvider, SearchableProvider):
    """
    Watchmode adapter.

    fetch() resolves a Watchmode title id (by IMDb id, TMDb id, then name)
    and loads its details with streaming sources appended.
    """

    name = ProviderName.WATCHMODE
    base_url = "https://api.watchmode.com/v1"
    rate_limit = 120
    cache_ttl = 3600  # Availability changes often
    health_path = "/status/"

    def __init__(self, api_key: str, region: str = "US", **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.region = region

    def _auth_params(self) -> Dict[str, Any]:
        return {"apiKey": self.api_key}

    async def fetch(self, params: ContentMatchingParams) -> Optional[WatchmodeTitle]:
        watchmode_id = await self._resolve_id(params)
        if watchmode_id is None:
            return None
        return await self.get_title(watchmode_id)

    async def _resolve_id(self, params: ContentMatchingParams) -> Optional[int]:
        if params.imdb_id:
            results = await self._search_raw("imdb_id", params.imdb_id)
            if results:
                return self._parse(lambda: results[0]["id"])

        if params.tmdb_id is not None and params.kind:
            field_name = "tmdb_movie_id" if params.kind == MediaKind.MOVIE else "tmdb_tv_id"
            results = await self._search_raw(field_name, str(params.tmdb_id))
            if results:
                return self._parse(lambda: results[0]["id"])

        if not params.title.strip():
            return None

        results = await self._search_raw("name", params.title)
        best = get_matcher().best_match(
            params.title,
            results,
            key=lambda item: item.get("name") or "",
            year=params.year,
            year_of=lambda item: item.get("year"),
        )
        return self._parse(lambda: best["id"]) if best else None

    async def get_title(self, watchmode_id: int) -> Optional[WatchmodeTitle]:
        data = await self._request(
            "GET",
            f"/title/{watchmode_id}/details/",
            params={"append_to_response": "sources", "regions": self.region},
            allow_not_found=True,
        )
        if not data:
            return None
        return self._parse(self._parse_title, data)

    async def _search_raw(self, search_field: str, value: str) -> List[Dict]:
        data = await self._request(
            "GET",
            "/search/",
            params={"search_field": search_field, "search_value": value, "types": SEARCH_TYPES},
        )
        return (data or {}).get("title_results") or []

    async def search(self, query: str, limit: int = 20) -> List[SearchCandidate]:
        results = await self._search_raw("name", query)
        return [
            SearchCandidate(
                provider=self.name,
                title=item.get("name") or "",
                year=item.get("year"),
                kind=MediaKind.TV if item.get("type") in SERIES_TYPES or item.get("tmdb_type") == "tv"
                else MediaKind.MOVIE,
                genres=list(item.get("genre_names") or []),
                tmdb_id=item.get("tmdb_id") or None,
                imdb_id=item.get("imdb_id") or None,
            )
            for item in results[:limit]
        ]

    def _parse_title(self, data: Dict) -> WatchmodeTitle:
        sources = [
            WatchmodeSource(
                source_id=s["source_id"],
                name=s.get("name", ""),
                type=s.get("type", "sub"),
                region=s.get("region") or self.region,
                web_url=s.get("web_url"),
                ios_url=s.get("ios_url"),
                android_url=s.get("android_url"),
                format=s.get("format"),
                price=s.get("price"),
                seasons=s.get("seasons") or [],
                episodes=s.get("episodes") or [],
            )
            for s in data.get("sources") or []
        ]

        release_date = data.get("release_date")
        if not release_date and data.get("year"):
            release_date = str(data["year"])

        return WatchmodeTitle(
            watchmode_id=data["id"],
            title=data.get("title") or "",
            type=data.get("type") or "movie",
            original_title=data.get("original_title"),
            plot_overview=data.get("plot_overview") or None,
            runtime_minutes=data.get("runtime_minutes"),
            year=data.get("year"),
            release_date=release_date,
            imdb_id=data.get("imdb_id") or None,
            tmdb_id=data.get("tmdb_id") or None,
            genre_names=list(data.get("genre_names") or []),
            user_rating=data.get("user_rating"),
            poster=data.get("poster") or None,
            backdrop=data.get("backdrop") or None,
            trailer=data.get("trailer") or None,
            sources=sources,
        )
