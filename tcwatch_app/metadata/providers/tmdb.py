"""
================================================================================
TCWatch v1.0 - TMDb Provider
================================================================================
The Movie Database v3 REST API. Primary catalog source: identity, dates,
imagery, genres, keywords, cast and crew.

API: https://api.themoviedb.org/3
Auth: api_key query parameter
Rate Limit: ~40 requests / 10 seconds
================================================================================
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..errors import ProviderError
from ..matcher import get_matcher
from ..models import (
    ContentContribution, ContentMatchingParams, ExternalIdSource, MediaKind,
    PersonCredit, ProviderName, SearchCandidate,
)
from .base import ContentProvider, HttpProvider, ProviderRecord, SearchableProvider


logger = logging.getLogger(__name__)

IMAGE_BASE_URL = "https://image.tmdb.org/t/p/"
YOUTUBE_WATCH_URL = "https://www.youtube.com/watch?v="

# Appended to every detail call so one request carries everything we merge
DETAIL_APPENDS = "videos,credits,keywords,external_ids"

CREW_JOBS = {
    MediaKind.MOVIE: {"Director", "Producer", "Writer"},
    MediaKind.TV: {"Director", "Producer", "Writer", "Creator"},
}

MAIN_CAST_ORDER = 5
MAX_CREDITS = 20


def image_url(path: Optional[str], size: str = "w500") -> Optional[str]:
    if not path:
        return None
    return f"{IMAGE_BASE_URL}{size}{path}"


def _year(date: Optional[str]) -> Optional[int]:
    if date and len(date) >= 4 and date[:4].isdigit():
        return int(date[:4])
    return None


@dataclass
class TmdbCastMember:
    person_id: int
    name: str
    character: str = ""
    order: int = 0
    profile_path: Optional[str] = None


@dataclass
class TmdbCrewMember:
    person_id: int
    name: str
    job: str = ""
    department: str = ""
    profile_path: Optional[str] = None


@dataclass
class TmdbTitle(ProviderRecord):
    """Movie or TV show details as TMDb reports them."""
    tmdb_id: int
    media_kind: MediaKind
    title: str
    original_title: Optional[str] = None
    overview: Optional[str] = None
    release_date: Optional[str] = None
    last_air_date: Optional[str] = None
    runtime: Optional[int] = None
    number_of_seasons: Optional[int] = None
    number_of_episodes: Optional[int] = None
    status: Optional[str] = None
    poster_path: Optional[str] = None
    backdrop_path: Optional[str] = None
    genres: List[str] = field(default_factory=list)
    keywords: List[str] = field(default_factory=list)
    vote_average: Optional[float] = None
    popularity: Optional[float] = None
    imdb_id: Optional[str] = None
    tvdb_id: Optional[int] = None
    trailer_key: Optional[str] = None
    cast: List[TmdbCastMember] = field(default_factory=list)
    crew: List[TmdbCrewMember] = field(default_factory=list)

    @property
    def is_series(self) -> bool:
        return self.media_kind == MediaKind.TV

    def to_contribution(self) -> ContentContribution:
        external_ids: Dict[ExternalIdSource, Any] = {ExternalIdSource.TMDB: self.tmdb_id}
        if self.imdb_id:
            external_ids[ExternalIdSource.IMDB] = self.imdb_id
        if self.tvdb_id:
            external_ids[ExternalIdSource.TVDB] = self.tvdb_id

        cast = [
            PersonCredit(
                name=member.name,
                role=member.character,
                provider_id=member.person_id,
                profile_image=image_url(member.profile_path),
                is_main_cast=member.order < MAIN_CAST_ORDER,
            )
            for member in sorted(self.cast, key=lambda m: m.order)
        ]
        crew = [
            PersonCredit(
                name=member.name,
                role=member.job,
                department=member.department or None,
                provider_id=member.person_id,
                profile_image=image_url(member.profile_path),
            )
            for member in self.crew
        ]

        return ContentContribution(
            title=self.title,
            original_title=self.original_title,
            description=self.overview,
            release_date=self.release_date,
            end_date=self.last_air_date if self.is_series and self.status == "Ended" else None,
            runtime_minutes=self.runtime,
            total_seasons=self.number_of_seasons,
            total_episodes=self.number_of_episodes,
            status=self.status,
            poster_url=image_url(self.poster_path),
            backdrop_url=image_url(self.backdrop_path, "original"),
            trailer_url=f"{YOUTUBE_WATCH_URL}{self.trailer_key}" if self.trailer_key else None,
            popularity=self.popularity,
            is_series=self.is_series,
            genres=list(self.genres),
            keywords=list(self.keywords),
            external_ids=external_ids,
            cast=cast,
            crew=crew,
            rating=self.vote_average,
        )


class TMDbProvider(HttpProvider, ContentProvider, SearchableProvider):
    """
    TMDb adapter.

    Lookup order for fetch():
      1. tmdb_id -> /movie/{id} or /tv/{id} (kind hint, TV when absent)
      2. imdb_id -> /find/{imdb_id} -> details
      3. title   -> /search/movie and/or /search/tv, best fuzzy match -> details
    """

    name = ProviderName.TMDB
    base_url = "https://api.themoviedb.org/3"
    rate_limit = 180
    cache_ttl = 6 * 3600
    health_path = "/configuration"

    def __init__(self, api_key: str, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self._genre_names: Optional[Dict[int, str]] = None

    def _auth_params(self) -> Dict[str, Any]:
        return {"api_key": self.api_key}

    # =========================================================================
    # FETCH
    # =========================================================================

    async def fetch(self, params: ContentMatchingParams) -> Optional[TmdbTitle]:
        if params.tmdb_id is not None:
            kind = MediaKind.MOVIE if params.kind == MediaKind.MOVIE else MediaKind.TV
            return await self.get_details(kind, params.tmdb_id)

        if params.imdb_id:
            found = await self.find_by_imdb_id(params.imdb_id)
            if found:
                return found

        if not params.title.strip():
            return None
        return await self._search_best(params)

    async def get_details(self, kind: MediaKind, tmdb_id: int) -> Optional[TmdbTitle]:
        """Fetch full details (credits, keywords, videos, external ids)."""
        data = await self._request(
            "GET",
            f"/{kind.value}/{tmdb_id}",
            params={"append_to_response": DETAIL_APPENDS},
            allow_not_found=True,
        )
        if not data:
            return None
        return self._parse(self._parse_details, data, kind)

    async def find_by_imdb_id(self, imdb_id: str) -> Optional[TmdbTitle]:
        data = await self._request(
            "GET",
            f"/find/{imdb_id}",
            params={"external_source": "imdb_id"},
            allow_not_found=True,
        )
        if not data:
            return None
        for kind, bucket in ((MediaKind.MOVIE, "movie_results"), (MediaKind.TV, "tv_results")):
            results = data.get(bucket) or []
            if results:
                return await self.get_details(kind, self._parse(lambda: results[0]["id"]))
        return None

    async def _search_best(self, params: ContentMatchingParams) -> Optional[TmdbTitle]:
        kinds = [params.kind] if params.kind else [MediaKind.TV, MediaKind.MOVIE]
        result_sets = await asyncio.gather(
            *(self._search_raw(kind, params.title, params.year) for kind in kinds)
        )

        hits = [
            (kind, item)
            for kind, items in zip(kinds, result_sets)
            for item in items
        ]
        best = get_matcher().best_match(
            params.title,
            hits,
            key=lambda hit: hit[1].get("title") or hit[1].get("name") or "",
            year=params.year,
            year_of=lambda hit: _year(hit[1].get("release_date") or hit[1].get("first_air_date")),
        )
        if best is None:
            return None
        kind, item = best
        return await self.get_details(kind, self._parse(lambda: item["id"]))

    async def _search_raw(self, kind: MediaKind, query: str, year: Optional[int] = None) -> List[Dict]:
        query_params: Dict[str, Any] = {"query": query, "include_adult": "false", "page": 1}
        if year:
            query_params["year" if kind == MediaKind.MOVIE else "first_air_date_year"] = year
        data = await self._request("GET", f"/search/{kind.value}", params=query_params)
        return (data or {}).get("results") or []

    # =========================================================================
    # SEARCH
    # =========================================================================

    async def search(self, query: str, limit: int = 20) -> List[SearchCandidate]:
        """
        Search movies and TV shows, movies first.

        Each kind contributes up to half of limit.
        """
        per_kind = max(1, (limit + 1) // 2)
        movies, shows = await asyncio.gather(
            self._search_raw(MediaKind.MOVIE, query),
            self._search_raw(MediaKind.TV, query),
        )
        genre_names = await self._get_genre_names()

        candidates = []
        for kind, items in ((MediaKind.MOVIE, movies), (MediaKind.TV, shows)):
            for item in items[:per_kind]:
                candidates.append(SearchCandidate(
                    provider=self.name,
                    title=item.get("title") or item.get("name") or "",
                    year=_year(item.get("release_date") or item.get("first_air_date")),
                    kind=kind,
                    genres=[genre_names[g] for g in item.get("genre_ids", []) if g in genre_names],
                    tmdb_id=item.get("id"),
                ))
        return candidates

    async def _get_genre_names(self) -> Dict[int, str]:
        """Genre id -> name for both movie and TV genres (loaded once)."""
        if self._genre_names is not None:
            return self._genre_names

        try:
            movie_genres, tv_genres = await asyncio.gather(
                self._request("GET", "/genre/movie/list", cache_ttl=24 * 3600),
                self._request("GET", "/genre/tv/list", cache_ttl=24 * 3600),
            )
        except ProviderError as e:
            # Search still works, candidates just carry no genres
            logger.warning(f"{self.id}: genre list unavailable: {e}")
            return {}

        names: Dict[int, str] = {}
        for payload in (movie_genres, tv_genres):
            for genre in (payload or {}).get("genres", []):
                names[genre["id"]] = genre["name"]
        self._genre_names = names
        return names

    # =========================================================================
    # PARSING
    # =========================================================================

    def _parse_details(self, data: Dict, kind: MediaKind) -> TmdbTitle:
        external = data.get("external_ids") or {}
        credits = data.get("credits") or {}
        keywords_block = data.get("keywords") or {}
        keyword_items = keywords_block.get("keywords") or keywords_block.get("results") or []

        if kind == MediaKind.MOVIE:
            title = data.get("title") or ""
            original_title = data.get("original_title")
            release_date = data.get("release_date")
            runtime = data.get("runtime")
        else:
            title = data.get("name") or ""
            original_title = data.get("original_name")
            release_date = data.get("first_air_date")
            run_times = data.get("episode_run_time") or []
            runtime = run_times[0] if run_times else None

        crew_jobs = CREW_JOBS[kind]

        return TmdbTitle(
            tmdb_id=data["id"],
            media_kind=kind,
            title=title,
            original_title=original_title,
            overview=data.get("overview") or None,
            release_date=release_date or None,
            last_air_date=data.get("last_air_date") or None,
            runtime=runtime,
            number_of_seasons=data.get("number_of_seasons") if kind == MediaKind.TV else None,
            number_of_episodes=data.get("number_of_episodes") if kind == MediaKind.TV else None,
            status=data.get("status"),
            poster_path=data.get("poster_path"),
            backdrop_path=data.get("backdrop_path"),
            genres=[g["name"] for g in data.get("genres", []) if g.get("name")],
            keywords=[k["name"] for k in keyword_items if k.get("name")],
            vote_average=data.get("vote_average"),
            popularity=data.get("popularity"),
            imdb_id=data.get("imdb_id") or external.get("imdb_id") or None,
            tvdb_id=external.get("tvdb_id") or None,
            trailer_key=self._trailer_key(data.get("videos") or {}),
            cast=[
                TmdbCastMember(
                    person_id=m["id"],
                    name=m.get("name", ""),
                    character=m.get("character", ""),
                    order=m.get("order", index),
                    profile_path=m.get("profile_path"),
                )
                for index, m in enumerate((credits.get("cast") or [])[:MAX_CREDITS])
            ],
            crew=[
                TmdbCrewMember(
                    person_id=m["id"],
                    name=m.get("name", ""),
                    job=m.get("job", ""),
                    department=m.get("department", ""),
                    profile_path=m.get("profile_path"),
                )
                for m in credits.get("crew") or []
                if m.get("job") in crew_jobs
            ],
        )

    @staticmethod
    def _trailer_key(videos: Dict) -> Optional[str]:
        for video in videos.get("results") or []:
            if video.get("type") == "Trailer" and video.get("site") == "YouTube" and video.get("key"):
                return video["key"]
        return None
