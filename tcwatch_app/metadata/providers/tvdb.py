"""
================================================================================
TCWatch v1.0 - TheTVDB Provider
================================================================================
Detailed season and episode data for series. Queried only after the primary
source has identified a series.

API: https://api4.thetvdb.com/v4
Auth: POST /login (apikey + optional pin) -> bearer token valid ~1 month
================================================================================
"""

import time
import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import httpx

from ..errors import ProviderError
from ..models import ContentContribution, ExternalIdSource, ProviderName, SeriesKey
from .base import DependentProvider, HttpProvider, ProviderRecord


logger = logging.getLogger(__name__)

# Tokens are valid for a month; refresh a day early
TOKEN_LIFETIME = 29 * 24 * 3600


@dataclass
class TvdbSeries(ProviderRecord):
    tvdb_id: int
    name: str
    overview: Optional[str] = None
    first_aired: Optional[str] = None
    last_aired: Optional[str] = None
    status: Optional[str] = None
    average_runtime: Optional[int] = None
    genres: List[str] = field(default_factory=list)
    season_numbers: List[int] = field(default_factory=list)
    episode_count: int = 0
    score: Optional[float] = None
    image: Optional[str] = None
    imdb_id: Optional[str] = None

    def to_contribution(self) -> ContentContribution:
        external_ids: Dict[ExternalIdSource, Any] = {ExternalIdSource.TVDB: self.tvdb_id}
        if self.imdb_id:
            external_ids[ExternalIdSource.IMDB] = self.imdb_id

        return ContentContribution(
            title=self.name,
            description=self.overview,
            release_date=self.first_aired,
            end_date=self.last_aired if self.status == "Ended" else None,
            runtime_minutes=self.average_runtime,
            total_seasons=len(self.season_numbers) or None,
            total_episodes=self.episode_count or None,
            status=self.status,
            poster_url=self.image,
            is_series=True,
            genres=list(self.genres),
            external_ids=external_ids,
            rating=self.score,
        )


class TVDBProvider(HttpProvider, DependentProvider):
    name = ProviderName.TVDB
    base_url = "https://api4.thetvdb.com/v4"
    rate_limit = 100
    cache_ttl = 24 * 3600
    health_path = "/genres"

    def __init__(self, api_key: str, pin: Optional[str] = None, **kwargs):
        super().__init__(**kwargs)
        self.api_key = api_key
        self.pin = pin
        self._token: Optional[str] = None
        self._token_expires = 0.0
        self._login_lock = asyncio.Lock()

    # =========================================================================
    # AUTH
    # =========================================================================

    async def _auth_headers(self) -> Dict[str, str]:
        token = await self._ensure_token()
        return {"Authorization": f"Bearer {token}"}

    async def _on_unauthorized(self) -> bool:
        logger.info(f"{self.id}: token rejected, logging in again")
        self._token = None
        return True

    async def _ensure_token(self) -> str:
        async with self._login_lock:
            if self._token and time.time() < self._token_expires:
                return self._token

            body = {"apikey": self.api_key}
            if self.pin:
                body["pin"] = self.pin

            client = await self._get_client()
            try:
                response = await client.post(f"{self.base_url}/login", json=body)
            except httpx.RequestError as e:
                raise ProviderError(self.id, f"login failed: {e}") from e
            if response.status_code >= 400:
                raise ProviderError(self.id, f"login failed: HTTP {response.status_code}", response.status_code)

            try:
                token = response.json()["data"]["token"]
            except (ValueError, KeyError, TypeError) as e:
                raise ProviderError(self.id, "malformed login response") from e

            self._token = token
            self._token_expires = time.time() + TOKEN_LIFETIME
            return token

    # =========================================================================
    # FETCH
    # =========================================================================

    async def fetch_dependent(self, series: SeriesKey) -> Optional[TvdbSeries]:
        tvdb_id = series.tvdb_id
        if tvdb_id is None:
            tvdb_id = await self._resolve_remote_id(series)
        if tvdb_id is None:
            return None
        return await self.get_series(tvdb_id)

    async def _resolve_remote_id(self, series: SeriesKey) -> Optional[int]:
        for remote_id in (series.tmdb_id, series.imdb_id):
            if not remote_id:
                continue
            data = await self._request("GET", f"/search/remoteid/{remote_id}", allow_not_found=True)
            for match in (data or {}).get("data") or []:
                found = match.get("series")
                if found and found.get("id"):
                    return self._parse(int, found["id"])
        return None

    async def get_series(self, tvdb_id: int) -> Optional[TvdbSeries]:
        data = await self._request(
            "GET",
            f"/series/{tvdb_id}/extended",
            params={"meta": "episodes", "short": "true"},
            allow_not_found=True,
        )
        record = (data or {}).get("data")
        if not record:
            return None
        return self._parse(self._parse_series, record)

    def _parse_series(self, record: Dict) -> TvdbSeries:
        season_numbers = sorted({
            season["number"]
            for season in record.get("seasons") or []
            if (season.get("number") or 0) > 0
            and (season.get("type") or {}).get("type", "official") == "official"
        })
        episodes = [
            episode for episode in record.get("episodes") or []
            if (episode.get("seasonNumber") or 0) > 0
        ]
        imdb_id = next(
            (
                remote.get("id")
                for remote in record.get("remoteIds") or []
                if (remote.get("sourceName") or "").upper() == "IMDB"
            ),
            None,
        )

        return TvdbSeries(
            tvdb_id=record["id"],
            name=record.get("name") or "",
            overview=record.get("overview") or None,
            first_aired=record.get("firstAired") or None,
            last_aired=record.get("lastAired") or None,
            status=(record.get("status") or {}).get("name"),
            average_runtime=record.get("averageRuntime") or None,
            genres=[g["name"] for g in record.get("genres") or [] if g.get("name")],
            season_numbers=season_numbers,
            episode_count=len(episodes),
            score=record.get("score"),
            image=record.get("image") or None,
            imdb_id=imdb_id,
        )
