"""
================================================================================
TCWatch v1.0 - TVMaze Provider
================================================================================
Schedule and status data for series. Public API, no key required.

API: https://api.tvmaze.com
Rate Limit: 20 calls / 10 seconds per IP
================================================================================
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup

from ..models import ContentContribution, ExternalIdSource, ProviderName, SeriesKey
from .base import DependentProvider, HttpProvider, ProviderRecord


logger = logging.getLogger(__name__)


def strip_html(markup: Optional[str]) -> Optional[str]:
    """TVMaze summaries are HTML fragments."""
    if not markup:
        return None
    text = BeautifulSoup(markup, "html.parser").get_text(" ", strip=True)
    return text or None


@dataclass
class TvmazeShow(ProviderRecord):
    tvmaze_id: int
    name: str
    summary: Optional[str] = None
    status: Optional[str] = None
    premiered: Optional[str] = None
    ended: Optional[str] = None
    average_runtime: Optional[int] = None
    genres: List[str] = field(default_factory=list)
    rating: Optional[float] = None
    image_url: Optional[str] = None
    network: Optional[str] = None
    imdb_id: Optional[str] = None
    tvdb_id: Optional[int] = None

    def to_contribution(self) -> ContentContribution:
        external_ids: Dict[ExternalIdSource, Any] = {ExternalIdSource.TVMAZE: self.tvmaze_id}
        if self.imdb_id:
            external_ids[ExternalIdSource.IMDB] = self.imdb_id
        if self.tvdb_id:
            external_ids[ExternalIdSource.TVDB] = self.tvdb_id

        return ContentContribution(
            title=self.name,
            description=self.summary,
            release_date=self.premiered,
            end_date=self.ended,
            runtime_minutes=self.average_runtime,
            status=self.status,
            poster_url=self.image_url,
            is_series=True,
            genres=list(self.genres),
            external_ids=external_ids,
            rating=self.rating,
        )


class TVMazeProvider(HttpProvider, DependentProvider):
    name = ProviderName.TVMAZE
    base_url = "https://api.tvmaze.com"
    rate_limit = 100
    cache_ttl = 12 * 3600
    health_path = "/shows/1"

    async def fetch_dependent(self, series: SeriesKey) -> Optional[TvmazeShow]:
        """Look the show up by IMDb id, falling back to the TheTVDB id."""
        if series.imdb_id:
            lookup = {"imdb": series.imdb_id}
        elif series.tvdb_id:
            lookup = {"thetvdb": series.tvdb_id}
        else:
            logger.debug(f"{self.id}: no IMDb or TheTVDB id to look up")
            return None

        data = await self._request("GET", "/lookup/shows", params=lookup, allow_not_found=True)
        if not data:
            return None
        return self._parse(self._parse_show, data)

    def _parse_show(self, data: Dict) -> TvmazeShow:
        externals = data.get("externals") or {}
        image = data.get("image") or {}
        network = data.get("network") or data.get("webChannel") or {}

        return TvmazeShow(
            tvmaze_id=data["id"],
            name=data.get("name") or "",
            summary=strip_html(data.get("summary")),
            status=data.get("status"),
            premiered=data.get("premiered"),
            ended=data.get("ended"),
            average_runtime=data.get("averageRuntime") or data.get("runtime"),
            genres=list(data.get("genres") or []),
            rating=(data.get("rating") or {}).get("average"),
            image_url=image.get("original") or image.get("medium"),
            network=network.get("name"),
            imdb_id=externals.get("imdb"),
            tvdb_id=externals.get("thetvdb"),
        )
