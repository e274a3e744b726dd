from .base import (
    ContentProvider, DependentProvider, HttpProvider, KnowledgeBaseProvider,
    Provider, ProviderRecord, RateLimiter, SearchableProvider,
)
from .tmdb import TMDbProvider, TmdbTitle
from .watchmode import WatchmodeProvider, WatchmodeTitle
from .tvdb import TVDBProvider, TvdbSeries
from .tvmaze import TVMazeProvider, TvmazeShow
from .wikidata import WikidataProvider, WikidataCase, WikidataPerson
