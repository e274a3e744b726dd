"""
================================================================================
TCWatch v1.0 - Content Aggregator
================================================================================
Central orchestrator for multi-provider content aggregation.

Pipeline for one title:
  1. Query independent providers in parallel (TMDb, Watchmode)
  2. If the content is a series, query dependent providers in parallel
     (TheTVDB, TVMaze) with ids taken from step 1
  3. Merge responders under fixed precedence
  4. If the merged record is true-crime, enrich it from Wikidata
  5. Score confidence and completeness, stamp sync time

Any provider may fail or have no match; failures are reported in the result
envelope and never abort the aggregation.

Usage:
    aggregator = build_aggregator()

    result = await aggregator.aggregate(ContentMatchingParams(title="Mindhunter"))
    results = await aggregator.search_domain_content("Ted Bundy", limit=10)

    await aggregator.close()
================================================================================
"""

import asyncio
import time
import logging
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Optional, Sequence

from ..cache import ResponseCache, create_backend
from ..config import Settings, load_settings
from ..log import configure_logging, log_event
from ..search.deduplicator import ResultDeduplicator
from .classifier import DomainClassifier
from .enricher import RelationshipEnricher
from .errors import AggregationError, EnrichmentError, InputError
from .merge import PROVIDER_PRECEDENCE, merge_contributions, series_key, validate_content
from .models import (
    AggregationResult, ContentContribution, ContentMatchingParams, ProviderName, SearchCandidate,
)
from .outcomes import OutcomeStatus, ProviderOutcome, gather_outcomes
from .providers.base import (
    ContentProvider, DependentProvider, KnowledgeBaseProvider, Provider, SearchableProvider,
)
from .providers.tmdb import TMDbProvider
from .providers.tvdb import TVDBProvider
from .providers.tvmaze import TVMazeProvider
from .providers.watchmode import WatchmodeProvider
from .providers.wikidata import WikidataProvider
from .scoring import score_content


logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ContentAggregator:
    """
    Aggregates one title (or a batch of search hits) across providers.

    Holds no per-call state; concurrent aggregate() calls are independent.
    """

    def __init__(
        self,
        providers: Sequence[ContentProvider] = (),
        dependent_providers: Sequence[DependentProvider] = (),
        knowledge_base: Optional[KnowledgeBaseProvider] = None,
        classifier: Optional[DomainClassifier] = None,
        clock: Callable[[], datetime] = _utcnow,
        max_concurrent_aggregations: int = 4,
        unconfigured: Iterable[ProviderName] = (),
    ):
        """
        Args:
            providers: Independent providers, queried first
            dependent_providers: Series-only providers, queried after the join
            knowledge_base: Provider used by the enricher (None disables enrichment)
            classifier: True-crime classifier
            clock: Source of last_synced_at
            max_concurrent_aggregations: Parallel aggregations in batch search
            unconfigured: Independent providers left out for lack of credentials
        """
        self.providers: Dict[ProviderName, ContentProvider] = {p.name: p for p in providers}
        self.dependent_providers: Dict[ProviderName, DependentProvider] = {
            p.name: p for p in dependent_providers
        }
        self.knowledge_base = knowledge_base
        self.enricher = RelationshipEnricher(knowledge_base) if knowledge_base else None
        self.classifier = classifier or DomainClassifier()
        self.deduplicator = ResultDeduplicator()
        self._clock = clock
        self.max_concurrent_aggregations = max(1, max_concurrent_aggregations)
        self.unconfigured = tuple(unconfigured)

    @property
    def all_providers(self) -> List[Provider]:
        providers: List[Provider] = list(self.providers.values()) + list(self.dependent_providers.values())
        if self.knowledge_base:
            providers.append(self.knowledge_base)
        return providers

    async def close(self):
        """Close all provider HTTP clients."""
        logger.info("Closing content providers...")
        for provider in self.all_providers:
            await provider.close()

    # =========================================================================
    # SINGLE-TITLE AGGREGATION
    # =========================================================================

    async def aggregate(self, params: ContentMatchingParams) -> AggregationResult:
        """
        Aggregate one title from every configured provider.

        Args:
            params: Loose content identifier

        Returns:
            AggregationResult with merged content, raw per-provider results,
            warnings and errors

        Raises:
            InputError: Title is blank and no identifier was given
        """
        self._validate(params)
        started = time.monotonic()

        warnings: List[str] = [
            f"{provider.display_name} provider not configured" for provider in self.unconfigured
        ]

        outcomes = await gather_outcomes({
            name: provider.fetch(params) for name, provider in self.providers.items()
        })
        contributions = self._contributions(outcomes)

        series = series_key(contributions)
        if series is not None and self.dependent_providers:
            dependent = await gather_outcomes({
                name: provider.fetch_dependent(series)
                for name, provider in self.dependent_providers.items()
            })
            outcomes.update(dependent)
            contributions.update(self._contributions(dependent))

        errors = [o.error_message() for o in outcomes.values() if o.status == OutcomeStatus.ERROR]

        content = merge_contributions(contributions)
        warnings.extend(validate_content(content, contributions))

        if self.enricher and self.classifier.is_in_domain(
            content.title, content.genre_tags, content.keywords
        ):
            try:
                await self.enricher.enrich(content)
            except EnrichmentError as e:
                logger.warning(f"Enrichment failed for '{content.title}': {e}")
                warnings.append(f"Wikidata enrichment failed: {e}")
            except Exception as e:
                logger.error(f"Unexpected enrichment failure for '{content.title}'", exc_info=e)
                warnings.append(f"Wikidata enrichment failed: {e}")

        score_content(content, contributions)
        content.last_synced_at = self._clock()

        sources = {
            name: (outcomes[name].value if name in outcomes and outcomes[name].responded else None)
            for name in PROVIDER_PRECEDENCE
        }

        log_event({
            "event": "aggregate",
            "title": params.title,
            "responded": [p.value for p in contributions],
            "errors": len(errors),
            "warnings": len(warnings),
            "confidence": content.source_confidence,
            "completeness": content.data_completeness,
            "elapsed_ms": int((time.monotonic() - started) * 1000),
        })

        return AggregationResult(content=content, sources=sources, warnings=warnings, errors=errors)

    @staticmethod
    def _validate(params: ContentMatchingParams):
        if not (params.title or "").strip() and not params.has_identifiers():
            raise InputError("title must not be empty when no identifier is given")
        if params.year is not None and params.year <= 0:
            raise InputError(f"invalid year: {params.year}")

    @staticmethod
    def _contributions(outcomes: Dict[ProviderName, ProviderOutcome]) -> Dict[ProviderName, ContentContribution]:
        return {
            name: outcome.value.to_contribution()
            for name, outcome in outcomes.items()
            if outcome.responded
        }

    # =========================================================================
    # BATCH SEARCH
    # =========================================================================

    async def search_domain_content(self, query: str, limit: int = 20) -> List[AggregationResult]:
        """
        Free-text search for true-crime content.

        Candidates from every searchable provider are classified first; only
        in-domain candidates are fully aggregated. Results are deduplicated,
        sorted by source confidence (highest first) and truncated to limit.

        Args:
            query: Search text
            limit: Maximum number of results

        Returns:
            List of AggregationResult
        """
        if not (query or "").strip():
            raise InputError("search query must not be empty")
        if limit <= 0:
            return []

        searchers = {
            name: provider for name, provider in self.providers.items()
            if isinstance(provider, SearchableProvider)
        }
        outcomes = await gather_outcomes({
            name: provider.search(query, limit) for name, provider in searchers.items()
        })

        candidates: List[SearchCandidate] = []
        for outcome in outcomes.values():
            if outcome.status == OutcomeStatus.ERROR:
                logger.warning(f"Search skipped: {outcome.error_message()}")
            elif outcome.responded:
                candidates.extend(outcome.value)

        in_domain = [
            candidate for candidate in candidates
            if (candidate.title.strip() or candidate.tmdb_id is not None or candidate.imdb_id)
            and self.classifier.is_in_domain(candidate.title, candidate.genres, candidate.keywords)
        ]
        logger.info(
            f"Search '{query}': {len(candidates)} candidates, {len(in_domain)} in domain"
        )

        semaphore = asyncio.Semaphore(self.max_concurrent_aggregations)

        async def run(candidate: SearchCandidate) -> Optional[AggregationResult]:
            async with semaphore:
                try:
                    return await self.aggregate(candidate.to_params())
                except AggregationError as e:
                    # One bad candidate never sinks the batch
                    logger.warning(f"Skipping candidate '{candidate.title}': {e}")
                    return None

        results = await asyncio.gather(*(run(candidate) for candidate in in_domain))

        unique = self.deduplicator.deduplicate([r for r in results if r is not None])
        unique.sort(key=lambda r: r.content.source_confidence, reverse=True)
        return unique[:limit]

    # =========================================================================
    # OPERATIONS
    # =========================================================================

    async def health_check(self) -> Dict[str, bool]:
        """Check every provider concurrently."""
        providers = self.all_providers
        results = await asyncio.gather(*(p.health_check() for p in providers))
        return {provider.id: healthy for provider, healthy in zip(providers, results)}

    def get_status(self) -> Dict[str, Dict]:
        """Circuit breaker and cache statistics per provider."""
        return {provider.id: provider.get_status() for provider in self.all_providers}

    async def clear_caches(self):
        for provider in self.all_providers:
            await provider.clear_cache()


# =============================================================================
# FACTORY
# =============================================================================

def build_aggregator(settings: Optional[Settings] = None) -> ContentAggregator:
    """
    Wire providers from configuration.

    Providers whose credentials are missing are left out.
    """
    settings = settings or load_settings()
    configure_logging(settings.log_level, settings.log_file)
    backend = create_backend(settings.redis_url)

    def adapter_kwargs(provider_cls) -> Dict:
        return {
            "cache": ResponseCache(
                f"tcwatch:{provider_cls.name.value}",
                provider_cls.cache_ttl,
                backend=backend,
                enabled=settings.response_cache_enabled,
            ),
            "timeout": max(settings.http_timeout, provider_cls.timeout),
        }

    providers: List[ContentProvider] = []
    unconfigured: List[ProviderName] = []

    if settings.tmdb_api_key:
        providers.append(TMDbProvider(settings.tmdb_api_key, **adapter_kwargs(TMDbProvider)))
    else:
        unconfigured.append(ProviderName.TMDB)

    if settings.watchmode_api_key:
        providers.append(WatchmodeProvider(settings.watchmode_api_key, **adapter_kwargs(WatchmodeProvider)))
    else:
        unconfigured.append(ProviderName.WATCHMODE)

    dependent: List[DependentProvider] = []
    if settings.tvdb_api_key:
        dependent.append(TVDBProvider(settings.tvdb_api_key, settings.tvdb_pin, **adapter_kwargs(TVDBProvider)))
    else:
        logger.warning("TVDB_API_KEY not set, TheTVDB provider disabled")
    dependent.append(TVMazeProvider(**adapter_kwargs(TVMazeProvider)))

    for name in unconfigured:
        logger.warning(f"{name.display_name} provider disabled (no API key)")

    aggregator = ContentAggregator(
        providers=providers,
        dependent_providers=dependent,
        knowledge_base=WikidataProvider(**adapter_kwargs(WikidataProvider)),
        max_concurrent_aggregations=settings.max_concurrent_aggregations,
        unconfigured=unconfigured,
    )
    logger.info(
        f"Initialized {len(aggregator.all_providers)} content providers: "
        f"{', '.join(p.id for p in aggregator.all_providers)}"
    )
    return aggregator


_aggregator: Optional[ContentAggregator] = None


def get_content_aggregator() -> ContentAggregator:
    """Get or create the global ContentAggregator instance."""
    global _aggregator
    if _aggregator is None:
        _aggregator = build_aggregator()
    return _aggregator
