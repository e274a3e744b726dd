import asyncio
import dataclasses

import pytest

from tcwatch_app.metadata.aggregator import ContentAggregator
from tcwatch_app.metadata.errors import InputError, ProviderError
from tcwatch_app.metadata.models import (
    ContentMatchingParams, ContentType, ExternalIdSource, MediaKind, ProviderName, SearchCandidate,
    SeriesKey,
)
from tcwatch_app.metadata.providers.wikidata import WikidataCase, WikidataProvider
from tests.factories import (
    FakeContentProvider, FakeDependentProvider, FakeKnowledgeBase, FakeSearchProvider, StepClock,
    tmdb_movie, tmdb_series, tvdb_series, tvmaze_show, watchmode_title,
)
from tests.test_providers import fast, mock_client


def build(tmdb=None, watchmode=None, tvdb=None, tvmaze=None, knowledge_base=None, **kwargs):
    providers = [
        tmdb or FakeContentProvider(ProviderName.TMDB),
        watchmode or FakeContentProvider(ProviderName.WATCHMODE),
    ]
    dependent = [
        tvdb or FakeDependentProvider(ProviderName.TVDB),
        tvmaze or FakeDependentProvider(ProviderName.TVMAZE),
    ]
    return ContentAggregator(
        providers=providers,
        dependent_providers=dependent,
        knowledge_base=knowledge_base,
        clock=kwargs.pop("clock", StepClock()),
        **kwargs,
    )


# =============================================================================
# SINGLE TITLE
# =============================================================================

@pytest.mark.asyncio
async def test_series_uses_every_provider():
    tvdb = FakeDependentProvider(ProviderName.TVDB, result=tvdb_series())
    tvmaze = FakeDependentProvider(ProviderName.TVMAZE, result=tvmaze_show())
    aggregator = build(
        tmdb=FakeContentProvider(ProviderName.TMDB, result=tmdb_series()),
        watchmode=FakeContentProvider(ProviderName.WATCHMODE, result=watchmode_title()),
        tvdb=tvdb,
        tvmaze=tvmaze,
    )

    result = await aggregator.aggregate(ContentMatchingParams(title="Mindhunter"))

    assert result.errors == []
    assert result.content.title == "Mindhunter"
    assert result.content.content_type == ContentType.TV_SERIES
    assert result.content.source_confidence == 1.0
    assert result.content.data_completeness == 1.0
    assert result.content.platforms[0].platform_name == "Netflix"
    assert result.content.external_ids[ExternalIdSource.TVMAZE] == 17051
    assert tvdb.keys == [SeriesKey(tmdb_id=67744, imdb_id="tt5290382", tvdb_id=328708)]
    assert tvmaze.keys == tvdb.keys
    assert set(result.sources) == {
        ProviderName.TMDB, ProviderName.WATCHMODE, ProviderName.TVDB, ProviderName.TVMAZE,
    }
    assert all(value is not None for value in result.sources.values())
    assert result.content.last_synced_at is not None


@pytest.mark.asyncio
async def test_movie_skips_dependent_providers():
    tvdb = FakeDependentProvider(ProviderName.TVDB, result=tvdb_series())
    aggregator = build(
        tmdb=FakeContentProvider(ProviderName.TMDB, result=tmdb_movie()),
        watchmode=FakeContentProvider(ProviderName.WATCHMODE, result=watchmode_title(type="movie")),
        tvdb=tvdb,
    )

    result = await aggregator.aggregate(ContentMatchingParams(title="Extremely Wicked", kind=MediaKind.MOVIE))

    assert tvdb.keys == []
    assert result.sources[ProviderName.TVDB] is None
    assert result.content.content_type == ContentType.MOVIE
    assert result.content.source_confidence == 1.0


@pytest.mark.asyncio
async def test_primary_title_wins():
    aggregator = build(
        tmdb=FakeContentProvider(ProviderName.TMDB, result=tmdb_movie(title="A")),
        watchmode=FakeContentProvider(ProviderName.WATCHMODE, result=watchmode_title(title="B", type="movie")),
    )

    result = await aggregator.aggregate(ContentMatchingParams(title="whatever"))

    assert result.content.title == "A"


@pytest.mark.asyncio
async def test_platforms_empty_without_watchmode():
    aggregator = build(tmdb=FakeContentProvider(ProviderName.TMDB, result=tmdb_movie()))

    result = await aggregator.aggregate(ContentMatchingParams(title="Extremely Wicked"))

    assert result.content.platforms == []
    assert "No streaming platform information available" in result.warnings


@pytest.mark.asyncio
async def test_provider_error_is_isolated():
    aggregator = build(
        tmdb=FakeContentProvider(ProviderName.TMDB, error=ProviderError("tmdb", "HTTP 503", 503)),
        watchmode=FakeContentProvider(ProviderName.WATCHMODE, result=watchmode_title(type="movie")),
    )

    result = await aggregator.aggregate(ContentMatchingParams(title="Mindhunter"))

    assert result.errors == ["TMDb fetch failed: HTTP 503"]
    assert result.content.title == "Mindhunter (Watchmode)"
    assert result.sources[ProviderName.TMDB] is None
    assert result.content.source_confidence == round(0.3 / 0.7, 4)


@pytest.mark.asyncio
async def test_unexpected_exception_is_isolated():
    aggregator = build(
        tmdb=FakeContentProvider(ProviderName.TMDB, result=tmdb_movie()),
        watchmode=FakeContentProvider(ProviderName.WATCHMODE, error=KeyError("sources")),
    )

    result = await aggregator.aggregate(ContentMatchingParams(title="Extremely Wicked"))

    assert len(result.errors) == 1
    assert result.errors[0].startswith("Watchmode fetch failed")
    assert result.content.title == tmdb_movie().title


@pytest.mark.asyncio
async def test_unexpected_enrichment_crash_becomes_warning():
    aggregator = build(
        tmdb=FakeContentProvider(ProviderName.TMDB, result=tmdb_movie()),
        knowledge_base=FakeKnowledgeBase(error=RuntimeError("boom")),
    )

    result = await aggregator.aggregate(ContentMatchingParams(title="Extremely Wicked"))

    assert result.errors == []
    assert any(w.startswith("Wikidata enrichment failed") for w in result.warnings)
    assert result.content.title == tmdb_movie().title


@pytest.mark.asyncio
async def test_null_sparql_bindings_become_warning():
    knowledge_base = fast(WikidataProvider(
        client=mock_client({"/sparql": {"head": {"vars": []}, "results": {"bindings": None}}})
    ))
    aggregator = build(
        tmdb=FakeContentProvider(ProviderName.TMDB, result=tmdb_movie()),
        knowledge_base=knowledge_base,
    )

    result = await aggregator.aggregate(ContentMatchingParams(title="Extremely Wicked"))

    assert result.errors == []
    assert any("malformed SPARQL" in w for w in result.warnings)
    await knowledge_base.close()


@pytest.mark.asyncio
async def test_dependent_error_is_recorded():
    aggregator = build(
        tmdb=FakeContentProvider(ProviderName.TMDB, result=tmdb_series()),
        tvdb=FakeDependentProvider(ProviderName.TVDB, error=ProviderError("tvdb", "login failed: HTTP 401", 401)),
        tvmaze=FakeDependentProvider(ProviderName.TVMAZE, result=tvmaze_show()),
    )

    result = await aggregator.aggregate(ContentMatchingParams(title="Mindhunter"))

    assert result.errors == ["TVDB fetch failed: login failed: HTTP 401"]
    assert result.sources[ProviderName.TVMAZE] is not None
    assert result.content.source_confidence == 0.5


@pytest.mark.asyncio
async def test_zero_responders(no_providers):
    providers, dependent = no_providers
    aggregator = ContentAggregator(providers=providers, dependent_providers=dependent)

    result = await aggregator.aggregate(ContentMatchingParams(title="Nothing Matches"))

    assert result.content.source_confidence == 0.0
    assert result.content.data_completeness == 0.0
    assert "No primary source available for content" in result.warnings
    assert result.errors == []
    assert all(value is None for value in result.sources.values())


@pytest.mark.asyncio
async def test_all_providers_failing():
    failure = ProviderError("x", "network down")
    aggregator = build(
        tmdb=FakeContentProvider(ProviderName.TMDB, error=failure),
        watchmode=FakeContentProvider(ProviderName.WATCHMODE, error=failure),
    )

    result = await aggregator.aggregate(ContentMatchingParams(title="Anything"))

    assert result.content.source_confidence == 0.0
    assert len(result.errors) == 2
    assert result.warnings


@pytest.mark.asyncio
async def test_blank_title_without_ids_is_rejected_before_fetching():
    tmdb = FakeContentProvider(ProviderName.TMDB, result=tmdb_movie())
    aggregator = build(tmdb=tmdb)

    with pytest.raises(InputError):
        await aggregator.aggregate(ContentMatchingParams(title="   "))

    assert tmdb.calls == []


@pytest.mark.asyncio
async def test_blank_title_with_identifier_is_accepted():
    tmdb = FakeContentProvider(ProviderName.TMDB, result=tmdb_movie())
    aggregator = build(tmdb=tmdb)

    result = await aggregator.aggregate(ContentMatchingParams(title="", tmdb_id=424, kind=MediaKind.MOVIE))

    assert result.content.external_ids[ExternalIdSource.TMDB] == 424


@pytest.mark.asyncio
async def test_unconfigured_provider_warning():
    aggregator = ContentAggregator(
        providers=[FakeContentProvider(ProviderName.TMDB, result=tmdb_movie())],
        unconfigured=[ProviderName.WATCHMODE],
    )

    result = await aggregator.aggregate(ContentMatchingParams(title="Extremely Wicked"))

    assert "Watchmode provider not configured" in result.warnings
    assert result.sources[ProviderName.WATCHMODE] is None


@pytest.mark.asyncio
async def test_aggregation_is_idempotent_apart_from_sync_time():
    knowledge_base = FakeKnowledgeBase(cases=[WikidataCase(wikidata_id="Q1", name="Ted Bundy")])
    aggregator = build(
        tmdb=FakeContentProvider(ProviderName.TMDB, result=tmdb_movie()),
        watchmode=FakeContentProvider(ProviderName.WATCHMODE, result=watchmode_title(type="movie")),
        knowledge_base=knowledge_base,
    )
    params = ContentMatchingParams(title="Extremely Wicked")

    first = await aggregator.aggregate(params)
    second = await aggregator.aggregate(params)

    assert first.content.last_synced_at != second.content.last_synced_at
    assert dataclasses.replace(first.content, last_synced_at=None) == \
        dataclasses.replace(second.content, last_synced_at=None)
    assert first.warnings == second.warnings
    assert first.errors == second.errors


# =============================================================================
# ENRICHMENT GATE
# =============================================================================

@pytest.mark.asyncio
async def test_in_domain_content_is_enriched():
    knowledge_base = FakeKnowledgeBase(cases=[WikidataCase(wikidata_id="Q1", name="Ted Bundy")])
    aggregator = build(
        tmdb=FakeContentProvider(ProviderName.TMDB, result=tmdb_movie()),
        knowledge_base=knowledge_base,
    )

    result = await aggregator.aggregate(ContentMatchingParams(title="Extremely Wicked"))

    assert knowledge_base.case_queries == [tmdb_movie().title]
    assert result.content.case_tags == ["Ted Bundy"]
    assert result.content.factual_basis is not None


@pytest.mark.asyncio
async def test_out_of_domain_content_is_not_enriched():
    knowledge_base = FakeKnowledgeBase()
    aggregator = build(
        tmdb=FakeContentProvider(
            ProviderName.TMDB,
            result=tmdb_movie(title="Paddington", genres=["Family"], keywords=["bear"], overview="A bear."),
        ),
        knowledge_base=knowledge_base,
    )

    result = await aggregator.aggregate(ContentMatchingParams(title="Paddington"))

    assert knowledge_base.case_queries == []
    assert result.content.related_cases == []


@pytest.mark.asyncio
async def test_enrichment_failure_becomes_warning():
    aggregator = build(
        tmdb=FakeContentProvider(ProviderName.TMDB, result=tmdb_movie()),
        knowledge_base=FakeKnowledgeBase(error=ProviderError("wikidata", "HTTP 500", 500)),
    )

    result = await aggregator.aggregate(ContentMatchingParams(title="Extremely Wicked"))

    assert result.errors == []
    assert any(w.startswith("Wikidata enrichment failed") for w in result.warnings)
    assert result.content.title == tmdb_movie().title


# =============================================================================
# CANCELLATION
# =============================================================================

@pytest.mark.asyncio
async def test_cancellation_propagates_to_providers():
    slow_tmdb = FakeContentProvider(ProviderName.TMDB, result=tmdb_movie(), delay=30)
    slow_watchmode = FakeContentProvider(ProviderName.WATCHMODE, result=watchmode_title(), delay=30)
    aggregator = build(tmdb=slow_tmdb, watchmode=slow_watchmode)

    task = asyncio.ensure_future(aggregator.aggregate(ContentMatchingParams(title="Mindhunter")))
    await asyncio.sleep(0.05)
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert slow_tmdb.cancelled
    assert slow_watchmode.cancelled


# =============================================================================
# BATCH SEARCH
# =============================================================================

@pytest.mark.asyncio
async def test_search_classifies_dedups_and_sorts():
    bundy_doc = tmdb_movie(tmdb_id=1, title="Ted Bundy: Falling for a Killer", genres=["Documentary", "Crime"])
    bundy_movie = tmdb_movie(tmdb_id=2, title="Extremely Wicked", imdb_id="tt2")
    tmdb = FakeSearchProvider(
        ProviderName.TMDB,
        candidates=[
            SearchCandidate(ProviderName.TMDB, "Ted Bundy: Falling for a Killer", genres=["Documentary"], tmdb_id=1),
            SearchCandidate(ProviderName.TMDB, "Extremely Wicked", genres=["Crime"], tmdb_id=2),
            SearchCandidate(ProviderName.TMDB, "Bundy Family Cookbook", genres=["Family"], tmdb_id=3),
        ],
        results_by_id={1: bundy_doc, 2: bundy_movie},
    )
    watchmode = FakeSearchProvider(
        ProviderName.WATCHMODE,
        candidates=[
            # Same title as TMDb id 1, deduplicated after aggregation
            SearchCandidate(ProviderName.WATCHMODE, "Ted Bundy: Falling for a Killer", genres=["Crime"], tmdb_id=1),
        ],
        results_by_id={2: watchmode_title(type="movie", tmdb_id=2, imdb_id="tt2")},
    )
    aggregator = build(tmdb=tmdb, watchmode=watchmode)

    results = await aggregator.search_domain_content("bundy", limit=10)

    titles = [r.content.title for r in results]
    assert titles == ["Extremely Wicked", "Ted Bundy: Falling for a Killer"]
    assert [r.content.source_confidence for r in results] == [1.0, round(0.4 / 0.7, 4)]
    # The out-of-domain candidate was never aggregated
    assert all(params.tmdb_id != 3 for params in tmdb.calls)


@pytest.mark.asyncio
async def test_search_truncates_to_limit():
    tmdb = FakeSearchProvider(
        ProviderName.TMDB,
        candidates=[
            SearchCandidate(ProviderName.TMDB, f"Murder Case {i}", tmdb_id=i) for i in range(1, 6)
        ],
        results_by_id={i: tmdb_movie(tmdb_id=i, title=f"Murder Case {i}") for i in range(1, 6)},
    )
    aggregator = build(tmdb=tmdb)

    results = await aggregator.search_domain_content("murder", limit=3)

    assert len(results) == 3
    assert tmdb.queries == [("murder", 3)]


@pytest.mark.asyncio
async def test_search_tolerates_provider_failure():
    tmdb = FakeSearchProvider(ProviderName.TMDB, search_error=ProviderError("tmdb", "HTTP 500", 500))
    watchmode = FakeSearchProvider(
        ProviderName.WATCHMODE,
        candidates=[SearchCandidate(ProviderName.WATCHMODE, "Cold Case Files", tmdb_id=9)],
    )
    aggregator = build(tmdb=tmdb, watchmode=watchmode)

    results = await aggregator.search_domain_content("cold case")

    assert len(results) == 1
    assert results[0].content.title == ""
    assert results[0].errors == []


@pytest.mark.asyncio
async def test_search_skips_candidate_that_fails_validation():
    tmdb = FakeSearchProvider(
        ProviderName.TMDB,
        candidates=[
            SearchCandidate(ProviderName.TMDB, "Murder Case 1", year=0, tmdb_id=1),
            SearchCandidate(ProviderName.TMDB, "Murder Case 2", tmdb_id=2),
        ],
        results_by_id={i: tmdb_movie(tmdb_id=i, title=f"Murder Case {i}") for i in (1, 2)},
    )
    aggregator = build(tmdb=tmdb)

    results = await aggregator.search_domain_content("murder")

    assert [r.content.title for r in results] == ["Murder Case 2"]


@pytest.mark.asyncio
async def test_search_rejects_blank_query():
    with pytest.raises(InputError):
        await build().search_domain_content("  ")


@pytest.mark.asyncio
async def test_close_and_status():
    tmdb = FakeContentProvider(ProviderName.TMDB)
    aggregator = build(tmdb=tmdb, knowledge_base=FakeKnowledgeBase())

    health = await aggregator.health_check()
    status = aggregator.get_status()
    await aggregator.close()

    assert health == {"tmdb": True, "watchmode": True, "tvdb": True, "tvmaze": True, "wikidata": True}
    assert set(status) == set(health)
    assert tmdb.closed
