import pytest

from tcwatch_app.metadata.enricher import (
    RelationshipEnricher, factual_basis, relationship_confidence, relationship_kind, year_of,
)
from tcwatch_app.metadata.errors import EnrichmentError, ProviderError
from tcwatch_app.metadata.models import (
    AggregatedContent, HistoricalAccuracy, PersonCredit, RelationshipKind, TimelineAccuracy,
)
from tcwatch_app.metadata.providers.wikidata import WikidataCase, WikidataPerson
from tests.factories import FakeKnowledgeBase


def bundy_content(**overrides) -> AggregatedContent:
    values = dict(
        title="Ted Bundy: American Boogeyman",
        description="The hunt for Ted Bundy across several states.",
        release_date="2021-09-10",
        genre_tags=["Crime", "Thriller"],
        cast=[
            PersonCredit(name="Chad Michael Murray", role="Ted Bundy"),
            PersonCredit(name="Theodore Robert Bundy", role="Archive footage"),
        ],
        crew=[PersonCredit(name="Daniel Farrands", role="Director", department="Directing")],
    )
    values.update(overrides)
    return AggregatedContent(**values)


CASES = [
    WikidataCase(wikidata_id="Q1", name="Ted Bundy", start_date="+1974-01-04T00:00:00Z"),
    WikidataCase(wikidata_id="Q2", name="Murder of Lynda Ann Healy", start_date="+1974-02-01T00:00:00Z"),
    WikidataCase(wikidata_id="Q3", name="Chi Omega murders", start_date="+1978-01-15T00:00:00Z"),
    WikidataCase(wikidata_id="Q4", name="Fourth case"),
]


def test_year_of_formats():
    assert year_of("+1978-01-15T00:00:00Z") == 1978
    assert year_of("2019-05-03") == 2019
    assert year_of("2019") == 2019
    assert year_of("") is None
    assert year_of(None) is None


def test_relationship_kind():
    assert relationship_kind("Ted Bundy: American Boogeyman", "Ted Bundy") == RelationshipKind.DIRECTLY_BASED_ON
    # Title head contained in the case name
    assert relationship_kind("Zodiac: Director's Cut", "Zodiac Killer") == RelationshipKind.DIRECTLY_BASED_ON
    assert relationship_kind("Mindhunter", "Ted Bundy") == RelationshipKind.INSPIRED_BY


def test_relationship_confidence_full_and_clamped():
    content = bundy_content()

    assert relationship_confidence(content, "Ted Bundy", "+1974-01-04T00:00:00Z") == 1.0


def test_relationship_confidence_partial():
    content = bundy_content()

    # Era only
    assert relationship_confidence(content, "Murder of Lynda Ann Healy", "1974-02-01") == 0.2
    # Title and description, but no date on the case
    assert relationship_confidence(content, "Ted Bundy", None) == 0.8
    # Too far apart in time
    assert relationship_confidence(content, "Nobody", "1900-01-01") == 0.0


def test_factual_basis_heuristics():
    documentary = factual_basis(["Documentary", "Crime"])
    assert documentary.historical_accuracy == HistoricalAccuracy.HIGH
    assert documentary.timeline_accuracy == TimelineAccuracy.ACCURATE

    biography = factual_basis(["biography"])
    assert biography.historical_accuracy == HistoricalAccuracy.MEDIUM
    assert biography.timeline_accuracy == TimelineAccuracy.COMPRESSED

    drama = factual_basis(["Drama"])
    assert drama.historical_accuracy == HistoricalAccuracy.DRAMATIZED
    assert drama.is_based_on_true_events


@pytest.mark.asyncio
async def test_enrich_adds_cases_tags_and_basis():
    knowledge_base = FakeKnowledgeBase(cases=CASES)
    content = bundy_content()

    await RelationshipEnricher(knowledge_base).enrich(content)

    assert knowledge_base.case_queries == ["Ted Bundy: American Boogeyman"]
    assert [c.wikidata_id for c in content.related_cases] == ["Q1", "Q2", "Q3"]
    assert content.related_cases[0].relationship == RelationshipKind.DIRECTLY_BASED_ON
    assert content.related_cases[1].relationship == RelationshipKind.INSPIRED_BY
    assert content.case_tags == ["Ted Bundy", "Murder of Lynda Ann Healy", "Chi Omega murders"]
    assert content.factual_basis.historical_accuracy == HistoricalAccuracy.DRAMATIZED
    assert all(0.0 <= c.confidence <= 1.0 for c in content.related_cases)


@pytest.mark.asyncio
async def test_enrich_without_cases_leaves_basis_unset():
    content = bundy_content()

    await RelationshipEnricher(FakeKnowledgeBase()).enrich(content)

    assert content.related_cases == []
    assert content.case_tags == []
    assert content.factual_basis is None


@pytest.mark.asyncio
async def test_enrich_links_first_matching_cast_and_crew():
    person = WikidataPerson(wikidata_id="Q7", name="Ted Bundy", aliases=["Theodore Robert Bundy"])
    director = WikidataPerson(wikidata_id="Q8", name="Daniel Farrands")
    content = bundy_content()

    await RelationshipEnricher(FakeKnowledgeBase(persons=[person, director])).enrich(content)

    # Only the alias matches a cast entry
    assert content.cast[0].wikidata_id is None
    assert content.cast[1].wikidata_id == "Q7"
    assert content.crew[0].wikidata_id == "Q8"


@pytest.mark.asyncio
async def test_enrich_never_overwrites_existing_links():
    content = bundy_content(crew=[PersonCredit(name="Daniel Farrands", wikidata_id="Q-existing")])

    await RelationshipEnricher(
        FakeKnowledgeBase(persons=[WikidataPerson(wikidata_id="Q8", name="Daniel Farrands")])
    ).enrich(content)

    assert content.crew[0].wikidata_id == "Q-existing"


@pytest.mark.asyncio
async def test_enrich_failure_raises_enrichment_error():
    knowledge_base = FakeKnowledgeBase(error=ProviderError("wikidata", "HTTP 503", 503))

    with pytest.raises(EnrichmentError):
        await RelationshipEnricher(knowledge_base).enrich(bundy_content())


@pytest.mark.asyncio
async def test_person_search_failure_raises_enrichment_error():
    knowledge_base = FakeKnowledgeBase(person_error=ProviderError("wikidata", "timeout"))

    with pytest.raises(EnrichmentError, match="person search failed"):
        await RelationshipEnricher(knowledge_base).enrich(bundy_content())


@pytest.mark.asyncio
async def test_unexpected_knowledge_base_crash_raises_enrichment_error():
    knowledge_base = FakeKnowledgeBase(error=RuntimeError("boom"))

    with pytest.raises(EnrichmentError, match="case search failed: boom"):
        await RelationshipEnricher(knowledge_base).enrich(bundy_content())
