"""
================================================================================
TCWatch v1.0 - Relationship Enricher
================================================================================
Links in-domain content to real-world cases and people from the knowledge
base (Wikidata).

  1. Case search with the title -> up to 3 RelatedCase entries, case tags
     and a heuristic FactualBasis
  2. Person search with the title -> wikidata ids on matching cast/crew

The accuracy and relationship rules below are heuristics. They are simple
string tests and can be wrong.
================================================================================
"""

import re
import logging
from typing import List, Optional

from .errors import EnrichmentError, ProviderError
from .matcher import names_match
from .merge import union_tags
from .models import (
    AggregatedContent, FactualBasis, HistoricalAccuracy, PersonCredit, RelatedCase,
    RelationshipKind, TimelineAccuracy,
)
from .providers.base import KnowledgeBaseProvider


logger = logging.getLogger(__name__)

MAX_RELATED_CASES = 3
MAX_CASE_TAGS = 5

# Confidence contributions for a case match
TITLE_MATCH_WEIGHT = 0.5
DESCRIPTION_MATCH_WEIGHT = 0.3
ERA_MATCH_WEIGHT = 0.2
ERA_WINDOW_YEARS = 50

_YEAR_RE = re.compile(r'^[+-]?(\d{1,4})-')


def year_of(date: Optional[str]) -> Optional[int]:
    """Year of an ISO or Wikidata (+1978-01-01T00:00:00Z) date."""
    if not date:
        return None
    match = _YEAR_RE.match(date)
    if match:
        return int(match.group(1))
    if date[:4].isdigit():
        return int(date[:4])
    return None


def relationship_kind(title: str, case_name: str) -> RelationshipKind:
    title_lower = title.lower()
    case_lower = case_name.lower()
    title_head = title_lower.split(':')[0]

    if case_lower in title_lower or (title_head and title_head in case_lower):
        return RelationshipKind.DIRECTLY_BASED_ON
    return RelationshipKind.INSPIRED_BY


def relationship_confidence(content: AggregatedContent, case_name: str, case_start: Optional[str]) -> float:
    case_lower = case_name.lower()
    confidence = 0.0

    if case_lower in (content.title or '').lower():
        confidence += TITLE_MATCH_WEIGHT
    if case_lower in (content.description or '').lower():
        confidence += DESCRIPTION_MATCH_WEIGHT

    release_year = year_of(content.release_date)
    case_year = year_of(case_start)
    if release_year is not None and case_year is not None and abs(release_year - case_year) < ERA_WINDOW_YEARS:
        confidence += ERA_MATCH_WEIGHT

    return round(min(confidence, 1.0), 4)


def factual_basis(genres: List[str]) -> FactualBasis:
    lowered = {g.lower() for g in genres}
    if 'documentary' in lowered:
        historical = HistoricalAccuracy.HIGH
        timeline = TimelineAccuracy.ACCURATE
    elif 'biography' in lowered:
        historical = HistoricalAccuracy.MEDIUM
        timeline = TimelineAccuracy.COMPRESSED
    else:
        historical = HistoricalAccuracy.DRAMATIZED
        timeline = TimelineAccuracy.COMPRESSED
    return FactualBasis(
        is_based_on_true_events=True,
        historical_accuracy=historical,
        timeline_accuracy=timeline,
    )


def _link_first(credits: List[PersonCredit], names: List[str], wikidata_id: str) -> None:
    for credit in credits:
        if names_match(credit.name, names):
            if not credit.wikidata_id:
                credit.wikidata_id = wikidata_id
            return


class RelationshipEnricher:
    """Adds knowledge-base links to a merged record without overwriting provider data."""

    def __init__(self, knowledge_base: KnowledgeBaseProvider):
        self.knowledge_base = knowledge_base

    async def enrich(self, content: AggregatedContent) -> AggregatedContent:
        """
        Enrich content in place.

        Raises:
            EnrichmentError: If the knowledge base cannot be queried
        """
        if not content.title:
            return content

        try:
            cases = await self.knowledge_base.search_cases(content.title, limit=MAX_RELATED_CASES)
        except ProviderError as e:
            raise EnrichmentError(f"case search failed: {e.message}") from e
        except Exception as e:
            raise EnrichmentError(f"case search failed: {e}") from e

        cases = cases[:MAX_RELATED_CASES]
        for case in cases:
            content.related_cases.append(RelatedCase(
                wikidata_id=case.wikidata_id,
                case_name=case.name,
                relationship=relationship_kind(content.title, case.name),
                confidence=relationship_confidence(content, case.name, case.start_date),
            ))

        if cases:
            content.case_tags = union_tags(content.case_tags, [c.name for c in cases])[:MAX_CASE_TAGS]
            if content.factual_basis is None:
                content.factual_basis = factual_basis(content.genre_tags)

        try:
            persons = await self.knowledge_base.search_persons(content.title)
        except ProviderError as e:
            raise EnrichmentError(f"person search failed: {e.message}") from e
        except Exception as e:
            raise EnrichmentError(f"person search failed: {e}") from e

        for person in persons:
            names = [person.name] + list(person.aliases)
            _link_first(content.cast, names, person.wikidata_id)
            _link_first(content.crew, names, person.wikidata_id)

        logger.debug(
            f"Enriched '{content.title}': {len(cases)} cases, {len(persons)} persons checked"
        )
        return content
