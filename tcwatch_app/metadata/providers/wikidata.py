"""
================================================================================
TCWatch v1.0 - Wikidata Provider
================================================================================
Knowledge base of real-world criminal cases and people, queried over the
public SPARQL endpoint. Used only by the relationship enricher.

API: https://query.wikidata.org/sparql
Rate Limit: 60 queries / minute (shared public endpoint)
================================================================================
"""

import re
import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

from ..errors import ProviderError
from ..models import ProviderName
from .base import HttpProvider, KnowledgeBaseProvider


logger = logging.getLogger(__name__)

# Class items
MURDER = "Q132821"
SERIAL_KILLING = "Q336286"
CRIMINAL_CASE = "Q2334719"
HUMAN = "Q5"

CASE_QUERY = """
SELECT DISTINCT ?case ?caseLabel ?caseDescription ?startDate ?endDate ?locationLabel WHERE {{
  VALUES ?class {{ wd:{murder} wd:{serial_killing} wd:{criminal_case} }}
  ?case wdt:P31/wdt:P279* ?class .
  ?case rdfs:label ?caseLabel .
  FILTER(LANG(?caseLabel) = "en")
  FILTER(CONTAINS(LCASE(?caseLabel), LCASE("{query}")))
  OPTIONAL {{ ?case schema:description ?caseDescription . FILTER(LANG(?caseDescription) = "en") }}
  OPTIONAL {{ ?case wdt:P580 ?startDate . }}
  OPTIONAL {{ ?case wdt:P582 ?endDate . }}
  OPTIONAL {{ ?case wdt:P276 ?location . ?location rdfs:label ?locationLabel . FILTER(LANG(?locationLabel) = "en") }}
}}
LIMIT {limit}
"""

PERSON_QUERY = """
SELECT ?person ?personLabel ?personDescription ?birthDate ?deathDate
       (GROUP_CONCAT(DISTINCT ?alias; separator="|") AS ?aliases) WHERE {{
  ?person wdt:P31 wd:{human} .
  ?person rdfs:label ?personLabel .
  FILTER(LANG(?personLabel) = "en")
  FILTER(CONTAINS(LCASE(?personLabel), LCASE("{query}")))
  OPTIONAL {{ ?person schema:description ?personDescription . FILTER(LANG(?personDescription) = "en") }}
  OPTIONAL {{ ?person wdt:P569 ?birthDate . }}
  OPTIONAL {{ ?person wdt:P570 ?deathDate . }}
  OPTIONAL {{ ?person skos:altLabel ?alias . FILTER(LANG(?alias) = "en") }}
}}
GROUP BY ?person ?personLabel ?personDescription ?birthDate ?deathDate
LIMIT {limit}
"""


def escape_literal(value: str) -> str:
    """Escape a string for use inside a double-quoted SPARQL literal."""
    value = value.replace("\\", "\\\\").replace('"', '\\"')
    return re.sub(r'[\r\n\t]', ' ', value)


def entity_id(uri: str) -> str:
    """http://www.wikidata.org/entity/Q123 -> Q123"""
    return uri.rsplit("/", 1)[-1]


@dataclass
class WikidataCase:
    wikidata_id: str
    name: str
    description: Optional[str] = None
    start_date: Optional[str] = None
    end_date: Optional[str] = None
    location: Optional[str] = None


@dataclass
class WikidataPerson:
    wikidata_id: str
    name: str
    description: Optional[str] = None
    birth_date: Optional[str] = None
    death_date: Optional[str] = None
    aliases: List[str] = field(default_factory=list)


class WikidataProvider(HttpProvider, KnowledgeBaseProvider):
    name = ProviderName.WIKIDATA
    base_url = "https://query.wikidata.org"
    rate_limit = 60
    timeout = 30.0  # SPARQL queries are slow
    cache_ttl = 24 * 3600

    async def _sparql(self, query: str) -> List[Dict]:
        data = await self._request(
            "GET",
            "/sparql",
            params={"query": query, "format": "json"},
            headers={"Accept": "application/sparql-results+json"},
        )
        try:
            bindings = data["results"]["bindings"]
        except (KeyError, TypeError) as e:
            raise ProviderError(self.id, "malformed SPARQL response") from e
        if not isinstance(bindings, list) or not all(isinstance(row, dict) for row in bindings):
            raise ProviderError(self.id, "malformed SPARQL response")
        return bindings

    async def search_cases(self, query: str, limit: int = 10) -> List[WikidataCase]:
        bindings = await self._sparql(CASE_QUERY.format(
            murder=MURDER,
            serial_killing=SERIAL_KILLING,
            criminal_case=CRIMINAL_CASE,
            query=escape_literal(query),
            limit=int(limit),
        ))

        cases: List[WikidataCase] = []
        seen = set()
        for row in bindings:
            wikidata_id = entity_id(_value(row, "case") or "")
            if not wikidata_id or wikidata_id in seen:
                continue
            seen.add(wikidata_id)
            cases.append(WikidataCase(
                wikidata_id=wikidata_id,
                name=_value(row, "caseLabel") or wikidata_id,
                description=_value(row, "caseDescription"),
                start_date=_value(row, "startDate"),
                end_date=_value(row, "endDate"),
                location=_value(row, "locationLabel"),
            ))
        return cases

    async def search_persons(self, query: str, limit: int = 10) -> List[WikidataPerson]:
        bindings = await self._sparql(PERSON_QUERY.format(
            human=HUMAN,
            query=escape_literal(query),
            limit=int(limit),
        ))

        return [
            WikidataPerson(
                wikidata_id=entity_id(_value(row, "person") or ""),
                name=_value(row, "personLabel") or "",
                description=_value(row, "personDescription"),
                birth_date=_value(row, "birthDate"),
                death_date=_value(row, "deathDate"),
                aliases=[a for a in (_value(row, "aliases") or "").split("|") if a],
            )
            for row in bindings
            if _value(row, "person")
        ]

    async def health_check(self) -> bool:
        try:
            await self._request(
                "GET",
                "/sparql",
                params={"query": "ASK { ?s ?p ?o }", "format": "json"},
                use_cache=False,
            )
            return True
        except ProviderError as e:
            logger.warning(f"{self.id}: health check failed: {e}")
            return False


def _value(row: Dict, key: str) -> Optional[str]:
    cell = row.get(key)
    return cell.get("value") if isinstance(cell, dict) else None
