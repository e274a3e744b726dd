"""
================================================================================
TCWatch v1.0 - Title & Name Matching
================================================================================
Normalization and matching helpers shared by adapters, the enricher and the
deduplicator.

  - normalize_title_key(): dedup key for titles without any identifier
  - normalize_person_name(): person-name form used for cast/crew linking
  - names_match(): equality or containment after normalization
  - TitleMatcher: rapidfuzz similarity for choosing the best search hit
================================================================================
"""

import re
import logging
from typing import Callable, Iterable, List, Optional, Sequence, Tuple, TypeVar

from rapidfuzz import fuzz


logger = logging.getLogger(__name__)

T = TypeVar("T")


def normalize_title_key(title: str) -> str:
    """Lowercase and drop everything but ASCII letters and digits."""
    return re.sub(r'[^a-z0-9]', '', (title or '').lower())


def normalize_person_name(name: str) -> str:
    """Lowercase, keep letters and whitespace, collapse runs of spaces."""
    cleaned = re.sub(r'[^a-z\s]', '', (name or '').lower())
    return re.sub(r'\s+', ' ', cleaned).strip()


def names_match(name: str, candidates: Iterable[str]) -> bool:
    """
    True if name equals or contains (or is contained by) any candidate.

    Both sides are normalized first; empty forms never match.
    """
    target = normalize_person_name(name)
    if not target:
        return False
    for candidate in candidates:
        other = normalize_person_name(candidate)
        if not other:
            continue
        if target == other or target in other or other in target:
            return True
    return False


class TitleMatcher:
    """
    Fuzzy title similarity using rapidfuzz.

    Used when a provider search returns several hits and no identifier pins
    the title down.
    """

    STOP_WORDS = {'the', 'a', 'an'}

    def __init__(self, threshold: float = 60.0):
        self.threshold = threshold

    def normalize(self, title: str) -> str:
        title = re.sub(r'[^\w\s]', ' ', (title or '').lower())
        words = [w for w in title.split() if w not in self.STOP_WORDS]
        return ' '.join(words)

    def similarity(self, a: str, b: str) -> float:
        """Similarity in [0, 100], the best of three rapidfuzz scorers."""
        na, nb = self.normalize(a), self.normalize(b)
        if not na or not nb:
            return 0.0
        if na == nb:
            return 100.0
        return max(
            fuzz.ratio(na, nb),
            fuzz.token_sort_ratio(na, nb),
            fuzz.token_set_ratio(na, nb),
        )

    def best_match(
        self,
        title: str,
        candidates: Sequence[T],
        key: Callable[[T], str],
        year: Optional[int] = None,
        year_of: Optional[Callable[[T], Optional[int]]] = None,
    ) -> Optional[T]:
        """
        Pick the candidate whose title is closest to title.

        Ties keep provider order. A candidate released within a year of the
        requested year gets a small bonus.

        Returns:
            Best candidate above threshold, or None
        """
        scored: List[Tuple[float, int, T]] = []
        for index, candidate in enumerate(candidates):
            score = self.similarity(title, key(candidate))
            if year and year_of:
                candidate_year = year_of(candidate)
                if candidate_year and abs(candidate_year - year) <= 1:
                    score += 5.0
            scored.append((score, -index, candidate))

        if not scored:
            return None

        score, _, best = max(scored, key=lambda item: (item[0], item[1]))
        if score < self.threshold:
            logger.debug(f"No match for '{title}' above {self.threshold} (best {score:.1f})")
            return None
        return best


_matcher: Optional[TitleMatcher] = None


def get_matcher() -> TitleMatcher:
    global _matcher
    if _matcher is None:
        _matcher = TitleMatcher()
    return _matcher
