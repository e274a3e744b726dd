"""True-crime domain classifier."""

from typing import Iterable, Optional

# Curated allow-list; compared case-insensitively
TRUE_CRIME_GENRES = ('Crime', 'Documentary', 'Mystery', 'Thriller', 'Biography')

TRUE_CRIME_KEYWORDS = (
    'true crime',
    'serial killer',
    'murder',
    'investigation',
    'detective',
    'criminal',
    'forensic',
    'police',
    'cold case',
    'unsolved',
)


class DomainClassifier:
    """
    Decides whether a title is true-crime content.

    A title is in-domain when any of these hold, checked in order:
      1. one of its genres is in the genre allow-list
      2. one of its keywords contains a curated keyword
      3. its title contains a curated keyword
    """

    def __init__(self, genres: Iterable[str] = TRUE_CRIME_GENRES, keywords: Iterable[str] = TRUE_CRIME_KEYWORDS):
        self.genres = {g.lower() for g in genres}
        self.keywords = tuple(k.lower() for k in keywords)

    def matches_genres(self, genres: Iterable[str]) -> bool:
        return any(g.lower() in self.genres for g in genres if g)

    def matches_keywords(self, keywords: Iterable[str]) -> bool:
        for keyword in keywords:
            lowered = (keyword or '').lower()
            if any(curated in lowered for curated in self.keywords):
                return True
        return False

    def matches_title(self, title: Optional[str]) -> bool:
        lowered = (title or '').lower()
        return any(curated in lowered for curated in self.keywords)

    def is_in_domain(self, title: Optional[str], genres: Iterable[str] = (), keywords: Iterable[str] = ()) -> bool:
        return (
            self.matches_genres(genres)
            or self.matches_keywords(keywords)
            or self.matches_title(title)
        )


_default = DomainClassifier()


def is_true_crime(title: Optional[str], genres: Iterable[str] = (), keywords: Iterable[str] = ()) -> bool:
    return _default.is_in_domain(title, genres, keywords)
