from tcwatch_app.metadata.matcher import (
    TitleMatcher, names_match, normalize_person_name, normalize_title_key,
)


def test_normalize_title_key():
    assert normalize_title_key("The Jinx: The Life & Deaths of Robert Durst") == "thejinxthelifedeathsofrobertdurst"
    assert normalize_title_key("") == ""


def test_normalize_person_name():
    assert normalize_person_name("  Theodore  R. Bundy ") == "theodore r bundy"


def test_names_match():
    assert names_match("Ted Bundy", ["Theodore Bundy", "Ted Bundy"])
    assert names_match("Bundy", ["Ted Bundy"])
    assert not names_match("Ted Bundy", ["Gary Ridgway"])
    assert not names_match("...", ["Ted Bundy"])


def test_similarity_ignores_articles_and_punctuation():
    matcher = TitleMatcher()

    assert matcher.similarity("The Staircase", "Staircase!") == 100.0
    assert matcher.similarity("", "Staircase") == 0.0


def test_best_match_prefers_year_and_keeps_order_on_ties():
    matcher = TitleMatcher()
    candidates = [("Zodiac", 1995), ("Zodiac", 2007)]

    best = matcher.best_match("Zodiac", candidates, key=lambda c: c[0], year=2007, year_of=lambda c: c[1])
    first = matcher.best_match("Zodiac", candidates, key=lambda c: c[0])

    assert best == ("Zodiac", 2007)
    assert first == ("Zodiac", 1995)


def test_best_match_below_threshold():
    assert TitleMatcher(threshold=90).best_match("Mindhunter", ["Paddington"], key=str) is None
    assert TitleMatcher().best_match("Mindhunter", [], key=str) is None
