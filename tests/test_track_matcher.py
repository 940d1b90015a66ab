# tests/test_track_matcher.py
import pytest
from models.catalog import CatalogEntry, MatchType
from services.track_matcher import TrackMatcher
from tests.conftest import PHISH_CATALOG


@pytest.fixture
def matcher():
    matcher = TrackMatcher()
    matcher.build_index("Phish", PHISH_CATALOG)
    return matcher


def test_exact_match(matcher):
    result = matcher.match("Tweezer", "Phish")
    assert result.track_key == "tweezer"
    assert result.match_type == MatchType.EXACT
    assert result.confidence == 100


def test_exact_match_after_normalization(matcher):
    result = matcher.match("  HARRY   hood ", "phish")
    assert result.track_key == "harry-hood"
    assert result.match_type == MatchType.EXACT


def test_alias_match(matcher):
    result = matcher.match("Twezer", "Phish")
    assert result.track_key == "tweezer"
    assert result.match_type == MatchType.ALIAS
    assert result.confidence == 90


def test_metaphone_match(matcher):
    # "The Flue" and "The Flu" share a metaphone code
    result = matcher.match("The Flue", "Phish")
    assert result.track_key == "the-flu"
    assert result.match_type == MatchType.METAPHONE
    assert result.confidence == 70


def test_fuzzy_match(matcher):
    result = matcher.match("Bathtub Gim", "Phish")
    assert result.track_key == "bathtub-gin"
    assert result.match_type == MatchType.FUZZY
    assert 0 < result.confidence <= 69


def test_exact_wins_over_alias():
    matcher = TrackMatcher()
    matcher.build_index("Lettuce", [
        CatalogEntry(key="ghost", name="Ghost", aliases=["Sand"]),
        CatalogEntry(key="sand", name="Sand"),
    ])
    result = matcher.match("Sand", "Lettuce")
    assert result.track_key == "sand"
    assert result.match_type == MatchType.EXACT


def test_no_match(matcher):
    assert matcher.match("Completely Different Song", "Phish") is None


def test_empty_title_and_unknown_artist(matcher):
    assert matcher.match("   ", "Phish") is None
    assert matcher.match("Tweezer", "Unknown Artist") is None


def test_fuzzy_threshold_is_configurable():
    strict = TrackMatcher(min_fuzzy_score=99)
    strict.build_index("Phish", PHISH_CATALOG)
    assert strict.match("Bathtub Gim", "Phish") is None


def test_clear_index(matcher):
    assert matcher.is_indexed("Phish")
    matcher.clear_index("PHISH")
    assert not matcher.is_indexed("Phish")
    assert matcher.match("Tweezer", "Phish") is None
