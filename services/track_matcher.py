from typing import Dict, Iterable, List, Optional, Tuple
import logging
import jellyfish
from rapidfuzz import fuzz
from rapidfuzz.distance import Levenshtein
from config.settings import get_matching_config, get_match_confidence
from models.catalog import CatalogEntry, MatchResult, MatchType
from services.normalizer import normalize

logger = logging.getLogger(__name__)


class TrackMatcher:
    """
    Hybrid track title matcher.

    Strategies in order of precedence:
    1. Exact match on the normalized title
    2. Alias match from the configured alias table
    3. Metaphone (phonetic) match
    4. Fuzzy ratio, limited to the few entries whose metaphone is close

    The first strategy that hits wins.
    """

    def __init__(
        self,
        fuzzy_candidate_limit: Optional[int] = None,
        min_fuzzy_score: Optional[int] = None
    ):
        matching_config = get_matching_config()
        self.fuzzy_candidate_limit = fuzzy_candidate_limit or matching_config["fuzzy_candidate_limit"]
        self.min_fuzzy_score = min_fuzzy_score or matching_config["min_fuzzy_score"]
        self.max_metaphone_distance = matching_config["max_metaphone_distance"]
        self.confidence = get_match_confidence()

        self._exact_index: Dict[str, Dict[str, str]] = {}
        self._alias_index: Dict[str, Dict[str, str]] = {}
        self._metaphone_index: Dict[str, Dict[str, str]] = {}
        self._all_tracks: Dict[str, List[Tuple[str, str, str]]] = {}

    @staticmethod
    def artist_key(artist_name: str) -> str:
        return artist_name.strip().lower()

    def is_indexed(self, artist_name: str) -> bool:
        return self.artist_key(artist_name) in self._exact_index

    def build_index(self, artist_name: str, entries: Iterable[CatalogEntry]) -> None:
        """Rebuild all lookup indexes for an artist from its catalog entries"""
        key = self.artist_key(artist_name)
        exact: Dict[str, str] = {}
        aliases: Dict[str, str] = {}
        metaphones: Dict[str, str] = {}
        all_tracks: List[Tuple[str, str, str]] = []

        for entry in entries:
            normalized = normalize(entry.name)
            if not normalized:
                continue

            exact[normalized] = entry.key

            for alias in entry.aliases:
                normalized_alias = normalize(alias)
                if normalized_alias:
                    aliases[normalized_alias] = entry.key

            # First track for each metaphone wins
            code = jellyfish.metaphone(normalized)
            if code and code not in metaphones:
                metaphones[code] = entry.key

            all_tracks.append((entry.key, normalized, code))

        self._exact_index[key] = exact
        self._alias_index[key] = aliases
        self._metaphone_index[key] = metaphones
        self._all_tracks[key] = all_tracks

        logger.debug(
            f"Built indexes for {artist_name}: {len(exact)} tracks, "
            f"{len(aliases)} aliases, {len(metaphones)} metaphones"
        )

    def clear_index(self, artist_name: Optional[str] = None) -> None:
        if artist_name is None:
            self._exact_index.clear()
            self._alias_index.clear()
            self._metaphone_index.clear()
            self._all_tracks.clear()
            return

        key = self.artist_key(artist_name)
        for index in (self._exact_index, self._alias_index, self._metaphone_index, self._all_tracks):
            index.pop(key, None)

    def match(self, title: str, artist_name: str) -> Optional[MatchResult]:
        key = self.artist_key(artist_name)
        exact = self._exact_index.get(key)
        aliases = self._alias_index.get(key)
        if not exact and not aliases:
            return None

        normalized = normalize(title)
        if not normalized:
            return None

        def result(track_key: str, match_type: MatchType, confidence: int) -> MatchResult:
            return MatchResult(
                title=title,
                normalized_title=normalized,
                track_key=track_key,
                match_type=match_type,
                confidence=confidence
            )

        if normalized in exact:
            return result(exact[normalized], MatchType.EXACT, self.confidence["exact"])

        if normalized in aliases:
            return result(aliases[normalized], MatchType.ALIAS, self.confidence["alias"])

        code = jellyfish.metaphone(normalized)
        if code and code in self._metaphone_index.get(key, {}):
            return result(self._metaphone_index[key][code], MatchType.METAPHONE, self.confidence["metaphone"])

        best = self._fuzzy_match(normalized, code, key)
        if best is not None and best[1] >= self.min_fuzzy_score:
            confidence = round(best[1] * self.confidence["fuzzy_max"] / 100)
            return result(best[0], MatchType.FUZZY, confidence)

        return None

    def _fuzzy_match(self, normalized: str, code: str, key: str) -> Optional[Tuple[str, float]]:
        """Score only the catalog entries whose metaphone is within a small edit distance"""
        if not code:
            return None

        candidates = []
        for track_key, track_normalized, track_code in self._all_tracks.get(key, []):
            if track_code and Levenshtein.distance(code, track_code) <= self.max_metaphone_distance:
                candidates.append((track_key, track_normalized))
                if len(candidates) >= self.fuzzy_candidate_limit:
                    break

        best: Optional[Tuple[str, float]] = None
        for track_key, track_normalized in candidates:
            score = fuzz.ratio(normalized, track_normalized)
            if best is None or score > best[1]:
                best = (track_key, score)

        return best
