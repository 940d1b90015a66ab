from typing import Dict, List, Sequence
from models.catalog import ArtistStats

# Festival lineup ranking: algorithm name -> statistic it ranks by (descending)
SORT_FIELDS: Dict[str, str] = {
    "songVersions": "song_count",
    "shows": "total_shows",
    "hours": "total_hours",
}

DEFAULT_ALGORITHM = "songVersions"


def is_valid_algorithm(value: str) -> bool:
    return value in SORT_FIELDS


def sort_by_algorithm(artists: Sequence[ArtistStats], algorithm: str) -> List[ArtistStats]:
    """
    Return a new list of artists ordered by the algorithm's statistic, highest first.

    Missing statistics compare as 0. Unknown algorithms fall back to songVersions.
    The sort is stable, so ties keep their input order; the input is not modified.
    """
    field = SORT_FIELDS.get(algorithm, SORT_FIELDS[DEFAULT_ALGORITHM])
    return sorted(artists, key=lambda artist: getattr(artist, field) or 0, reverse=True)
