from typing import Dict, Union

# Redis progress tracking
PROGRESS_CONFIG = {
    "key_prefix": "tapearchive:progress:",
    "ttl_seconds": 3600,  # 1 hour
    "completed_ttl_seconds": 300  # keep final state visible for 5 minutes
}

# Track matching
MATCHING_CONFIG = {
    "fuzzy_candidate_limit": 5,
    "min_fuzzy_score": 80,
    "max_metaphone_distance": 2
}

MATCH_CONFIDENCE = {
    "exact": 100,
    "alias": 90,
    "metaphone": 70,
    "fuzzy_max": 69
}

# Unmatched track priority thresholds (occurrence_count strictly greater than)
UNMATCHED_PRIORITY = {
    "high": 10,
    "medium": 5
}

def get_progress_config() -> Dict[str, Union[str, int]]:
    return PROGRESS_CONFIG

def get_matching_config() -> Dict[str, int]:
    return MATCHING_CONFIG

def get_match_confidence() -> Dict[str, int]:
    return MATCH_CONFIDENCE

def get_unmatched_priority() -> Dict[str, int]:
    return UNMATCHED_PRIORITY
