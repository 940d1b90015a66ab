from typing import Dict

# Archive.org API request budget
ARCHIVE_RATE_LIMIT = {
    "window_seconds": 60,
    "max_requests": 30
}

# Convert to Celery rate limit format (imports/minute), budgeting ~10 requests per import
CELERY_RATE_LIMIT = f"{int(ARCHIVE_RATE_LIMIT['max_requests'] * (60 / ARCHIVE_RATE_LIMIT['window_seconds']) / 10)}/m"

# HTTP client retry configuration
ARCHIVE_RETRY_CONFIG = {
    "max_tries": 5,
    "max_time": 60,
    "timeout_seconds": 30.0
}

def get_celery_rate_limit() -> str:
    return CELERY_RATE_LIMIT

def get_archive_retry_config() -> Dict[str, float]:
    return ARCHIVE_RETRY_CONFIG
