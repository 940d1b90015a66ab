from celery_config import celery_app
import asyncio
from datetime import date
from typing import Optional
from services.archive import ArchiveClient
from services.import_runs import DuplicateImportError
from services.importer import ArtistImporter
from services.metrics import MetricsAggregator
from services.progress_tracker import ProgressTracker
from database.database import AsyncSessionLocal
from services.redis import RedisService
import os
from dotenv import load_dotenv
import httpx
import logging

logger = logging.getLogger(__name__)
load_dotenv()


def _run(coro):
    try:
        loop = asyncio.get_event_loop()
        if loop.is_closed():
            raise RuntimeError("event loop is closed")
    except RuntimeError:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
    return loop.run_until_complete(coro)


@celery_app.task(name='tasks.aggregate_daily_metrics')
def aggregate_daily_metrics(target_date: Optional[str] = None):
    """Roll up yesterday's (or the given ISO date's) import runs into daily metrics"""
    parsed = date.fromisoformat(target_date) if target_date else None
    outcome = _run(MetricsAggregator(AsyncSessionLocal).aggregate_daily(parsed))
    return outcome.model_dump(mode='json')


@celery_app.task(
    name='tasks.import_artist',
    bind=True,
    max_retries=5,
    retry_backoff=True,
    retry_backoff_max=300,  # Max 5 minutes between retries
    retry_jitter=True
)
def import_artist(self, artist_name: str, collection: str, correlation_id: Optional[str] = None):
    """Import all shows of an artist's Archive.org collection"""
    try:
        logger.info(f"Starting import for {artist_name} from collection {collection}")
        return _run(_async_import_artist(artist_name, collection, correlation_id))
    except DuplicateImportError:
        logger.info(f"Import {correlation_id} for {artist_name} already started, skipping")
        return {
            "artist": artist_name,
            "correlation_id": correlation_id,
            "status": "already_started"
        }
    except httpx.HTTPStatusError as exc:
        if exc.response.status_code == 429:
            retry_after = int(exc.response.headers.get('Retry-After', 30))
            logger.warning(
                f"Rate limited importing {artist_name}, retrying in {retry_after}s "
                f"(attempt {self.request.retries + 1})"
            )
            # The failed run keeps its correlation id, so the retry starts a fresh one
            raise self.retry(
                exc=exc,
                countdown=retry_after,
                args=(artist_name, collection, None),
                kwargs={}
            )
        logger.error(f"Non-retryable error importing {artist_name}: {str(exc)}")
        raise


async def _async_import_artist(artist_name: str, collection: str, correlation_id: Optional[str]):
    redis_service = RedisService(os.getenv('REDIS_URL', 'redis://localhost'))
    archive_client = ArchiveClient()

    try:
        # Progress is best effort, so a Redis outage must not stop the import
        await redis_service.init(verify=False)
        tracker = ProgressTracker(redis_service.redis)

        async with AsyncSessionLocal() as session:
            importer = ArtistImporter(session, archive_client, tracker)
            return await importer.run(artist_name, collection, correlation_id)
    finally:
        await archive_client.close()
        await redis_service.close()
