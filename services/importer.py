from sqlalchemy.ext.asyncio import AsyncSession
from typing import Dict, Optional
import httpx
import logging
from services.archive import ArchiveClient
from services.database import CatalogService
from services.import_runs import ImportRunService
from services.progress_tracker import ProgressTracker
from services.reconciler import ImportReconciler
from services.track_matcher import TrackMatcher

logger = logging.getLogger(__name__)


class ArtistImporter:
    """
    Imports every show in an artist's Archive.org collection.

    One bad show (fetch failure) is logged and skipped; anything else fails the
    run, marks progress as failed and is re-raised to the caller.
    """

    def __init__(
        self,
        session: AsyncSession,
        archive_client: ArchiveClient,
        progress_tracker: ProgressTracker,
        matcher: Optional[TrackMatcher] = None
    ):
        self.session = session
        self.archive_client = archive_client
        self.progress = progress_tracker
        self.runs = ImportRunService(session)
        self.catalog = CatalogService(session)
        self.reconciler = ImportReconciler(session, matcher)

    async def run(self, artist_name: str, collection: str, correlation_id: Optional[str] = None) -> Dict:
        import_run = await self.runs.start(artist_name, correlation_id)
        correlation_id = import_run.correlation_id
        shows_processed = 0
        tracks_processed = 0
        skipped_shows = 0

        try:
            await self.progress.clear(artist_name)
            await self.reconciler.ensure_indexed(artist_name, refresh=True)

            identifiers = await self.archive_client.get_all_show_identifiers(collection)
            total = len(identifiers)
            logger.info(f"Found {total} shows for {artist_name} in collection {collection}")
            await self.progress.update_progress(artist_name, correlation_id, 0, total, 0)

            for position, identifier in enumerate(identifiers, start=1):
                try:
                    show = await self.archive_client.get_show(identifier)
                except (httpx.HTTPError, ValueError) as e:
                    # ValueError covers non-JSON bodies and metadata that fails validation
                    skipped_shows += 1
                    logger.warning(f"Skipping show {identifier} for {artist_name}: {str(e)}")
                    await self.progress.update_progress(
                        artist_name, correlation_id, position, total, shows_processed
                    )
                    continue

                result = await self.reconciler.reconcile(
                    artist_name,
                    [
                        {"title": track.title, "raw_metadata": track.model_dump()}
                        for track in show.tracks
                    ]
                )
                await self.catalog.increment_downloaded_shows(artist_name)

                shows_processed += 1
                tracks_processed += result.matched + result.unmatched
                await self.progress.update_progress(
                    artist_name, correlation_id, position, total, shows_processed
                )

            await self.runs.complete(import_run, shows_processed, tracks_processed)
            await self.progress.complete(artist_name)

        except Exception as e:
            logger.error(f"Import of {artist_name} ({correlation_id}) failed: {str(e)}")
            await self.session.rollback()
            await self.session.refresh(import_run)
            await self.runs.fail(import_run, str(e))
            await self.progress.fail(artist_name, str(e))
            raise

        return {
            "artist": artist_name,
            "correlation_id": correlation_id,
            "run_id": import_run.run_id,
            "shows_processed": shows_processed,
            "shows_skipped": skipped_shows,
            "tracks_processed": tracks_processed
        }
