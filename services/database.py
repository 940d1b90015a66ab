from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, func
from sqlalchemy.dialects import postgresql, sqlite
from typing import Iterable, List, Optional
from models.database import ArtistStatus, UnmatchedTrack, CatalogTrack, utcnow
from models.catalog import CatalogEntry, UnmatchedTrackView, calculate_match_rate
import logging

logger = logging.getLogger(__name__)

class CatalogService:
    """
    Catalog store access for artist statistics, unmatched tracks and canonical tracks.

    Methods used inside a reconciliation batch only flush; the caller owns the
    transaction. Standalone maintenance methods commit on their own.
    """

    def __init__(self, session: AsyncSession):
        self.session = session

    def _insert(self, table):
        """Dialect-specific INSERT so ON CONFLICT clauses are available"""
        if self.session.get_bind().dialect.name == "sqlite":
            return sqlite.insert(table)
        return postgresql.insert(table)

    # Artist status

    async def get_artist_status(self, artist_name: str) -> Optional[ArtistStatus]:
        stmt = (
            select(ArtistStatus)
            .where(ArtistStatus.artist_name == artist_name)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_artist_statuses(self) -> List[ArtistStatus]:
        stmt = (
            select(ArtistStatus)
            .order_by(ArtistStatus.artist_name)
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def _lock_artist_status(self, artist_name: str) -> ArtistStatus:
        """Create the artist row if needed, then load it under a row lock"""
        stmt = self._insert(ArtistStatus).values(artist_name=artist_name)
        stmt = stmt.on_conflict_do_nothing(index_elements=["artist_name"])
        await self.session.execute(stmt)

        locked = (
            select(ArtistStatus)
            .where(ArtistStatus.artist_name == artist_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await self.session.execute(locked)
        return result.scalar_one()

    async def apply_match_delta(self, artist_name: str, matched: int, unmatched: int) -> ArtistStatus:
        """
        Add a batch's matched/unmatched counts to the artist row and recompute the
        match rate. The row is read under FOR UPDATE so concurrent batches for the
        same artist serialize instead of losing increments.
        """
        status = await self._lock_artist_status(artist_name)
        status.matched_tracks += matched
        status.unmatched_tracks += unmatched
        status.imported_tracks += matched + unmatched
        status.match_rate_percent = calculate_match_rate(status.matched_tracks, status.unmatched_tracks)
        await self.session.flush()
        return status

    async def increment_downloaded_shows(self, artist_name: str, count: int = 1) -> ArtistStatus:
        try:
            status = await self._lock_artist_status(artist_name)
            status.downloaded_shows += count
            await self.session.commit()
            return status
        except Exception as e:
            logger.error(f"Failed to increment downloaded shows for {artist_name}: {str(e)}")
            await self.session.rollback()
            raise

    async def delete_artist_status(self, artist_name: str) -> bool:
        try:
            result = await self.session.execute(
                delete(ArtistStatus).where(ArtistStatus.artist_name == artist_name)
            )
            await self.session.commit()
            deleted = result.rowcount > 0
            if deleted:
                logger.info(f"Deleted artist status for {artist_name}")
            return deleted
        except Exception as e:
            logger.error(f"Failed to delete artist status for {artist_name}: {str(e)}")
            await self.session.rollback()
            raise

    # Unmatched tracks

    async def record_unmatched(self, artist_name: str, normalized_title: str, track_title: str) -> int:
        """Insert the title with count 1 or bump its occurrence count; returns the new count"""
        stmt = self._insert(UnmatchedTrack).values(
            artist_name=artist_name,
            normalized_title=normalized_title,
            track_title=track_title,
            occurrence_count=1
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=["artist_name", "normalized_title"],
            set_={
                "occurrence_count": UnmatchedTrack.occurrence_count + 1,
                "updated_at": utcnow()
            }
        )
        await self.session.execute(stmt)

        result = await self.session.execute(
            select(UnmatchedTrack.occurrence_count).where(
                UnmatchedTrack.artist_name == artist_name,
                UnmatchedTrack.normalized_title == normalized_title
            )
        )
        return result.scalar_one()

    async def list_unmatched(self, artist_name: Optional[str] = None, limit: int = 100) -> List[UnmatchedTrackView]:
        stmt = select(UnmatchedTrack).execution_options(populate_existing=True)
        if artist_name:
            stmt = stmt.where(UnmatchedTrack.artist_name == artist_name)
        stmt = stmt.order_by(UnmatchedTrack.occurrence_count.desc(), UnmatchedTrack.normalized_title).limit(limit)

        result = await self.session.execute(stmt)
        return [UnmatchedTrackView.model_validate(row) for row in result.scalars().all()]

    # Canonical catalog

    async def get_catalog_entries(self, artist_name: str) -> List[CatalogEntry]:
        """Catalog for an artist, matched case-insensitively like the matcher's index key"""
        result = await self.session.execute(
            select(CatalogTrack)
            .where(func.lower(CatalogTrack.artist_name) == artist_name.strip().lower())
            .order_by(CatalogTrack.id)
        )
        return [
            CatalogEntry(key=track.track_key, name=track.title, aliases=track.aliases or [])
            for track in result.scalars().all()
        ]

    async def upsert_catalog_tracks(self, artist_name: str, entries: Iterable[CatalogEntry]) -> int:
        """Upsert canonical tracks for an artist with explicit transaction"""
        values = [
            {
                "artist_name": artist_name,
                "track_key": entry.key,
                "title": entry.name,
                "aliases": list(entry.aliases)
            }
            for entry in entries
        ]
        if not values:
            return 0

        try:
            stmt = self._insert(CatalogTrack).values(values)
            stmt = stmt.on_conflict_do_update(
                index_elements=["artist_name", "track_key"],
                set_={"title": stmt.excluded.title, "aliases": stmt.excluded.aliases}
            )
            await self.session.execute(stmt)
            await self.session.commit()
            logger.info(f"Successfully upserted {len(values)} catalog tracks for {artist_name}")
            return len(values)
        except Exception as e:
            logger.error(f"Failed to upsert catalog tracks: {str(e)}")
            await self.session.rollback()
            raise
