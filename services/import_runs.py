from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from typing import Optional
from models.database import ImportRun, utcnow
import logging
import uuid

logger = logging.getLogger(__name__)

STATUS_RUNNING = "running"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


class ImportRunNotFoundError(LookupError):
    pass


class ImportRunStateError(ValueError):
    """Raised when a finished run is asked to transition again"""


class DuplicateImportError(ValueError):
    def __init__(self, correlation_id: str):
        super().__init__(f"Import run with correlation id {correlation_id} already exists")
        self.correlation_id = correlation_id


class ImportRunService:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def start(self, artist_name: str, correlation_id: Optional[str] = None) -> ImportRun:
        """Create a running import run; the correlation id doubles as an idempotency key"""
        run_uuid = str(uuid.uuid4())
        correlation_id = correlation_id or run_uuid
        run = ImportRun(
            uuid=run_uuid,
            correlation_id=correlation_id,
            artist_name=artist_name,
            status=STATUS_RUNNING,
            started_at=utcnow()
        )
        self.session.add(run)
        try:
            await self.session.commit()
        except IntegrityError:
            await self.session.rollback()
            logger.warning(f"Import run {correlation_id} already exists, refusing to start again")
            raise DuplicateImportError(correlation_id)

        logger.info(f"Started import run {run.run_id} for {artist_name} ({correlation_id})")
        return run

    async def complete(self, run: ImportRun, shows_processed: int, tracks_processed: int) -> ImportRun:
        self._ensure_running(run)
        run.status = STATUS_COMPLETED
        run.completed_at = utcnow()
        run.shows_processed = shows_processed
        run.tracks_processed = tracks_processed
        await self._commit(run)
        logger.info(
            f"Completed import run {run.run_id}: {shows_processed} shows, {tracks_processed} tracks"
        )
        return run

    async def fail(self, run: ImportRun, error_message: str) -> ImportRun:
        self._ensure_running(run)
        run.status = STATUS_FAILED
        run.completed_at = utcnow()
        run.error_message = error_message
        await self._commit(run)
        logger.info(f"Import run {run.run_id} failed: {error_message}")
        return run

    async def get_by_id(self, run_id: int) -> ImportRun:
        return await self._get_one(ImportRun.run_id == run_id, f"id {run_id}")

    async def get_by_uuid(self, run_uuid: str) -> ImportRun:
        return await self._get_one(ImportRun.uuid == run_uuid, f"uuid {run_uuid}")

    async def get_by_correlation_id(self, correlation_id: str) -> ImportRun:
        return await self._get_one(ImportRun.correlation_id == correlation_id, f"correlation id {correlation_id}")

    async def delete(self, run: ImportRun) -> bool:
        try:
            await self.session.delete(run)
            await self.session.commit()
            return True
        except Exception as e:
            logger.error(f"Failed to delete import run {run.run_id}: {str(e)}")
            await self.session.rollback()
            raise

    async def delete_by_id(self, run_id: int) -> bool:
        return await self.delete(await self.get_by_id(run_id))

    async def _get_one(self, condition, label: str) -> ImportRun:
        result = await self.session.execute(select(ImportRun).where(condition))
        run = result.scalar_one_or_none()
        if run is None:
            raise ImportRunNotFoundError(f"Import run with {label} does not exist")
        return run

    @staticmethod
    def _ensure_running(run: ImportRun):
        if run.status != STATUS_RUNNING:
            raise ImportRunStateError(f"Import run {run.run_id} is already {run.status}")

    async def _commit(self, run: ImportRun):
        try:
            await self.session.commit()
        except Exception as e:
            logger.error(f"Failed to save import run {run.run_id}: {str(e)}")
            await self.session.rollback()
            raise
