from redis.asyncio import Redis
from redis.exceptions import RedisError
from datetime import datetime, timezone
from typing import Callable, Optional
import logging
import time
from config.settings import get_progress_config
from models.progress import ProgressEntry

# Failures that mean the progress store is unreachable or misbehaving
STORE_ERRORS = (RedisError, OSError)

WRITABLE_STATUSES = ("running", "completed", "failed")

PROGRESS_FIELDS = (
    "current",
    "total",
    "processed",
    "status",
    "correlation_id",
    "eta",
    "error",
    "completed_at",
    "start_time",
)


class ProgressTracker:
    """
    Redis-backed live progress for long-running artist imports.

    Each field lives in its own key with a one hour TTL; ``completed_at`` is kept
    for five minutes so dashboards can show the final state. Progress is best
    effort: store failures are logged as warnings and never reach the caller.
    """

    def __init__(
        self,
        redis: Redis,
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.time
    ):
        config = get_progress_config()
        self.redis = redis
        self.logger = logger or logging.getLogger(__name__)
        self.clock = clock
        self.key_prefix = config["key_prefix"]
        self.ttl = config["ttl_seconds"]
        self.completed_ttl = config["completed_ttl_seconds"]

    def _key(self, artist: str, field: str) -> str:
        return f"{self.key_prefix}{artist.lower()}:{field}"

    async def _set(self, artist: str, field: str, value: str, ttl: Optional[int] = None):
        await self.redis.set(self._key(artist, field), value, ex=ttl or self.ttl)

    async def _get(self, artist: str, field: str) -> Optional[str]:
        return await self.redis.get(self._key(artist, field))

    async def update_progress(
        self,
        artist: str,
        correlation_id: str,
        current: int,
        total: int,
        processed: int,
        status: str = "running"
    ) -> None:
        if status not in WRITABLE_STATUSES:
            raise ValueError(f"Invalid progress status {status!r}, expected one of {', '.join(WRITABLE_STATUSES)}")

        try:
            eta = await self._calculate_eta(artist, current, total)

            # Fields are written independently; readers may see a mix of old and new values
            await self._set(artist, "current", str(current))
            await self._set(artist, "total", str(total))
            await self._set(artist, "processed", str(processed))
            await self._set(artist, "status", status)
            await self._set(artist, "correlation_id", correlation_id)
            await self._set(artist, "eta", eta)
        except STORE_ERRORS as e:
            self.logger.warning(f"Failed to update Redis progress for {artist}: {str(e)}")

    async def complete(self, artist: str) -> None:
        try:
            await self._set(artist, "status", "completed")
            await self._set(
                artist,
                "completed_at",
                datetime.fromtimestamp(self.clock(), tz=timezone.utc).isoformat(),
                ttl=self.completed_ttl
            )
        except STORE_ERRORS as e:
            self.logger.warning(f"Failed to mark Redis progress as complete for {artist}: {str(e)}")

    async def fail(self, artist: str, error_message: str) -> None:
        try:
            await self._set(artist, "status", "failed")
            await self._set(artist, "error", error_message)
        except STORE_ERRORS as e:
            self.logger.warning(f"Failed to mark Redis progress as failed for {artist}: {str(e)}")

    async def get_progress(self, artist: str) -> ProgressEntry:
        """Current progress for an artist; the idle entry when nothing is recorded"""
        try:
            status = await self._get(artist, "status")
            if not status:
                return ProgressEntry.idle(artist)

            return ProgressEntry(
                artist=artist,
                status=status,
                current=int(await self._get(artist, "current") or 0),
                total=int(await self._get(artist, "total") or 0),
                processed=int(await self._get(artist, "processed") or 0),
                eta=await self._get(artist, "eta") or "",
                correlation_id=await self._get(artist, "correlation_id") or "",
                error=await self._get(artist, "error") or "",
                completed_at=await self._get(artist, "completed_at") or ""
            )
        except STORE_ERRORS as e:
            self.logger.warning(f"Failed to get Redis progress for {artist}: {str(e)}")
            return ProgressEntry.idle(artist)
        except ValueError as e:
            self.logger.warning(f"Unreadable Redis progress for {artist}, reporting idle: {str(e)}")
            return ProgressEntry.idle(artist)

    async def clear(self, artist: str) -> None:
        try:
            await self.redis.delete(*(self._key(artist, field) for field in PROGRESS_FIELDS))
        except STORE_ERRORS as e:
            self.logger.warning(f"Failed to clear Redis progress for {artist}: {str(e)}")

    async def _calculate_eta(self, artist: str, current: int, total: int) -> str:
        """
        Linear extrapolation from the artist's start time.

        The first call only records the start time. Recomputed from scratch on
        every call, so early estimates are noisy.
        """
        now = self.clock()
        start_time = await self._get(artist, "start_time")
        if start_time is None:
            await self._set(artist, "start_time", str(now))
            return ""

        if total <= 0 or current <= 0:
            return ""

        percent_complete = current / total
        elapsed = now - float(start_time)
        estimated_total = elapsed / percent_complete
        remaining = estimated_total - elapsed

        return datetime.fromtimestamp(now + remaining, tz=timezone.utc).isoformat()
