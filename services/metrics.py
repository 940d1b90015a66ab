from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from datetime import date, datetime, time, timedelta, timezone
from typing import Callable, Dict, List, Optional
from models.database import DailyMetrics, ImportRun, ArtistStatus
from models.catalog import AggregationOutcome, DailyMetricsSnapshot, calculate_match_rate
import logging

logger = logging.getLogger(__name__)


def yesterday() -> date:
    return datetime.now(timezone.utc).date() - timedelta(days=1)


class MetricsAggregator:
    """
    Rolls completed import runs and match statistics into one DailyMetrics row per date.

    Safe to re-run: an existing row for the date means the invocation is skipped,
    and the unique constraint on ``date`` turns a concurrent double-run into a skip.
    """

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    async def aggregate_daily(self, target_date: Optional[date] = None) -> AggregationOutcome:
        target_date = target_date or yesterday()
        logger.info(f"Starting daily metrics aggregation for {target_date}")

        async with self.session_factory() as session:
            try:
                existing = await session.execute(
                    select(func.count()).select_from(DailyMetrics).where(DailyMetrics.date == target_date)
                )
                if existing.scalar() > 0:
                    logger.info(f"Daily metrics for {target_date} already exist, skipping aggregation")
                    return AggregationOutcome(date=target_date, status="skipped")

                import_metrics = await self._aggregate_import_metrics(session, target_date)
                match_metrics = await self._aggregate_match_metrics(session)

                row = DailyMetrics(date=target_date, **import_metrics, **match_metrics)
                session.add(row)
                await session.commit()

                snapshot = DailyMetricsSnapshot.model_validate(row)
                logger.info(f"Daily metrics aggregated successfully for {target_date}: {snapshot.model_dump()}")
                return AggregationOutcome(date=target_date, status="created", metrics=snapshot)

            except IntegrityError:
                await session.rollback()
                logger.warning(f"Daily metrics for {target_date} were written concurrently, skipping")
                return AggregationOutcome(date=target_date, status="skipped")
            except Exception as e:
                await session.rollback()
                logger.error(f"Error aggregating daily metrics for {target_date}: {str(e)}", exc_info=True)
                return AggregationOutcome(date=target_date, status="failed", error=str(e))

    async def _aggregate_import_metrics(self, session: AsyncSession, target_date: date) -> Dict[str, int]:
        """Totals and average duration of runs that completed on the given date"""
        day_start = datetime.combine(target_date, time.min, tzinfo=timezone.utc)
        day_end = day_start + timedelta(days=1)

        result = await session.execute(
            select(
                ImportRun.started_at,
                ImportRun.completed_at,
                ImportRun.shows_processed,
                ImportRun.tracks_processed
            ).where(
                ImportRun.status == "completed",
                ImportRun.completed_at >= day_start,
                ImportRun.completed_at < day_end
            )
        )
        runs = result.all()

        durations = [
            (run.completed_at - run.started_at).total_seconds()
            for run in runs
            if run.started_at is not None
        ]

        return {
            "imports_count": len(runs),
            "shows_imported": sum(run.shows_processed or 0 for run in runs),
            "tracks_imported": sum(run.tracks_processed or 0 for run in runs),
            "avg_import_duration_seconds": round(sum(durations) / len(durations)) if durations else 0
        }

    async def _aggregate_match_metrics(self, session: AsyncSession) -> Dict[str, float]:
        """Snapshot of match statistics across all artists, not filtered by date"""
        result = await session.execute(
            select(
                func.coalesce(func.sum(ArtistStatus.matched_tracks), 0),
                func.coalesce(func.sum(ArtistStatus.unmatched_tracks), 0)
            )
        )
        total_matched, total_unmatched = result.one()

        return {
            "tracks_matched": int(total_matched),
            "tracks_unmatched": int(total_unmatched),
            "match_rate": calculate_match_rate(int(total_matched), int(total_unmatched))
        }

    async def list_daily_metrics(self, limit: int = 30) -> List[DailyMetricsSnapshot]:
        async with self.session_factory() as session:
            result = await session.execute(
                select(DailyMetrics).order_by(DailyMetrics.date.desc()).limit(limit)
            )
            return [DailyMetricsSnapshot.model_validate(row) for row in result.scalars().all()]
