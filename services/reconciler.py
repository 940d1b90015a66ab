from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import ValidationError
from typing import Any, Iterable, Optional, Union
from models.catalog import CandidateTrack, MatchResult, ReconcileResult
from services.database import CatalogService
from services.normalizer import normalize
from services.track_matcher import TrackMatcher
import logging

logger = logging.getLogger(__name__)

CandidateInput = Union[CandidateTrack, dict]


class ImportReconciler:
    def __init__(self, session: AsyncSession, matcher: Optional[TrackMatcher] = None):
        self.session = session
        self.catalog = CatalogService(session)
        self.matcher = matcher or TrackMatcher()

    async def ensure_indexed(self, artist_name: str, refresh: bool = False) -> None:
        if refresh or not self.matcher.is_indexed(artist_name):
            entries = await self.catalog.get_catalog_entries(artist_name)
            self.matcher.build_index(artist_name, entries)

    @staticmethod
    def _parse_candidate(raw: Any) -> Optional[CandidateTrack]:
        if isinstance(raw, CandidateTrack):
            candidate = raw
        else:
            try:
                candidate = CandidateTrack.model_validate(raw)
            except ValidationError:
                return None
        if not normalize(candidate.title):
            return None
        return candidate

    async def reconcile(self, artist_name: str, candidate_tracks: Iterable[CandidateInput]) -> ReconcileResult:
        """
        Match a batch of candidate tracks against the artist's catalog.

        Unmatched titles are recorded per (artist, normalized title); the artist's
        counters are updated once for the whole batch in a single transaction.
        Malformed candidates are skipped and counted in neither total.
        """
        await self.ensure_indexed(artist_name)
        outcome = ReconcileResult(artist_name=artist_name)

        try:
            for raw in candidate_tracks:
                candidate = self._parse_candidate(raw)
                if candidate is None:
                    outcome.skipped += 1
                    logger.warning(f"Skipping malformed track record for {artist_name}: {raw!r}")
                    continue

                match = self.matcher.match(candidate.title, artist_name)
                if match is not None:
                    outcome.matched += 1
                    outcome.details.append(match)
                    continue

                normalized_title = normalize(candidate.title)
                await self.catalog.record_unmatched(artist_name, normalized_title, candidate.title)
                outcome.unmatched += 1
                outcome.details.append(
                    MatchResult(title=candidate.title, normalized_title=normalized_title)
                )

            if outcome.matched or outcome.unmatched:
                await self.catalog.apply_match_delta(artist_name, outcome.matched, outcome.unmatched)
            await self.session.commit()

        except Exception as e:
            logger.error(f"Failed to reconcile tracks for {artist_name}: {str(e)}")
            await self.session.rollback()
            raise

        logger.info(
            f"Reconciled {artist_name}: {outcome.matched} matched, "
            f"{outcome.unmatched} unmatched, {outcome.skipped} skipped"
        )
        return outcome
