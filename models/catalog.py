from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, List, Literal, Optional
import datetime as dt
from enum import Enum
from config.settings import get_unmatched_priority


class MatchType(str, Enum):
    EXACT = "exact"
    ALIAS = "alias"
    METAPHONE = "metaphone"
    FUZZY = "fuzzy"


class CandidateTrack(BaseModel):
    """Externally sourced track record awaiting reconciliation"""
    title: str = Field(min_length=1)
    raw_metadata: Dict[str, Any] = Field(default_factory=dict)


class CatalogEntry(BaseModel):
    key: str
    name: str
    aliases: List[str] = Field(default_factory=list)


class MatchResult(BaseModel):
    title: str
    normalized_title: str
    track_key: Optional[str] = None
    match_type: Optional[MatchType] = None
    confidence: int = 0

    @property
    def matched(self) -> bool:
        return self.match_type is not None


class ReconcileResult(BaseModel):
    artist_name: str
    matched: int = 0
    unmatched: int = 0
    skipped: int = 0
    details: List[MatchResult] = Field(default_factory=list)


class ArtistStatusView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    artist_name: str
    imported_tracks: int
    matched_tracks: int
    unmatched_tracks: int
    downloaded_shows: int
    match_rate_percent: float


def unmatched_priority(occurrence_count: int) -> str:
    thresholds = get_unmatched_priority()
    if occurrence_count > thresholds["high"]:
        return "high"
    if occurrence_count > thresholds["medium"]:
        return "medium"
    return "low"


class UnmatchedTrackView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    artist_name: str
    track_title: str
    normalized_title: str
    occurrence_count: int

    @property
    def priority(self) -> str:
        return unmatched_priority(self.occurrence_count)

    def to_dict(self) -> Dict[str, Any]:
        return {**self.model_dump(), "priority": self.priority}


class ImportRunView(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    run_id: int
    uuid: str
    correlation_id: str
    artist_name: str
    status: Literal["running", "completed", "failed"]
    started_at: dt.datetime
    completed_at: Optional[dt.datetime] = None
    shows_processed: int
    tracks_processed: int
    error_message: Optional[str] = None


class DailyMetricsSnapshot(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    date: dt.date
    imports_count: int
    shows_imported: int
    tracks_imported: int
    avg_import_duration_seconds: int
    tracks_matched: int
    tracks_unmatched: int
    match_rate: float


class AggregationOutcome(BaseModel):
    date: dt.date
    status: Literal["created", "skipped", "failed"]
    metrics: Optional[DailyMetricsSnapshot] = None
    error: str = ""


class ArtistStats(BaseModel):
    """Lineup statistics for an artist; unknown keys are carried through untouched"""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    slug: str
    name: str
    song_count: Optional[int] = Field(default=None, alias="songCount")
    total_shows: Optional[int] = Field(default=None, alias="totalShows")
    total_hours: Optional[float] = Field(default=None, alias="totalHours")


def calculate_match_rate(matched: int, unmatched: int) -> float:
    """Percentage of matched tracks, rounded to 2 decimals; 0 when nothing was reconciled"""
    total = matched + unmatched
    if total <= 0:
        return 0.0
    return round(matched / total * 100, 2)
