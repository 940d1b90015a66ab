from sqlalchemy import (
    Column,
    Integer,
    String,
    DateTime,
    Date,
    Float,
    Text,
    JSON,
    UniqueConstraint,
)
from datetime import datetime, timezone
from database.database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ArtistStatus(Base):
    """Pre-aggregated import statistics, one row per artist"""
    __tablename__ = "artist_status"

    status_id = Column(Integer, primary_key=True, autoincrement=True)
    artist_name = Column(String, nullable=False, unique=True)
    imported_tracks = Column(Integer, nullable=False, default=0)
    matched_tracks = Column(Integer, nullable=False, default=0)
    unmatched_tracks = Column(Integer, nullable=False, default=0)
    downloaded_shows = Column(Integer, nullable=False, default=0)
    match_rate_percent = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class ImportRun(Base):
    __tablename__ = "import_run"

    run_id = Column(Integer, primary_key=True, autoincrement=True)
    uuid = Column(String(36), nullable=False, unique=True)
    correlation_id = Column(String, nullable=False, unique=True)
    artist_name = Column(String, nullable=False, index=True)
    status = Column(String(16), nullable=False, default="running", index=True)
    started_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    completed_at = Column(DateTime(timezone=True), nullable=True, index=True)
    shows_processed = Column(Integer, nullable=False, default=0)
    tracks_processed = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)


class UnmatchedTrack(Base):
    """Distinct track titles that failed to match the catalog for an artist"""
    __tablename__ = "unmatched_track"
    __table_args__ = (
        UniqueConstraint("artist_name", "normalized_title", name="uq_unmatched_artist_title"),
    )

    unmatched_id = Column(Integer, primary_key=True, autoincrement=True)
    artist_name = Column(String, nullable=False)
    normalized_title = Column(String, nullable=False)
    track_title = Column(String, nullable=False)
    occurrence_count = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), default=utcnow, onupdate=utcnow)


class DailyMetrics(Base):
    __tablename__ = "daily_metrics"

    metric_id = Column(Integer, primary_key=True, autoincrement=True)
    date = Column(Date, nullable=False, unique=True)
    imports_count = Column(Integer, nullable=False, default=0)
    shows_imported = Column(Integer, nullable=False, default=0)
    tracks_imported = Column(Integer, nullable=False, default=0)
    avg_import_duration_seconds = Column(Integer, nullable=False, default=0)
    tracks_matched = Column(Integer, nullable=False, default=0)
    tracks_unmatched = Column(Integer, nullable=False, default=0)
    match_rate = Column(Float, nullable=False, default=0.0)
    created_at = Column(DateTime(timezone=True), default=utcnow)


class CatalogTrack(Base):
    """Canonical song for an artist, with the alias spellings it is known by"""
    __tablename__ = "catalog_track"
    __table_args__ = (
        UniqueConstraint("artist_name", "track_key", name="uq_catalog_artist_key"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    artist_name = Column(String, nullable=False, index=True)
    track_key = Column(String, nullable=False)
    title = Column(String, nullable=False)
    aliases = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), default=utcnow)
