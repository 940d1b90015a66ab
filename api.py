# main.py
from fastapi import FastAPI, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession
from pydantic import BaseModel
from typing import Dict, List, Optional
from models.catalog import (
    ArtistStats,
    ArtistStatusView,
    DailyMetricsSnapshot,
    ImportRunView,
)
from services.database import CatalogService
from services.import_runs import ImportRunService, ImportRunNotFoundError
from services.lineup import sort_by_algorithm, is_valid_algorithm, DEFAULT_ALGORITHM
from services.metrics import MetricsAggregator
from services.progress_tracker import ProgressTracker
from services.redis import RedisService
from tasks import import_artist
from contextlib import asynccontextmanager
from database.database import get_db, AsyncSessionLocal
import os
import uuid
from dotenv import load_dotenv
from database.setup import ensure_database_exists
from sqlalchemy.sql import func
from sqlalchemy import select
from models.database import ArtistStatus, ImportRun
from fastapi.middleware.cors import CORSMiddleware
import logging


logger = logging.getLogger(__name__)
load_dotenv()

@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: Create database and tables if needed
    ensure_database_exists()

    yield  # yields control back to FastAPI

app = FastAPI(lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # More permissive for development
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

async def get_redis_service():
    redis_service = RedisService(
        redis_url=os.getenv('REDIS_URL', 'redis://localhost')
    )
    # No ping: the tracker degrades to idle/no-op when Redis is unreachable
    await redis_service.init(verify=False)
    try:
        yield redis_service
    finally:
        await redis_service.close()

def get_progress_tracker(
    redis_service: RedisService = Depends(get_redis_service)
) -> ProgressTracker:
    return ProgressTracker(redis_service.redis)

def get_metrics_aggregator() -> MetricsAggregator:
    return MetricsAggregator(AsyncSessionLocal)


class LineupSortRequest(BaseModel):
    artists: List[ArtistStats]
    algorithm: str = DEFAULT_ALGORITHM


class ImportRequest(BaseModel):
    artist: str
    collection: str
    correlation_id: Optional[str] = None


@app.get("/progress", response_model=Dict)
async def get_import_progress(
    artist: Optional[str] = Query(default=None, description="Artist name"),
    tracker: ProgressTracker = Depends(get_progress_tracker)
):
    """Live progress of an artist import; idle when nothing is running"""
    if not artist:
        return {"error": "Missing artist parameter"}

    progress = await tracker.get_progress(artist)
    return progress.model_dump(exclude={"completed_at"} if progress.status == "idle" else None)

@app.delete("/progress/{artist}", response_model=Dict)
async def clear_import_progress(
    artist: str,
    tracker: ProgressTracker = Depends(get_progress_tracker)
):
    await tracker.clear(artist)
    return {"artist": artist, "status": "idle"}

@app.post("/imports", response_model=Dict, status_code=202)
async def start_import(request: ImportRequest):
    """Queue an artist import on the worker"""

    correlation_id = request.correlation_id or str(uuid.uuid4())
    task = import_artist.delay(request.artist, request.collection, correlation_id)
    logger.info(f"Queued import for {request.artist} ({correlation_id}) as task {task.id}")
    return {"artist": request.artist, "correlation_id": correlation_id, "task_id": task.id}

@app.get("/import-runs/{correlation_id}", response_model=ImportRunView)
async def get_import_run(correlation_id: str, db: AsyncSession = Depends(get_db)):
    try:
        run = await ImportRunService(db).get_by_correlation_id(correlation_id)
    except ImportRunNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ImportRunView.model_validate(run)

@app.get("/artists/status", response_model=List[ArtistStatusView])
async def list_artist_statuses(db: AsyncSession = Depends(get_db)):
    statuses = await CatalogService(db).list_artist_statuses()
    return [ArtistStatusView.model_validate(status) for status in statuses]

@app.get("/artists/{artist_name}/status", response_model=ArtistStatusView)
async def get_artist_status(artist_name: str, db: AsyncSession = Depends(get_db)):
    status = await CatalogService(db).get_artist_status(artist_name)
    if status is None:
        raise HTTPException(status_code=404, detail=f"No import status for {artist_name}")
    return ArtistStatusView.model_validate(status)

@app.delete("/artists/{artist_name}/status", response_model=Dict)
async def delete_artist_status(artist_name: str, db: AsyncSession = Depends(get_db)):
    if not await CatalogService(db).delete_artist_status(artist_name):
        raise HTTPException(status_code=404, detail=f"No import status for {artist_name}")
    return {"artist": artist_name, "deleted": True}

@app.get("/unmatched", response_model=List[Dict])
async def list_unmatched_tracks(
    artist: Optional[str] = Query(default=None),
    limit: int = Query(default=100, ge=1, le=1000),
    db: AsyncSession = Depends(get_db)
):
    """Unmatched titles, most frequent first, with their review priority"""
    tracks = await CatalogService(db).list_unmatched(artist, limit=limit)
    return [track.to_dict() for track in tracks]

@app.get("/metrics/daily", response_model=List[DailyMetricsSnapshot])
async def list_daily_metrics(
    limit: int = Query(default=30, ge=1, le=365),
    aggregator: MetricsAggregator = Depends(get_metrics_aggregator)
):
    return await aggregator.list_daily_metrics(limit=limit)

@app.post("/lineup/sort", response_model=Dict)
async def sort_lineup(request: LineupSortRequest):
    """Rank lineup artists; unknown algorithms fall back to songVersions"""
    algorithm = request.algorithm if is_valid_algorithm(request.algorithm) else DEFAULT_ALGORITHM
    ranked = sort_by_algorithm(request.artists, algorithm)
    return {
        "algorithm": algorithm,
        "artists": [artist.model_dump(by_alias=True) for artist in ranked]
    }

@app.get("/status", response_model=Dict)
async def get_system_status(db: AsyncSession = Depends(get_db)):
    """Get overall import status: artists tracked, runs by status and recent runs"""
    artist_count = await db.execute(select(func.count()).select_from(ArtistStatus))
    total_artists = artist_count.scalar()

    runs_by_status_result = await db.execute(
        select(ImportRun.status, func.count()).group_by(ImportRun.status)
    )
    runs_by_status = {status: count for status, count in runs_by_status_result.all()}

    recent_runs_result = await db.execute(
        select(ImportRun).order_by(ImportRun.started_at.desc()).limit(10)
    )
    recent_runs = recent_runs_result.scalars().all()

    return {
        "total_artists_tracked": total_artists,
        "import_runs_by_status": runs_by_status,
        "recent_runs": [
            {
                "artist": run.artist_name,
                "correlation_id": run.correlation_id,
                "status": run.status,
                "started_at": run.started_at.isoformat()
            } for run in recent_runs
        ]
    }
