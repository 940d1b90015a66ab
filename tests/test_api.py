# tests/test_api.py
from unittest.mock import MagicMock, patch
from fastapi.testclient import TestClient
import api
from api import app, get_progress_tracker
from services.progress_tracker import ProgressTracker
from tests.conftest import FakeRedis

fake_redis = FakeRedis()
app.dependency_overrides[get_progress_tracker] = lambda: ProgressTracker(fake_redis)
client = TestClient(app)


def test_progress_requires_artist():
    response = client.get("/progress")
    assert response.status_code == 200
    assert response.json() == {"error": "Missing artist parameter"}


def test_progress_idle_payload():
    response = client.get("/progress", params={"artist": "Goose"})
    assert response.status_code == 200
    assert response.json() == {
        "artist": "Goose",
        "status": "idle",
        "current": 0,
        "total": 0,
        "processed": 0,
        "eta": "",
        "correlation_id": "",
        "error": "",
    }


def test_progress_reports_running_import_and_clears():
    fake_redis.store.clear()
    fake_redis.store["tapearchive:progress:lettuce:status"] = ("running", 3600)
    fake_redis.store["tapearchive:progress:lettuce:current"] = ("150", 3600)
    fake_redis.store["tapearchive:progress:lettuce:total"] = ("523", 3600)

    data = client.get("/progress", params={"artist": "Lettuce"}).json()
    assert data["status"] == "running"
    assert data["current"] == 150
    assert data["total"] == 523

    assert client.delete("/progress/Lettuce").json() == {"artist": "Lettuce", "status": "idle"}
    assert client.get("/progress", params={"artist": "Lettuce"}).json()["status"] == "idle"


def test_progress_with_redis_down_is_idle():
    down = FakeRedis(available=False)
    app.dependency_overrides[get_progress_tracker] = lambda: ProgressTracker(down)
    try:
        data = client.get("/progress", params={"artist": "Phish"}).json()
    finally:
        app.dependency_overrides[get_progress_tracker] = lambda: ProgressTracker(fake_redis)
    assert data["status"] == "idle"


def test_lineup_sort_endpoint():
    payload = {
        "algorithm": "shows",
        "artists": [
            {"slug": "phish", "name": "Phish", "songCount": 900, "totalShows": 1800},
            {"slug": "goose", "name": "Goose", "songCount": 300, "totalShows": 600},
            {"slug": "dead", "name": "Grateful Dead", "songCount": 1000, "totalShows": 2300},
        ],
    }
    data = client.post("/lineup/sort", json=payload).json()
    assert data["algorithm"] == "shows"
    assert [a["slug"] for a in data["artists"]] == ["dead", "phish", "goose"]
    assert data["artists"][0]["songCount"] == 1000


def test_lineup_sort_unknown_algorithm_falls_back():
    payload = {
        "algorithm": "balanced",
        "artists": [
            {"slug": "a", "name": "A", "songCount": 1},
            {"slug": "b", "name": "B", "songCount": 2},
        ],
    }
    data = client.post("/lineup/sort", json=payload).json()
    assert data["algorithm"] == "songVersions"
    assert [a["slug"] for a in data["artists"]] == ["b", "a"]


def test_progress_with_unreadable_status_is_idle():
    fake_redis.store.clear()
    fake_redis.store["tapearchive:progress:phish:status"] = ("queued", 3600)

    response = client.get("/progress", params={"artist": "Phish"})
    assert response.status_code == 200
    assert response.json()["status"] == "idle"


def test_start_import_queues_task():
    with patch.object(api.import_artist, "delay", return_value=MagicMock(id="task-1")) as delay:
        response = client.post(
            "/imports",
            json={"artist": "Phish", "collection": "phish", "correlation_id": "corr-9"}
        )

    assert response.status_code == 202
    assert response.json() == {"artist": "Phish", "correlation_id": "corr-9", "task_id": "task-1"}
    delay.assert_called_once_with("Phish", "phish", "corr-9")
