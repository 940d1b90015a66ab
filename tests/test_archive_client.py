# tests/test_archive_client.py
import httpx
import pytest
from services.archive import ArchiveClient

METADATA = {
    "metadata": {
        "identifier": "ph1997-11-17",
        "title": "Phish Live at McNichols Arena on 1997-11-17",
        "date": "1997-11-17",
        "venue": ["McNichols Arena"],
    },
    "files": [
        {"name": "ph97-11-17d1t01.flac", "format": "Flac", "title": "Tweezer", "track": "01"},
        {"name": "ph97-11-17d1t01.mp3", "format": "VBR MP3", "title": "Tweezer", "track": "01", "length": "1234.5"},
        {"name": "ph97-11-17d1t02.mp3", "format": "VBR MP3", "title": "Black-Eyed Katy", "track": "02"},
        {"name": "ph97-11-17d1t03.mp3", "format": "VBR MP3", "track": "03"},
        {"name": "ph97-11-17.txt", "format": "Text"},
    ],
}


def make_client(handler):
    return ArchiveClient(base_url="https://archive.test", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_search_shows_paginates():
    pages = {
        "1": {"response": {"numFound": 3, "docs": [{"identifier": "a"}, {"identifier": "b"}]}},
        "2": {"response": {"numFound": 3, "docs": [{"identifier": "c"}]}},
    }
    seen_queries = []

    def handler(request: httpx.Request):
        seen_queries.append(request.url.params["q"])
        return httpx.Response(200, json=pages[request.url.params["page"]])

    client = make_client(handler)
    try:
        identifiers = await client.get_all_show_identifiers("phish", rows=2)
    finally:
        await client.close()

    assert identifiers == ["a", "b", "c"]
    assert seen_queries == ["collection:(phish)", "collection:(phish)"]


@pytest.mark.asyncio
async def test_get_show_prefers_mp3_derivatives():
    def handler(request: httpx.Request):
        assert request.url.path == "/metadata/ph1997-11-17"
        return httpx.Response(200, json=METADATA)

    client = make_client(handler)
    try:
        show = await client.get_show("ph1997-11-17")
    finally:
        await client.close()

    assert show.date == "1997-11-17"
    assert show.venue == "McNichols Arena"
    assert [t.title for t in show.tracks] == ["Tweezer", "Black-Eyed Katy", ""]
    assert {t.format for t in show.tracks} == {"VBR MP3"}
    assert show.tracks[0].length == "1234.5"


@pytest.mark.asyncio
async def test_client_errors_are_not_retried():
    calls = []

    def handler(request: httpx.Request):
        calls.append(request)
        return httpx.Response(404, json={"error": "not found"})

    client = make_client(handler)
    try:
        with pytest.raises(httpx.HTTPStatusError):
            await client.get_show("missing")
    finally:
        await client.close()

    assert len(calls) == 1


@pytest.mark.asyncio
async def test_search_rows_limit():
    client = make_client(lambda request: httpx.Response(200, json={}))
    with pytest.raises(ValueError):
        await client.search_shows("phish", rows=20000)
