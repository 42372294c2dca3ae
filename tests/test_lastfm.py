import asyncio

import httpx
import pytest

from playlist_recs import lastfm
from playlist_recs.errors import ConfigurationError


def _run_fetch(handler, artist="Radiohead"):
    async def run():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
            return await lastfm.fetch_similar_artists(client, artist, limit=5)

    return asyncio.run(run())


def test_fetch_similar_artists_parses_payload():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen.update(request.url.params)
        return httpx.Response(200, json={
            "similarartists": {
                "artist": [
                    {"name": "Thom Yorke", "match": "1", "url": "https://www.last.fm/music/Thom+Yorke"},
                    {"name": "Muse", "match": "0.42", "url": "https://www.last.fm/music/Muse"},
                ],
            },
        })

    results = _run_fetch(handler)

    assert seen["method"] == "artist.getsimilar"
    assert seen["artist"] == "Radiohead"
    assert seen["limit"] == "5"
    assert [(a.name, a.match) for a in results] == [("Thom Yorke", 1.0), ("Muse", 0.42)]
    assert results[1].url == "https://www.last.fm/music/Muse"


def test_fetch_similar_artists_single_dict():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={
            "similarartists": {"artist": {"name": "Muse", "match": "0.3"}},
        })

    results = _run_fetch(handler)

    assert [(a.name, a.match) for a in results] == [("Muse", 0.3)]


def test_fetch_similar_artists_skips_malformed_entries():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={
            "similarartists": {
                "artist": [
                    {"name": "", "match": "0.9"},
                    {"name": "Muse", "match": "n/a"},
                    {"name": "Mogwai", "match": "nan"},
                    {"name": "Slowdive", "match": "inf"},
                    {"name": "Blur", "match": "1.7"},
                ],
            },
        })

    results = _run_fetch(handler)

    assert [(a.name, a.match) for a in results] == [("Blur", 1.0)]


@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(200, json={"error": 6, "message": "The artist you supplied could not be found"}),
        httpx.Response(500, text="Internal Server Error"),
        httpx.Response(200, text="not json"),
    ],
)
def test_fetch_similar_artists_degrades_to_empty(response):
    assert _run_fetch(lambda request: response) == []


def test_fetch_similar_artists_network_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    assert _run_fetch(handler) == []


def test_make_similar_lookup_requires_key(monkeypatch):
    monkeypatch.setattr(lastfm, "LASTFM_API_KEY", "")

    async def run():
        async with httpx.AsyncClient() as client:
            lastfm.make_similar_lookup(client)

    with pytest.raises(ConfigurationError):
        asyncio.run(run())


def test_make_similar_lookup_bounds_concurrency(monkeypatch):
    monkeypatch.setattr(lastfm, "LASTFM_API_KEY", "test-key")
    active = 0
    peak = 0

    async def fake_fetch(client, artist, limit):
        nonlocal active, peak
        active += 1
        peak = max(peak, active)
        await asyncio.sleep(0.01)
        active -= 1
        return [lastfm.SimilarArtist(name=f"{artist} fan", match=0.5)]

    monkeypatch.setattr(lastfm, "fetch_similar_artists", fake_fetch)

    async def run():
        async with httpx.AsyncClient() as client:
            lookup = lastfm.make_similar_lookup(client, concurrency=2)
            return await asyncio.gather(*(lookup(f"artist {i}") for i in range(6)))

    results = asyncio.run(run())

    assert peak == 2
    assert [r[0].name for r in results] == [f"artist {i} fan" for i in range(6)]
