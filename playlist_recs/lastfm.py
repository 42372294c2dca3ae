import asyncio
import logging
import math

import httpx

from playlist_recs.config import LASTFM_API_KEY, LASTFM_CONCURRENCY, LASTFM_SIMILAR_LIMIT
from playlist_recs.errors import ConfigurationError
from playlist_recs.recommender import LookupSimilar, SimilarArtist

logger = logging.getLogger(__name__)

LASTFM_BASE = "https://ws.audioscrobbler.com/2.0/"


def _check_key():
    if not LASTFM_API_KEY:
        raise ConfigurationError(
            "Last.fm API key not configured. "
            "Set LASTFM_API_KEY in your .env file."
        )


def _parse_similar(data: dict) -> list[SimilarArtist]:
    """Extract similar artists from a Last.fm artist.getsimilar response."""
    if "error" in data:
        logger.warning("Last.fm similar error: %s", data.get("message", "unknown"))
        return []

    raw = data.get("similarartists", {}).get("artist", [])

    # Last.fm sometimes returns a single dict instead of a list
    if isinstance(raw, dict):
        raw = [raw]

    results = []
    for a in raw:
        name = (a.get("name") or "").strip()
        if not name:
            continue
        try:
            match = float(a.get("match", 0))
        except (TypeError, ValueError):
            continue
        if not math.isfinite(match):
            continue
        results.append(SimilarArtist(
            name=name,
            match=min(max(match, 0.0), 1.0),
            url=a.get("url") or None,
        ))
    return results


async def fetch_similar_artists(
    client: httpx.AsyncClient,
    artist: str,
    limit: int = LASTFM_SIMILAR_LIMIT,
) -> list[SimilarArtist]:
    """Call Last.fm artist.getSimilar. Never raises: any failure (network,
    unknown artist, malformed payload) yields an empty list."""
    params = {
        "method": "artist.getsimilar",
        "artist": artist,
        "api_key": LASTFM_API_KEY,
        "format": "json",
        "limit": limit,
        "autocorrect": 1,
    }
    try:
        resp = await client.get(LASTFM_BASE, params=params, timeout=10)
        resp.raise_for_status()
        return _parse_similar(resp.json())
    except Exception:
        logger.warning("Failed to fetch similar artists for '%s'", artist, exc_info=True)
        return []


def make_similar_lookup(
    client: httpx.AsyncClient,
    concurrency: int = LASTFM_CONCURRENCY,
    limit: int = LASTFM_SIMILAR_LIMIT,
) -> LookupSimilar:
    """Bind a shared client and a request-scoped semaphore into a lookup
    callable for the recommendation engine."""
    _check_key()
    sem = asyncio.Semaphore(concurrency)

    async def lookup(artist: str) -> list[SimilarArtist]:
        async with sem:
            return await fetch_similar_artists(client, artist, limit)

    return lookup
