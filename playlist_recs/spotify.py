import asyncio
import logging
import re
from functools import lru_cache

import requests
import spotipy
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.exceptions import SpotifyException
from spotipy.oauth2 import SpotifyClientCredentials, SpotifyOauthError

from playlist_recs.config import (
    SPOTIFY_CLIENT_ID,
    SPOTIFY_CLIENT_SECRET,
    SPOTIFY_TIMEOUT_SECONDS,
)
from playlist_recs.errors import (
    ConfigurationError,
    InvalidInputError,
    PlaylistResolutionError,
)

logger = logging.getLogger(__name__)

# Patterns for extracting Spotify playlist IDs
PLAYLIST_URL_PATTERN = re.compile(
    r"(?:https?://)?open\.spotify\.com/(?:[a-z-]+/)?playlist/([a-zA-Z0-9]+)"
)
PLAYLIST_URI_PATTERN = re.compile(r"spotify:playlist:([a-zA-Z0-9]+)")
RAW_ID_PATTERN = re.compile(r"^[a-zA-Z0-9]+$")

PLAYLIST_ITEM_FIELDS = "items(track(id,artists(id,name))),next"


@lru_cache(maxsize=1)
def get_spotify_client() -> spotipy.Spotify:
    """Process-wide client; spotipy refreshes the app token once it expires."""
    if not SPOTIFY_CLIENT_ID or not SPOTIFY_CLIENT_SECRET:
        raise ConfigurationError(
            "Spotify credentials not configured. "
            "Set SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET in your .env file."
        )
    auth_manager = SpotifyClientCredentials(
        client_id=SPOTIFY_CLIENT_ID,
        client_secret=SPOTIFY_CLIENT_SECRET,
        cache_handler=MemoryCacheHandler(),
    )
    return spotipy.Spotify(
        auth_manager=auth_manager,
        requests_timeout=SPOTIFY_TIMEOUT_SECONDS,
    )


def extract_playlist_id(url_or_uri: str) -> str:
    """Extract the Spotify playlist ID from a URL, URI or raw ID."""
    url_or_uri = (url_or_uri or "").strip()
    if not url_or_uri:
        raise InvalidInputError("Playlist reference must not be empty")

    match = PLAYLIST_URL_PATTERN.search(url_or_uri)
    if match:
        return match.group(1)

    match = PLAYLIST_URI_PATTERN.search(url_or_uri)
    if match:
        return match.group(1)

    if RAW_ID_PATTERN.match(url_or_uri):
        return url_or_uri

    raise InvalidInputError(
        f"Could not extract a Spotify playlist ID from: {url_or_uri}"
    )


def _collect_artists(items: list[dict], artists: dict[str, str]) -> None:
    for item in items:
        track = (item or {}).get("track")
        if not track:
            continue
        for artist in track.get("artists") or []:
            # Local files carry artists without an ID
            artist_id = artist.get("id")
            if artist_id and artist_id not in artists:
                artists[artist_id] = artist.get("name", "")


def get_playlist_artists(url_or_uri: str) -> list[tuple[str, str]]:
    """Return the unique (artist_id, artist_name) pairs of a playlist, in
    order of first appearance. Reads every page of the playlist."""
    playlist_id = extract_playlist_id(url_or_uri)
    sp = get_spotify_client()

    artists: dict[str, str] = {}
    try:
        page = sp.playlist_items(
            playlist_id,
            fields=PLAYLIST_ITEM_FIELDS,
            additional_types=("track",),
        )
        while page:
            _collect_artists(page.get("items") or [], artists)
            page = sp.next(page) if page.get("next") else None
    except SpotifyException as exc:
        if exc.http_status == 404:
            raise PlaylistResolutionError(
                f"Playlist not found on Spotify: {playlist_id}"
            ) from exc
        raise PlaylistResolutionError(
            f"Failed to fetch playlist {playlist_id} from Spotify: {exc.msg}"
        ) from exc
    except (SpotifyOauthError, requests.RequestException) as exc:
        raise PlaylistResolutionError(
            f"Failed to fetch playlist {playlist_id} from Spotify: {exc}"
        ) from exc

    logger.info("Playlist %s has %d unique artists", playlist_id, len(artists))
    return list(artists.items())


async def resolve_playlist_artists(url_or_uri: str) -> list[tuple[str, str]]:
    """Async wrapper; spotipy is blocking so it runs in a worker thread."""
    return await asyncio.to_thread(get_playlist_artists, url_or_uri)
