"""
Configuration for the playlist recommendation backend.
Load API credentials and tuning knobs from environment variables.
"""
import os

from dotenv import load_dotenv

load_dotenv()

# Spotify (client credentials flow, public playlists only)
SPOTIFY_CLIENT_ID = os.getenv("SPOTIFY_CLIENT_ID", "")
SPOTIFY_CLIENT_SECRET = os.getenv("SPOTIFY_CLIENT_SECRET", "")
SPOTIFY_TIMEOUT_SECONDS = float(os.getenv("SPOTIFY_TIMEOUT_SECONDS", "10"))

# Last.fm
LASTFM_API_KEY = os.getenv("LASTFM_API_KEY", "")
LASTFM_SIMILAR_LIMIT = int(os.getenv("LASTFM_SIMILAR_LIMIT", "10"))
# Last.fm allows 5 req/s averaged over 5 min
LASTFM_CONCURRENCY = int(os.getenv("LASTFM_CONCURRENCY", "4"))

# Upper bound for a single similarity lookup; a slower lookup counts as empty
LOOKUP_TIMEOUT_SECONDS = float(os.getenv("LOOKUP_TIMEOUT_SECONDS", "10"))

# Recommendation defaults
DEFAULT_LIMIT = int(os.getenv("DEFAULT_LIMIT", "20"))
MAX_LIMIT = int(os.getenv("MAX_LIMIT", "100"))
DEFAULT_MIN_FREQUENCY = int(os.getenv("DEFAULT_MIN_FREQUENCY", "1"))

CORS_ORIGINS = [
    origin.strip()
    for origin in os.getenv("CORS_ORIGINS", "*").split(",")
    if origin.strip()
]
