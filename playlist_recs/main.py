import logging
from datetime import datetime, timezone

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

logging.basicConfig(level=logging.INFO)

from playlist_recs.config import CORS_ORIGINS
from playlist_recs.errors import ConfigurationError, InvalidInputError, PlaylistResolutionError
from playlist_recs.lastfm import make_similar_lookup
from playlist_recs.models import (
    MultiRecommendationResponse,
    MultiRecommendRequest,
    RecommendationResponse,
    RecommendRequest,
)
from playlist_recs.recommender import RecommendationEngine
from playlist_recs.spotify import extract_playlist_id, resolve_playlist_artists

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Playlist Artist Recommendations",
    description="Recommend artists similar to the ones in your Spotify playlists using Last.fm similarity data.",
    version="1.0.0",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ConfigurationError)
async def configuration_error_handler(request: Request, exc: ConfigurationError):
    logger.error("Service misconfigured: %s", exc)
    return JSONResponse(status_code=503, content={"detail": str(exc)})


async def get_engine():
    async with httpx.AsyncClient() as client:
        yield RecommendationEngine(
            resolve_playlist=resolve_playlist_artists,
            lookup_similar=make_similar_lookup(client),
            validate_ref=extract_playlist_id,
        )


@app.post("/api/recommendations", response_model=RecommendationResponse)
async def api_recommendations(
    req: RecommendRequest,
    engine: RecommendationEngine = Depends(get_engine),
):
    try:
        return await engine.recommend_from_playlist(
            req.playlist_url, limit=req.limit, min_frequency=req.min_frequency
        )
    except InvalidInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except PlaylistResolutionError as exc:
        logger.exception("Failed to resolve playlist %s", req.playlist_url)
        raise HTTPException(status_code=502, detail=str(exc))


@app.post("/api/recommendations/multiple", response_model=MultiRecommendationResponse)
async def api_recommendations_multiple(
    req: MultiRecommendRequest,
    engine: RecommendationEngine = Depends(get_engine),
):
    refs = req.playlist_refs()
    if not refs:
        raise HTTPException(
            status_code=400,
            detail="Either playlist_urls or playlists with weights is required",
        )
    try:
        return await engine.recommend_from_playlists(
            refs, limit=req.limit, min_frequency=req.min_frequency
        )
    except InvalidInputError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except PlaylistResolutionError as exc:
        logger.exception("Failed to resolve one of %d playlists", len(refs))
        raise HTTPException(status_code=502, detail=str(exc))


@app.get("/api/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}
