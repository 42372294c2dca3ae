from pydantic import BaseModel, Field, field_validator

from playlist_recs.config import DEFAULT_LIMIT, DEFAULT_MIN_FREQUENCY, MAX_LIMIT
from playlist_recs.spotify import extract_playlist_id


def _validate_playlist_url(value: str) -> str:
    extract_playlist_id(value)
    return value.strip()


class RecommendRequest(BaseModel):
    playlist_url: str = Field(description="Spotify playlist URL, URI or ID")
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT, description="Number of artists to return")
    min_frequency: int = Field(
        default=DEFAULT_MIN_FREQUENCY, ge=1,
        description="Minimum number of seed artists a recommendation must be similar to",
    )

    @field_validator("playlist_url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return _validate_playlist_url(value)


class PlaylistInput(BaseModel):
    url: str = Field(description="Spotify playlist URL, URI or ID")
    weight: float | None = Field(default=None, ge=0.0, le=100.0, description="Relative influence, 0-100")

    @field_validator("url")
    @classmethod
    def _check_url(cls, value: str) -> str:
        return _validate_playlist_url(value)


class MultiRecommendRequest(BaseModel):
    playlist_urls: list[str] | None = Field(default=None, description="Equally weighted playlists")
    playlists: list[PlaylistInput] | None = Field(default=None, description="Weighted playlists")
    limit: int = Field(default=DEFAULT_LIMIT, ge=1, le=MAX_LIMIT)
    min_frequency: int = Field(default=DEFAULT_MIN_FREQUENCY, ge=1)

    @field_validator("playlist_urls")
    @classmethod
    def _check_urls(cls, value: list[str] | None) -> list[str] | None:
        if value is None:
            return None
        return [_validate_playlist_url(v) for v in value]

    def playlist_refs(self) -> list[str | tuple[str, float | None]]:
        """Weighted playlists take precedence over the plain URL list."""
        if self.playlists:
            return [(p.url, p.weight) for p in self.playlists]
        return list(self.playlist_urls or [])


class SeedArtistInfo(BaseModel):
    id: str
    name: str


class RecommendedArtist(BaseModel):
    name: str
    frequency: int
    average_match: float
    combined_score: float
    url: str | None = None


class PlaylistWeight(BaseModel):
    url: str
    weight: int = Field(description="Normalized weight as a percentage")


class RecommendationResponse(BaseModel):
    seed_artists: list[SeedArtistInfo]
    recommendations: list[RecommendedArtist]
    total_found: int


class MultiRecommendationResponse(RecommendationResponse):
    playlist_weights: list[PlaylistWeight]
