import asyncio
import logging
import math
from dataclasses import dataclass
from numbers import Real
from typing import Awaitable, Callable, Iterable, Mapping, Sequence

from playlist_recs.config import DEFAULT_LIMIT, DEFAULT_MIN_FREQUENCY, LOOKUP_TIMEOUT_SECONDS
from playlist_recs.errors import InvalidInputError
from playlist_recs.models import (
    MultiRecommendationResponse,
    PlaylistWeight,
    RecommendationResponse,
    RecommendedArtist,
    SeedArtistInfo,
)

logger = logging.getLogger(__name__)

# A bare playlist reference, or (reference, weight 0-100)
PlaylistRef = str | tuple[str, float | None]


@dataclass(slots=True)
class SeedArtist:
    id: str
    name: str
    weight: float


@dataclass(slots=True)
class SimilarArtist:
    name: str
    match: float
    url: str | None = None


@dataclass(slots=True)
class AggregatedArtist:
    name: str
    frequency: int = 0
    total_match: float = 0.0
    combined_score: float = 0.0
    url: str | None = None

    @property
    def average_match(self) -> float:
        return self.total_match / self.frequency if self.frequency else 0.0


@dataclass(slots=True)
class WeightedPlaylist:
    ref: str
    weight: float


ResolvePlaylist = Callable[[str], Awaitable[Sequence[tuple[str, str]]]]
LookupSimilar = Callable[[str], Awaitable[Sequence[SimilarArtist]]]
FanOut = list[tuple[SeedArtist, Sequence[SimilarArtist]]]
ValidateRef = Callable[[str], object]


def normalize_playlist_weights(
    playlists: Sequence[PlaylistRef],
    validate_ref: ValidateRef | None = None,
) -> list[WeightedPlaylist]:
    """Turn raw 0-100 playlist weights into fractions summing to 1.

    Playlists given without a weight get an equal share (100 / N) before
    normalization, so an all-unweighted input is split evenly. When given,
    ``validate_ref`` checks every reference up front and raises ``ValueError``
    for one it cannot resolve.
    """
    if not playlists:
        raise InvalidInputError("At least one playlist is required")

    parsed: list[tuple[str, float | None]] = []
    for item in playlists:
        if isinstance(item, str):
            ref, weight = item, None
        elif isinstance(item, tuple) and len(item) == 2:
            ref, weight = item
        else:
            raise InvalidInputError(f"Malformed playlist reference: {item!r}")
        if not isinstance(ref, str) or not ref.strip():
            raise InvalidInputError("Playlist reference must not be empty")
        if weight is not None:
            # bool is an int subclass but never a weight
            if isinstance(weight, bool) or not isinstance(weight, Real) or not math.isfinite(weight):
                raise InvalidInputError(f"Playlist weight must be a number, got {weight!r}")
            if not 0 <= weight <= 100:
                raise InvalidInputError(f"Playlist weight must be between 0 and 100, got {weight}")
        parsed.append((ref.strip(), weight))

    if validate_ref is not None:
        for ref, _ in parsed:
            try:
                validate_ref(ref)
            except InvalidInputError:
                raise
            except ValueError as exc:
                raise InvalidInputError(str(exc)) from exc

    default = 100 / len(parsed)
    raw = [(ref, default if weight is None else float(weight)) for ref, weight in parsed]
    total = sum(weight for _, weight in raw)
    if total <= 0:
        raise InvalidInputError("Playlist weights must not all be zero")

    return [WeightedPlaylist(ref=ref, weight=weight / total) for ref, weight in raw]


async def build_seed_artists(
    playlists: Sequence[WeightedPlaylist],
    resolve: ResolvePlaylist,
) -> dict[str, SeedArtist]:
    """Resolve every playlist and merge its artists into one seed set.

    Each playlist splits its weight evenly over its unique artists; an artist
    found in several playlists gets the sum of its shares. A resolution
    failure propagates and aborts the whole request.
    """
    resolved = await asyncio.gather(*(resolve(p.ref) for p in playlists))

    seeds: dict[str, SeedArtist] = {}
    for playlist, artists in zip(playlists, resolved):
        unique: dict[str, str] = {}
        for artist_id, name in artists:
            unique.setdefault(artist_id, name)
        if not unique or playlist.weight <= 0:
            continue

        share = playlist.weight / len(unique)
        for artist_id, name in unique.items():
            seed = seeds.get(artist_id)
            if seed is None:
                seeds[artist_id] = SeedArtist(id=artist_id, name=name, weight=share)
            else:
                seed.weight += share
    return seeds


async def fetch_similar_for_seeds(
    seeds: Mapping[str, SeedArtist],
    lookup: LookupSimilar,
    timeout: float = LOOKUP_TIMEOUT_SECONDS,
) -> FanOut:
    """Look up similar artists for every distinct seed name concurrently.

    A lookup that fails or exceeds ``timeout`` contributes nothing; it never
    cancels its siblings.
    """
    names = list(dict.fromkeys(seed.name for seed in seeds.values()))

    async def guarded(name: str) -> Sequence[SimilarArtist]:
        try:
            return await asyncio.wait_for(lookup(name), timeout)
        except asyncio.TimeoutError:
            logger.warning("Similar artist lookup for '%s' timed out after %.1fs", name, timeout)
            return []
        except Exception:
            logger.warning("Similar artist lookup for '%s' failed", name, exc_info=True)
            return []

    results = await asyncio.gather(*(guarded(name) for name in names))
    by_name = dict(zip(names, results))
    return [(seed, by_name[seed.name]) for seed in seeds.values()]


def aggregate_similar(fan_out: FanOut) -> list[AggregatedArtist]:
    """Merge per-seed results into one entry per candidate (case-insensitive),
    in first-seen order."""
    aggregated: dict[str, AggregatedArtist] = {}
    for seed, similar in fan_out:
        seen: set[str] = set()
        for artist in similar:
            key = artist.name.lower()
            # a candidate counts once per seed
            if key in seen:
                continue
            seen.add(key)

            entry = aggregated.get(key)
            if entry is None:
                entry = aggregated[key] = AggregatedArtist(name=artist.name, url=artist.url)
            entry.frequency += 1
            entry.total_match += artist.match
            entry.combined_score += artist.match * seed.weight
    return list(aggregated.values())


def rank_recommendations(
    aggregated: Iterable[AggregatedArtist],
    seeds: Iterable[SeedArtist],
    limit: int = DEFAULT_LIMIT,
    min_frequency: int = DEFAULT_MIN_FREQUENCY,
) -> tuple[list[AggregatedArtist], int]:
    """Drop seed artists and rare candidates, sort by combined score.

    Returns the top ``limit`` candidates and the number that passed the
    filter. Equal scores are ordered alphabetically.
    """
    if limit < 1:
        raise InvalidInputError("limit must be a positive integer")
    if min_frequency < 1:
        raise InvalidInputError("min_frequency must be a positive integer")

    seed_names = {seed.name.lower() for seed in seeds}
    passing = [
        a for a in aggregated
        if a.name.lower() not in seed_names and a.frequency >= min_frequency
    ]
    passing.sort(key=lambda a: (-a.combined_score, a.name.lower()))
    return passing[:limit], len(passing)


def _to_recommended(artist: AggregatedArtist) -> RecommendedArtist:
    return RecommendedArtist(
        name=artist.name,
        frequency=artist.frequency,
        average_match=artist.average_match,
        combined_score=artist.combined_score,
        url=artist.url,
    )


class RecommendationEngine:
    """Playlist -> seed artists -> similar artists -> ranked recommendations.

    Both collaborators are injected: ``resolve_playlist`` maps a playlist
    reference to ``(artist_id, artist_name)`` pairs and may raise
    ``PlaylistResolutionError``; ``lookup_similar`` maps an artist name to
    ``SimilarArtist`` results. The optional ``validate_ref`` rejects a malformed
    reference before any playlist is resolved.
    """

    def __init__(
        self,
        resolve_playlist: ResolvePlaylist,
        lookup_similar: LookupSimilar,
        lookup_timeout: float = LOOKUP_TIMEOUT_SECONDS,
        validate_ref: ValidateRef | None = None,
    ):
        self.resolve_playlist = resolve_playlist
        self.lookup_similar = lookup_similar
        self.lookup_timeout = lookup_timeout
        self.validate_ref = validate_ref

    async def recommend_from_playlist(
        self,
        playlist: str,
        limit: int = DEFAULT_LIMIT,
        min_frequency: int = DEFAULT_MIN_FREQUENCY,
    ) -> RecommendationResponse:
        weighted = normalize_playlist_weights([playlist], self.validate_ref)
        seeds, ranked, total = await self._recommend(weighted, limit, min_frequency)
        return RecommendationResponse(
            seed_artists=[SeedArtistInfo(id=s.id, name=s.name) for s in seeds.values()],
            recommendations=[_to_recommended(a) for a in ranked],
            total_found=total,
        )

    async def recommend_from_playlists(
        self,
        playlists: Sequence[PlaylistRef],
        limit: int = DEFAULT_LIMIT,
        min_frequency: int = DEFAULT_MIN_FREQUENCY,
    ) -> MultiRecommendationResponse:
        weighted = normalize_playlist_weights(playlists, self.validate_ref)
        seeds, ranked, total = await self._recommend(weighted, limit, min_frequency)
        return MultiRecommendationResponse(
            seed_artists=[SeedArtistInfo(id=s.id, name=s.name) for s in seeds.values()],
            playlist_weights=[
                PlaylistWeight(url=p.ref, weight=round(p.weight * 100)) for p in weighted
            ],
            recommendations=[_to_recommended(a) for a in ranked],
            total_found=total,
        )

    async def _recommend(
        self,
        weighted: Sequence[WeightedPlaylist],
        limit: int,
        min_frequency: int,
    ) -> tuple[dict[str, SeedArtist], list[AggregatedArtist], int]:
        if limit < 1 or min_frequency < 1:
            raise InvalidInputError("limit and min_frequency must be positive integers")

        seeds = await build_seed_artists(weighted, self.resolve_playlist)
        logger.info("Found %d unique seed artists across %d playlists", len(seeds), len(weighted))

        fan_out = await fetch_similar_for_seeds(seeds, self.lookup_similar, self.lookup_timeout)
        aggregated = aggregate_similar(fan_out)
        logger.info("Found %d similar artists", len(aggregated))

        ranked, total = rank_recommendations(aggregated, seeds.values(), limit, min_frequency)
        return seeds, ranked, total
