import asyncio
import re
from dataclasses import dataclass
from typing import List, Optional, Protocol, Sequence

from cadence_errors import ResolutionError
from cadence_logger import Logger
from catalog_client import CatalogTrack
from playable_source import PlayableSource
from search_backend import SearchBackend
from track_reference import TrackReference

logger = Logger("track_resolver")

# Larger playlists are truncated to the first page, never paginated.
PLAYLIST_PAGE_LIMIT: int = 10

CATALOG_TRACK_PATTERN = re.compile(r"(?:track/|track:)([A-Za-z0-9]+)")
CATALOG_PLAYLIST_PATTERN = re.compile(r"(?:playlist/|playlist:)([A-Za-z0-9]+)")


class CatalogClient(Protocol):
    async def get_track(self, track_id: str) -> CatalogTrack: ...

    async def get_playlist_tracks(
        self, playlist_id: str, page_limit: int
    ) -> List[CatalogTrack]: ...


@dataclass(frozen=True)
class ResolvedBatch:
    sources: tuple[PlayableSource, ...]
    requested: int

    @property
    def skipped(self) -> int:
        return self.requested - len(self.sources)


class TrackResolver:
    def __init__(self, catalog: CatalogClient, search_backend: SearchBackend) -> None:
        self.catalog: CatalogClient = catalog
        self.search_backend: SearchBackend = search_backend

    async def resolve(self, reference: TrackReference) -> List[PlayableSource]:
        batch: ResolvedBatch = await self.resolve_batch(reference)
        return list(batch.sources)

    async def resolve_batch(self, reference: TrackReference) -> ResolvedBatch:
        if not reference.is_catalog_link:
            logger.debug("Direct media link %s needs no lookup.", reference.value)
            return ResolvedBatch(sources=(PlayableSource(url=reference.value),), requested=1)

        tracks: List[CatalogTrack] = await self._lookup_catalog(reference)

        if not tracks:
            raise ResolutionError("That playlist has no tracks to play.")

        found: Sequence[Optional[PlayableSource]] = await asyncio.gather(
            *(self._search_one(track) for track in tracks)
        )

        sources = tuple(source for source in found if source is not None)

        if not sources:
            raise ResolutionError("Could not find any of those tracks to play.")

        if len(sources) < len(tracks):
            logger.warning(
                "Dropped %s of %s entries from %s with no search hit.",
                len(tracks) - len(sources),
                len(tracks),
                reference.value,
            )

        return ResolvedBatch(sources=sources, requested=len(tracks))

    async def _lookup_catalog(self, reference: TrackReference) -> List[CatalogTrack]:
        track_match = CATALOG_TRACK_PATTERN.search(reference.value)
        playlist_match = CATALOG_PLAYLIST_PATTERN.search(reference.value)

        if track_match and not playlist_match:
            return [await self.catalog.get_track(track_match.group(1))]

        if playlist_match and not track_match:
            tracks: List[CatalogTrack] = await self.catalog.get_playlist_tracks(
                playlist_match.group(1), PLAYLIST_PAGE_LIMIT
            )
            return tracks[:PLAYLIST_PAGE_LIMIT]

        raise ResolutionError("Invalid Spotify link, use a track or playlist link.")

    async def _search_one(self, track: CatalogTrack) -> Optional[PlayableSource]:
        source: PlayableSource | None = await self.search_backend.search(track.query)

        if source is None:
            logger.warning("No search result for %s, skipping it.", track.query)
            return None

        # Keep the catalog naming for user facing messages.
        return PlayableSource(
            url=source.url,
            title=track.title,
            artist=track.artist,
            duration=source.duration,
        )
