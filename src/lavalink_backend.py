import asyncio
from typing import List, Literal, Optional, Self

from discord import Client
from mafic import Node, NodePool, Playlist
from mafic.track import Track

from cadence_logger import Logger
from cadence_settings import DEFAULT_EXTERNAL_CALL_TIMEOUT, NodeSettings
from playable_source import PlayableSource
from search_backend import SearchBackend

LavalinkSearchPlatform = Literal[
    "ytsearch",
    "ytmsearch",
    "scsearch",
]


logger = Logger("lavalink_backend")


class LavalinkBackend(SearchBackend):
    """Strategy that searches through a Lavalink node."""

    node_pool: NodePool
    is_ready: bool = False

    def __init__(
        self,
        client: Client,
        node_settings: NodeSettings,
        search_type: LavalinkSearchPlatform = "ytsearch",
        timeout: float = DEFAULT_EXTERNAL_CALL_TIMEOUT,
    ) -> None:
        super().__init__()
        self.is_ready = False
        self.node_settings: NodeSettings = node_settings
        self.search_type: LavalinkSearchPlatform = search_type
        self.timeout: float = timeout
        self.node_pool = NodePool(client)

    @classmethod
    async def create(
        cls,
        client: Client,
        node_settings: NodeSettings,
        timeout: float = DEFAULT_EXTERNAL_CALL_TIMEOUT,
    ) -> "LavalinkBackend":
        """Async factory for LavalinkBackend (replaces async __init__)."""
        self: Self = cls(client, node_settings, timeout=timeout)

        await self.node_pool.create_node(
            host=node_settings.host,
            port=node_settings.port,
            label=node_settings.label,
            password=node_settings.password,
        )

        self.is_ready = True
        logger.info("Lavalink node %s is ready.", node_settings.label)
        return self

    @property
    def current_node(self) -> Node:
        """Gets a random node from the pool"""
        # Currently we're only supporting one node, but if more are
        # added then this method should be updated
        return self.node_pool.get_random_node()

    async def search(self, query: str, results: int = 5) -> Optional[PlayableSource]:
        try:
            search_res: List[Track] | Playlist | None = await asyncio.wait_for(
                self.current_node.fetch_tracks(query, search_type=self.search_type),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error("Search for %s timed out after %ss.", query, self.timeout)
            return None
        except Exception as exception:
            logger.error("Error trying to search %s: %s.", query, exception)
            return None

        if not search_res:
            logger.warning(
                "No response obtained after searching %s in platform %s.",
                query,
                self.search_type,
            )

            return None

        tracks: List[Track] = []
        if isinstance(search_res, Playlist):
            logger.debug("Obtained a list of tracks from Playlist %s.", search_res.name)
            tracks = search_res.tracks
        else:
            tracks = search_res

        playable: List[Track] = [track for track in tracks[:results] if track.uri]

        if len(playable) == 0:
            logger.warning(
                "Obtained a response but no results came up after searching %s in platform %s.",
                query,
                self.search_type,
            )

            return None

        track: Track = playable[0]

        logger.debug("Selected track %s.", track.title)

        return PlayableSource(
            url=PlayableSource.remove_list_query_param(track.uri or ""),
            title=track.title,
            artist=track.author or None,
            duration=track.length / 1000.0 if track.length else None,
        )

    async def close(self) -> None:
        for node in list(self.node_pool.nodes):
            await node.close()

        self.is_ready = False
