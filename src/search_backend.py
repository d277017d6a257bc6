from abc import ABC, abstractmethod
from typing import Optional

from playable_source import PlayableSource


class SearchBackend(ABC):
    """
    Search index used to turn catalog metadata ("title artist") into something
    the audio source provider can stream. Only the top ranked hit matters.
    """

    @abstractmethod
    async def search(self, query: str, results: int = 5) -> Optional[PlayableSource]:
        """Return the best playable match for query, or None when nothing usable came up."""

    async def close(self) -> None:
        """Release backend resources, nothing to do by default."""
