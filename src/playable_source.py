from dataclasses import dataclass
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

PLAYLIST_QUERY_PARAMS: tuple[str, ...] = ("list", "index", "start_radio")


@dataclass(frozen=True)
class PlayableSource:
    """A resolved track: a locator the audio source provider can open, plus display info."""

    url: str
    title: str | None = None
    artist: str | None = None
    duration: float | None = None

    @property
    def label(self) -> str:
        if self.title and self.artist:
            return f"{self.title} - {self.artist}"

        return self.title or self.url

    @staticmethod
    def remove_list_query_param(url: str) -> str:
        """Drops playlist parameters so a single video link never expands into a playlist"""
        if not url.startswith(("http://", "https://")):
            return url

        parts = urlsplit(url)
        query = [
            (key, value)
            for key, value in parse_qsl(parts.query, keep_blank_values=True)
            if key not in PLAYLIST_QUERY_PARAMS
        ]

        return urlunsplit(parts._replace(query=urlencode(query)))

    def __str__(self) -> str:
        return f"{self.label} ({self.url})"
