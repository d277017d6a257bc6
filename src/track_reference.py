from dataclasses import dataclass
from enum import Enum
from urllib.parse import urlsplit

from cadence_errors import ResolutionError

CATALOG_HOSTS: tuple[str, ...] = ("open.spotify.com", "play.spotify.com")


class ReferenceKind(Enum):
    DIRECT_MEDIA = "DirectMedia"
    CATALOG_LINK = "CatalogLink"


@dataclass(frozen=True)
class TrackReference:
    """A user supplied link, classified but not yet resolved."""

    value: str
    kind: ReferenceKind

    @staticmethod
    def parse(raw: str) -> "TrackReference":
        value: str = raw.strip().strip("<>").strip()

        if value == "":
            raise ResolutionError("Please provide a link to play.")

        if value.startswith("spotify:"):
            return TrackReference(value, ReferenceKind.CATALOG_LINK)

        parts = urlsplit(value)

        if parts.scheme not in ("http", "https") or not parts.netloc:
            raise ResolutionError(f"Unrecognized link: {value}")

        if parts.netloc.lower() in CATALOG_HOSTS:
            return TrackReference(value, ReferenceKind.CATALOG_LINK)

        return TrackReference(value, ReferenceKind.DIRECT_MEDIA)

    @property
    def is_catalog_link(self) -> bool:
        return self.kind is ReferenceKind.CATALOG_LINK
