from dataclasses import dataclass
from os import getenv
from typing import Literal, Optional

from dotenv import load_dotenv

SearchBackendSource = Literal["youtube-dlp", "lavalink"]

SEARCH_BACKEND_SOURCES: tuple[str, ...] = ("youtube-dlp", "lavalink")

DEFAULT_EXTERNAL_CALL_TIMEOUT: float = 15.0


@dataclass(frozen=True)
class NodeSettings:
    """Contains the settings used to configure a Lavalink Node"""

    host: str
    port: int
    label: str
    password: str


@dataclass(frozen=True)
class CatalogSettings:
    """Client credentials for the Spotify Web API"""

    client_id: Optional[str]
    client_secret: Optional[str]

    @property
    def is_configured(self) -> bool:
        return bool(self.client_id) and bool(self.client_secret)


@dataclass(frozen=True)
class BotSettings:
    token: str
    command_prefix: str
    search_backend: SearchBackendSource
    external_call_timeout: float
    ffmpeg_path: Optional[str]
    catalog: CatalogSettings
    lavalink: NodeSettings


def load_settings() -> BotSettings:
    load_dotenv()

    bot_token: str | None = getenv("BOT_TOKEN")

    if bot_token is None:
        raise RuntimeError("Could not obtain token from environment settings.")

    search_backend: str = getenv("SEARCH_BACKEND", "youtube-dlp")

    if search_backend not in SEARCH_BACKEND_SOURCES:
        raise ValueError(f"Unsupported search backend source: {search_backend}.")

    timeout_setting: str = getenv(
        "EXTERNAL_CALL_TIMEOUT", str(DEFAULT_EXTERNAL_CALL_TIMEOUT)
    )

    try:
        external_call_timeout = float(timeout_setting)
    except ValueError as error:
        raise ValueError(
            f"EXTERNAL_CALL_TIMEOUT must be a number, got {timeout_setting!r}."
        ) from error

    return BotSettings(
        token=bot_token,
        command_prefix=getenv("BOT_COMMAND_PREFIX", "!"),
        search_backend=search_backend,  # type: ignore[arg-type] checked above
        external_call_timeout=external_call_timeout,
        ffmpeg_path=getenv("FFMPEG_PATH"),
        catalog=CatalogSettings(
            client_id=getenv("SPOTIFY_CLIENT_ID"),
            client_secret=getenv("SPOTIFY_CLIENT_SECRET"),
        ),
        lavalink=NodeSettings(
            getenv("LAVALINK_NODE_HOST", "localhost"),
            int(getenv("LAVALINK_NODE_PORT", "2333")),
            getenv("LAVALINK_NODE_LABEL", "Default"),
            getenv("LAVALINK_NODE_PASSWORD", "password"),
        ),
    )
