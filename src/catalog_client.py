import asyncio
from dataclasses import dataclass
from time import monotonic
from typing import Any, Dict, List, Optional

from aiohttp import BasicAuth, ClientError, ClientSession, ClientTimeout
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from cadence_errors import CatalogLookupError
from cadence_logger import Logger
from cadence_settings import CatalogSettings, DEFAULT_EXTERNAL_CALL_TIMEOUT

logger = Logger("catalog_client")

SPOTIFY_TOKEN_URL: str = "https://accounts.spotify.com/api/token"
SPOTIFY_API_URL: str = "https://api.spotify.com/v1"

# Refresh the token a bit before Spotify considers it expired.
TOKEN_EXPIRY_MARGIN: int = 60

PLAYLIST_TRACK_FIELDS: str = "items(track(name,artists(name)))"


class TransientCatalogError(CatalogLookupError):
    default_message = "Spotify is not answering right now, try again later."


class ExpiredTokenError(TransientCatalogError):
    default_message = "Spotify rejected the bot credentials."


@dataclass(frozen=True)
class CatalogTrack:
    """Metadata of one catalog entry, enough to search for a playable copy."""

    title: str
    artist: Optional[str] = None

    @property
    def query(self) -> str:
        if self.artist:
            return f"{self.title} {self.artist}"

        return self.title

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> Optional["CatalogTrack"]:
        if not data:
            return None

        title: str | None = data.get("name")

        if not title:
            logger.debug("Catalog entry %s has no name, ignoring.", data)
            return None

        artists: List[Dict[str, Any]] = data.get("artists") or []
        artist: str | None = artists[0].get("name") if artists else None

        return cls(title=title, artist=artist)


def raise_for_catalog_status(status: int, url: str) -> None:
    if status < 400:
        return

    logger.error("Catalog request to %s failed with status %s.", url, status)

    if status in (401, 403):
        raise CatalogLookupError("Spotify rejected the bot credentials.")

    if status == 404:
        raise CatalogLookupError("That Spotify track or playlist was not found.")

    if status == 429 or status >= 500:
        raise TransientCatalogError()

    raise CatalogLookupError(f"Spotify request failed with status {status}.")


_retry_transient = retry(
    stop=stop_after_attempt(4),
    wait=wait_exponential(multiplier=1, min=1, max=10),
    retry=retry_if_exception_type(TransientCatalogError),
    reraise=True,
)


class SpotifyCatalogClient:
    """Read-only Spotify Web API client using the client credentials grant."""

    def __init__(
        self, settings: CatalogSettings, timeout: float = DEFAULT_EXTERNAL_CALL_TIMEOUT
    ) -> None:
        self.settings: CatalogSettings = settings
        self.timeout: float = timeout
        self._session: Optional[ClientSession] = None
        self._token: Optional[str] = None
        self._token_expires_at: float = 0.0

    def _client_session(self) -> ClientSession:
        if self._session is None or self._session.closed:
            self._session = ClientSession(timeout=ClientTimeout(total=self.timeout))

        return self._session

    async def authenticate(self) -> str:
        if not self.settings.is_configured:
            raise CatalogLookupError("Spotify links are not configured on this bot.")

        if self._token is not None and monotonic() < self._token_expires_at:
            return self._token

        payload: Dict[str, Any] = await self._request_token()
        token: str | None = payload.get("access_token")

        if token is None:
            raise CatalogLookupError("Spotify did not return an access token.")

        expires_in: int = int(payload.get("expires_in", 3600))
        self._token = token
        self._token_expires_at = monotonic() + expires_in - TOKEN_EXPIRY_MARGIN

        logger.debug("Obtained catalog token valid for %s seconds.", expires_in)

        return token

    @_retry_transient
    async def _request_token(self) -> Dict[str, Any]:
        auth = BasicAuth(self.settings.client_id or "", self.settings.client_secret or "")

        try:
            async with self._client_session().post(
                SPOTIFY_TOKEN_URL, data={"grant_type": "client_credentials"}, auth=auth
            ) as response:
                raise_for_catalog_status(response.status, SPOTIFY_TOKEN_URL)
                return await response.json()
        except (ClientError, asyncio.TimeoutError) as error:
            logger.warning("Token request failed: %s", error)
            raise TransientCatalogError() from error

    @_retry_transient
    async def _get_json(
        self, path: str, params: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        token: str = await self.authenticate()
        url: str = f"{SPOTIFY_API_URL}{path}"

        try:
            async with self._client_session().get(
                url, params=params, headers={"Authorization": f"Bearer {token}"}
            ) as response:
                if response.status == 401:
                    # Revoked or expired early, the retry fetches a new one.
                    logger.warning("Catalog token rejected for %s.", url)
                    self._token = None
                    raise ExpiredTokenError()

                raise_for_catalog_status(response.status, url)
                return await response.json()
        except (ClientError, asyncio.TimeoutError) as error:
            logger.warning("Catalog request to %s failed: %s", url, error)
            raise TransientCatalogError() from error

    async def get_track(self, track_id: str) -> CatalogTrack:
        data: Dict[str, Any] = await self._get_json(f"/tracks/{track_id}")
        track: CatalogTrack | None = CatalogTrack.from_dict(data)

        if track is None:
            raise CatalogLookupError("That Spotify track has no usable metadata.")

        logger.debug("Fetched catalog track %s.", track)

        return track

    async def get_playlist_tracks(
        self, playlist_id: str, page_limit: int
    ) -> List[CatalogTrack]:
        data: Dict[str, Any] = await self._get_json(
            f"/playlists/{playlist_id}/tracks",
            {"limit": page_limit, "fields": PLAYLIST_TRACK_FIELDS},
        )

        items: List[Dict[str, Any]] = data.get("items") or []
        tracks: List[CatalogTrack] = []

        for item in items[:page_limit]:
            track: CatalogTrack | None = CatalogTrack.from_dict(
                item.get("track") if item else None
            )

            if track is None:
                logger.debug("Skipping playlist item without track data.")
                continue

            tracks.append(track)

        logger.debug("Fetched %s tracks from playlist %s.", len(tracks), playlist_id)

        return tracks

    async def close(self) -> None:
        if self._session is not None and not self._session.closed:
            await self._session.close()

        self._session = None
