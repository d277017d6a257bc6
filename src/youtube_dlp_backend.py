import asyncio
from typing import Any, Dict, Optional

from yt_dlp import YoutubeDL

from cadence_logger import Logger
from cadence_settings import DEFAULT_EXTERNAL_CALL_TIMEOUT
from playable_source import PlayableSource
from search_backend import SearchBackend

logger = Logger("youtube_dlp_backend")

HEADERS: dict[str, str] = {
    "User-Agent": "Mozilla/5.0",
    "Accept-Language": "en-US,en;q=0.9",
}

YOUTUBE_DLP_OPTIONS: Dict[str, Any] = {
    "format": "bestaudio[ext=m4a]/bestaudio/best",
    "extract_flat": "in_playlist",  # search entries come back without resolving each video
    "default_search": "ytsearch",
    "source_address": "0.0.0.0",
    "nocheckcertificate": True,
    "ignoreerrors": True,  # extract_info returns None instead of raising
    "logtostderr": True,
    "no_warnings": True,
    "quiet": True,
    "getcomments": False,
    "http_headers": HEADERS,
}

STREAM_OPTIONS: Dict[str, Any] = {
    **YOUTUBE_DLP_OPTIONS,
    "noplaylist": True,
}


class YoutubeDlpBackend(SearchBackend):
    """Strategy that uses YouTube-DLP to search YouTube."""

    def __init__(self, timeout: float = DEFAULT_EXTERNAL_CALL_TIMEOUT) -> None:
        self.timeout: float = timeout

    async def search(self, query: str, results: int = 5) -> Optional[PlayableSource]:
        logger.debug(f"Searching for: {query}")
        loop = asyncio.get_running_loop()

        try:
            result: Any = await asyncio.wait_for(
                loop.run_in_executor(None, self._extract_search, query, results),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error(f"Search timed out after {self.timeout}s for query: {query}")
            return None
        except Exception as exception:
            logger.error(f"Error trying to search: {exception}.")
            return None

        if not result or not result.get("entries"):
            logger.warning(f"No search results found for query: {query}")
            return None

        entries: Any = result["entries"]
        if not isinstance(entries, list):
            return None

        for entry in entries:
            if entry and entry.get("url") and "/shorts/" not in entry["url"]:
                logger.debug(f"Selected entry: {entry.get('title')} ({entry['url']})")
                return PlayableSource(
                    url=PlayableSource.remove_list_query_param(entry["url"]),
                    title=entry.get("title"),
                    artist=entry.get("channel") or entry.get("uploader"),
                    duration=entry.get("duration"),
                )

        logger.warning("All top results were Shorts. No valid result found.")

        return None

    @staticmethod
    def _extract_search(query: str, results: int) -> Any:
        return YoutubeDL(YOUTUBE_DLP_OPTIONS).extract_info(  # type: ignore due to youtube-dlp lacking full type stubs
            f"ytsearch{results}:{query}", download=False
        )


def get_youtube_stream_url(video_url: str) -> Optional[str]:
    """Tries to obtain a direct audio stream url from a video or media url"""
    logger.debug(f"Extracting streamable url from: {video_url}")

    with YoutubeDL(STREAM_OPTIONS) as ydl:  # type: ignore due to youtube-dlp lacking full type stubs
        try:
            info_dict: Any = ydl.extract_info(video_url, download=False)
        except Exception as e:
            logger.error(f"Failed to get stream URL: {e}")
            return None

    if info_dict is None:
        logger.error(f"Could not extract info from: {video_url}")
        return None

    formats: list[dict[str, Any]] | None = info_dict.get("formats")

    if not isinstance(formats, list):
        # Plain media files have a single implicit format.
        direct_url: str | None = info_dict.get("url")

        if direct_url is None:
            logger.error(f"Could not extract formats from: {video_url}")

        return direct_url

    logger.debug(f"Evaluating formats for audio: found {len(formats)} formats")

    audio_formats: list[dict[str, Any]] = [
        f for f in formats if f.get("url") and f.get("acodec") not in (None, "none")
    ]

    if not audio_formats:
        logger.error("No suitable audio format found.")
        return None

    # Audio-only formats win over muxed ones, then the highest bitrate.
    best_audio: dict[str, Any] = max(
        audio_formats,
        key=lambda f: (f.get("vcodec") == "none", f.get("abr") or 0),
    )
    logger.debug(f"Selected best audio format: {best_audio.get('format_id')}")

    return best_audio["url"]
