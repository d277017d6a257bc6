import asyncio
import platform
from os.path import exists
from typing import Optional

from discord import AudioSource, FFmpegPCMAudio, PCMVolumeTransformer

from cadence_errors import SourceUnavailableError
from cadence_logger import Logger
from cadence_settings import DEFAULT_EXTERNAL_CALL_TIMEOUT
from playable_source import PlayableSource
from youtube_dlp_backend import get_youtube_stream_url

logger = Logger("audio_source_provider")

FFMPEG_BEFORE_OPTIONS: str = "-reconnect 1 -reconnect_streamed 1 -reconnect_delay_max 5"
FFMPEG_OPTIONS: str = "-vn"


class AudioSourceProvider:
    """Opens a fresh audio stream for a playable source each time it is asked to."""

    def __init__(
        self,
        timeout: float = DEFAULT_EXTERNAL_CALL_TIMEOUT,
        ffmpeg_path: Optional[str] = None,
    ) -> None:
        self.timeout: float = timeout
        self.ffmpeg_path: Optional[str] = ffmpeg_path

    async def open(self, source: PlayableSource) -> AudioSource:
        loop = asyncio.get_running_loop()

        try:
            stream_url: str | None = await asyncio.wait_for(
                loop.run_in_executor(None, get_youtube_stream_url, source.url),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as error:
            logger.error("Timed out extracting a stream for %s.", source)
            raise SourceUnavailableError(
                f"Timed out opening {source.label}."
            ) from error

        if stream_url is None:
            raise SourceUnavailableError(f"Could not open a stream for {source.label}.")

        logger.debug(f"Converting url {stream_url} to audio source")

        audio_source: PCMVolumeTransformer | None = create_audio_source_from_url(
            stream_url, self.ffmpeg_path
        )

        if audio_source is None:
            raise SourceUnavailableError(
                f"Could not create audio source for {source.label}."
            )

        return audio_source


def create_audio_source_from_url(
    stream_url: str, ffmpeg_path: Optional[str] = None
) -> Optional[PCMVolumeTransformer]:
    is_windows: bool = platform.system() == "Windows"

    if ffmpeg_path is None:
        ffmpeg_path = "./ffmpeg/bin/ffmpeg.exe" if is_windows else "ffmpeg"

        if is_windows and not exists("./ffmpeg/bin/"):
            logger.error(f"Could not find ffmpeg")
            return None

    try:
        return PCMVolumeTransformer(
            FFmpegPCMAudio(
                stream_url,
                executable=ffmpeg_path,
                before_options=FFMPEG_BEFORE_OPTIONS,
                options=FFMPEG_OPTIONS,
            ),
            volume=1.0,
        )
    except Exception as e:
        logger.error(f"Failed to start ffmpeg for {stream_url}: {e}")
        return None
