import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional

from discord import (
    AudioSource,
    Client,
    ClientException,
    DiscordException,
    Guild,
    StageChannel,
    VoiceChannel,
    VoiceClient,
    VoiceProtocol,
)

from cadence_errors import VoiceJoinError, VoiceTransportLostError
from cadence_logger import Logger
from cadence_settings import DEFAULT_EXTERNAL_CALL_TIMEOUT

logger = Logger("voice_transport")

IdleCallback = Callable[[Optional[Exception]], None]


@dataclass(frozen=True)
class VoiceJoinParams:
    guild_id: int
    channel_id: Optional[int]


class PlayerHandle(ABC):
    """Controls the single stream currently being played on a transport."""

    @abstractmethod
    def pause(self) -> None: ...

    @abstractmethod
    def resume(self) -> None: ...

    @abstractmethod
    def stop(self) -> None:
        """Stop playback and close the stream. Calling it twice is harmless."""


class VoiceTransport(ABC):
    """One voice connection, owned by exactly one playback session."""

    @property
    @abstractmethod
    def is_connected(self) -> bool: ...

    @abstractmethod
    def play_stream(self, stream: AudioSource, on_idle: IdleCallback) -> PlayerHandle:
        """
        Start playing stream. on_idle is called on the event loop once the stream
        finishes or is stopped, with the playback error if there was one.
        """

    @abstractmethod
    async def release(self) -> None:
        """Disconnect. Must be idempotent."""


class DiscordPlayerHandle(PlayerHandle):
    def __init__(self, voice_client: VoiceClient, stream: AudioSource) -> None:
        self.voice_client: VoiceClient = voice_client
        self.stream: AudioSource = stream

    def pause(self) -> None:
        self.voice_client.pause()

    def resume(self) -> None:
        self.voice_client.resume()

    def stop(self) -> None:
        # The audio thread cleans the stream up once it notices the stop.
        if self.voice_client.source is self.stream:
            self.voice_client.stop()
        else:
            self.stream.cleanup()


class DiscordVoiceTransport(VoiceTransport):
    def __init__(self, voice_client: VoiceClient) -> None:
        self.voice_client: VoiceClient = voice_client
        self._released: bool = False

    @property
    def is_connected(self) -> bool:
        return not self._released and self.voice_client.is_connected()

    def play_stream(self, stream: AudioSource, on_idle: IdleCallback) -> PlayerHandle:
        if not self.is_connected:
            stream.cleanup()
            raise VoiceTransportLostError()

        loop = asyncio.get_running_loop()

        def after_playback(error: Exception | None) -> None:
            if error:
                logger.error(f"Playback error: {error}")

            # Runs on the audio thread, hop back to the loop.
            loop.call_soon_threadsafe(on_idle, error)

        try:
            self.voice_client.play(stream, after=after_playback)
        except ClientException as error:
            stream.cleanup()
            raise VoiceTransportLostError(str(error)) from error

        return DiscordPlayerHandle(self.voice_client, stream)

    async def release(self) -> None:
        if self._released:
            return

        self._released = True

        if self.voice_client.is_connected():
            logger.debug(f"Disconnecting from channel {self.voice_client.channel.id}")
            await self.voice_client.disconnect(force=True)


async def join_voice(
    client: Client,
    params: VoiceJoinParams,
    timeout: float = DEFAULT_EXTERNAL_CALL_TIMEOUT,
) -> DiscordVoiceTransport:
    """Contains Discord channel connection logic"""
    if params.channel_id is None:
        raise VoiceJoinError()

    guild: Guild | None = client.get_guild(params.guild_id)

    if guild is None:
        logger.error("Could not obtain guild %s", params.guild_id)
        raise VoiceJoinError("Could not find this server.")

    voice_channel = guild.get_channel(params.channel_id)

    if not isinstance(voice_channel, (VoiceChannel, StageChannel)):
        logger.error("Channel %s is not a voice channel", params.channel_id)
        raise VoiceJoinError()

    voice_client: VoiceClient | VoiceProtocol | None = guild.voice_client

    try:
        if isinstance(voice_client, VoiceClient) and voice_client.is_connected():
            logger.debug(f"Bot already connected to channel {voice_client.channel.id}")

            if voice_client.channel != voice_channel:
                logger.info("Bot is connected to a different channel. Moving...")
                await asyncio.wait_for(voice_client.move_to(voice_channel), timeout)

            return DiscordVoiceTransport(voice_client)

        connected: VoiceClient = await voice_channel.connect(timeout=timeout)
    except (asyncio.TimeoutError, ClientException, DiscordException) as e:
        logger.error(f"Failed to connect to voice channel: {e}")
        raise VoiceJoinError("Error connecting to the voice channel.") from e

    logger.debug(f"Connected to channel {connected.channel.id}")

    return DiscordVoiceTransport(connected)
