from dataclasses import dataclass
from typing import Awaitable, Callable, Dict, Optional

from cadence_errors import (
    CadenceError,
    NoActiveSessionError,
    SessionClosedError,
    SourceUnavailableError,
    VoiceJoinError,
)
from cadence_logger import Logger
from playable_source import PlayableSource
from playback_session import PlaybackSession
from session_registry import SessionRegistry
from track_reference import TrackReference
from track_resolver import ResolvedBatch, TrackResolver
from voice_transport import VoiceJoinParams

logger = Logger("transport_controls")


@dataclass(frozen=True)
class CommandRequest:
    guild_id: int
    voice_channel_id: Optional[int]
    raw_args: str = ""


@dataclass(frozen=True)
class CommandReply:
    text: str
    ok: bool = True


@dataclass(frozen=True)
class EnqueueResult:
    sources: tuple[PlayableSource, ...]
    skipped: int
    started: bool
    now_playing: Optional[PlayableSource]


class TransportControls:
    """Entry points used by the command layer, one per transport command."""

    def __init__(self, registry: SessionRegistry, resolver: TrackResolver) -> None:
        self.registry: SessionRegistry = registry
        self.resolver: TrackResolver = resolver
        self._handlers: Dict[str, Callable[[CommandRequest], Awaitable[str]]] = {
            "play": self._play,
            "skip": self._skip,
            "pause": self._pause,
            "resume": self._resume,
            "stop": self._stop,
        }

    async def enqueue(
        self, guild_id: int, voice_channel_id: Optional[int], raw_reference: str
    ) -> EnqueueResult:
        if voice_channel_id is None:
            raise VoiceJoinError()

        reference: TrackReference = TrackReference.parse(raw_reference)
        batch: ResolvedBatch = await self.resolver.resolve_batch(reference)
        join_params = VoiceJoinParams(guild_id=guild_id, channel_id=voice_channel_id)

        # Resolution can outlive the session it was meant for; retry on a fresh one.
        while True:
            session: PlaybackSession = await self.registry.get_or_create(
                guild_id, join_params
            )

            try:
                started: bool = await session.enqueue(batch.sources)
            except SessionClosedError:
                logger.debug("Session for guild %s ended mid enqueue, retrying.", guild_id)
                continue

            return EnqueueResult(
                sources=batch.sources,
                skipped=batch.skipped,
                started=started,
                now_playing=session.current,
            )

    async def skip(self, guild_id: int) -> Optional[PlayableSource]:
        return await self._require_session(guild_id).skip()

    async def pause(self, guild_id: int) -> Optional[PlayableSource]:
        return await self._require_session(guild_id).pause()

    async def resume(self, guild_id: int) -> Optional[PlayableSource]:
        return await self._require_session(guild_id).resume()

    async def stop(self, guild_id: int) -> None:
        await self._require_session(guild_id).stop()

    async def handle_transport_lost(self, guild_id: int) -> None:
        session: PlaybackSession | None = self.registry.get(guild_id)

        if session is not None:
            await session.handle_transport_lost()

    async def dispatch(self, command: str, request: CommandRequest) -> CommandReply:
        handler = self._handlers.get(command)

        if handler is None:
            return CommandReply(f"Unknown command: {command}", ok=False)

        try:
            text: str = await handler(request)
        except CadenceError as error:
            logger.debug("Command %s failed in guild %s: %s", command, request.guild_id, error)
            return CommandReply(str(error), ok=False)

        return CommandReply(text)

    def _require_session(self, guild_id: int) -> PlaybackSession:
        session: PlaybackSession | None = self.registry.get(guild_id)

        if session is None or session.closed:
            raise NoActiveSessionError()

        return session

    async def _play(self, request: CommandRequest) -> str:
        result: EnqueueResult = await self.enqueue(
            request.guild_id, request.voice_channel_id, request.raw_args
        )

        if result.started and result.now_playing is None:
            raise SourceUnavailableError("Could not open any of those tracks.")

        if result.started and result.now_playing is not None:
            text = f"Now playing **{result.now_playing.label}**"

            if len(result.sources) > 1:
                text += f" and {len(result.sources) - 1} more track(s)"

            text += "."
        else:
            text = f"{len(result.sources)} track(s) added to the queue!"

        if result.skipped:
            text += f" {result.skipped} track(s) could not be found and were skipped."

        return text

    async def _skip(self, request: CommandRequest) -> str:
        await self.skip(request.guild_id)
        return "Track skipped!"

    async def _pause(self, request: CommandRequest) -> str:
        await self.pause(request.guild_id)
        return "Track paused!"

    async def _resume(self, request: CommandRequest) -> str:
        await self.resume(request.guild_id)
        return "Track resumed!"

    async def _stop(self, request: CommandRequest) -> str:
        await self.stop(request.guild_id)
        return "Playback stopped and queue cleared!"
