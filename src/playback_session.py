import asyncio
from collections import deque
from enum import Enum
from functools import partial
from typing import Any, Callable, Deque, Iterable, Optional, Protocol, Set

from cadence_errors import (
    InvalidStateError,
    SessionClosedError,
    SourceUnavailableError,
    VoiceTransportLostError,
)
from cadence_logger import Logger
from playable_source import PlayableSource
from voice_transport import PlayerHandle, VoiceTransport

logger = Logger("playback_session")


class PlayerState(Enum):
    IDLE = "Idle"
    PLAYING = "Playing"
    PAUSED = "Paused"
    STOPPED = "Stopped"


class SourceProvider(Protocol):
    async def open(self, source: PlayableSource) -> Any: ...


class PlaybackSession:
    """
    Queue and player state machine for one guild.

    Every mutation (caller commands and the player's end-of-track signal alike)
    runs under the session lock, so a track ending while someone skips or stops
    can never advance the queue twice.

    The track being played is held apart from the pending queue; `queue` only
    lists what is still waiting.
    """

    def __init__(
        self,
        guild_id: int,
        transport: VoiceTransport,
        source_provider: SourceProvider,
        on_teardown: Callable[["PlaybackSession"], None],
    ) -> None:
        self.guild_id: int = guild_id
        self.state: PlayerState = PlayerState.IDLE
        self._transport: VoiceTransport = transport
        self._source_provider: SourceProvider = source_provider
        self._on_teardown: Callable[["PlaybackSession"], None] = on_teardown
        self._pending: Deque[PlayableSource] = deque()
        self._current: Optional[PlayableSource] = None
        self._player: Optional[PlayerHandle] = None
        # Bumped per started stream so stale end-of-track signals are ignored.
        self._play_token: int = 0
        self._lock: asyncio.Lock = asyncio.Lock()
        self._event_tasks: Set[asyncio.Task] = set()
        # Set once the voice connection is released and the registry was told.
        self._torn_down: asyncio.Event = asyncio.Event()

    @property
    def closed(self) -> bool:
        return self.state is PlayerState.STOPPED

    async def wait_torn_down(self) -> None:
        await self._torn_down.wait()

    @property
    def current(self) -> Optional[PlayableSource]:
        return self._current

    @property
    def queue(self) -> tuple[PlayableSource, ...]:
        return tuple(self._pending)

    async def enqueue(self, sources: Iterable[PlayableSource]) -> bool:
        """Append sources in order. Returns True when this call started playback."""
        async with self._lock:
            if self.closed:
                raise SessionClosedError()

            was_idle: bool = self.state is PlayerState.IDLE and self._current is None
            self._pending.extend(sources)

            logger.debug(
                "Guild %s queue now holds %s pending tracks.",
                self.guild_id,
                len(self._pending),
            )

            if was_idle and self._pending:
                await self._advance()
                return True

            return False

    async def skip(self) -> Optional[PlayableSource]:
        async with self._lock:
            if self.state not in (PlayerState.PLAYING, PlayerState.PAUSED):
                raise InvalidStateError("Nothing is playing, can't skip.")

            skipped: PlayableSource | None = self._current
            logger.debug("Skipping %s in guild %s.", skipped, self.guild_id)

            await self._advance()
            return skipped

    async def pause(self) -> Optional[PlayableSource]:
        async with self._lock:
            if self.state is not PlayerState.PLAYING or self._player is None:
                raise InvalidStateError("Bot is not reproducing, can't pause.")

            self._player.pause()
            self.state = PlayerState.PAUSED
            return self._current

    async def resume(self) -> Optional[PlayableSource]:
        async with self._lock:
            if self.state is not PlayerState.PAUSED or self._player is None:
                raise InvalidStateError("Nothing is paused, can't resume.")

            self._player.resume()
            self.state = PlayerState.PLAYING
            return self._current

    async def stop(self) -> None:
        async with self._lock:
            if self.closed:
                return

            logger.debug("Stopping playback in guild %s.", self.guild_id)
            await self._teardown()

    async def on_track_end(self, token: int) -> None:
        async with self._lock:
            if self.closed or token != self._play_token:
                logger.debug("Ignoring stale end of track signal %s.", token)
                return

            logger.debug("Track %s ended in guild %s.", self._current, self.guild_id)
            await self._advance()

    async def handle_transport_lost(self) -> None:
        async with self._lock:
            if self.closed:
                return

            logger.warning("Voice connection lost in guild %s.", self.guild_id)
            await self._teardown()

    def _signal_track_end(self, token: int, error: Optional[Exception] = None) -> None:
        if error is not None:
            logger.warning("Player reported an error in guild %s: %s", self.guild_id, error)

        task: asyncio.Task = asyncio.create_task(self.on_track_end(token))
        self._event_tasks.add(task)
        task.add_done_callback(self._on_event_task_done)

    def _on_event_task_done(self, task: asyncio.Task) -> None:
        self._event_tasks.discard(task)

        if not task.cancelled() and task.exception() is not None:
            logger.error(
                "End of track handling failed in guild %s: %s",
                self.guild_id,
                task.exception(),
            )

    async def _advance(self) -> None:
        self._finish_current()

        while self._pending:
            source: PlayableSource = self._pending.popleft()

            try:
                stream: Any = await self._source_provider.open(source)
            except SourceUnavailableError as error:
                logger.warning("Skipping %s: %s", source, error)
                continue
            except Exception as error:
                logger.error("Unexpected error opening %s, skipping: %s", source, error)
                continue

            self._play_token += 1

            try:
                self._player = self._transport.play_stream(
                    stream, partial(self._signal_track_end, self._play_token)
                )
            except VoiceTransportLostError as error:
                logger.error("Could not play in guild %s: %s", self.guild_id, error)
                _cleanup_stream(stream)
                break
            except Exception as error:
                logger.error("Could not play %s in guild %s: %s", source, self.guild_id, error)
                _cleanup_stream(stream)
                continue

            self._current = source
            self.state = PlayerState.PLAYING
            logger.info("Playing %s in guild %s.", source, self.guild_id)
            return

        await self._teardown()

    def _finish_current(self) -> None:
        if self._player is not None:
            self._player.stop()

        self._player = None
        self._current = None

    async def _teardown(self) -> None:
        if self.closed:
            return

        self.state = PlayerState.STOPPED
        self._pending.clear()
        self._finish_current()
        self._play_token += 1

        try:
            await self._transport.release()
        except Exception as error:
            logger.error("Failed to release voice in guild %s: %s", self.guild_id, error)
        finally:
            self._on_teardown(self)
            self._torn_down.set()

        logger.info("Playback session for guild %s ended.", self.guild_id)


def _cleanup_stream(stream: Any) -> None:
    cleanup: Optional[Callable[[], None]] = getattr(stream, "cleanup", None)

    if cleanup is None:
        return

    try:
        cleanup()
    except Exception as error:
        logger.warning("Failed to clean up stream: %s", error)
