import asyncio
from collections import Counter, defaultdict
from typing import Awaitable, Callable, DefaultDict, Dict, Optional

from cadence_logger import Logger
from playback_session import PlaybackSession, SourceProvider
from voice_transport import VoiceJoinParams, VoiceTransport

logger = Logger("session_registry")

VoiceJoiner = Callable[[VoiceJoinParams], Awaitable[VoiceTransport]]


class SessionRegistry:
    """Maps each guild to its single live playback session."""

    def __init__(self, joiner: VoiceJoiner, source_provider: SourceProvider) -> None:
        self._joiner: VoiceJoiner = joiner
        self._source_provider: SourceProvider = source_provider
        self._sessions: Dict[int, PlaybackSession] = {}
        self._join_locks: DefaultDict[int, asyncio.Lock] = defaultdict(asyncio.Lock)
        # Callers holding or waiting on each guild's join lock.
        self._join_waiters: Counter[int] = Counter()

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, guild_id: int) -> bool:
        return guild_id in self._sessions

    def get(self, guild_id: int) -> Optional[PlaybackSession]:
        return self._sessions.get(guild_id)

    async def get_or_create(
        self, guild_id: int, join_params: VoiceJoinParams
    ) -> PlaybackSession:
        self._join_waiters[guild_id] += 1

        try:
            # Two concurrent first enqueues must not both join voice.
            async with self._join_locks[guild_id]:
                return await self._get_or_join(guild_id, join_params)
        finally:
            self._join_waiters[guild_id] -= 1

            if self._join_waiters[guild_id] <= 0:
                del self._join_waiters[guild_id]
                self._drop_join_lock(guild_id)

    async def _get_or_join(
        self, guild_id: int, join_params: VoiceJoinParams
    ) -> PlaybackSession:
        session: PlaybackSession | None = self._sessions.get(guild_id)

        if session is not None and not session.closed:
            return session

        if session is not None:
            # The old connection must be gone before the guild joins again.
            logger.debug("Waiting for guild %s to release voice.", guild_id)
            await session.wait_torn_down()

        transport: VoiceTransport = await self._joiner(join_params)

        session = PlaybackSession(
            guild_id, transport, self._source_provider, on_teardown=self._discard
        )
        self._sessions[guild_id] = session

        logger.info("Created playback session for guild %s.", guild_id)

        return session

    async def remove(self, guild_id: int) -> None:
        session: PlaybackSession | None = self._sessions.get(guild_id)

        if session is None:
            return

        await session.stop()
        self._discard(session)

    async def close(self) -> None:
        """Tears down every session, used on shutdown."""
        for guild_id in list(self._sessions):
            await self.remove(guild_id)

    def _discard(self, session: PlaybackSession) -> None:
        # A newer session may already own the slot.
        if self._sessions.get(session.guild_id) is session:
            del self._sessions[session.guild_id]
            logger.debug("Removed session for guild %s.", session.guild_id)

        self._drop_join_lock(session.guild_id)

    def _drop_join_lock(self, guild_id: int) -> None:
        if guild_id in self._sessions or guild_id in self._join_waiters:
            return

        self._join_locks.pop(guild_id, None)
