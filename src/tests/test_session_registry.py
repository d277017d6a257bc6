import asyncio

import pytest

from cadence_errors import VoiceJoinError
from fakes import FakeJoiner, FakeSourceProvider, FakeTransport, make_sources
from playback_session import PlayerState
from session_registry import SessionRegistry
from voice_transport import VoiceJoinParams

GUILD_ID = 42
JOIN_PARAMS = VoiceJoinParams(guild_id=GUILD_ID, channel_id=7)


def test_get_or_create_joins_once_per_guild():
    async def scenario():
        joiner = FakeJoiner()
        registry = SessionRegistry(joiner, FakeSourceProvider())

        first = await registry.get_or_create(GUILD_ID, JOIN_PARAMS)
        second = await registry.get_or_create(GUILD_ID, JOIN_PARAMS)

        assert first is second
        assert first.state is PlayerState.IDLE
        assert joiner.calls == [JOIN_PARAMS]
        assert registry.get(GUILD_ID) is first
        assert len(registry) == 1

    asyncio.run(scenario())


def test_concurrent_get_or_create_yields_one_session():
    async def scenario():
        joiner = FakeJoiner()
        registry = SessionRegistry(joiner, FakeSourceProvider())

        sessions = await asyncio.gather(
            *(registry.get_or_create(GUILD_ID, JOIN_PARAMS) for _ in range(5))
        )

        assert all(session is sessions[0] for session in sessions)
        assert len(joiner.calls) == 1
        assert len(registry) == 1

    asyncio.run(scenario())


def test_guilds_get_independent_sessions():
    async def scenario():
        registry = SessionRegistry(FakeJoiner(), FakeSourceProvider())

        first = await registry.get_or_create(1, VoiceJoinParams(1, 10))
        second = await registry.get_or_create(2, VoiceJoinParams(2, 20))

        assert first is not second
        assert len(registry) == 2

    asyncio.run(scenario())


def test_failed_join_creates_no_entry():
    async def scenario():
        async def refuse(params):
            raise VoiceJoinError()

        registry = SessionRegistry(refuse, FakeSourceProvider())

        with pytest.raises(VoiceJoinError):
            await registry.get_or_create(GUILD_ID, VoiceJoinParams(GUILD_ID, None))

        assert registry.get(GUILD_ID) is None
        assert GUILD_ID not in registry

    asyncio.run(scenario())


def test_exhausted_session_leaves_registry_and_next_one_is_fresh():
    async def scenario():
        joiner = FakeJoiner()
        registry = SessionRegistry(joiner, FakeSourceProvider())
        session = await registry.get_or_create(GUILD_ID, JOIN_PARAMS)
        await session.enqueue(make_sources("a"))

        await session.skip()

        assert registry.get(GUILD_ID) is None
        assert joiner.transports[0].release_count == 1

        fresh = await registry.get_or_create(GUILD_ID, JOIN_PARAMS)
        assert fresh is not session
        assert fresh.state is PlayerState.IDLE
        assert len(joiner.calls) == 2

    asyncio.run(scenario())


def test_remove_releases_transport_and_is_idempotent():
    async def scenario():
        joiner = FakeJoiner()
        registry = SessionRegistry(joiner, FakeSourceProvider())
        session = await registry.get_or_create(GUILD_ID, JOIN_PARAMS)
        await session.enqueue(make_sources("a", "b"))

        await registry.remove(GUILD_ID)
        await registry.remove(GUILD_ID)

        assert registry.get(GUILD_ID) is None
        assert session.state is PlayerState.STOPPED
        assert joiner.transports[0].release_count == 1

    asyncio.run(scenario())


def test_close_stops_every_session():
    async def scenario():
        joiner = FakeJoiner()
        registry = SessionRegistry(joiner, FakeSourceProvider())

        for guild_id in (1, 2, 3):
            session = await registry.get_or_create(guild_id, VoiceJoinParams(guild_id, 5))
            await session.enqueue(make_sources(f"track-{guild_id}"))

        await registry.close()

        assert len(registry) == 0
        assert all(transport.release_count == 1 for transport in joiner.transports)

    asyncio.run(scenario())


class SlowReleaseTransport(FakeTransport):
    def __init__(self, events) -> None:
        super().__init__()
        self.events = events

    async def release(self) -> None:
        self.events.append("release-start")
        await asyncio.sleep(0.01)
        await super().release()
        self.events.append("release-end")


def test_rejoin_waits_for_previous_release():
    async def scenario():
        events = []

        async def joiner(params):
            events.append("join")
            return SlowReleaseTransport(events)

        registry = SessionRegistry(joiner, FakeSourceProvider())
        old = await registry.get_or_create(GUILD_ID, JOIN_PARAMS)
        await old.enqueue(make_sources("a"))

        stopping = asyncio.create_task(old.stop())
        await asyncio.sleep(0)
        assert old.closed

        fresh = await registry.get_or_create(GUILD_ID, JOIN_PARAMS)
        await stopping

        assert fresh is not old
        assert registry.get(GUILD_ID) is fresh
        assert events == ["join", "release-start", "release-end", "join"]

    asyncio.run(scenario())


def test_join_lock_is_dropped_with_its_session():
    async def scenario():
        registry = SessionRegistry(FakeJoiner(), FakeSourceProvider())
        session = await registry.get_or_create(GUILD_ID, JOIN_PARAMS)

        assert GUILD_ID in registry._join_locks

        await session.stop()

        assert GUILD_ID not in registry._join_locks
        assert not registry._join_waiters

    asyncio.run(scenario())


def test_failed_join_leaves_no_lock_behind():
    async def scenario():
        async def refuse(params):
            raise VoiceJoinError()

        registry = SessionRegistry(refuse, FakeSourceProvider())

        with pytest.raises(VoiceJoinError):
            await registry.get_or_create(GUILD_ID, JOIN_PARAMS)

        assert not registry._join_locks

    asyncio.run(scenario())
