from functools import partial
from typing import Optional

from discord import Color, Intents, Member, VoiceState
from discord.ext import commands
from discord.ext.commands import Bot, Context

from audio_source_provider import AudioSourceProvider
from cadence_logger import Logger
from cadence_settings import BotSettings, load_settings
from catalog_client import SpotifyCatalogClient
from embed_builder import EmbedBuilder
from lavalink_backend import LavalinkBackend
from search_backend import SearchBackend
from session_registry import SessionRegistry
from track_resolver import TrackResolver
from transport_controls import CommandRequest, CommandReply, TransportControls
from voice_transport import join_voice
from youtube_dlp_backend import YoutubeDlpBackend

logger = Logger("cadence_bot")

GENERIC_ERROR_MESSAGE: str = "Error while executing command."


async def create_search_backend(bot: Bot, settings: BotSettings) -> SearchBackend:
    if settings.search_backend == "youtube-dlp":
        return YoutubeDlpBackend(timeout=settings.external_call_timeout)

    if settings.search_backend == "lavalink":
        return await LavalinkBackend.create(
            bot, settings.lavalink, timeout=settings.external_call_timeout
        )

    raise ValueError(f"Unsupported search backend source: {settings.search_backend}.")


def build_request(ctx: Context, raw_args: str = "") -> CommandRequest:
    if ctx.guild is None:
        raise commands.NoPrivateMessage()

    voice_channel_id: Optional[int] = None

    if isinstance(ctx.author, Member):
        voice_state: VoiceState | None = ctx.author.voice

        if voice_state is not None and voice_state.channel is not None:
            voice_channel_id = voice_state.channel.id

    return CommandRequest(
        guild_id=ctx.guild.id, voice_channel_id=voice_channel_id, raw_args=raw_args
    )


class CadenceBot(Bot):
    def __init__(self, settings: BotSettings) -> None:
        intents: Intents = Intents.default()
        intents.message_content = True
        intents.voice_states = True

        super().__init__(command_prefix=settings.command_prefix, intents=intents)

        self.settings: BotSettings = settings
        self.catalog = SpotifyCatalogClient(
            settings.catalog, timeout=settings.external_call_timeout
        )
        self.registry = SessionRegistry(
            partial(join_voice, self, timeout=settings.external_call_timeout),
            AudioSourceProvider(
                timeout=settings.external_call_timeout,
                ffmpeg_path=settings.ffmpeg_path,
            ),
        )
        self.search_backend: Optional[SearchBackend] = None
        self._controls: Optional[TransportControls] = None

    @property
    def controls(self) -> TransportControls:
        if self._controls is None:
            raise RuntimeError("Bot is not set up yet.")

        return self._controls

    async def setup_hook(self) -> None:
        self.search_backend = await create_search_backend(self, self.settings)
        self._controls = TransportControls(
            self.registry, TrackResolver(self.catalog, self.search_backend)
        )

        await self.add_cog(MusicCommands(self))

        synced = await self.tree.sync()
        logger.info("Synced %s application commands.", len(synced))

    async def on_ready(self) -> None:
        logger.info(f"Bot online as {self.user}")

    async def on_voice_state_update(
        self, member: Member, before: VoiceState, after: VoiceState
    ) -> None:
        if self.user is None or member.id != self.user.id:
            return

        if before.channel is not None and after.channel is None:
            logger.debug("Bot left voice in guild %s.", member.guild.id)
            await self.controls.handle_transport_lost(member.guild.id)

    async def on_command_error(
        self, ctx: Context, error: commands.CommandError
    ) -> None:
        if isinstance(error, commands.CommandNotFound):
            return

        if isinstance(error, commands.UserInputError):
            message: str = str(error)
        elif isinstance(error, commands.NoPrivateMessage):
            message = "This command only works inside a server."
        else:
            logger.error("Command %s failed.", ctx.command, exc_info=error)
            message = GENERIC_ERROR_MESSAGE

        embed = EmbedBuilder().set_description(message).set_color(Color.red()).build()
        await ctx.send(embed=embed, ephemeral=True)

    async def close(self) -> None:
        await self.registry.close()
        await self.catalog.close()

        if self.search_backend is not None:
            await self.search_backend.close()

        await super().close()


class MusicCommands(commands.Cog):
    def __init__(self, bot: CadenceBot) -> None:
        self.bot: CadenceBot = bot

    async def _run(self, ctx: Context, command: str, raw_args: str = "") -> None:
        request: CommandRequest = build_request(ctx, raw_args)
        reply: CommandReply = await self.bot.controls.dispatch(command, request)

        await ctx.send(
            embed=EmbedBuilder.from_reply(command, reply), ephemeral=not reply.ok
        )

    @commands.hybrid_command(
        name="play",
        aliases=["playspotify"],
        description="Plays a Spotify track or playlist, or a direct media link.",
    )
    @commands.guild_only()
    async def play(self, ctx: Context, *, url: str) -> None:
        """
        Resolves the link and queues what it points to in this server.

        Spotify links are looked up and matched against YouTube, playlists are
        limited to their first 10 tracks. The first play in a server joins the
        caller's voice channel and starts playback right away.

        Example
        -------
        User input: !play https://open.spotify.com/track/4cOdK2wGLETKBW3PvgPWqT
        """
        # Lookups can take longer than an interaction is allowed to wait.
        await ctx.defer()
        await self._run(ctx, "play", url)

    @commands.hybrid_command(name="skip", description="Skips the current track.")
    @commands.guild_only()
    async def skip(self, ctx: Context) -> None:
        await self._run(ctx, "skip")

    @commands.hybrid_command(name="pause", description="Pauses the current track.")
    @commands.guild_only()
    async def pause(self, ctx: Context) -> None:
        await self._run(ctx, "pause")

    @commands.hybrid_command(name="resume", description="Resumes the paused track.")
    @commands.guild_only()
    async def resume(self, ctx: Context) -> None:
        await self._run(ctx, "resume")

    @commands.hybrid_command(
        name="stop",
        aliases=["leave"],
        description="Stops playback and clears the queue.",
    )
    @commands.guild_only()
    async def stop(self, ctx: Context) -> None:
        await self._run(ctx, "stop")


def main() -> None:
    settings: BotSettings = load_settings()
    bot = CadenceBot(settings)
    bot.run(settings.token)


if __name__ == "__main__":
    main()
