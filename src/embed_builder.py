from typing import Self

from discord import Color, Embed

from transport_controls import CommandReply

BOT_NAME: str = "Cadence"

COMMAND_TITLES: dict[str, str] = {
    "play": "Play",
    "skip": "Skip Track",
    "pause": "Pause Track",
    "resume": "Resume Track",
    "stop": "Stop Playback",
}


class EmbedBuilder:
    def __init__(self) -> None:
        self.title: str = ""
        self.description: str = ""
        self.url: str = ""
        self.color: Color = Color.green()

    def set_title(self, title: str) -> Self:
        if title != "":
            self.title = title

        return self

    def set_description(self, description: str) -> Self:
        if description != "":
            self.description = description

        return self

    def set_url(self, url: str) -> Self:
        if url != "":
            self.url = url

        return self

    def set_color(self, color: Color) -> Self:
        self.color = color

        return self

    def build(self) -> Embed:
        embed = Embed()

        if self.title != "":
            embed.title = self.title

        if self.url != "":
            embed.url = self.url

        if self.description != "":
            embed.description = self.description

        embed.color = self.color

        embed.set_author(name=BOT_NAME)

        return embed

    @classmethod
    def from_reply(cls, command: str, reply: CommandReply) -> Embed:
        return (
            cls()
            .set_title(COMMAND_TITLES.get(command, command.title()))
            .set_description(reply.text)
            .set_color(Color.green() if reply.ok else Color.red())
            .build()
        )
