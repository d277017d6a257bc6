from discord import Color

from embed_builder import BOT_NAME, EmbedBuilder
from transport_controls import CommandReply


def test_from_reply_success():
    embed = EmbedBuilder.from_reply("skip", CommandReply("Track skipped!"))

    assert embed.title == "Skip Track"
    assert embed.description == "Track skipped!"
    assert embed.color == Color.green()
    assert embed.author.name == BOT_NAME


def test_from_reply_error():
    embed = EmbedBuilder.from_reply("pause", CommandReply("Nothing is playing right now.", ok=False))

    assert embed.color == Color.red()


def test_empty_values_are_ignored():
    embed = EmbedBuilder().set_title("").set_description("").build()

    assert embed.title is None
    assert embed.description is None
