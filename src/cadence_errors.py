from typing import Optional


class CadenceError(Exception):
    """Base error, its message is always safe to show back to users."""

    default_message: str = "Something went wrong."

    def __init__(self, message: Optional[str] = None) -> None:
        super().__init__(message or self.default_message)


class ResolutionError(CadenceError):
    default_message = "Could not resolve that link into playable tracks."


class CatalogLookupError(ResolutionError):
    default_message = "Could not read that link from Spotify."


class SourceUnavailableError(CadenceError):
    default_message = "Could not open an audio stream for that track."


class VoiceJoinError(CadenceError):
    default_message = "Join a voice channel first!"


class VoiceTransportLostError(CadenceError):
    default_message = "Lost the connection to the voice channel."


class InvalidStateError(CadenceError):
    default_message = "That can't be done right now."


class NoActiveSessionError(CadenceError):
    default_message = "Nothing is playing right now."


class SessionClosedError(CadenceError):
    default_message = "The playback session already ended."
