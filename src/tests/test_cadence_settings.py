from unittest.mock import patch

import pytest

from cadence_settings import DEFAULT_EXTERNAL_CALL_TIMEOUT, load_settings


@patch("cadence_settings.load_dotenv")
def test_load_settings_defaults(mock_load_dotenv):
    with patch.dict("os.environ", {"BOT_TOKEN": "token"}, clear=True):
        settings = load_settings()

    assert settings.token == "token"
    assert settings.command_prefix == "!"
    assert settings.search_backend == "youtube-dlp"
    assert settings.external_call_timeout == DEFAULT_EXTERNAL_CALL_TIMEOUT
    assert not settings.catalog.is_configured
    assert settings.lavalink.port == 2333
    assert settings.ffmpeg_path is None


@patch("cadence_settings.load_dotenv")
def test_load_settings_from_environment(mock_load_dotenv):
    environment = {
        "BOT_TOKEN": "token",
        "BOT_COMMAND_PREFIX": "?",
        "SEARCH_BACKEND": "lavalink",
        "EXTERNAL_CALL_TIMEOUT": "5.5",
        "SPOTIFY_CLIENT_ID": "id",
        "SPOTIFY_CLIENT_SECRET": "secret",
        "LAVALINK_NODE_PORT": "2444",
    }

    with patch.dict("os.environ", environment, clear=True):
        settings = load_settings()

    assert settings.command_prefix == "?"
    assert settings.search_backend == "lavalink"
    assert settings.external_call_timeout == 5.5
    assert settings.catalog.is_configured
    assert settings.lavalink.port == 2444


@patch("cadence_settings.load_dotenv")
def test_load_settings_requires_token(mock_load_dotenv):
    with patch.dict("os.environ", {}, clear=True):
        with pytest.raises(RuntimeError):
            load_settings()


@patch("cadence_settings.load_dotenv")
def test_load_settings_rejects_unknown_backend(mock_load_dotenv):
    with patch.dict("os.environ", {"BOT_TOKEN": "token", "SEARCH_BACKEND": "raw"}, clear=True):
        with pytest.raises(ValueError):
            load_settings()
