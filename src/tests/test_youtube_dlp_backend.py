import asyncio
from unittest.mock import patch

from cadence_logger import Logger
from playable_source import PlayableSource
from youtube_dlp_backend import YoutubeDlpBackend, get_youtube_stream_url

logger = Logger("test_youtube_dlp_backend")


@patch("youtube_dlp_backend.YoutubeDL")
def test_search_youtube_success(mock_ytdl):
    mock_ytdl.return_value.extract_info.return_value = {
        "entries": [
            {
                "title": "test song",
                "url": "https://www.youtube.com/watch?v=test&list=PL1",
                "channel": "test channel",
                "duration": 215,
            }
        ]
    }

    result: PlayableSource | None = asyncio.run(YoutubeDlpBackend().search("test song"))

    logger.debug(f"Mock result: {result}")

    assert result is not None
    assert result.title == "test song"
    assert result.url == "https://www.youtube.com/watch?v=test"
    assert result.artist == "test channel"
    mock_ytdl.return_value.extract_info.assert_called_once_with(
        "ytsearch5:test song", download=False
    )


@patch("youtube_dlp_backend.YoutubeDL")
def test_search_youtube_no_results(mock_ytdl):
    mock_ytdl.return_value.extract_info.return_value = {"entries": []}

    result: PlayableSource | None = asyncio.run(YoutubeDlpBackend().search("does not exist"))

    assert result is None


@patch("youtube_dlp_backend.YoutubeDL")
def test_search_youtube_skips_shorts(mock_ytdl):
    mock_ytdl.return_value.extract_info.return_value = {
        "entries": [
            {"title": "short", "url": "https://www.youtube.com/shorts/abc"},
            None,
        ]
    }

    assert asyncio.run(YoutubeDlpBackend().search("short")) is None


@patch("youtube_dlp_backend.YoutubeDL")
def test_search_youtube_error_is_reported_as_no_result(mock_ytdl):
    mock_ytdl.return_value.extract_info.side_effect = RuntimeError("network down")

    assert asyncio.run(YoutubeDlpBackend().search("anything")) is None


@patch("youtube_dlp_backend.YoutubeDL")
def test_get_youtube_stream_url_success(mock_ytdl):
    mock_ytdl.return_value.__enter__.return_value.extract_info.return_value = {
        "formats": [
            {
                "vcodec": "none",
                "acodec": "mp4a",
                "abr": 128,
                "url": "https://audio.test",
            }
        ]
    }

    url: str | None = get_youtube_stream_url("https://youtu.be/test")

    assert url == "https://audio.test"


@patch("youtube_dlp_backend.YoutubeDL")
def test_get_youtube_stream_url_prefers_audio_only(mock_ytdl):
    mock_ytdl.return_value.__enter__.return_value.extract_info.return_value = {
        "formats": [
            {"vcodec": "h264", "acodec": "mp4a", "abr": 192, "url": "https://muxed.test"},
            {"vcodec": "none", "acodec": "opus", "abr": 64, "url": "https://low.test"},
            {"vcodec": "none", "acodec": "opus", "abr": 160, "url": "https://high.test"},
        ]
    }

    assert get_youtube_stream_url("https://youtu.be/test") == "https://high.test"


@patch("youtube_dlp_backend.YoutubeDL")
def test_get_youtube_stream_url_no_audio_formats(mock_ytdl):
    mock_ytdl.return_value.__enter__.return_value.extract_info.return_value = {
        "formats": [{"vcodec": "h264", "acodec": "none", "url": "https://video.test"}]
    }

    url: str | None = get_youtube_stream_url("https://youtu.be/test")

    assert url is None


@patch("youtube_dlp_backend.YoutubeDL")
def test_get_youtube_stream_url_plain_media_file(mock_ytdl):
    mock_ytdl.return_value.__enter__.return_value.extract_info.return_value = {
        "url": "https://example.com/song.mp3"
    }

    assert get_youtube_stream_url("https://example.com/song.mp3") == "https://example.com/song.mp3"


@patch("youtube_dlp_backend.YoutubeDL")
def test_get_youtube_stream_url_removed_video(mock_ytdl):
    mock_ytdl.return_value.__enter__.return_value.extract_info.return_value = None

    assert get_youtube_stream_url("https://youtu.be/removed") is None
