import pytest

from cadence_errors import ResolutionError
from playable_source import PlayableSource
from track_reference import ReferenceKind, TrackReference


@pytest.mark.parametrize(
    "raw",
    [
        "https://open.spotify.com/track/4cOdK2wGLETKBW3PvgPWqT",
        "https://open.spotify.com/intl-pt/track/4cOdK2wGLETKBW3PvgPWqT?si=abc",
        "https://open.spotify.com/playlist/37i9dQZF1DXcBWIGoYBM5M",
        "spotify:track:4cOdK2wGLETKBW3PvgPWqT",
        "  <https://open.spotify.com/track/4cOdK2wGLETKBW3PvgPWqT>  ",
    ],
)
def test_catalog_links(raw):
    reference = TrackReference.parse(raw)

    assert reference.kind is ReferenceKind.CATALOG_LINK
    assert reference.is_catalog_link
    assert not reference.value.startswith(("<", " "))


@pytest.mark.parametrize(
    "raw",
    [
        "https://www.youtube.com/watch?v=ZUqBglpHTO0",
        "https://youtu.be/ZUqBglpHTO0",
        "http://example.com/audio/song.mp3",
    ],
)
def test_direct_media_links(raw):
    reference = TrackReference.parse(raw)

    assert reference.kind is ReferenceKind.DIRECT_MEDIA
    assert reference.value == raw


@pytest.mark.parametrize("raw", ["", "   ", "never gonna give you up", "ftp://host/file.mp3"])
def test_unrecognized_input(raw):
    with pytest.raises(ResolutionError):
        TrackReference.parse(raw)


def test_remove_list_query_param():
    url = "https://www.youtube.com/watch?v=abc&list=PL123&index=4"

    assert PlayableSource.remove_list_query_param(url) == "https://www.youtube.com/watch?v=abc"
    assert PlayableSource.remove_list_query_param("not a url") == "not a url"


def test_label_falls_back_to_url():
    assert PlayableSource(url="https://youtu.be/x").label == "https://youtu.be/x"
    assert PlayableSource(url="u", title="Song").label == "Song"
    assert PlayableSource(url="u", title="Song", artist="Band").label == "Song - Band"
