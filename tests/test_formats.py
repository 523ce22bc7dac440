import pytest

from audio.formats import dialog_filters, is_audio_file, is_supported


@pytest.mark.parametrize("name, expected", [
    ("a.mp3", True),
    ("b.flac", True),
    ("d.ogg", True),
    ("e.wav", True),
    ("c.m4a", False),
    ("notes.txt", False),
])
def test_is_supported(tracks, name, expected):
    assert is_supported(tracks[name]) is expected


def test_is_supported_is_case_insensitive(tmp_path):
    path = tmp_path / "LOUD.MP3"
    path.write_bytes(b"\x00")

    assert is_supported(str(path))


def test_no_extension_is_unsupported(tmp_path):
    path = tmp_path / "README"
    path.write_bytes(b"\x00")

    assert not is_supported(str(path))


def test_missing_file_is_unsupported(tmp_path):
    assert not is_supported(str(tmp_path / "ghost.mp3"))


def test_directory_is_unsupported(tmp_path):
    folder = tmp_path / "album.flac"
    folder.mkdir()

    assert not is_supported(str(folder))


def test_is_audio_file():
    assert is_audio_file("/music/x.opus")
    assert is_audio_file("/music/x.AAC")
    assert not is_audio_file("/music/cover.jpg")
    assert not is_audio_file("/music/noext")


def test_dialog_filters_list_both_groups():
    filters = dialog_filters()

    assert filters[0].startswith("Tested audio formats")
    assert "*.opus" in filters[0]
    assert "*.wma" in filters[1]
