import pytest

from audio.control import AudioControl
from audio.convert import ConversionError
from audio.engine import DecodeError
from audio.loader import TrackLoader


@pytest.fixture
def loader(sink, converter, probe, executor):
    return TrackLoader(AudioControl(sink, threaded=False), converter, probe=probe, executor=executor)


def test_supported_track_loads_directly(loader, probe, tracks, events):
    track = tracks["a.mp3"]
    probe.durations[track] = 61.5

    result = loader.load(track).result()

    assert result.track_path == track
    assert result.playable_path == track
    assert result.duration_sec == 61.5
    assert result.start_sec == 0.0
    assert events == [("replace_source", track, 0.0)]


def test_unsupported_track_is_converted_first(loader, converter, probe, tracks, events):
    track = tracks["c.m4a"]
    probe.durations[converter.target_path] = 30.0

    result = loader.load(track).result()

    assert events == [
        ("convert", track),
        ("replace_source", converter.target_path, 0.0),
    ]
    assert result.playable_path == converter.target_path
    assert result.duration_sec == 30.0
    assert probe.calls == [converter.target_path]


def test_probe_failure_leaves_duration_unknown(loader, tracks):
    result = loader.load(tracks["b.flac"]).result()

    assert result.duration_sec is None


def test_conversion_error_propagates(loader, converter, tracks, events):
    converter.fail = True

    with pytest.raises(ConversionError):
        loader.load(tracks["c.m4a"]).result()

    assert not any(e[0] == "replace_source" for e in events)


def test_decode_error_propagates(loader, sink, tracks):
    sink.fail_paths.add(tracks["d.ogg"])

    with pytest.raises(DecodeError):
        loader.load(tracks["d.ogg"]).result()


def test_reload_without_conversion_needs_converted_file(loader, tracks, events):
    with pytest.raises(FileNotFoundError):
        loader.load(tracks["c.m4a"], start_sec=4.0, convert=False).result()

    assert events == []


def test_start_offset_is_forwarded(loader, tracks, events):
    result = loader.load(tracks["e.wav"], start_sec=12.0).result()

    assert result.start_sec == 12.0
    assert events == [("replace_source", tracks["e.wav"], 12.0)]


def test_playable_path(loader, converter, tracks):
    assert loader.playable_path(tracks["a.mp3"]) == tracks["a.mp3"]
    assert loader.playable_path(tracks["c.m4a"]) == converter.target_path
    assert loader.needs_conversion(tracks["c.m4a"])
    assert not loader.needs_conversion(tracks["a.mp3"])
