import os
import subprocess

import pytest

from audio import convert
from audio.convert import ConversionError, Converter, make_ffmpeg_convert_cmd

LOUDNORM = "loudnorm=I=-16:TP=-1.5:LRA=11"


@pytest.fixture
def target(tmp_path):
    return str(tmp_path / "out" / "temp.flac")


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "song.m4a"
    path.write_bytes(b"\x00")
    return str(path)


def test_convert_cmd_applies_filter():
    cmd = make_ffmpeg_convert_cmd("ffmpeg", "in.m4a", "out.flac", LOUDNORM)

    assert cmd[0] == "ffmpeg"
    assert cmd[cmd.index("-i") + 1] == "in.m4a"
    assert cmd[cmd.index("-af") + 1] == LOUDNORM
    assert cmd[-1] == "out.flac"
    assert "-y" in cmd


def test_convert_writes_canonical_file(monkeypatch, source, target):
    calls = []

    def fake_run(cmd, **kwargs):
        calls.append(cmd)
        with open(cmd[-1], "wb") as f:
            f.write(b"converted")
        return subprocess.CompletedProcess(cmd, 0, b"", b"")

    monkeypatch.setattr(convert.subprocess, "run", fake_run)
    converter = Converter(target, LOUDNORM, ffmpeg_path="ffmpeg")

    result = converter.convert(source)

    assert result == target
    with open(target, "rb") as f:
        assert f.read() == b"converted"
    assert calls[0][calls[0].index("-i") + 1] == source
    assert os.listdir(os.path.dirname(target)) == ["temp.flac"]


def test_second_conversion_replaces_first(monkeypatch, source, target):
    payloads = iter([b"first", b"second"])

    def fake_run(cmd, **kwargs):
        with open(cmd[-1], "wb") as f:
            f.write(next(payloads))
        return subprocess.CompletedProcess(cmd, 0, b"", b"")

    monkeypatch.setattr(convert.subprocess, "run", fake_run)
    converter = Converter(target, LOUDNORM, ffmpeg_path="ffmpeg")

    converter.convert(source)
    converter.convert(source)

    with open(target, "rb") as f:
        assert f.read() == b"second"
    assert os.listdir(os.path.dirname(target)) == ["temp.flac"]


def test_ffmpeg_failure_raises_and_cleans_temp(monkeypatch, source, target):
    def fake_run(cmd, **kwargs):
        raise subprocess.CalledProcessError(1, cmd, output=b"", stderr=b"Invalid data found")

    monkeypatch.setattr(convert.subprocess, "run", fake_run)
    converter = Converter(target, LOUDNORM, ffmpeg_path="ffmpeg")

    with pytest.raises(ConversionError, match="Invalid data found"):
        converter.convert(source)

    assert not os.path.exists(target)
    assert os.listdir(os.path.dirname(target)) == []


def test_missing_ffmpeg(monkeypatch, source, target):
    monkeypatch.setattr(convert.shutil, "which", lambda name: None)
    converter = Converter(target, LOUDNORM)

    with pytest.raises(ConversionError, match="ffmpeg not found"):
        converter.convert(source)


def test_missing_source(target, tmp_path):
    converter = Converter(target, LOUDNORM, ffmpeg_path="ffmpeg")

    with pytest.raises(ConversionError, match="File not found"):
        converter.convert(str(tmp_path / "nope.m4a"))


def test_cleanup_removes_canonical_file(target):
    os.makedirs(os.path.dirname(target))
    with open(target, "wb") as f:
        f.write(b"x")
    converter = Converter(target, LOUDNORM)

    converter.cleanup()
    converter.cleanup()

    assert not os.path.exists(target)
