import os
import sys
from concurrent.futures import Executor, Future
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from audio.control import AudioControl
from audio.convert import ConversionError
from audio.engine import DecodeError
from audio.loader import TrackLoader
from config import AppConfig
from controller import PlaybackController
from metadata import ProbeError
from models import Session


class InlineExecutor(Executor):
    """Runs submitted work immediately in the calling thread."""

    def __init__(self):
        self.submitted = []

    def submit(self, fn, /, *args, **kwargs):
        self.submitted.append(args)
        future = Future()
        try:
            result = fn(*args, **kwargs)
        except Exception as e:
            future.set_exception(e)
        else:
            future.set_result(result)
        return future

    def shutdown(self, wait=True, *, cancel_futures=False):
        pass


class DeferredExecutor(Executor):
    """Holds submitted work until run_all() is called."""

    def __init__(self):
        self.jobs = []

    def submit(self, fn, /, *args, **kwargs):
        future = Future()
        self.jobs.append((future, fn, args, kwargs))
        return future

    def run_all(self):
        jobs, self.jobs = self.jobs, []
        for future, fn, args, kwargs in jobs:
            try:
                future.set_result(fn(*args, **kwargs))
            except Exception as e:
                future.set_exception(e)

    def shutdown(self, wait=True, *, cancel_futures=False):
        pass


class FakeSink:
    """Records calls in the shared event log and mimics sink state."""

    def __init__(self, events):
        self.events = events
        self.paused = False
        self.empty = True
        self.pos = 0.0
        self.vol = 1.0
        self.source = None
        self.fail_paths = set()

    def is_paused(self):
        return self.paused

    def is_empty(self):
        return self.empty

    def position(self):
        return self.pos

    def volume(self):
        return self.vol

    def replace_source(self, path, start_sec=0.0):
        self.events.append(("replace_source", path, start_sec))
        if path in self.fail_paths:
            raise DecodeError(f"bad data in {path}")
        self.source = path
        self.empty = False
        self.paused = False
        self.pos = start_sec

    def seek(self, target_sec):
        self.events.append(("seek", target_sec))
        self.pos = target_sec

    def play(self):
        self.events.append(("play",))
        self.paused = False

    def pause(self):
        self.events.append(("pause",))
        self.paused = True

    def clear(self):
        self.events.append(("clear",))
        self.source = None
        self.empty = True

    def close(self):
        self.events.append(("close",))
        self.clear()

    def set_volume(self, volume):
        self.events.append(("set_volume", volume))
        self.vol = volume


class FakeConverter:
    def __init__(self, events, target_path):
        self.events = events
        self.target_path = str(target_path)
        self.fail = False
        self.cleaned = False

    def convert(self, source_path):
        self.events.append(("convert", source_path))
        if self.fail:
            raise ConversionError(f"ffmpeg could not convert {source_path}")
        Path(self.target_path).write_bytes(b"flac")
        return self.target_path

    def cleanup(self):
        self.cleaned = True
        if os.path.exists(self.target_path):
            os.remove(self.target_path)


class FakeProbe:
    def __init__(self, durations=None):
        self.durations = dict(durations or {})
        self.calls = []

    def __call__(self, path):
        self.calls.append(path)
        if path not in self.durations:
            raise ProbeError(f"No duration reported for {path}")
        return self.durations[path]


class FakeFiles:
    def __init__(self, one=None, many=None, folder=None):
        self.one = one
        self.many = many
        self.folder = folder

    def pick_one(self):
        return self.one

    def pick_many(self):
        return self.many

    def pick_folder(self):
        return self.folder


@pytest.fixture
def tracks(tmp_path):
    """A music folder with supported, unsupported and non-audio files."""
    music = tmp_path / "music"
    music.mkdir()
    names = ["a.mp3", "b.flac", "c.m4a", "d.ogg", "e.wav", "notes.txt"]
    for name in names:
        (music / name).write_bytes(b"\x00")
    (music / "nested").mkdir()
    (music / "nested" / "deep.mp3").write_bytes(b"\x00")
    return {name: str(music / name) for name in names} | {"dir": str(music)}


@pytest.fixture
def events():
    return []


@pytest.fixture
def sink(events):
    return FakeSink(events)


@pytest.fixture
def converter(events, tmp_path):
    return FakeConverter(events, tmp_path / "canonical" / "temp.flac")


@pytest.fixture(autouse=True)
def _canonical_dir(tmp_path):
    (tmp_path / "canonical").mkdir()


@pytest.fixture
def probe():
    return FakeProbe()


@pytest.fixture
def executor():
    return InlineExecutor()


@pytest.fixture
def make_controller(sink, converter, probe, executor):
    def factory(session=None, files=None, config=None, executor_override=None):
        control = AudioControl(sink, threaded=False)
        loader = TrackLoader(control, converter, probe=probe, executor=executor_override or executor)
        return PlaybackController(
            session or Session(),
            sink,
            control,
            loader,
            converter,
            files=files,
            config=config or AppConfig(),
        )

    return factory
