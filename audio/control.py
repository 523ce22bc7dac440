"""
Command channel in front of the output sink.

Every sink mutation is a SinkCommand put on a queue and applied, in order,
by a single audio-control thread. Callers get a Future back and decide
whether to wait on it; the UI thread never does.
"""

from __future__ import annotations

import logging
import queue
import threading
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


class SinkCommand:
    def apply(self, sink) -> None:
        raise NotImplementedError


@dataclass(frozen=True)
class ReplaceSource(SinkCommand):
    path: str
    start_sec: float = 0.0

    def apply(self, sink) -> None:
        sink.replace_source(self.path, self.start_sec)


@dataclass(frozen=True)
class Seek(SinkCommand):
    target_sec: float

    def apply(self, sink) -> None:
        sink.seek(self.target_sec)


@dataclass(frozen=True)
class SetVolume(SinkCommand):
    volume: float

    def apply(self, sink) -> None:
        sink.set_volume(self.volume)


@dataclass(frozen=True)
class Play(SinkCommand):
    def apply(self, sink) -> None:
        sink.play()


@dataclass(frozen=True)
class Pause(SinkCommand):
    def apply(self, sink) -> None:
        sink.pause()


@dataclass(frozen=True)
class Clear(SinkCommand):
    def apply(self, sink) -> None:
        sink.clear()


_SHUTDOWN = object()


class AudioControl:
    """
    Owns the only thread that mutates the sink.

    With threaded=False commands are applied immediately in the caller's
    thread, which keeps tests deterministic.
    """

    def __init__(self, sink, threaded: bool = True):
        self.sink = sink
        self.threaded = threaded
        self._queue: "queue.Queue[object]" = queue.Queue()
        self._thread: Optional[threading.Thread] = None
        self._closed = False

    def start(self) -> None:
        if not self.threaded or self._thread is not None:
            return
        self._thread = threading.Thread(target=self._run, name="audio-control", daemon=True)
        self._thread.start()

    def send(self, command: SinkCommand) -> Future:
        future: Future = Future()
        if self._closed:
            future.set_exception(RuntimeError("Audio control is shut down"))
            return future
        if not self.threaded:
            self._apply(command, future)
            return future
        self.start()
        self._queue.put((command, future))
        return future

    def _apply(self, command: SinkCommand, future: Future) -> None:
        if not future.set_running_or_notify_cancel():
            return
        try:
            command.apply(self.sink)
        except Exception as e:
            logger.error("Sink command %r failed: %s", command, e)
            future.set_exception(e)
        else:
            future.set_result(None)

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _SHUTDOWN:
                break
            command, future = item
            self._apply(command, future)

    def shutdown(self, timeout: float = 2.0) -> None:
        """Stop accepting commands, let queued ones finish, then clear the sink."""
        if self._closed:
            return
        self._closed = True
        if self._thread is not None:
            self._queue.put(_SHUTDOWN)
            self._thread.join(timeout)
            self._thread = None
        try:
            self.sink.clear()
        except Exception as e:
            logger.warning("Error clearing sink on shutdown: %s", e)
