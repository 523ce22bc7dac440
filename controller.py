"""
Playback session controller.

Reconciles the Session against what the output sink actually reports, once
per UI tick: derives the status, refreshes the position, detects the end of
a track, loops or advances the queue. Loads run in the background through
TrackLoader; their results are applied here, on the UI thread, only once
they have succeeded.
"""

from __future__ import annotations

import logging
import os
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Optional

from audio.control import AudioControl, Clear, Pause, Play, Seek, SetVolume
from audio.convert import ConversionError, Converter
from audio.engine import MAX_VOLUME, DecodeError
from audio.loader import TrackLoader
from config import AppConfig
from models import LoadResult, PlayerStatus, Session
from utils import clamp

logger = logging.getLogger(__name__)

CONVERTING_MESSAGE = "Converting format and normalizing volume..."

# Rewinding never lands closer to the start than this
REWIND_FLOOR_SEC = 1.0
# Forward seeks stop this far before the end
FORWARD_TAIL_SEC = 1.0


@dataclass
class PendingLoad:
    path: str
    future: Future
    kind: str  # "play", "loop" or "rewind"


def describe_load_failure(path: str, error: BaseException) -> str:
    name = os.path.basename(path) or path
    if isinstance(error, ConversionError):
        return f"Conversion failed for {name}: {error}"
    if isinstance(error, DecodeError):
        return f"Cannot decode {name}: {error}"
    if isinstance(error, OSError):
        return f"Cannot open {name}: {error}"
    return f"Failed to load {name}: {error}"


class PlaybackController:
    def __init__(
        self,
        session: Session,
        sink,
        control: AudioControl,
        loader: TrackLoader,
        converter: Converter,
        files=None,
        config: Optional[AppConfig] = None,
    ):
        self.session = session
        self.sink = sink
        self.control = control
        self.loader = loader
        self.converter = converter
        self.files = files
        self.config = config or AppConfig()
        self._pending: Optional[PendingLoad] = None

    @property
    def loading(self) -> bool:
        return self._pending is not None

    # -----------------------------
    # Tick
    # -----------------------------

    def tick(self) -> None:
        """One reconcile pass. Never raises."""
        s = self.session
        self._collect_load()

        sink_state = self._query_sink()
        if sink_state is None:
            # Sink unavailable: keep the last known position, decide nothing
            s.status = PlayerStatus.IDLE
            return
        paused, empty, position = sink_state

        if paused:
            s.status = PlayerStatus.PAUSED
        elif s.current_track is not None and not empty:
            s.status = PlayerStatus.PLAYING

        # An empty sink is never playing or paused
        if empty:
            s.status = PlayerStatus.IDLE

        s.position = position if s.current_track is not None else None

        reloaded = False
        if (
            not self.loading
            and empty
            and s.current_track is not None
            and s.duration is not None
            and s.position is not None
            and max(s.duration - s.position, 0.0) < self.config.end_of_track_window_sec
        ):
            if s.looping:
                logger.info("Looping %s", s.current_track)
                self._load_track(s.current_track, kind="loop")
                reloaded = True
            else:
                logger.info("Finished %s", s.current_track)
                s.clear_timing()
                s.status = PlayerStatus.IDLE

        if not reloaded and s.status is PlayerStatus.IDLE and s.queue and not self.loading:
            self.play_next()

    def _query_sink(self) -> Optional[tuple[bool, bool, float]]:
        try:
            paused = bool(self.sink.is_paused())
            empty = bool(self.sink.is_empty())
            position = float(self.sink.position())
        except Exception as e:
            logger.error("Output sink query failed: %s", e)
            return None
        return paused, empty, position

    # -----------------------------
    # Loading
    # -----------------------------

    def _start_load(self, path: str, kind: str, start_sec: float = 0.0, convert: bool = True) -> None:
        future = self.loader.load(path, start_sec=start_sec, convert=convert)
        if self._pending is not None:
            logger.debug("Load of %s superseded by %s", self._pending.path, path)
        self._pending = PendingLoad(path=path, future=future, kind=kind)
        self._collect_load()

    def _collect_load(self) -> None:
        pending = self._pending
        if pending is None or not pending.future.done():
            return
        self._pending = None
        try:
            result = pending.future.result()
        except Exception as e:
            self._on_load_failed(pending, e)
        else:
            self._on_load_finished(pending, result)

    def _on_load_finished(self, pending: PendingLoad, result: LoadResult) -> None:
        s = self.session
        s.current_track = result.track_path
        s.duration = result.duration_sec
        s.position = result.start_sec if pending.kind == "rewind" else None
        if s.current_message:
            s.clear_info()
        logger.info(
            "Loaded %s (duration=%s, playable=%s)",
            result.track_path,
            "unknown" if result.duration_sec is None else f"{result.duration_sec:.2f}s",
            result.playable_path,
        )

    def _on_load_failed(self, pending: PendingLoad, error: BaseException) -> None:
        s = self.session
        message = describe_load_failure(pending.path, error)
        logger.error("%s", message)
        s.display_info(message)
        s.clear_track()
        s.status = PlayerStatus.IDLE
        self.control.send(Clear())

    def _load_track(self, path: str, kind: str) -> None:
        if self.loader.needs_conversion(path):
            self.session.display_info(CONVERTING_MESSAGE)
        self._start_load(path, kind=kind)

    def play_path(self, path: str) -> None:
        """Load path now, transcoding first when the sink cannot decode it."""
        self._load_track(os.fspath(path), kind="play")

    def play_next(self) -> bool:
        next_track = self.session.queue.advance()
        if next_track is None:
            return False
        logger.info("Advancing to %s (%d left)", next_track, len(self.session.queue))
        self.play_path(next_track)
        return True

    # -----------------------------
    # Transport
    # -----------------------------

    def _live_position(self) -> float:
        try:
            return float(self.sink.position())
        except Exception as e:
            logger.error("Output sink position failed: %s", e)
            return self.session.position or 0.0

    def toggle_pause(self) -> None:
        if self.session.status is PlayerStatus.PLAYING:
            self.control.send(Pause())
        else:
            self.control.send(Play())

    def toggle_loop(self) -> bool:
        self.session.looping = not self.session.looping
        return self.session.looping

    def seek_forward(self, amount: float) -> Optional[float]:
        s = self.session
        if s.current_track is None or s.duration is None:
            return None
        position = self._live_position()
        remaining = s.duration - position
        if position + amount < s.duration:
            target = position + amount
        elif remaining > FORWARD_TAIL_SEC:
            target = s.duration - FORWARD_TAIL_SEC
        else:
            return None
        self.control.send(Seek(target))
        s.position = target
        return target

    def seek_backward(self, amount: float) -> Optional[float]:
        s = self.session
        if s.current_track is None:
            return None
        pending = self._pending
        if pending is not None and pending.kind != "rewind":
            # The sink position belongs to a track that is being replaced
            logger.debug("Rewind ignored while %s is loading", pending.path)
            return None
        target = max(self._live_position() - amount, REWIND_FLOOR_SEC)
        self._start_load(s.current_track, kind="rewind", start_sec=target, convert=False)
        return target

    def volume_adjust(self, delta: float) -> float:
        s = self.session
        volume = round(clamp(s.volume + delta, 0.0, MAX_VOLUME), 6)
        s.volume = volume
        self.control.send(SetVolume(volume))
        return volume

    def forward(self) -> Optional[float]:
        return self.seek_forward(self.config.seek_step_sec)

    def rewind(self) -> Optional[float]:
        return self.seek_backward(self.config.seek_step_sec)

    def volume_up(self) -> float:
        return self.volume_adjust(self.config.volume_step)

    def volume_down(self) -> float:
        return self.volume_adjust(-self.config.volume_step)

    # -----------------------------
    # File selection
    # -----------------------------

    def open_file(self) -> bool:
        path = self.files.pick_one() if self.files else None
        if path is None:
            return False
        self.play_path(path)
        return True

    def enqueue_files(self) -> int:
        paths = self.files.pick_many() if self.files else None
        if not paths:
            logger.debug("No track was chosen.")
            return 0
        return self.session.queue.enqueue(paths)

    def enqueue_folder(self) -> int:
        folder = self.files.pick_folder() if self.files else None
        if folder is None:
            return 0
        added = self.session.queue.enqueue_dir(folder)
        if not added:
            self.session.display_info(f"No audio files in {folder}")
        return added

    # -----------------------------
    # Lifecycle
    # -----------------------------

    def request_exit(self) -> None:
        self.session.exit_requested = True

    def shutdown(self) -> None:
        self.loader.shutdown(wait=False)
        self.control.shutdown()
        self.sink.close()
        self.converter.cleanup()
        logger.info("Playback session closed")
