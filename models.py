from __future__ import annotations

import math
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from library import TrackQueue
from utils import format_time


@dataclass(frozen=True)
class BufferPreset:
    blocksize_frames: int
    latency: str | float
    target_sec: float
    ring_max_seconds: float


class PlayerStatus(Enum):
    PLAYING = "Playing"
    PAUSED = "Paused"
    IDLE = "Idle"


@dataclass(frozen=True)
class LoadResult:
    """Outcome of a background load: what the sink now holds."""
    track_path: str
    playable_path: str
    duration_sec: Optional[float]
    start_sec: float = 0.0


def format_track_title(path: Optional[str]) -> str:
    if path is None:
        return "[Track Empty]"
    name = os.path.basename(path.rstrip(os.sep))
    return name or "[No file name]"


def format_volume(volume: float) -> str:
    return f"Volume: {int(math.ceil(volume * 100.0 - 1e-9))}%"


@dataclass(frozen=True)
class SessionSnapshot:
    status: PlayerStatus
    current_track: Optional[str]
    position: Optional[float]
    duration: Optional[float]
    looping: bool
    volume: float
    queue: tuple[str, ...]
    message: str
    loading: bool = False

    @property
    def track_title(self) -> str:
        return format_track_title(self.current_track)

    @property
    def position_text(self) -> str:
        return format_time(self.position or 0.0)

    @property
    def duration_text(self) -> str:
        if self.duration is None:
            return "--:--"
        return format_time(self.duration)

    @property
    def volume_text(self) -> str:
        return format_volume(self.volume)

    @property
    def loop_text(self) -> str:
        return "[Looped]" if self.looping else ""


@dataclass
class Session:
    """
    Controller-owned playback state.

    Created once at startup and mutated only by PlaybackController on the
    UI thread. info_log is append-only; its last entry is the message on
    screen and an empty string clears it.
    """
    status: PlayerStatus = PlayerStatus.IDLE
    current_track: Optional[str] = None
    position: Optional[float] = None
    duration: Optional[float] = None
    looping: bool = False
    volume: float = 1.0
    queue: TrackQueue = field(default_factory=TrackQueue)
    info_log: list[str] = field(default_factory=lambda: [""])
    exit_requested: bool = False

    @property
    def current_message(self) -> str:
        return self.info_log[-1] if self.info_log else ""

    def display_info(self, message: str) -> None:
        self.info_log.append(message)

    def clear_info(self) -> None:
        self.info_log.append("")

    def clear_timing(self) -> None:
        self.position = None
        self.duration = None

    def clear_track(self) -> None:
        self.current_track = None
        self.clear_timing()

    def snapshot(self, loading: bool = False) -> SessionSnapshot:
        return SessionSnapshot(
            status=self.status,
            current_track=self.current_track,
            position=self.position,
            duration=self.duration,
            looping=self.looping,
            volume=self.volume,
            queue=tuple(self.queue),
            message=self.current_message,
            loading=loading,
        )
