"""Configuration loading from FIREFLY_* environment variables."""
from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass

from models import BufferPreset
from utils import safe_float

BUFFER_PRESETS = {
    "low": BufferPreset(
        blocksize_frames=512,
        latency="low",
        target_sec=0.25,
        ring_max_seconds=1.0,
    ),
    "balanced": BufferPreset(
        blocksize_frames=1024,
        latency="high",
        target_sec=0.6,
        ring_max_seconds=2.0,
    ),
    "safe": BufferPreset(
        blocksize_frames=2048,
        latency="high",
        target_sec=1.2,
        ring_max_seconds=4.0,
    ),
}
DEFAULT_BUFFER_PRESET = "balanced"

DEFAULT_LOUDNORM_FILTER = "loudnorm=I=-16:TP=-1.5:LRA=11"
DEFAULT_CONVERTED_TRACK = os.path.join(tempfile.gettempdir(), "firefly", "temp.flac")


@dataclass(frozen=True)
class AppConfig:
    end_of_track_window_sec: float = 3.0
    poll_interval_sec: float = 0.016
    seek_step_sec: float = 5.0
    volume_step: float = 0.05
    loudnorm_filter: str = DEFAULT_LOUDNORM_FILTER
    converted_track: str = DEFAULT_CONVERTED_TRACK
    sample_rate: int = 44100
    channels: int = 2
    buffer_preset: str = DEFAULT_BUFFER_PRESET
    log_level: str = "INFO"
    log_file: str = os.path.join(tempfile.gettempdir(), "firefly", "firefly.log")
    start_dir: str = os.path.expanduser("~")


def _env_float(name: str, default: float) -> float:
    value = safe_float(os.getenv(name, ""), default)
    return value if value > 0 else default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        value = int(raw)
    except ValueError:
        return default
    return value if value > 0 else default


def load_config() -> AppConfig:
    defaults = AppConfig()
    preset = os.getenv("FIREFLY_BUFFER_PRESET", defaults.buffer_preset).strip().lower()
    if preset not in BUFFER_PRESETS:
        preset = DEFAULT_BUFFER_PRESET
    log_level = os.getenv("FIREFLY_LOG_LEVEL", defaults.log_level).strip().upper() or defaults.log_level
    return AppConfig(
        end_of_track_window_sec=_env_float("FIREFLY_END_OF_TRACK_WINDOW", defaults.end_of_track_window_sec),
        poll_interval_sec=_env_float("FIREFLY_POLL_INTERVAL", defaults.poll_interval_sec),
        seek_step_sec=_env_float("FIREFLY_SEEK_STEP", defaults.seek_step_sec),
        volume_step=_env_float("FIREFLY_VOLUME_STEP", defaults.volume_step),
        loudnorm_filter=os.getenv("FIREFLY_LOUDNORM_FILTER", defaults.loudnorm_filter).strip()
        or defaults.loudnorm_filter,
        converted_track=os.path.expanduser(os.getenv("FIREFLY_CONVERTED_TRACK", defaults.converted_track)),
        sample_rate=_env_int("FIREFLY_SAMPLE_RATE", defaults.sample_rate),
        channels=_env_int("FIREFLY_CHANNELS", defaults.channels),
        buffer_preset=preset,
        log_level=log_level,
        log_file=os.path.expanduser(os.getenv("FIREFLY_LOG_FILE", defaults.log_file)),
        start_dir=os.path.expanduser(os.getenv("FIREFLY_START_DIR", defaults.start_dir)),
    )
