"""
Firefly: terminal audio player with a play queue and track looping.

Backend pipeline:
- Decode: ffmpeg -> float32 PCM (stereo) at fixed sample rate
- Output: sounddevice (PortAudio) callback pulling from a thread-safe ring buffer
- Unsupported containers are transcoded to one temporary FLAC with ffmpeg loudnorm

Requirements:
  pip install numpy sounddevice textual PySide6
  ffmpeg + ffprobe installed and on PATH

Env vars:
- FIREFLY_LOG_LEVEL / FIREFLY_LOG_FILE
- FIREFLY_END_OF_TRACK_WINDOW (seconds, default 3)
- FIREFLY_LOUDNORM_FILTER, FIREFLY_CONVERTED_TRACK
- FIREFLY_BUFFER_PRESET = "low" | "balanced" | "safe"

Positional arguments are queued at startup.
"""

from __future__ import annotations

import logging
import os
import sys
from typing import Optional, Sequence

from audio.control import AudioControl
from audio.convert import Converter
from audio.engine import AudioOutputError, OutputSink
from audio.loader import TrackLoader
from config import BUFFER_PRESETS, AppConfig, load_config
from controller import PlaybackController
from models import Session

logger = logging.getLogger(__name__)


def setup_logging(config: AppConfig) -> logging.Logger:
    # The terminal belongs to the UI, so logs only go to a file
    root = logging.getLogger()
    root.setLevel(getattr(logging, config.log_level, logging.INFO))
    for handler in list(root.handlers):
        root.removeHandler(handler)

    log_dir = os.path.dirname(config.log_file)
    if log_dir:
        os.makedirs(log_dir, exist_ok=True)
    file_handler = logging.FileHandler(config.log_file, encoding="utf-8")
    file_handler.setFormatter(
        logging.Formatter(
            "%(asctime)s | %(levelname)s | %(name)s | %(threadName)s | %(message)s"
        )
    )
    root.addHandler(file_handler)
    logging.captureWarnings(True)
    return root


def build_controller(config: AppConfig, files=None) -> PlaybackController:
    """Wire the session, sink, command channel and loader. Raises AudioOutputError."""
    sink = OutputSink(
        sample_rate=config.sample_rate,
        channels=config.channels,
        buffer_preset=BUFFER_PRESETS[config.buffer_preset],
    )
    sink.open()
    control = AudioControl(sink)
    control.start()
    converter = Converter(config.converted_track, config.loudnorm_filter)
    loader = TrackLoader(control, converter)
    return PlaybackController(
        Session(),
        sink,
        control,
        loader,
        converter,
        files=files,
        config=config,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = list(sys.argv[1:] if argv is None else argv)
    config = load_config()
    setup_logging(config)
    logger.info("Starting Firefly")

    from ui.dialogs import FileSelector
    from ui.terminal_app import FireflyApp

    try:
        controller = build_controller(config, files=FileSelector(config.start_dir))
    except AudioOutputError as e:
        logger.critical("%s", e)
        print(f"firefly: {e}", file=sys.stderr)
        return 1

    if args:
        controller.session.queue.enqueue(args)

    try:
        FireflyApp(controller, poll_interval=config.poll_interval_sec).run()
    finally:
        controller.shutdown()
    return 0


if __name__ == "__main__":
    sys.exit(main())
