from __future__ import annotations

import logging
import os
import shutil
import subprocess
import tempfile
import threading
from typing import Optional

logger = logging.getLogger(__name__)


class ConversionError(Exception):
    """Transcoding to the canonical playable file failed."""


def make_ffmpeg_convert_cmd(ffmpeg: str, source: str, target: str, audio_filter: str) -> list[str]:
    return [
        ffmpeg, "-y", "-hide_banner", "-loglevel", "error",
        "-i", source,
        "-vn",
        "-af", audio_filter,
        target,
    ]


class Converter:
    """
    Transcodes unsupported files into one canonical FLAC with loudness normalization.

    Only one conversion result exists at a time. Output is written next to the
    canonical path and renamed over it, so a decoder still streaming the
    previous result keeps reading the old file.
    """

    def __init__(self, target_path: str, audio_filter: str, ffmpeg_path: Optional[str] = None):
        self.target_path = target_path
        self.audio_filter = audio_filter
        self.ffmpeg_path = ffmpeg_path
        self._lock = threading.Lock()

    def _resolve_ffmpeg(self) -> str:
        ffmpeg = self.ffmpeg_path or shutil.which("ffmpeg")
        if not ffmpeg:
            raise ConversionError("ffmpeg not found in PATH.")
        return ffmpeg

    def convert(self, source_path: str) -> str:
        """Blocking transcode of source_path. Returns the canonical path."""
        if not os.path.isfile(source_path):
            raise ConversionError(f"File not found: {source_path}")
        ffmpeg = self._resolve_ffmpeg()

        target_dir = os.path.dirname(self.target_path) or "."
        _, ext = os.path.splitext(self.target_path)
        with self._lock:
            try:
                os.makedirs(target_dir, exist_ok=True)
                tmp_handle = tempfile.NamedTemporaryFile(
                    delete=False,
                    suffix=ext or ".flac",
                    dir=target_dir,
                )
                tmp_path = tmp_handle.name
                tmp_handle.close()
            except OSError as e:
                raise ConversionError(f"Cannot prepare conversion output: {e}") from e

            logger.info("Converting %s -> %s (%s)", source_path, self.target_path, self.audio_filter)
            try:
                subprocess.run(
                    make_ffmpeg_convert_cmd(ffmpeg, source_path, tmp_path, self.audio_filter),
                    check=True,
                    stdout=subprocess.PIPE,
                    stderr=subprocess.PIPE,
                )
                os.replace(tmp_path, self.target_path)
            except subprocess.CalledProcessError as e:
                self._discard(tmp_path)
                stderr = (e.stderr or b"").decode("utf-8", errors="replace").strip()
                raise ConversionError(f"ffmpeg could not convert {source_path}: {stderr or e}") from e
            except OSError as e:
                self._discard(tmp_path)
                raise ConversionError(f"Conversion I/O error for {source_path}: {e}") from e

        return self.target_path

    @staticmethod
    def _discard(path: str) -> None:
        try:
            os.remove(path)
        except OSError:
            pass

    def cleanup(self) -> None:
        """Remove the canonical file; called on clean shutdown."""
        with self._lock:
            try:
                os.remove(self.target_path)
                logger.info("Removed converted track %s", self.target_path)
            except FileNotFoundError:
                pass
            except OSError as e:
                logger.warning("Could not remove converted track %s: %s", self.target_path, e)
