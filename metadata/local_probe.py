from __future__ import annotations

import json
import os
import subprocess
from typing import Optional

from utils import have_exe, safe_float


class ProbeError(Exception):
    """Duration could not be read from a file."""


def _startupinfo():
    # Keep Windows from popping up a console window for every probe
    if os.name != "nt":
        return None
    startupinfo = subprocess.STARTUPINFO()
    startupinfo.dwFlags |= subprocess.STARTF_USESHOWWINDOW
    return startupinfo


def make_ffprobe_cmd(path: str) -> list[str]:
    return [
        "ffprobe",
        "-v",
        "error",
        "-print_format",
        "json",
        "-show_entries",
        "format=duration",
        path,
    ]


def parse_duration(payload: str) -> Optional[float]:
    """Pull format.duration out of ffprobe JSON output."""
    try:
        data = json.loads(payload or "{}")
    except ValueError:
        return None
    fmt = data.get("format", {}) or {}
    duration = safe_float(str(fmt.get("duration", "")), -1.0)
    if duration <= 0.0:
        return None
    return duration


def probe_duration(path: str, timeout: float = 10.0) -> float:
    """
    Probe the total duration of an audio file with ffprobe.

    Raises ProbeError if ffprobe is missing, the file is unreadable, or it
    reports no usable duration.
    """
    if not os.path.isfile(path):
        raise ProbeError(f"Not a readable file: {path}")
    if not have_exe("ffprobe"):
        raise ProbeError("ffprobe not found in PATH.")

    try:
        p = subprocess.run(
            make_ffprobe_cmd(path),
            capture_output=True,
            text=True,
            check=False,
            timeout=timeout,
            startupinfo=_startupinfo(),
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise ProbeError(f"ffprobe failed for {path}: {e}") from e

    if p.returncode != 0:
        raise ProbeError(f"ffprobe failed for {path}: {(p.stderr or '').strip()}")

    duration = parse_duration(p.stdout)
    if duration is None:
        raise ProbeError(f"No duration reported for {path}")
    return duration
