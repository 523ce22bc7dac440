from __future__ import annotations

import os
from typing import Set

# Containers the output sink decodes directly; everything else is transcoded first.
SUPPORTED_FORMATS: Set[str] = {".flac", ".mp3", ".ogg", ".wav"}

TESTED_FORMATS = (".mp3", ".flac", ".wav", ".ogg", ".opus", ".oga")
UNTESTED_FORMATS = (".pcm", ".aiff", ".aac", ".wma", ".alac", ".m4a")

AUDIO_EXTENSIONS: Set[str] = set(TESTED_FORMATS) | set(UNTESTED_FORMATS)


def _extension(path: str) -> str:
    return os.path.splitext(path)[1].lower()


def is_supported(path: str) -> bool:
    """True if the sink can decode path as-is. Unknown or missing files count as unsupported."""
    ext = _extension(path)
    if not ext:
        return False
    if not os.path.isfile(path):
        return False
    return ext in SUPPORTED_FORMATS


def is_audio_file(path: str) -> bool:
    return _extension(path) in AUDIO_EXTENSIONS


def dialog_filters() -> list[str]:
    tested = " ".join(f"*{ext}" for ext in TESTED_FORMATS)
    untested = " ".join(f"*{ext}" for ext in UNTESTED_FORMATS)
    return [
        f"Tested audio formats ({tested})",
        f"Untested audio formats ({untested})",
        "All Files (*)",
    ]
