"""
Pending-track queue.

Holds the ordered list of paths the player will load next. Fed by file and
folder selection, consumed front-to-back by the playback controller. The
queue lives in memory only.
"""

from __future__ import annotations

import logging
import os
from collections import deque
from typing import Iterable, Iterator, List, Optional

from audio.formats import is_audio_file

logger = logging.getLogger(__name__)


def _find_media_files(folder: str) -> List[str]:
    """Single-level scan of folder for known audio files, sorted by name."""
    try:
        entries = list(os.scandir(folder))
    except OSError as e:
        logger.warning("Cannot scan folder %s: %s", folder, e)
        return []

    paths = []
    for entry in entries:
        try:
            if not entry.is_file():
                continue
        except OSError:
            continue
        if is_audio_file(entry.name):
            paths.append(entry.path)
    paths.sort(key=lambda p: os.path.basename(p).lower())
    return paths


class TrackQueue:
    """FIFO of track paths. Only enqueue appends and only advance removes."""

    def __init__(self, paths: Optional[Iterable[str]] = None):
        self._items: deque[str] = deque()
        if paths:
            self.enqueue(paths)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._items))

    def __bool__(self) -> bool:
        return bool(self._items)

    def __repr__(self) -> str:
        return f"TrackQueue({list(self._items)!r})"

    def enqueue(self, paths: Iterable[str]) -> int:
        """
        Append every path that is a regular file.

        Returns:
            Number of paths added.
        """
        added = 0
        for path in paths:
            path = os.fspath(path)
            if not os.path.isfile(path):
                logger.debug("Skipping non-file queue entry: %s", path)
                continue
            self._items.append(path)
            added += 1
        if added:
            logger.info("Queued %d track(s), %d pending", added, len(self._items))
        return added

    def enqueue_dir(self, folder: str) -> int:
        """Queue the audio files directly inside folder (no recursion)."""
        return self.enqueue(_find_media_files(os.fspath(folder)))

    def advance(self) -> Optional[str]:
        """Pop the next track, or None when nothing is pending."""
        if not self._items:
            return None
        return self._items.popleft()

    def peek(self) -> Optional[str]:
        return self._items[0] if self._items else None

    def clear(self) -> None:
        self._items.clear()
