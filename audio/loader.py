from __future__ import annotations

import logging
import os
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Optional

from audio.control import AudioControl, ReplaceSource
from audio.convert import Converter
from audio.formats import is_supported
from metadata import ProbeError, probe_duration
from models import LoadResult

logger = logging.getLogger(__name__)


class TrackLoader:
    """
    Background load pipeline: format gate, conversion, duration probe, then
    one ReplaceSource on the sink.

    Jobs run on a single worker so a conversion always completes before the
    load that reads its output, and two conversions never overlap.
    """

    def __init__(
        self,
        control: AudioControl,
        converter: Converter,
        probe: Callable[[str], float] = probe_duration,
        executor: Optional[Executor] = None,
    ):
        self._control = control
        self._converter = converter
        self._probe = probe
        self._executor = executor or ThreadPoolExecutor(max_workers=1, thread_name_prefix="track-loader")

    def needs_conversion(self, path: str) -> bool:
        return not is_supported(path)

    def playable_path(self, path: str) -> str:
        if is_supported(path):
            return path
        return self._converter.target_path

    def load(self, path: str, start_sec: float = 0.0, convert: bool = True) -> Future:
        """
        Queue a load of path. The returned future yields a LoadResult or
        raises ConversionError, DecodeError or OSError.
        """
        return self._executor.submit(self._load, path, start_sec, convert)

    def _load(self, path: str, start_sec: float, convert: bool) -> LoadResult:
        if is_supported(path):
            playable = path
        elif convert:
            playable = self._converter.convert(path)
        else:
            playable = self._converter.target_path
            if not os.path.isfile(playable):
                raise FileNotFoundError(f"Converted track missing for {path}")

        try:
            duration: Optional[float] = self._probe(playable)
        except ProbeError as e:
            logger.warning("Duration unknown for %s: %s", path, e)
            duration = None

        self._control.send(ReplaceSource(playable, start_sec)).result()
        return LoadResult(
            track_path=path,
            playable_path=playable,
            duration_sec=duration,
            start_sec=start_sec,
        )

    def shutdown(self, wait: bool = False) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)
