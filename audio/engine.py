from __future__ import annotations

import logging
import subprocess
import threading
from typing import Optional

import numpy as np

try:
    import sounddevice as sd
    _sounddevice_import_error = None
except Exception as e:
    sd = None
    _sounddevice_import_error = e

from buffers import AudioRingBuffer
from config import BUFFER_PRESETS, DEFAULT_BUFFER_PRESET
from models import BufferPreset
from utils import clamp, have_exe

logger = logging.getLogger(__name__)

MAX_VOLUME = 2.0
READY_TIMEOUT_SEC = 10.0


class DecodeError(Exception):
    """ffmpeg could not produce audio for a source."""


class AudioOutputError(Exception):
    """No usable audio output device."""


def make_ffmpeg_cmd(path: str, start_sec: float, sample_rate: int, channels: int) -> list[str]:
    return [
        "ffmpeg", "-hide_banner", "-loglevel", "error",
        "-ss", str(max(0.0, start_sec)),
        "-i", path,
        "-vn",
        "-ac", str(channels),
        "-ar", str(sample_rate),
        "-f", "f32le",
        "pipe:1"
    ]


# -----------------------------
# Decoder thread
# -----------------------------

class DecoderThread(threading.Thread):
    """
    Reads float32 PCM from ffmpeg and pushes it into the sink's ring buffer.

    `ready` is set once enough audio is buffered to start, or when decoding
    ends early. `finished` is set when ffmpeg has no more audio.
    """
    def __init__(self,
                 track_path: str,
                 start_sec: float,
                 sample_rate: int,
                 channels: int,
                 ring: AudioRingBuffer,
                 buffer_preset: BufferPreset):
        super().__init__(daemon=True, name="ffmpeg-decoder")
        self.track_path = track_path
        self.start_sec = float(start_sec)
        self.sample_rate = sample_rate
        self.channels = channels
        self.ring = ring
        self.ready = threading.Event()
        self.finished = threading.Event()
        self.error: Optional[str] = None
        self.frames_decoded = 0
        self._stop = threading.Event()
        self._proc: Optional[subprocess.Popen] = None

        self._prebuffer_frames = int(min(0.6, buffer_preset.target_sec) * sample_rate)
        self._read_frames = max(1, buffer_preset.blocksize_frames * 2)
        self._read_bytes = self._read_frames * channels * 4
        self._frame_bytes = channels * 4
        self._byte_buffer = bytearray()

    def stop(self):
        self._stop.set()
        try:
            if self._proc and self._proc.poll() is None:
                self._proc.terminate()
        except OSError:
            pass

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def _read_pcm_chunk(self, stdout) -> Optional[np.ndarray]:
        if self._stop.is_set():
            return None
        while len(self._byte_buffer) < self._frame_bytes:
            chunk = stdout.read(self._read_bytes)
            if not chunk:
                break
            self._byte_buffer.extend(chunk)
        if len(self._byte_buffer) < self._frame_bytes:
            return None
        available_frames = len(self._byte_buffer) // self._frame_bytes
        frames_to_take = min(available_frames, self._read_frames)
        take_bytes = frames_to_take * self._frame_bytes
        data = bytes(self._byte_buffer[:take_bytes])
        del self._byte_buffer[:take_bytes]
        x = np.frombuffer(data, dtype=np.float32)
        if x.size == 0:
            return None
        return x.reshape((-1, self.channels))

    def run(self):
        cmd = make_ffmpeg_cmd(self.track_path, self.start_sec, self.sample_rate, self.channels)
        try:
            self._proc = subprocess.Popen(cmd, stdout=subprocess.PIPE, stderr=subprocess.PIPE)
        except OSError as e:
            self.error = f"Failed to start ffmpeg: {e}"
            self.finished.set()
            self.ready.set()
            return

        try:
            stdout = self._proc.stdout
            while not self._stop.is_set():
                x = self._read_pcm_chunk(stdout)
                if x is None:
                    break
                self.ring.push_blocking(x, stop_event=self._stop)
                self.frames_decoded += x.shape[0]
                if not self.ready.is_set() and self.frames_decoded >= self._prebuffer_frames:
                    self.ready.set()
        except (OSError, ValueError) as e:
            self.error = f"Decoder error: {e}"
        finally:
            try:
                if self._proc.poll() is None:
                    self._proc.terminate()
                stderr = self._proc.stderr.read() if self._proc.stderr else b""
                self._proc.wait(timeout=1.0)
            except (OSError, ValueError, subprocess.TimeoutExpired):
                stderr = b""
            if self.error is None and self.frames_decoded == 0 and not self._stop.is_set():
                detail = stderr.decode("utf-8", errors="replace").strip()
                self.error = detail or "No audio decoded"
            self.finished.set()
            self.ready.set()


# -----------------------------
# Output sink
# -----------------------------

class OutputSink:
    """
    Opaque audio output: one decoded source at a time draining into a
    sounddevice stream.

    Mutating methods are meant to be called from the audio-control thread
    only (see audio.control). Query methods are safe from any thread.
    """

    def __init__(
        self,
        sample_rate: int = 44100,
        channels: int = 2,
        buffer_preset: Optional[BufferPreset] = None,
        device: Optional[int] = None,
    ):
        self.sample_rate = sample_rate
        self.channels = channels
        self._buffer_preset = buffer_preset or BUFFER_PRESETS[DEFAULT_BUFFER_PRESET]
        self._device = device
        self._ring = AudioRingBuffer(
            channels,
            max_seconds=self._buffer_preset.ring_max_seconds,
            sample_rate=sample_rate,
        )
        self._lock = threading.Lock()
        self._stream = None
        self._decoder: Optional[DecoderThread] = None
        self._source_path: Optional[str] = None
        self._start_sec = 0.0
        self._paused = False
        self._volume = 1.0
        self._fade_out_ramp = np.linspace(1.0, 0.0, 32, dtype=np.float32)

    # Stream lifecycle

    def open(self) -> None:
        if self._stream is not None:
            return
        if sd is None:
            raise AudioOutputError(f"sounddevice not available: {_sounddevice_import_error}")
        try:
            self._stream = sd.OutputStream(
                samplerate=self.sample_rate,
                channels=self.channels,
                dtype="float32",
                blocksize=self._buffer_preset.blocksize_frames,
                latency=self._buffer_preset.latency,
                device=self._device,
                callback=self._callback,
            )
            self._stream.start()
        except Exception as e:
            self._stream = None
            raise AudioOutputError(f"Audio output error: {e}") from e
        logger.info("Audio output opened (%d Hz, %d ch)", self.sample_rate, self.channels)

    def close(self) -> None:
        self.clear()
        if self._stream is not None:
            try:
                self._stream.stop()
                self._stream.close()
            except Exception as e:
                logger.warning("Error closing audio stream: %s", e)
            self._stream = None

    def _callback(self, outdata, frames, time_info, status):
        if self._paused or self._decoder is None:
            outdata.fill(0)
            return

        filled = self._ring.pop_into(outdata)
        if filled < frames:
            fade_samples = min(filled, self._fade_out_ramp.shape[0])
            if fade_samples > 1:
                outdata[filled - fade_samples:filled] *= self._fade_out_ramp[:fade_samples, None]
        vol = self._volume
        if vol == 0.0:
            outdata.fill(0)
        elif vol != 1.0:
            np.clip(outdata * vol, -1.0, 1.0, out=outdata)

    # Mutations

    def _stop_decoder(self) -> None:
        if self._decoder is not None:
            self._decoder.stop()
            self._decoder = None

    def _start_decoder(self, path: str, start_sec: float) -> DecoderThread:
        if not have_exe("ffmpeg"):
            raise DecodeError("ffmpeg not found in PATH.")
        self._stop_decoder()
        self._ring.clear()
        decoder = DecoderThread(
            track_path=path,
            start_sec=start_sec,
            sample_rate=self.sample_rate,
            channels=self.channels,
            ring=self._ring,
            buffer_preset=self._buffer_preset,
        )
        self._decoder = decoder
        self._source_path = path
        self._start_sec = max(0.0, float(start_sec))
        decoder.start()
        return decoder

    def _wait_ready(self, decoder: DecoderThread, path: str) -> None:
        if not decoder.ready.wait(READY_TIMEOUT_SEC):
            logger.warning("Decoder slow to buffer %s, continuing", path)
            return
        if decoder.error and decoder.frames_decoded == 0 and not decoder.stopped:
            raise DecodeError(f"Cannot decode {path}: {decoder.error}")

    def replace_source(self, path: str, start_sec: float = 0.0) -> None:
        """Clear pending audio, append a fresh source for path and resume playback."""
        self.open()
        with self._lock:
            decoder = self._start_decoder(path, start_sec)
            self._paused = False
        logger.info("Playing %s from %.2fs", path, start_sec)
        self._wait_ready(decoder, path)

    def seek(self, target_sec: float) -> None:
        if self._source_path is None:
            return
        with self._lock:
            path = self._source_path
            decoder = self._start_decoder(path, target_sec)
        logger.debug("Seeked %s to %.2fs", path, target_sec)
        self._wait_ready(decoder, path)

    def clear(self) -> None:
        with self._lock:
            self._stop_decoder()
            self._ring.clear()
            self._source_path = None
            self._start_sec = 0.0

    def play(self) -> None:
        self._paused = False

    def pause(self) -> None:
        self._paused = True

    def set_volume(self, volume: float) -> None:
        self._volume = clamp(float(volume), 0.0, MAX_VOLUME)

    # Queries

    def volume(self) -> float:
        return self._volume

    def is_paused(self) -> bool:
        return self._paused

    def is_empty(self) -> bool:
        with self._lock:
            decoder = self._decoder
        if decoder is None:
            return True
        return decoder.finished.is_set() and self._ring.frames_available() == 0

    def position(self) -> float:
        with self._lock:
            start = self._start_sec
        return start + self._ring.seconds_consumed()
