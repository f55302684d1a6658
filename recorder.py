"""Microphone capture adapter with a streaming encoder."""

from __future__ import annotations

import io
import logging
import struct
import threading
from typing import Any, Optional

from errors import (
    DEVICE_BUSY,
    DEVICE_ERROR,
    DEVICE_NOT_FOUND,
    ENCODING_FAILED,
    NOT_SUPPORTED,
    PERMISSION_DENIED,
    UNSUPPORTED_ENCODING,
    CapabilityError,
    CaptureError,
    DeviceError,
)
from interfaces import ChunkCallback

try:
    import numpy as np
except Exception:  # pragma: no cover
    np = None  # type: ignore

try:
    import sounddevice as sd
except Exception:  # pragma: no cover
    sd = None  # type: ignore

try:
    import soundfile as sf
except Exception:  # pragma: no cover
    sf = None  # type: ignore

logger = logging.getLogger(__name__)

_PERMISSION_HINTS = ("permission", "not permitted", "denied", "not authorized")
_NOT_FOUND_HINTS = ("no default input", "invalid device", "no such device", "not found", "-9996")
_BUSY_HINTS = ("busy", "in use", "device unavailable", "-9985", "unanticipated host error")


def classify_device_error(exc: BaseException) -> DeviceError:
    """Map a PortAudio/OS failure to a DeviceError with a remediation code."""
    if isinstance(exc, DeviceError):
        return exc
    if isinstance(exc, PermissionError):
        return DeviceError(PERMISSION_DENIED)
    low = str(exc).lower()
    if any(hint in low for hint in _PERMISSION_HINTS):
        return DeviceError(PERMISSION_DENIED)
    if any(hint in low for hint in _BUSY_HINTS):
        return DeviceError(DEVICE_BUSY)
    if any(hint in low for hint in _NOT_FOUND_HINTS):
        return DeviceError(DEVICE_NOT_FOUND)
    return DeviceError(DEVICE_ERROR, f"Microphone error: {exc or 'unknown error'}")


def _wav_stream_header(sample_rate: int, channels: int, sample_width: int = 2) -> bytes:
    """RIFF header with open-ended sizes, as written by streaming recorders."""
    byte_rate = sample_rate * channels * sample_width
    block_align = channels * sample_width
    return struct.pack(
        "<4sI4s4sIHHIIHH4sI",
        b"RIFF",
        0xFFFFFFFF,
        b"WAVE",
        b"fmt ",
        16,
        1,
        channels,
        sample_rate,
        byte_rate,
        block_align,
        sample_width * 8,
        b"data",
        0xFFFFFFFF,
    )


class _WavStreamEncoder:
    def __init__(self, sample_rate: int, channels: int) -> None:
        self._header = _wav_stream_header(sample_rate, channels)
        self._header_sent = False

    def encode(self, pcm: bytes) -> bytes:
        if self._header_sent:
            return pcm
        self._header_sent = True
        return self._header + pcm

    def finish(self) -> bytes:
        if self._header_sent:
            return b""
        self._header_sent = True
        return self._header


class _ChunkSink(io.RawIOBase):
    """Append-only file object that hands out newly written bytes on ``drain``."""

    def __init__(self) -> None:
        super().__init__()
        self._pending = bytearray()
        self._pos = 0

    def writable(self) -> bool:
        return True

    def seekable(self) -> bool:
        return True

    def write(self, data: Any) -> int:
        view = bytes(data)
        self._pending.extend(view)
        self._pos += len(view)
        return len(view)

    def tell(self) -> int:
        return self._pos

    def seek(self, offset: int, whence: int = io.SEEK_SET) -> int:
        target = offset if whence == io.SEEK_SET else self._pos + offset
        if target != self._pos:
            raise io.UnsupportedOperation("chunk sink cannot rewind")
        return self._pos

    def drain(self) -> bytes:
        data = bytes(self._pending)
        self._pending.clear()
        return data


class _OggVorbisEncoder:
    def __init__(self, sample_rate: int, channels: int) -> None:
        self._channels = channels
        self._sink = _ChunkSink()
        self._file = sf.SoundFile(
            self._sink,
            mode="w",
            samplerate=sample_rate,
            channels=channels,
            format="OGG",
            subtype="VORBIS",
        )

    def encode(self, pcm: bytes) -> bytes:
        frames = np.frombuffer(pcm, dtype=np.int16).reshape(-1, self._channels)
        self._file.write(frames)
        return self._sink.drain()

    def finish(self) -> bytes:
        self._file.close()
        return self._sink.drain()


def make_encoder(encoding: str, sample_rate: int, channels: int) -> Any:
    base = encoding.split(";", 1)[0].strip().lower()
    if base == "audio/wav":
        return _WavStreamEncoder(sample_rate, channels)
    if base == "audio/ogg":
        if sf is None or np is None:
            raise CapabilityError(NOT_SUPPORTED, "soundfile is not installed")
        return _OggVorbisEncoder(sample_rate, channels)
    raise CapabilityError(UNSUPPORTED_ENCODING, f"cannot encode {encoding}")


class SoundDeviceCapture:
    """Records from the default input and delivers encoded chunks per time slice.

    ``open`` acquires the input stream; ``close`` releases it and flushes the
    encoder tail through ``on_chunk`` before returning.

    If any slice failed to encode, ``close`` still releases the stream and then
    raises ``CaptureError(ENCODING_FAILED)``: the delivered audio has a gap.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        device: Optional[int] = None,
    ) -> None:
        self.sample_rate = sample_rate
        self.channels = channels
        self.device = device
        self._stream: Any = None
        self._encoder: Any = None
        self._on_chunk: Optional[ChunkCallback] = None
        self._running = False
        self._lock = threading.Lock()
        self.encode_errors = 0

    def open(self, encoding: str, on_chunk: ChunkCallback, timeslice_ms: int = 1000) -> None:
        with self._lock:
            if self._running:
                return
            if sd is None or np is None:
                raise CapabilityError(NOT_SUPPORTED, "sounddevice is not installed")
            self._encoder = make_encoder(encoding, self.sample_rate, self.channels)
            self._on_chunk = on_chunk
            self.encode_errors = 0
            blocksize = int(self.sample_rate * (timeslice_ms / 1000.0))
            stream = None
            try:
                stream = sd.InputStream(
                    samplerate=self.sample_rate,
                    channels=self.channels,
                    dtype="int16",
                    blocksize=blocksize,
                    device=self.device,
                    callback=self._on_audio,
                )
                self._running = True
                stream.start()
            except Exception as exc:
                self._running = False
                self._encoder = None
                self._on_chunk = None
                if stream is not None:
                    self._release(stream)
                raise classify_device_error(exc) from exc
            self._stream = stream
            logger.info("Input stream opened (%s, %d ms slices)", encoding, timeslice_ms)

    def close(self) -> None:
        with self._lock:
            if not self._running:
                return
            self._running = False
            stream, self._stream = self._stream, None
            encoder, self._encoder = self._encoder, None
            on_chunk, self._on_chunk = self._on_chunk, None
            if stream is not None:
                self._release(stream)
            if encoder is not None and on_chunk is not None:
                try:
                    tail = encoder.finish()
                except Exception:
                    logger.exception("Encoder flush failed")
                    self.encode_errors += 1
                else:
                    if tail:
                        on_chunk(tail)
            logger.info("Input stream closed")
            if self.encode_errors:
                raise CaptureError(
                    ENCODING_FAILED, f"{self.encode_errors} audio slice(s) failed to encode"
                )

    def _release(self, stream: Any) -> None:
        try:
            stream.stop()
        except Exception:
            logger.exception("Failed to stop input stream")
        try:
            stream.close()
        except Exception:
            logger.exception("Failed to close input stream")

    def _on_audio(self, indata: Any, frames: int, time_info: Any, status: Any) -> None:
        encoder = self._encoder
        on_chunk = self._on_chunk
        if not self._running or encoder is None or on_chunk is None:
            return
        if status:
            logger.debug("Input stream status: %s", status)
        pcm = np.asarray(indata, dtype=np.int16).tobytes()
        try:
            chunk = encoder.encode(pcm)
        except Exception:
            logger.exception("Encoding audio slice failed")
            self.encode_errors += 1
            return
        if chunk:
            on_chunk(chunk)
