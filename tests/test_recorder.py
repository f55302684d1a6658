"""Tests for SoundDeviceCapture and device error classification."""

from __future__ import annotations

import io
import struct
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

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
from recorder import (
    SoundDeviceCapture,
    _ChunkSink,
    _wav_stream_header,
    classify_device_error,
    make_encoder,
)


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

def _silence(n_samples: int = 1600) -> np.ndarray:
    return np.zeros((n_samples, 1), dtype=np.int16)


def _tone(n_samples: int = 1600, sample_rate: int = 16000) -> np.ndarray:
    t = np.arange(n_samples) / sample_rate
    return (np.sin(2 * np.pi * 440 * t) * 8000).astype(np.int16).reshape(-1, 1)


def _vorbis_soundfile():
    sf = pytest.importorskip("soundfile")
    if "VORBIS" not in sf.available_subtypes("OGG"):
        pytest.skip("libsndfile built without Vorbis")
    return sf


class _Chunks(list):
    def __call__(self, chunk: bytes) -> None:
        self.append(chunk)


# ---------------------------------------------------------------
# Basic open / close
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_open_creates_time_sliced_stream_and_close_releases_it(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    capture = SoundDeviceCapture(sample_rate=16000)
    capture.open("audio/wav", _Chunks(), timeslice_ms=1000)

    mock_sd.InputStream.assert_called_once()
    kwargs = mock_sd.InputStream.call_args.kwargs
    assert kwargs["blocksize"] == 16000
    assert kwargs["dtype"] == "int16"
    mock_stream.start.assert_called_once()

    capture.close()
    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()


@patch("recorder.sd")
def test_open_is_idempotent(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    capture = SoundDeviceCapture()
    capture.open("audio/wav", _Chunks())
    capture.open("audio/wav", _Chunks())

    assert mock_sd.InputStream.call_count == 1
    capture.close()


@patch("recorder.sd")
def test_close_is_idempotent(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream

    capture = SoundDeviceCapture()
    capture.close()  # never opened
    capture.open("audio/wav", _Chunks())
    capture.close()
    capture.close()

    mock_stream.stop.assert_called_once()


# ---------------------------------------------------------------
# Audio callback delivers encoded chunks
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_wav_chunks_carry_header_once(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    chunks = _Chunks()

    capture = SoundDeviceCapture(sample_rate=16000, channels=1)
    capture.open("audio/wav", chunks)
    capture._on_audio(_silence(1600), frames=1600, time_info=None, status=None)
    capture._on_audio(_silence(800), frames=800, time_info=None, status=None)
    capture.close()

    assert len(chunks) == 2
    assert chunks[0][:4] == b"RIFF"
    assert len(chunks[0]) == 44 + 1600 * 2
    assert chunks[1] == b"\x00\x00" * 800


@patch("recorder.sd")
def test_close_without_audio_flushes_header(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    chunks = _Chunks()

    capture = SoundDeviceCapture()
    capture.open("audio/wav", chunks)
    capture.close()

    assert len(chunks) == 1
    assert len(chunks[0]) == 44


@patch("recorder.sd")
def test_callback_after_close_is_noop(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()
    chunks = _Chunks()

    capture = SoundDeviceCapture()
    capture.open("audio/wav", chunks)
    capture.close()
    delivered = len(chunks)

    capture._on_audio(_silence(), frames=1600, time_info=None, status=None)
    assert len(chunks) == delivered


@patch("recorder.sd")
def test_ogg_chunks_decode_to_every_sample_fed(mock_sd: MagicMock) -> None:
    sf = _vorbis_soundfile()
    mock_sd.InputStream.return_value = MagicMock()
    chunks = _Chunks()

    capture = SoundDeviceCapture(sample_rate=16000, channels=1)
    capture.open("audio/ogg", chunks)
    for _ in range(5):
        capture._on_audio(_tone(1600), frames=1600, time_info=None, status=None)
    capture.close()

    data = b"".join(chunks)
    assert data[:4] == b"OggS"
    assert capture.encode_errors == 0
    samples, sample_rate = sf.read(io.BytesIO(data), dtype="int16")
    assert sample_rate == 16000
    assert len(samples) == 5 * 1600


@patch("recorder.sd")
def test_failed_slice_surfaces_on_close(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_sd.InputStream.return_value = mock_stream
    chunks = _Chunks()

    capture = SoundDeviceCapture()
    capture.open("audio/wav", chunks)
    capture._on_audio(_silence(), frames=1600, time_info=None, status=None)
    broken = MagicMock()
    broken.encode.side_effect = RuntimeError("encoder exploded")
    broken.finish.return_value = b""
    capture._encoder = broken
    capture._on_audio(_silence(), frames=1600, time_info=None, status=None)

    with pytest.raises(CaptureError) as info:
        capture.close()

    assert info.value.code == ENCODING_FAILED
    assert capture.encode_errors == 1
    assert len(chunks) == 1
    mock_stream.stop.assert_called_once()
    mock_stream.close.assert_called_once()


@patch("recorder.sd")
def test_encode_error_count_resets_on_open(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.return_value = MagicMock()

    capture = SoundDeviceCapture()
    capture.open("audio/wav", _Chunks())
    capture.encode_errors = 3
    with pytest.raises(CaptureError):
        capture.close()

    capture.open("audio/wav", _Chunks())
    capture.close()
    assert capture.encode_errors == 0


# ---------------------------------------------------------------
# Failures on open
# ---------------------------------------------------------------

@patch("recorder.sd")
def test_invalid_device_maps_to_not_found(mock_sd: MagicMock) -> None:
    mock_sd.InputStream.side_effect = Exception("Error querying device -1 [PaErrorCode -9996]")

    capture = SoundDeviceCapture()
    with pytest.raises(DeviceError) as info:
        capture.open("audio/wav", _Chunks())
    assert info.value.code == DEVICE_NOT_FOUND


@patch("recorder.sd")
def test_start_failure_releases_stream(mock_sd: MagicMock) -> None:
    mock_stream = MagicMock()
    mock_stream.start.side_effect = Exception("Device unavailable [PaErrorCode -9985]")
    mock_sd.InputStream.return_value = mock_stream

    capture = SoundDeviceCapture()
    with pytest.raises(DeviceError) as info:
        capture.open("audio/wav", _Chunks())

    assert info.value.code == DEVICE_BUSY
    mock_stream.close.assert_called_once()
    # a failed open leaves nothing to release
    capture.close()
    assert mock_stream.close.call_count == 1


def test_open_without_sounddevice_is_not_supported(monkeypatch) -> None:  # noqa: ANN001
    import recorder as rec_mod
    monkeypatch.setattr(rec_mod, "sd", None)

    with pytest.raises(CapabilityError) as info:
        SoundDeviceCapture().open("audio/wav", _Chunks())
    assert info.value.code == NOT_SUPPORTED


# ---------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------

@pytest.mark.parametrize(
    ("exc", "code"),
    [
        (PermissionError("nope"), PERMISSION_DENIED),
        (Exception("Microphone access not authorized"), PERMISSION_DENIED),
        (Exception("No Default Input Device Available"), DEVICE_NOT_FOUND),
        (Exception("Device unavailable [PaErrorCode -9985]"), DEVICE_BUSY),
        (Exception("Unanticipated host error"), DEVICE_BUSY),
        (Exception("something odd"), DEVICE_ERROR),
    ],
)
def test_classify_device_error(exc: Exception, code: str) -> None:
    assert classify_device_error(exc).code == code


def test_classify_keeps_existing_device_error() -> None:
    original = DeviceError(DEVICE_BUSY)
    assert classify_device_error(original) is original


def test_unknown_error_message_is_kept() -> None:
    error = classify_device_error(Exception("something odd"))
    assert "something odd" in error.message


# ---------------------------------------------------------------
# Encoders
# ---------------------------------------------------------------

def test_wav_stream_header_layout() -> None:
    header = _wav_stream_header(16000, 1)
    assert len(header) == 44
    assert header[:4] == b"RIFF"
    assert header[8:12] == b"WAVE"
    channels, sample_rate = struct.unpack("<HI", header[22:28])
    assert (channels, sample_rate) == (1, 16000)


def test_make_encoder_rejects_unknown_encoding() -> None:
    with pytest.raises(CapabilityError) as info:
        make_encoder("audio/aiff", 16000, 1)
    assert info.value.code == UNSUPPORTED_ENCODING


def test_ogg_encoder_streams_pages() -> None:
    sf = _vorbis_soundfile()
    encoder = make_encoder("audio/ogg;codecs=vorbis", 16000, 1)

    body = b"".join(encoder.encode(_tone(1600).tobytes()) for _ in range(3))
    data = body + encoder.finish()

    assert data[:4] == b"OggS"
    info = sf.info(io.BytesIO(data))
    assert (info.samplerate, info.channels, info.frames) == (16000, 1, 3 * 1600)


def test_chunk_sink_hands_out_new_bytes_only() -> None:
    sink = _ChunkSink()
    sink.write(b"abc")
    assert sink.drain() == b"abc"
    sink.write(b"de")
    assert sink.tell() == 5
    assert sink.seek(0, io.SEEK_END) == 5
    assert sink.drain() == b"de"
    with pytest.raises(io.UnsupportedOperation):
        sink.seek(0)
