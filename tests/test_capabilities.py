from __future__ import annotations

import itertools
from unittest.mock import MagicMock

import pytest

import capabilities
from capabilities import choose_encoding, is_secure_endpoint, probe_capabilities
from models import CaptureCapabilities


@pytest.mark.parametrize(
    ("secure", "device", "recorder", "has_encodings"),
    list(itertools.product([False, True], repeat=4)),
)
def test_is_usable_truth_table(secure: bool, device: bool, recorder: bool, has_encodings: bool) -> None:
    caps = CaptureCapabilities(
        secure_context=secure,
        has_device_access=device,
        has_recorder=recorder,
        supported_encodings=frozenset({"audio/ogg"}) if has_encodings else frozenset(),
    )
    assert caps.is_usable is (secure and device and recorder and has_encodings)


@pytest.mark.parametrize(
    ("url", "secure"),
    [
        ("https://example.supabase.co/functions/v1/transcribe-audio", True),
        ("http://localhost:54321/functions/v1/transcribe-audio", True),
        ("http://127.0.0.1:8000/transcribe", True),
        ("http://[::1]:8000/transcribe", True),
        ("http://example.com/transcribe", False),
        ("ftp://example.com/transcribe", False),
        ("", False),
    ],
)
def test_is_secure_endpoint(url: str, secure: bool) -> None:
    assert is_secure_endpoint(url) is secure


def test_choose_encoding_follows_preference_order() -> None:
    both = CaptureCapabilities(True, True, True, frozenset({"audio/wav", "audio/ogg"}))
    wav_only = CaptureCapabilities(True, True, True, frozenset({"audio/wav"}))
    none = CaptureCapabilities(True, True, True, frozenset())

    assert choose_encoding(both) == "audio/ogg"
    assert choose_encoding(wav_only) == "audio/wav"
    assert choose_encoding(none) == "audio/ogg"


def test_probe_with_full_stack(monkeypatch) -> None:  # noqa: ANN001
    fake_sf = MagicMock()
    fake_sf.available_formats.return_value = {"WAV": "", "OGG": "", "FLAC": ""}
    monkeypatch.setattr(capabilities, "sd", MagicMock())
    monkeypatch.setattr(capabilities, "np", MagicMock())
    monkeypatch.setattr(capabilities, "sf", fake_sf)

    caps = probe_capabilities("https://example.com/transcribe")

    assert caps.is_usable
    assert caps.supported_encodings == frozenset({"audio/ogg", "audio/wav"})


def test_probe_without_soundfile_still_offers_wav(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(capabilities, "sd", MagicMock())
    monkeypatch.setattr(capabilities, "np", MagicMock())
    monkeypatch.setattr(capabilities, "sf", None)

    caps = probe_capabilities("http://localhost/transcribe")

    assert caps.supported_encodings == frozenset({"audio/wav"})
    assert caps.is_usable


def test_probe_without_sounddevice_is_unusable(monkeypatch) -> None:  # noqa: ANN001
    monkeypatch.setattr(capabilities, "sd", None)

    caps = probe_capabilities("https://example.com/transcribe")

    assert caps.has_device_access is False
    assert caps.has_recorder is False
    assert caps.supported_encodings == frozenset()
    assert caps.is_usable is False


def test_probe_does_not_open_a_stream(monkeypatch) -> None:  # noqa: ANN001
    fake_sd = MagicMock()
    monkeypatch.setattr(capabilities, "sd", fake_sd)
    monkeypatch.setattr(capabilities, "np", MagicMock())

    probe_capabilities("https://example.com/transcribe")

    fake_sd.InputStream.assert_not_called()
    fake_sd.rec.assert_not_called()
