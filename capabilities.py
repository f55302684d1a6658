"""Detect whether this machine can capture and encode microphone audio.

Probing only inspects what is installed; it never opens a stream, so it is
safe to run at startup before the user has asked to record.
"""

from __future__ import annotations

import logging
from urllib.parse import urlparse

from models import CaptureCapabilities

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

ENCODING_PREFERENCE = ("audio/ogg", "audio/wav")
TRUSTED_HOSTS = {"localhost", "127.0.0.1", "::1"}


def is_secure_endpoint(url: str) -> bool:
    parsed = urlparse(url)
    if parsed.scheme == "https":
        return True
    return (parsed.hostname or "") in TRUSTED_HOSTS


def _encoding_supported(encoding: str) -> bool:
    if sd is None or np is None:
        return False
    if encoding == "audio/wav":
        return True
    if encoding == "audio/ogg":
        if sf is None:
            return False
        try:
            return "OGG" in sf.available_formats()
        except Exception:
            logger.debug("soundfile format query failed", exc_info=True)
            return False
    return False


def probe_capabilities(endpoint_url: str) -> CaptureCapabilities:
    has_device_access = sd is not None and hasattr(sd, "query_devices")
    has_recorder = sd is not None and np is not None and hasattr(sd, "InputStream")
    supported = frozenset(enc for enc in ENCODING_PREFERENCE if _encoding_supported(enc))
    caps = CaptureCapabilities(
        secure_context=is_secure_endpoint(endpoint_url),
        has_device_access=has_device_access,
        has_recorder=has_recorder,
        supported_encodings=supported,
    )
    logger.info(
        "Capture capabilities: secure=%s device=%s recorder=%s encodings=%s",
        caps.secure_context,
        caps.has_device_access,
        caps.has_recorder,
        sorted(caps.supported_encodings),
    )
    return caps


def choose_encoding(caps: CaptureCapabilities) -> str:
    for encoding in ENCODING_PREFERENCE:
        if encoding in caps.supported_encodings:
            return encoding
    return ENCODING_PREFERENCE[0]
