"""Shared error codes, user-facing messages and exception types."""

from __future__ import annotations

from typing import Optional

# Capability
INSECURE_CONTEXT = "INSECURE_CONTEXT"
NOT_SUPPORTED = "NOT_SUPPORTED"

# Device
PERMISSION_DENIED = "PERMISSION_DENIED"
DEVICE_NOT_FOUND = "DEVICE_NOT_FOUND"
DEVICE_BUSY = "DEVICE_BUSY"
DEVICE_ERROR = "DEVICE_ERROR"

# Capture
RECORDING_TOO_SHORT = "RECORDING_TOO_SHORT"
ENCODING_FAILED = "ENCODING_FAILED"

# Transcription / recipe service
UNSUPPORTED_ENCODING = "UNSUPPORTED_ENCODING"
NETWORK_ERROR = "NETWORK_ERROR"
TRANSCRIPTION_TIMEOUT = "TRANSCRIPTION_TIMEOUT"
AUTH_FAILED = "AUTH_FAILED"
SERVICE_ERROR = "SERVICE_ERROR"
ASR_PROTOCOL_ERROR = "ASR_PROTOCOL_ERROR"
EMPTY_TRANSCRIPT = "EMPTY_TRANSCRIPT"
EMPTY_INGREDIENTS = "EMPTY_INGREDIENTS"
REQUEST_TIMEOUT = "REQUEST_TIMEOUT"
RESPONSE_FORMAT_ERROR = "RESPONSE_FORMAT_ERROR"

ERROR_MESSAGES = {
    INSECURE_CONTEXT: "Voice recording requires a secure endpoint (HTTPS or localhost).",
    NOT_SUPPORTED: "Voice recording is not supported on this system.",
    PERMISSION_DENIED: "Microphone access was denied. Allow access and try again.",
    DEVICE_NOT_FOUND: "No microphone detected. Connect a microphone and try again.",
    DEVICE_BUSY: "The microphone is already in use by another application.",
    DEVICE_ERROR: "Microphone error.",
    RECORDING_TOO_SHORT: "Recorded audio is too short or empty.",
    ENCODING_FAILED: "Audio encoding failed during recording. Please try again.",
    UNSUPPORTED_ENCODING: "Audio format is not supported by the transcription service.",
    NETWORK_ERROR: "Network failed, please retry.",
    TRANSCRIPTION_TIMEOUT: "Transcription timed out, please retry.",
    AUTH_FAILED: "API key is invalid.",
    SERVICE_ERROR: "The service returned an error.",
    ASR_PROTOCOL_ERROR: "Transcription response format is invalid.",
    EMPTY_TRANSCRIPT: "No speech detected. Please try speaking more clearly.",
    EMPTY_INGREDIENTS: "Enter at least one ingredient.",
    REQUEST_TIMEOUT: "The request timed out, please retry.",
    RESPONSE_FORMAT_ERROR: "The service response format is invalid.",
}


class VoiceCaptureError(Exception):
    """Base error for one recording attempt; ``code`` is one of the constants above."""

    def __init__(self, code: str, message: Optional[str] = None) -> None:
        self.code = code
        self.message = message or ERROR_MESSAGES.get(code, code)
        super().__init__(self.message)


class CapabilityError(VoiceCaptureError):
    pass


class DeviceError(VoiceCaptureError):
    pass


class CaptureError(VoiceCaptureError):
    pass


class TranscriptionError(VoiceCaptureError):
    pass


class RecipeGenerationError(VoiceCaptureError):
    pass
