"""State-machine based recording session orchestration."""

from __future__ import annotations

import logging
import threading
from typing import Callable, Optional

from capabilities import choose_encoding
from errors import (
    DEVICE_ERROR,
    EMPTY_TRANSCRIPT,
    INSECURE_CONTEXT,
    NOT_SUPPORTED,
    RECORDING_TOO_SHORT,
    SERVICE_ERROR,
    CapabilityError,
    CaptureError,
    DeviceError,
    TranscriptionError,
    VoiceCaptureError,
)
from interfaces import CaptureDevice, Transcriber
from models import CaptureCapabilities, RecordingSession, SessionState

logger = logging.getLogger(__name__)

StateCallback = Callable[[SessionState, SessionState], None]
CompleteCallback = Callable[[str], None]
ErrorCallback = Callable[[VoiceCaptureError], None]

DEFAULT_MIN_AUDIO_BYTES = 100


class RecordingController:
    """Owns one live RecordingSession and drives it through capture and transcription.

    ``stop`` blocks while the transcriber runs; call it from a worker thread
    when driving the controller from a UI event loop.
    """

    def __init__(
        self,
        device: CaptureDevice,
        transcriber: Transcriber,
        capabilities: CaptureCapabilities,
        min_audio_bytes: int = DEFAULT_MIN_AUDIO_BYTES,
        timeslice_ms: int = 1000,
        on_state_change: Optional[StateCallback] = None,
        on_transcription_complete: Optional[CompleteCallback] = None,
        on_transcription_error: Optional[ErrorCallback] = None,
    ) -> None:
        self._device = device
        self._transcriber = transcriber
        self._capabilities = capabilities
        self._min_audio_bytes = min_audio_bytes
        self._timeslice_ms = timeslice_ms
        self._on_state_change = on_state_change
        self._on_transcription_complete = on_transcription_complete
        self._on_transcription_error = on_transcription_error

        self._lock = threading.RLock()
        # Guards chunk appends against the status flip in stop()/cancel().
        self._chunk_lock = threading.Lock()
        self._session = RecordingSession()
        self.dropped_chunks = 0

    @property
    def state(self) -> SessionState:
        return self._session.status

    @property
    def session(self) -> RecordingSession:
        return self._session

    def start(self) -> None:
        with self._lock:
            if self._session.status != SessionState.IDLE:
                logger.debug("start ignored in state %s", self._session.status.value)
                return
            self._session = RecordingSession()
            caps = self._capabilities
            if not caps.is_usable:
                code = NOT_SUPPORTED if caps.secure_context else INSECURE_CONTEXT
                self._fail(CapabilityError(code))
                return

            self._session.encoding = choose_encoding(caps)
            self._transition(SessionState.RECORDING)
            try:
                self._device.open(self._session.encoding, self._handle_chunk, self._timeslice_ms)
            except VoiceCaptureError as exc:
                self._safe_close_device()
                self._fail(exc)
                return
            except Exception as exc:
                self._safe_close_device()
                self._fail(DeviceError(DEVICE_ERROR, f"Microphone error: {exc}"))
                return
            logger.info("Recording started (%s)", self._session.encoding)

    def stop(self) -> None:
        with self._lock:
            if self._session.status != SessionState.RECORDING:
                return
            session = self._session
            # close() flushes the encoder tail before returning.
            close_error = self._safe_close_device()
            self._transition(SessionState.STOPPING)
            if close_error is not None:
                self._fail(close_error)
                return

            buffer = session.audio_bytes()
            logger.info(
                "Recording stopped: %d chunks, %d bytes", len(session.chunks), len(buffer)
            )
            if len(buffer) < self._min_audio_bytes:
                self._fail(CaptureError(RECORDING_TOO_SHORT))
                return
            self._transition(SessionState.TRANSCRIBING)

        error: Optional[VoiceCaptureError] = None
        transcript = ""
        try:
            transcript = self._transcriber.transcribe(buffer, session.encoding)
        except VoiceCaptureError as exc:
            error = exc
        except Exception as exc:
            logger.exception("Transcriber raised an unexpected error")
            error = TranscriptionError(SERVICE_ERROR, str(exc))

        with self._lock:
            if self._session is not session or session.status != SessionState.TRANSCRIBING:
                return
            if error is None and not (transcript or "").strip():
                error = TranscriptionError(EMPTY_TRANSCRIPT)
            if error is not None:
                self._fail(error)
                return
            session.transcript = transcript.strip()
            self._transition(SessionState.COMPLETED)
            logger.info("Transcription completed (%d chars)", len(session.transcript))
            if self._on_transcription_complete:
                self._on_transcription_complete(session.transcript)

    def cancel(self) -> None:
        with self._lock:
            if self._session.status != SessionState.RECORDING:
                return
            self._safe_close_device()
            self._transition(SessionState.CANCELLED)
            self._session.chunks.clear()
            self._session.encoding = ""
            self._transition(SessionState.IDLE)
            logger.info("Recording cancelled")

    def reset(self) -> None:
        with self._lock:
            if self._session.status not in (SessionState.COMPLETED, SessionState.FAILED):
                return
            session = self._session
            session.chunks.clear()
            session.encoding = ""
            session.transcript = None
            session.error_code = None
            session.error_message = None
            self._transition(SessionState.IDLE)

    def _handle_chunk(self, chunk: bytes) -> None:
        with self._chunk_lock:
            if not chunk:
                return
            if self._session.status != SessionState.RECORDING:
                self.dropped_chunks += 1
                return
            self._session.chunks.append(bytes(chunk))

    def _fail(self, error: VoiceCaptureError) -> None:
        session = self._session
        session.error_code = error.code
        session.error_message = error.message
        logger.warning("Recording failed: %s: %s", error.code, error.message)
        self._transition(SessionState.FAILED)
        if self._on_transcription_error:
            self._on_transcription_error(error)

    def _safe_close_device(self) -> Optional[VoiceCaptureError]:
        """Release the device; a classified close failure is returned, not raised."""
        try:
            self._device.close()
        except VoiceCaptureError as exc:
            logger.warning("Capture device reported on close: %s: %s", exc.code, exc.message)
            return exc
        except Exception:
            logger.exception("Failed to release capture device")
        return None

    def _transition(self, to_state: SessionState) -> None:
        with self._chunk_lock:
            from_state = self._session.status
            if from_state == to_state:
                return
            self._session.status = to_state
        logger.debug("Session %s -> %s", from_state.value, to_state.value)
        if self._on_state_change:
            self._on_state_change(from_state, to_state)
