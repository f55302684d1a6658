"""Transcription clients that turn a finished recording into text.

``HttpTranscriber`` posts the audio as multipart form data to a hosted
transcription function which answers ``{"text": ...}`` or ``{"error": ...}``.
``DashscopeTranscriber`` sends the same audio to the DashScope qwen3-asr-flash
model and keeps the last non-empty text it streams back.
"""

from __future__ import annotations

import base64
import logging
from typing import Optional

import httpx

from errors import (
    ASR_PROTOCOL_ERROR,
    AUTH_FAILED,
    EMPTY_TRANSCRIPT,
    NETWORK_ERROR,
    RECORDING_TOO_SHORT,
    SERVICE_ERROR,
    TRANSCRIPTION_TIMEOUT,
    UNSUPPORTED_ENCODING,
    TranscriptionError,
)
from interfaces import ConfigStore, Transcriber

try:
    import dashscope
except Exception:  # pragma: no cover
    dashscope = None  # type: ignore

logger = logging.getLogger(__name__)

EXTENSIONS = {
    "audio/ogg": "ogg",
    "audio/wav": "wav",
    "audio/x-wav": "wav",
    "audio/webm": "webm",
    "audio/mp4": "mp4",
    "audio/mpeg": "mp3",
    "audio/flac": "flac",
}


def base_encoding(encoding: str) -> str:
    """Strip codec parameters: ``audio/ogg;codecs=opus`` -> ``audio/ogg``."""
    return encoding.split(";", 1)[0].strip().lower()


def extension_for(encoding: str) -> str:
    ext = EXTENSIONS.get(base_encoding(encoding))
    if ext is None:
        raise TranscriptionError(UNSUPPORTED_ENCODING, f"Unsupported audio encoding: {encoding!r}")
    return ext


def _check_buffer(buffer: bytes) -> None:
    if not buffer:
        raise TranscriptionError(RECORDING_TOO_SHORT, "Audio buffer is empty")


class HttpTranscriber:
    def __init__(
        self,
        endpoint_url: str,
        api_key: str = "",
        timeout_s: float = 30.0,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._endpoint_url = endpoint_url
        self._api_key = api_key
        self._client = client or httpx.Client(timeout=timeout_s)

    def transcribe(self, buffer: bytes, encoding: str) -> str:
        _check_buffer(buffer)
        ext = extension_for(encoding)
        files = {"audio": (f"recording.{ext}", buffer, base_encoding(encoding))}
        headers = {}
        if self._api_key:
            headers["apikey"] = self._api_key
            headers["Authorization"] = f"Bearer {self._api_key}"

        logger.info("Sending %d bytes (%s) for transcription", len(buffer), encoding)
        try:
            response = self._client.post(self._endpoint_url, files=files, headers=headers)
        except httpx.TimeoutException as exc:
            raise TranscriptionError(TRANSCRIPTION_TIMEOUT, f"Transcription timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise TranscriptionError(NETWORK_ERROR, f"Network error: {exc}") from exc

        if not response.is_success:
            raise self._status_error(response)

        try:
            payload = response.json()
        except ValueError as exc:
            raise TranscriptionError(ASR_PROTOCOL_ERROR, "Transcription response is not JSON") from exc
        if not isinstance(payload, dict) or not isinstance(payload.get("text"), str):
            raise TranscriptionError(ASR_PROTOCOL_ERROR, "Transcription response has no text")
        text = payload["text"].strip()
        if not text:
            raise TranscriptionError(EMPTY_TRANSCRIPT)
        return text

    def close(self) -> None:
        self._client.close()

    def _status_error(self, response: httpx.Response) -> TranscriptionError:
        detail = ""
        try:
            body = response.json()
            if isinstance(body, dict):
                detail = str(body.get("error") or "")
        except ValueError:
            detail = response.text[:200]
        detail = detail or response.reason_phrase
        code = AUTH_FAILED if response.status_code in (401, 403) else SERVICE_ERROR
        return TranscriptionError(code, f"Transcription error ({response.status_code}): {detail}")


class DashscopeTranscriber:
    def __init__(
        self,
        api_key: str,
        model: str = "qwen3-asr-flash",
        timeout_s: float = 10.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._timeout_s = timeout_s

    def transcribe(self, buffer: bytes, encoding: str) -> str:
        _check_buffer(buffer)
        extension_for(encoding)
        if dashscope is None:
            raise TranscriptionError(ASR_PROTOCOL_ERROR, "dashscope is not installed")
        if not self._api_key:
            raise TranscriptionError(AUTH_FAILED, "No API key configured")

        data_uri = f"data:{base_encoding(encoding)};base64," + base64.b64encode(buffer).decode("ascii")
        try:
            response = dashscope.MultiModalConversation.call(
                api_key=self._api_key,
                model=self._model,
                messages=[
                    {"role": "system", "content": [{"text": ""}]},
                    {"role": "user", "content": [{"audio": data_uri}]},
                ],
                result_format="message",
                asr_options={"enable_itn": False},
                stream=True,
                timeout=self._timeout_s,
            )
            latest_text = ""
            for chunk in response:
                self._check_status(chunk)
                text = self._extract_text(chunk)
                if text:
                    latest_text = text
        except TranscriptionError:
            raise
        except Exception as exc:
            raise self._to_error(exc) from exc

        if not latest_text.strip():
            raise TranscriptionError(EMPTY_TRANSCRIPT)
        return latest_text.strip()

    def _check_status(self, chunk: object) -> None:
        """Raise for a rejected call; the SDK reports these as chunks, not exceptions."""
        if not isinstance(chunk, dict):
            return
        status = chunk.get("status_code")
        if status is None or status == 200:
            return
        detail = chunk.get("message") or chunk.get("code") or "request rejected"
        code = AUTH_FAILED if status in (401, 403) else SERVICE_ERROR
        raise TranscriptionError(code, f"DashScope error ({status}): {detail}")

    def _extract_text(self, chunk: object) -> str:
        """Pull text from a dashscope streaming chunk dict."""
        if not isinstance(chunk, dict):
            return ""
        choices = (chunk.get("output") or {}).get("choices") or []
        if not choices:
            return ""
        content = choices[0].get("message", {}).get("content", [])
        if not content:
            return ""
        value = content[0]
        if isinstance(value, dict):
            return str(value.get("text", ""))
        return ""

    def _to_error(self, exc: Exception) -> TranscriptionError:
        message = str(exc)
        low = message.lower()
        if "401" in low or "auth" in low or "api key" in low:
            code = AUTH_FAILED
        elif "timeout" in low or "timed out" in low:
            code = TRANSCRIPTION_TIMEOUT
        elif "network" in low or "connection" in low:
            code = NETWORK_ERROR
        else:
            code = ASR_PROTOCOL_ERROR
        return TranscriptionError(code, message)


def build_transcriber(config: ConfigStore) -> Transcriber:
    timeout_s = config.get_transcription_timeout_s()
    if config.get_transcription_backend() == "dashscope":
        return DashscopeTranscriber(api_key=config.get_dashscope_api_key(), timeout_s=timeout_s)
    return HttpTranscriber(
        endpoint_url=config.get_transcription_url(),
        api_key=config.get_api_key(),
        timeout_s=timeout_s,
    )
