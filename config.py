"""Simple JSON-based config store."""

from __future__ import annotations

import json
import os
from pathlib import Path

DEFAULT_TRANSCRIPTION_URL = "http://localhost:54321/functions/v1/transcribe-audio"
DEFAULT_RECIPE_URL = "http://localhost:54321/functions/v1/generate-recipe"
DEFAULT_MIN_AUDIO_BYTES = 100
DEFAULT_TIMEOUT_S = 30.0


class JsonConfigStore:
    def __init__(self, path: Path | None = None) -> None:
        self._path = path or Path.home() / ".config" / "carnivoice" / "config.json"
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def get_transcription_url(self) -> str:
        return str(self._read_all().get("transcription_url", DEFAULT_TRANSCRIPTION_URL))

    def set_transcription_url(self, url: str) -> None:
        self._set("transcription_url", url)

    def get_recipe_url(self) -> str:
        return str(self._read_all().get("recipe_url", DEFAULT_RECIPE_URL))

    def set_recipe_url(self, url: str) -> None:
        self._set("recipe_url", url)

    def get_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("api_key", "")) or os.getenv("CARNIVOICE_API_KEY", "")

    def set_api_key(self, key: str) -> None:
        self._set("api_key", key)

    def get_transcription_backend(self) -> str:
        return str(self._read_all().get("transcription_backend", "http"))

    def set_transcription_backend(self, backend: str) -> None:
        self._set("transcription_backend", backend)

    def get_dashscope_api_key(self) -> str:
        data = self._read_all()
        return str(data.get("dashscope_api_key", "")) or os.getenv("DASHSCOPE_API_KEY", "")

    def set_dashscope_api_key(self, key: str) -> None:
        self._set("dashscope_api_key", key)

    def get_min_audio_bytes(self) -> int:
        value = self._read_all().get("min_audio_bytes", DEFAULT_MIN_AUDIO_BYTES)
        try:
            return max(0, int(value))
        except (TypeError, ValueError):
            return DEFAULT_MIN_AUDIO_BYTES

    def set_min_audio_bytes(self, value: int) -> None:
        self._set("min_audio_bytes", value)

    def get_auto_submit_delay_ms(self) -> int:
        value = self._read_all().get("auto_submit_delay_ms", 0)
        try:
            return max(0, int(value))
        except (TypeError, ValueError):
            return 0

    def set_auto_submit_delay_ms(self, value: int) -> None:
        self._set("auto_submit_delay_ms", value)

    def get_transcription_timeout_s(self) -> float:
        value = self._read_all().get("transcription_timeout_s", DEFAULT_TIMEOUT_S)
        try:
            return float(value)
        except (TypeError, ValueError):
            return DEFAULT_TIMEOUT_S

    def set_transcription_timeout_s(self, value: float) -> None:
        self._set("transcription_timeout_s", value)

    def _set(self, key: str, value: object) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def _read_all(self) -> dict:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (json.JSONDecodeError, OSError):
            return {}
        return data if isinstance(data, dict) else {}

    def _write_all(self, data: dict) -> None:
        self._path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
