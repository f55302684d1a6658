"""Protocol interfaces used by RecordingController and the app shell."""

from __future__ import annotations

from typing import Callable, Protocol

from models import DietType, Recipe

ChunkCallback = Callable[[bytes], None]


class CaptureDevice(Protocol):
    def open(self, encoding: str, on_chunk: ChunkCallback, timeslice_ms: int) -> None: ...

    def close(self) -> None: ...


class Transcriber(Protocol):
    def transcribe(self, buffer: bytes, encoding: str) -> str: ...


class RecipeGenerator(Protocol):
    def generate(self, ingredients: str, diet_type: DietType) -> Recipe: ...


class ConfigStore(Protocol):
    def get_transcription_url(self) -> str: ...

    def get_recipe_url(self) -> str: ...

    def get_api_key(self) -> str: ...

    def set_api_key(self, key: str) -> None: ...

    def get_transcription_backend(self) -> str: ...

    def get_dashscope_api_key(self) -> str: ...

    def get_min_audio_bytes(self) -> int: ...

    def get_auto_submit_delay_ms(self) -> int: ...

    def get_transcription_timeout_s(self) -> float: ...
