"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional


class SessionState(str, Enum):
    IDLE = "IDLE"
    RECORDING = "RECORDING"
    STOPPING = "STOPPING"
    TRANSCRIBING = "TRANSCRIBING"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    FAILED = "FAILED"


class DietType(str, Enum):
    STRICT = "strict"
    FLEXIBLE = "flexible"


RECIPE_CATEGORIES = (
    "quick-grill",
    "carnivore-breakfast",
    "bbq",
    "offal",
    "pan-classics",
)

COOKING_METHODS = ("grill", "pan", "oven", "slow-cook")


@dataclass(frozen=True)
class CaptureCapabilities:
    secure_context: bool
    has_device_access: bool
    has_recorder: bool
    supported_encodings: frozenset[str] = frozenset()

    @property
    def is_usable(self) -> bool:
        return (
            self.secure_context
            and self.has_device_access
            and self.has_recorder
            and bool(self.supported_encodings)
        )


@dataclass
class RecordingSession:
    status: SessionState = SessionState.IDLE
    chunks: list[bytes] = field(default_factory=list)
    encoding: str = ""
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    transcript: Optional[str] = None

    def audio_bytes(self) -> bytes:
        """Concatenate chunks in arrival order."""
        return b"".join(self.chunks)


@dataclass
class Macros:
    protein: float = 0.0
    fat: float = 0.0
    carbs: float = 0.0


@dataclass
class Recipe:
    name: str
    ingredients: list[str]
    instructions: list[str]
    diet_type: DietType
    category: str
    id: str = ""
    image: Optional[str] = None
    macros: Optional[Macros] = None
    prep_time: Optional[int] = None
    cooking_method: str = "pan"
