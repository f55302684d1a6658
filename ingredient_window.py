"""Ingredient input window with voice capture controls."""

from __future__ import annotations

from typing import Callable, Optional

from models import DietType, Recipe

try:
    from PySide6.QtCore import QTimer
    from PySide6.QtWidgets import (
        QButtonGroup,
        QHBoxLayout,
        QLabel,
        QLineEdit,
        QPushButton,
        QRadioButton,
        QTextEdit,
        QVBoxLayout,
        QWidget,
    )
except Exception:  # pragma: no cover
    QTimer = None  # type: ignore
    QButtonGroup = QHBoxLayout = QLabel = QLineEdit = None  # type: ignore
    QPushButton = QRadioButton = QTextEdit = QVBoxLayout = None  # type: ignore
    QWidget = object  # type: ignore

MIC_IDLE = "🎙️ Speak"
MIC_RECORDING = "⏹ Stop"


def format_recipe(recipe: Recipe) -> str:
    lines = [recipe.name, ""]
    meta = [recipe.category, recipe.diet_type.value, recipe.cooking_method]
    if recipe.prep_time:
        meta.append(f"{recipe.prep_time} min")
    lines.append(" · ".join(meta))
    if recipe.macros:
        m = recipe.macros
        lines.append(f"Protein {m.protein:g}g · Fat {m.fat:g}g · Carbs {m.carbs:g}g")
    lines += ["", "Ingredients:"]
    lines += [f"  • {item}" for item in recipe.ingredients]
    lines += ["", "Instructions:"]
    lines += [f"  {i}. {step}" for i, step in enumerate(recipe.instructions, 1)]
    return "\n".join(lines)


class IngredientWindow(QWidget):
    def __init__(
        self,
        on_mic: Callable[[], None],
        on_cancel: Callable[[], None],
        on_submit: Callable[[str, DietType], None],
    ) -> None:
        if QTimer is None:
            raise RuntimeError("PySide6 is not installed")
        super().__init__()
        self.setWindowTitle("Carnivoice")
        self.setMinimumWidth(520)
        self._on_submit = on_submit
        self._submit_timer: Optional[QTimer] = None
        self._voice_available = True

        title = QLabel("What ingredients do you have?")
        title.setStyleSheet("font-size: 18px; font-weight: 600;")

        self._ingredients = QLineEdit()
        self._ingredients.setPlaceholderText("Ex.: 300g of steak, eggs, butter...")
        self._ingredients.returnPressed.connect(self.submit)
        self._ingredients.textEdited.connect(lambda _text: self._cancel_submit_timer())

        self._mic_button = QPushButton(MIC_IDLE)
        self._mic_button.clicked.connect(on_mic)
        self._cancel_button = QPushButton("Cancel")
        self._cancel_button.clicked.connect(on_cancel)
        self._cancel_button.setEnabled(False)

        input_row = QHBoxLayout()
        input_row.addWidget(self._ingredients, 1)
        input_row.addWidget(self._mic_button)
        input_row.addWidget(self._cancel_button)

        self._strict = QRadioButton("Strict")
        self._flexible = QRadioButton("Flexible")
        self._strict.setChecked(True)
        self._diet_group = QButtonGroup(self)
        self._diet_group.addButton(self._strict)
        self._diet_group.addButton(self._flexible)
        diet_row = QHBoxLayout()
        diet_row.addWidget(QLabel("Diet:"))
        diet_row.addWidget(self._strict)
        diet_row.addWidget(self._flexible)
        diet_row.addStretch(1)

        self._generate_button = QPushButton("Generate Recipe")
        self._generate_button.clicked.connect(self.submit)

        self._status = QLabel("")
        self._status.setWordWrap(True)

        self._recipe_view = QTextEdit()
        self._recipe_view.setReadOnly(True)

        layout = QVBoxLayout()
        layout.addWidget(title)
        layout.addLayout(input_row)
        layout.addLayout(diet_row)
        layout.addWidget(self._generate_button)
        layout.addWidget(self._status)
        layout.addWidget(self._recipe_view, 1)
        self.setLayout(layout)

    @property
    def diet_type(self) -> DietType:
        return DietType.FLEXIBLE if self._flexible.isChecked() else DietType.STRICT

    def disable_voice(self, reason: str) -> None:
        self._voice_available = False
        self._mic_button.setEnabled(False)
        self._mic_button.setToolTip(reason)

    def set_recording(self, recording: bool) -> None:
        self._mic_button.setText(MIC_RECORDING if recording else MIC_IDLE)
        self._cancel_button.setEnabled(recording)

    def set_busy(self, busy: bool) -> None:
        self._mic_button.setEnabled(self._voice_available and not busy)
        self._generate_button.setEnabled(not busy)

    def append_ingredients(self, text: str) -> None:
        current = self._ingredients.text().strip()
        self._ingredients.setText(f"{current}, {text}" if current else text)

    def schedule_submit(self, delay_ms: int) -> None:
        """Submit the ingredients after ``delay_ms``; typing or a new submit cancels it."""
        self._cancel_submit_timer()
        self._submit_timer = QTimer(self)
        self._submit_timer.setSingleShot(True)
        self._submit_timer.timeout.connect(self.submit)
        self._submit_timer.start(delay_ms)

    def submit(self) -> None:
        self._cancel_submit_timer()
        text = self._ingredients.text().strip()
        if text:
            self._on_submit(text, self.diet_type)

    def show_status(self, text: str) -> None:
        self._status.setStyleSheet("color: palette(text);")
        self._status.setText(text)

    def show_error(self, text: str) -> None:
        self._status.setStyleSheet("color: #D9534F;")
        self._status.setText(f"⚠️ {text}")

    def show_recipe(self, recipe: Recipe) -> None:
        self._recipe_view.setPlainText(format_recipe(recipe))

    def _cancel_submit_timer(self) -> None:
        if self._submit_timer is not None:
            self._submit_timer.stop()
            self._submit_timer = None
