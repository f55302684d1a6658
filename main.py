"""Application entrypoint."""

from __future__ import annotations

import logging
import os
import sys
import threading

from capabilities import probe_capabilities
from config import JsonConfigStore
from errors import (
    ERROR_MESSAGES,
    INSECURE_CONTEXT,
    NOT_SUPPORTED,
    SERVICE_ERROR,
    VoiceCaptureError,
)
from ingredient_window import IngredientWindow
from models import DietType, Recipe, SessionState
from recipe_client import HttpRecipeGenerator
from recorder import SoundDeviceCapture
from session_controller import RecordingController
from transcriber import build_transcriber

try:
    from PySide6.QtCore import QObject, Signal
    from PySide6.QtWidgets import QApplication
except Exception as exc:  # pragma: no cover
    raise SystemExit(f"PySide6 is required to run the desktop app: {exc}")

logger = logging.getLogger(__name__)

DASHSCOPE_ENDPOINT = "https://dashscope.aliyuncs.com"


class UIBridge(QObject):
    state_signal = Signal(str, str)  # from_state, to_state
    transcript_signal = Signal(str)
    error_signal = Signal(str)
    recipe_signal = Signal(object)


class App:
    def __init__(self) -> None:
        self.app = QApplication(sys.argv)
        self.config_store = JsonConfigStore()
        self.ui = UIBridge()
        self.ui.state_signal.connect(self._on_state_change_ui)
        self.ui.transcript_signal.connect(self._on_transcript_ui)
        self.ui.error_signal.connect(self._on_error_ui)
        self.ui.recipe_signal.connect(self._on_recipe_ui)

        if self.config_store.get_transcription_backend() == "dashscope":
            endpoint = DASHSCOPE_ENDPOINT
        else:
            endpoint = self.config_store.get_transcription_url()
        capabilities = probe_capabilities(endpoint)

        self.transcriber = build_transcriber(self.config_store)
        self.controller = RecordingController(
            device=SoundDeviceCapture(),
            transcriber=self.transcriber,
            capabilities=capabilities,
            min_audio_bytes=self.config_store.get_min_audio_bytes(),
            on_state_change=self._on_state_change,
            on_transcription_complete=self._on_transcription_complete,
            on_transcription_error=self._on_transcription_error,
        )
        self.recipes = HttpRecipeGenerator(
            endpoint_url=self.config_store.get_recipe_url(),
            api_key=self.config_store.get_api_key(),
        )

        self.window = IngredientWindow(
            on_mic=self._on_mic,
            on_cancel=self.controller.cancel,
            on_submit=self._on_submit,
        )
        if not capabilities.is_usable:
            code = NOT_SUPPORTED if capabilities.secure_context else INSECURE_CONTEXT
            self.window.disable_voice(ERROR_MESSAGES[code])

    # ------------------------------------------------------------------
    # Callbacks (may run on worker threads → emit signals for UI thread)
    # ------------------------------------------------------------------

    def _on_state_change(self, from_state: SessionState, to_state: SessionState) -> None:
        self.ui.state_signal.emit(from_state.value, to_state.value)

    def _on_transcription_complete(self, text: str) -> None:
        self.ui.transcript_signal.emit(text)

    def _on_transcription_error(self, error: VoiceCaptureError) -> None:
        self.ui.error_signal.emit(error.message)

    # ------------------------------------------------------------------
    # UI thread handlers (safe for Qt)
    # ------------------------------------------------------------------

    def _on_state_change_ui(self, from_state: str, to_state: str) -> None:
        self.window.set_recording(to_state == SessionState.RECORDING.value)
        if to_state == SessionState.RECORDING.value:
            self.window.show_status("🎙️ Listening... press Stop when done.")
        elif to_state == SessionState.TRANSCRIBING.value:
            self.window.set_busy(True)
            self.window.show_status("Transcribing...")
        elif to_state == SessionState.CANCELLED.value:
            self.window.show_status("Recording cancelled.")
        elif from_state == SessionState.TRANSCRIBING.value:
            self.window.set_busy(False)

    def _on_transcript_ui(self, text: str) -> None:
        self.window.append_ingredients(text)
        self.window.show_status("Transcription added to ingredients.")
        # Hand-off complete; the session is done.
        self.controller.reset()
        delay_ms = self.config_store.get_auto_submit_delay_ms()
        if delay_ms > 0:
            self.window.schedule_submit(delay_ms)

    def _on_error_ui(self, msg: str) -> None:
        self.window.show_error(msg)

    def _on_recipe_ui(self, recipe: Recipe | None) -> None:
        self.window.set_busy(False)
        if recipe is None:
            return
        self.window.show_status(f"Recipe ready: {recipe.name}")
        self.window.show_recipe(recipe)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def _on_mic(self) -> None:
        state = self.controller.state
        if state == SessionState.RECORDING:
            # stop() blocks on transcription; keep it off the Qt main thread
            threading.Thread(target=self.controller.stop, daemon=True).start()
            return
        if state in (SessionState.COMPLETED, SessionState.FAILED):
            self.controller.reset()
        self.controller.start()

    def _on_submit(self, ingredients: str, diet_type: DietType) -> None:
        self.window.set_busy(True)
        self.window.show_status("Generating recipe...")
        threading.Thread(
            target=self._generate_recipe,
            args=(ingredients, diet_type),
            daemon=True,
        ).start()

    def _generate_recipe(self, ingredients: str, diet_type: DietType) -> None:
        try:
            recipe = self.recipes.generate(ingredients, diet_type)
        except VoiceCaptureError as exc:
            logger.warning("Recipe generation failed: %s: %s", exc.code, exc.message)
            self.ui.error_signal.emit(exc.message)
            self.ui.recipe_signal.emit(None)
            return
        except Exception:
            logger.exception("Recipe generation raised an unexpected error")
            self.ui.error_signal.emit(ERROR_MESSAGES[SERVICE_ERROR])
            self.ui.recipe_signal.emit(None)
            return
        self.ui.recipe_signal.emit(recipe)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> int:
        self.window.show()
        self.app.aboutToQuit.connect(self.quit)
        return self.app.exec()

    def quit(self) -> None:
        self.controller.cancel()
        self.recipes.close()
        close = getattr(self.transcriber, "close", None)
        if close is not None:
            close()


def main() -> int:
    logging.basicConfig(
        level=os.getenv("CARNIVOICE_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    app = App()
    return app.run()


if __name__ == "__main__":
    raise SystemExit(main())
