"""Query orchestration: capture, analyze, speak - one request at a time."""

from __future__ import annotations

import time
from enum import Enum
from typing import Any, Callable, Protocol

from visionassist.analysis import AnalysisResult, Description
from visionassist.assistant.gestures import Gesture, GestureKind, TapDetector
from visionassist.camera import Frame
from visionassist.common import get_logger
from visionassist.common.events import EventBus
from visionassist.config import GestureConfig, ProviderConfig

DEFAULT_QUERY = "Describe what is in front of me."

MSG_READY = "Vision Assistant ready. Tap the screen to describe what is in front of you."
MSG_INITIAL_RESPONSE = "Tap the screen or ask a question."
MSG_NEED_CREDENTIAL = "Please set your API Key in settings first."
MSG_ANALYZING = "Analyzing..."
MSG_NO_FRAME = "I cannot see anything. Please check the camera."
MSG_APOLOGY = "Sorry, something went wrong."
MSG_VOICE_DISABLED = "Voice commands are currently disabled."


class OrchestratorState(Enum):
    """Where the current request cycle stands."""

    IDLE = "idle"
    AWAITING_FRAME = "awaiting_frame"
    AWAITING_ANALYSIS = "awaiting_analysis"


class FrameSource(Protocol):
    def capture_frame(self) -> Frame | None: ...


class SpeechOutput(Protocol):
    def speak(self, text: str, locale: str | None = None) -> Any: ...


class Analyzer(Protocol):
    async def analyze(
        self, frame: Frame | str, query: str, provider_config: ProviderConfig
    ) -> AnalysisResult: ...


class QueryOrchestrator:
    """State machine coordinating camera, analysis and speech.

    At most one request is in flight. A trigger that arrives while a cycle
    is running is dropped, not queued; the user can trigger again once the
    assistant is idle.
    """

    def __init__(
        self,
        camera: FrameSource,
        analysis: Analyzer,
        speech: SpeechOutput,
        settings: Callable[[], ProviderConfig],
        events: EventBus | None = None,
        gestures: GestureConfig | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            camera: Source of still frames.
            analysis: Client that describes frames.
            speech: Spoken output.
            settings: Returns the provider settings to use for a new cycle.
            events: Bus for state, response and settings notifications.
            gestures: Tap detection settings.
        """
        self._camera = camera
        self._analysis = analysis
        self._speech = speech
        self._settings = settings
        self._events = events or EventBus()
        self.logger = get_logger("orchestrator")

        gestures = gestures or GestureConfig()
        self._taps = TapDetector(
            on_single=self.trigger,
            on_settings=self.show_settings,
            window_ms=gestures.tap_window_ms,
            settings_taps=gestures.settings_tap_count,
        )

        self._state = OrchestratorState.IDLE
        self._last_response = MSG_INITIAL_RESPONSE
        self._settings_open = False

    @property
    def state(self) -> OrchestratorState:
        return self._state

    @property
    def last_response(self) -> str:
        """Most recent description or error text, for display."""
        return self._last_response

    @property
    def settings_open(self) -> bool:
        return self._settings_open

    @property
    def events(self) -> EventBus:
        return self._events

    @property
    def taps(self) -> TapDetector:
        return self._taps

    async def trigger(self, query: str | None = None) -> bool:
        """Run one capture-analyze-speak cycle.

        Args:
            query: The user's question. Defaults to a scene description.

        Returns:
            True if a cycle ran, False if the trigger was dropped, the
            settings could not be read, or the user was sent to the
            settings instead.
        """
        if self._state is not OrchestratorState.IDLE:
            self.logger.info("trigger_dropped", state=self._state.value)
            return False

        # Settings are read once; changes apply from the next cycle
        try:
            provider_config = self._settings()
        except Exception as e:
            self.logger.exception("settings_unreadable", error=str(e))
            self._last_response = f"Error: {e}"
            self._speech.speak(MSG_APOLOGY)
            await self._events.emit(
                "assistant.response",
                "orchestrator",
                text=self._last_response,
                ok=False,
            )
            return False

        if not provider_config.has_credential:
            self.logger.info("credential_missing", provider=provider_config.provider)
            self._speech.speak(MSG_NEED_CREDENTIAL)
            await self.show_settings()
            return False

        query = query or DEFAULT_QUERY
        start_time = time.time()
        ok = False
        self._set_state(OrchestratorState.AWAITING_FRAME)

        try:
            await self._emit_state()
            self._speech.speak(MSG_ANALYZING)

            frame = self._camera.capture_frame()
            if frame is None:
                self.logger.info("no_frame")
                self._speech.speak(MSG_NO_FRAME)
            else:
                self._set_state(OrchestratorState.AWAITING_ANALYSIS)
                await self._emit_state()

                result = await self._analysis.analyze(frame, query, provider_config)
                if isinstance(result, Description):
                    ok = True
                    self._last_response = result.text
                    self._speech.speak(result.text)
                else:
                    self._last_response = f"Error: {result}"
                    self._speech.speak(MSG_APOLOGY)

        except Exception as e:
            self.logger.exception("query_failed", error=str(e))
            self._last_response = f"Error: {e}"
            self._speech.speak(MSG_APOLOGY)

        finally:
            self._set_state(OrchestratorState.IDLE)

        self.logger.info(
            "query_complete",
            query=query,
            ok=ok,
            latency_ms=int((time.time() - start_time) * 1000),
        )
        await self._events.emit(
            "assistant.response",
            "orchestrator",
            text=self._last_response,
            ok=ok,
        )
        await self._emit_state()
        return True

    async def show_settings(self) -> None:
        """Ask the presentation surface to open the settings."""
        self._taps.reset()
        self._settings_open = True
        self.logger.info("settings_requested")
        await self._events.emit("ui.settings", "orchestrator", open=True)

    async def close_settings(self) -> None:
        self._settings_open = False
        await self._events.emit("ui.settings", "orchestrator", open=False)

    async def handle_gesture(self, gesture: Gesture) -> None:
        """Dispatch one gesture from the presentation surface."""
        self.logger.debug("gesture", kind=gesture.kind.value)

        if gesture.kind is GestureKind.TAP:
            if self._settings_open:
                return
            self._taps.tap()
        elif gesture.kind is GestureKind.DESCRIBE:
            await self.trigger()
        elif gesture.kind is GestureKind.ASK:
            await self.trigger(gesture.query)
        elif gesture.kind is GestureKind.SETTINGS:
            await self.show_settings()
        elif gesture.kind is GestureKind.VOICE_TOGGLE:
            self._speech.speak(MSG_VOICE_DISABLED)

    def _set_state(self, state: OrchestratorState) -> None:
        if state is not self._state:
            self.logger.debug("state_changed", old=self._state.value, new=state.value)
        self._state = state

    async def _emit_state(self) -> None:
        await self._events.emit("assistant.state", "orchestrator", state=self._state.value)
