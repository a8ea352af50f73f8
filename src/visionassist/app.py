"""Vision Assistant application - wires services to the orchestrator.

Usage:
    # With mock camera and speech (development)
    visionassist run --mock

    # With a real webcam and espeak-ng
    visionassist run
"""

from __future__ import annotations

import asyncio
import getpass

import httpx

from visionassist.analysis import AnalysisClient
from visionassist.assistant import Gesture, GestureKind, QueryOrchestrator
from visionassist.assistant.orchestrator import MSG_READY
from visionassist.camera import CameraService
from visionassist.common.events import Event, EventBus
from visionassist.common.logging import get_logger, setup_logging
from visionassist.config import Config, ProviderConfig, SettingsStore, load_config
from visionassist.speech import SpeechService

CONSOLE_HELP = """
[Vision Assistant]
  Enter        tap the screen (tap 3 times quickly for settings)
  d            describe button
  ? <question> ask about the scene
  s            open settings
  c <index>    switch camera
  v            voice commands
  q            quit
"""


class VisionAssistant:
    """Main application: camera, speech and analysis behind one orchestrator.

    Example:
        async with VisionAssistant(mock_mode=True) as assistant:
            await assistant.orchestrator.trigger()
            print(assistant.orchestrator.last_response)
    """

    def __init__(
        self,
        config: Config | None = None,
        mock_mode: bool | None = None,
        camera: CameraService | None = None,
        speech: SpeechService | None = None,
        analysis: AnalysisClient | None = None,
        settings_store: SettingsStore | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        """Initialize the app.

        Args:
            config: Configuration (loaded from env/file if None).
            mock_mode: Use mock camera and speech backends.
            camera: Camera service override.
            speech: Speech service override.
            analysis: Analysis client override.
            settings_store: Where provider settings are persisted.
            transport: HTTP transport for the analysis client (tests).
        """
        self.config = config or load_config()
        if mock_mode is not None:
            self.config.mock_mode = mock_mode
        self.mock_mode = self.config.mock_mode

        setup_logging(
            level=self.config.device.log_level,
            json_output=self.config.device.mode == "production",
            service_name=self.config.device.name,
        )
        self.logger = get_logger("visionassist", mock_mode=self.mock_mode)

        self.events = EventBus()
        self.camera = camera or CameraService(self.config, mock_mode=self.mock_mode)
        self.speech = speech or SpeechService(self.config, mock_mode=self.mock_mode)
        self.analysis = analysis or AnalysisClient(self.config.analysis, transport=transport)
        self.settings_store = settings_store or SettingsStore(
            self.config.settings_path,
            defaults=self.config.provider_config(),
        )
        self.orchestrator = QueryOrchestrator(
            camera=self.camera,
            analysis=self.analysis,
            speech=self.speech,
            settings=self.settings_store.load,
            events=self.events,
            gestures=self.config.gestures,
        )

        self._running = False
        self._tasks: set[asyncio.Task] = set()

    async def start(self, announce: bool = True) -> None:
        """Start services and greet the user."""
        self.logger.info("app_starting")
        await self.camera.start()
        await self.speech.start()
        self._running = True
        self.logger.info("app_started")

        if announce:
            self.speech.speak(MSG_READY)

    async def stop(self) -> None:
        """Stop services, waiting for pending gesture tasks first."""
        self.logger.info("app_stopping")
        self._running = False
        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)
        await self.speech.stop()
        await self.camera.stop()
        self.logger.info("app_stopped")

    async def __aenter__(self) -> VisionAssistant:
        await self.start(announce=False)
        return self

    async def __aexit__(self, *args) -> None:
        await self.stop()

    def dispatch(self, gesture: Gesture) -> asyncio.Task:
        """Hand a gesture to the orchestrator without waiting for the cycle."""
        task = asyncio.create_task(self.orchestrator.handle_gesture(gesture))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def save_settings(self, settings: ProviderConfig) -> None:
        self.settings_store.save(settings)
        self.logger.info("settings_saved", provider=settings.provider)

    async def run_console(self) -> None:
        """Run with the terminal as the gesture surface."""
        await self.start()
        unsubscribers = [
            self.events.subscribe("assistant.response", self._print_response),
            self.events.subscribe("ui.settings", self._print_settings_notice),
        ]

        print(CONSOLE_HELP)
        try:
            while self._running:
                try:
                    line = await asyncio.to_thread(input, "> ")
                except EOFError:
                    break

                command = line.strip()
                if command == "q":
                    break

                if self.orchestrator.settings_open:
                    await self._console_settings()
                elif command == "s":
                    await self.orchestrator.show_settings()
                    await self._console_settings()
                elif command == "":
                    self.dispatch(Gesture(GestureKind.TAP))
                elif command == "d":
                    self.dispatch(Gesture(GestureKind.DESCRIBE))
                elif command.startswith("?"):
                    self.dispatch(Gesture(GestureKind.ASK, query=command[1:].strip() or None))
                elif command == "v":
                    self.dispatch(Gesture(GestureKind.VOICE_TOGGLE))
                elif command.startswith("c "):
                    self._switch_camera(command[2:].strip())
                else:
                    print(CONSOLE_HELP)
        finally:
            for unsubscribe in unsubscribers:
                unsubscribe()
            await self.stop()

    async def _console_settings(self) -> None:
        current = self.settings_store.load()
        print(f"\n[Settings] provider: {current.provider}")
        provider = (await asyncio.to_thread(input, "Provider (gemini/openai): ")).strip()
        if provider not in ("gemini", "openai"):
            provider = current.provider
        api_key = (await asyncio.to_thread(getpass.getpass, "API key (blank keeps current): ")).strip()

        self.save_settings(
            ProviderConfig(provider=provider, api_key=api_key or current.api_key)
        )
        await self.orchestrator.close_settings()
        print("Settings saved.\n")

    def _switch_camera(self, value: str) -> None:
        try:
            index = int(value)
        except ValueError:
            print(f"Not a camera index: {value}")
            return
        self.camera.switch_device(index)

    async def _print_response(self, event: Event) -> None:
        print(f"\n{event.data['text']}\n")

    async def _print_settings_notice(self, event: Event) -> None:
        if event.data["open"]:
            print("\nSettings requested. Press Enter to configure.")


async def main(mock: bool = False, config: Config | None = None) -> None:
    """Run the console assistant."""
    assistant = VisionAssistant(config=config, mock_mode=mock)
    await assistant.run_console()
