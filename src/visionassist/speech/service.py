"""Speech output service implementation."""

from __future__ import annotations

import asyncio
import shutil
from dataclasses import dataclass, field

from visionassist.common import BaseService, get_logger
from visionassist.config import Config


def voice_for_locale(locale: str) -> str:
    """Map a BCP 47 locale to an espeak-ng voice name (``en-US`` -> ``en-us``)."""
    return locale.replace("_", "-").lower()


class SpeechBackend:
    """Abstract text-to-speech backend."""

    async def setup(self) -> None:
        """Setup speech backend."""
        pass

    async def teardown(self) -> None:
        """Teardown speech backend."""
        pass

    async def say(self, text: str, locale: str, speed: float = 1.0) -> None:
        """Speak text and return once playback has finished.

        Cancelling the awaiting task must cut playback short.
        """
        raise NotImplementedError

    def get_status(self) -> dict:
        raise NotImplementedError


@dataclass
class MockSpeechBackend(SpeechBackend):
    """Mock speech backend that records what would have been heard."""

    seconds_per_char: float = 0.0
    started: list[str] = field(default_factory=list)
    completed: list[str] = field(default_factory=list)
    interrupted: list[str] = field(default_factory=list)

    async def say(self, text: str, locale: str, speed: float = 1.0) -> None:
        self.started.append(text)
        try:
            await asyncio.sleep(len(text) * self.seconds_per_char / speed)
        except asyncio.CancelledError:
            self.interrupted.append(text)
            raise
        self.completed.append(text)

    def get_status(self) -> dict:
        return {
            "tts_available": True,
            "engine": "mock",
            "utterances": len(self.started),
        }


class EspeakSpeechBackend(SpeechBackend):
    """Speech backend driving the espeak-ng command line synthesizer."""

    def __init__(self, config: Config) -> None:
        self.config = config
        self._binary: str | None = None
        self.logger = get_logger("espeak_speech_backend")

    async def setup(self) -> None:
        self._binary = shutil.which(self.config.speech.engine)
        if self._binary is None:
            self.logger.warning("tts_engine_not_available", engine=self.config.speech.engine)

    async def say(self, text: str, locale: str, speed: float = 1.0) -> None:
        if self._binary is None:
            self.logger.info("tts_skipped", text=text)
            return

        voice = self.config.speech.voice or voice_for_locale(locale)
        proc = await asyncio.create_subprocess_exec(
            self._binary,
            "-v", voice,
            "-s", str(int(175 * speed)),
            text,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )

        try:
            _, stderr = await proc.communicate()
        except asyncio.CancelledError:
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise

        if proc.returncode != 0:
            self.logger.warning(
                "tts_failed",
                returncode=proc.returncode,
                stderr=stderr.decode(errors="replace").strip(),
            )

    def get_status(self) -> dict:
        return {
            "tts_available": self._binary is not None,
            "engine": self.config.speech.engine,
            "voice": self.config.speech.voice or voice_for_locale(self.config.speech.locale),
        }


class SpeechService(BaseService):
    """Speech output service.

    Only one utterance plays at a time: ``speak`` interrupts whatever is
    still playing, so the most recent message is the one heard.
    """

    def __init__(
        self,
        config: Config | None = None,
        mock_mode: bool = False,
        backend: SpeechBackend | None = None,
    ) -> None:
        super().__init__("speech", config, mock_mode)
        self._backend = backend
        self._current: asyncio.Task | None = None

    @property
    def backend(self) -> SpeechBackend | None:
        return self._backend

    @property
    def speaking(self) -> bool:
        return self._current is not None and not self._current.done()

    async def setup(self) -> None:
        """Setup Speech service."""
        self.logger.info("speech_service_setup", mock_mode=self.mock_mode)

        if self._backend is None:
            if self.mock_mode:
                self._backend = MockSpeechBackend()
            else:
                self._backend = EspeakSpeechBackend(self.config)

        await self._backend.setup()

    async def teardown(self) -> None:
        """Teardown Speech service."""
        self.logger.info("speech_service_teardown")
        self.stop_speaking()
        if self._current is not None:
            await asyncio.gather(self._current, return_exceptions=True)
            self._current = None

        if self._backend:
            await self._backend.teardown()

    def speak(self, text: str, locale: str | None = None) -> asyncio.Task:
        """Start speaking text, interrupting any utterance in progress.

        Args:
            text: Text to speak.
            locale: Language of the text (default from config).

        Returns:
            Task that completes when playback finishes or is interrupted.
        """
        if not self._backend:
            raise RuntimeError("Speech backend not initialized")

        self.stop_speaking()

        locale = locale or self.config.speech.locale
        self.logger.info("speaking", text=text, locale=locale)
        self._current = asyncio.create_task(
            self._play(text, locale),
            name="speech-utterance",
        )
        return self._current

    async def _play(self, text: str, locale: str) -> None:
        try:
            await self._backend.say(text, locale, self.config.speech.speed)
        except asyncio.CancelledError:
            self.logger.debug("utterance_interrupted", text=text)
        except Exception as e:
            self.logger.exception("utterance_failed", error=str(e))

    def stop_speaking(self) -> None:
        """Cut off the current utterance, if any."""
        if self._current is not None and not self._current.done():
            self._current.cancel()

    async def wait(self) -> None:
        """Wait until the current utterance has finished."""
        if self._current is not None:
            await asyncio.gather(self._current, return_exceptions=True)

    def get_status(self) -> dict:
        """Get speech status."""
        if not self._backend:
            return {"tts_available": False}
        status = self._backend.get_status()
        status["speaking"] = self.speaking
        return status
