"""Speech service - spoken output."""

from visionassist.speech.service import (
    EspeakSpeechBackend,
    MockSpeechBackend,
    SpeechBackend,
    SpeechService,
)

__all__ = [
    "EspeakSpeechBackend",
    "MockSpeechBackend",
    "SpeechBackend",
    "SpeechService",
]
