"""Pytest configuration and fixtures for Vision Assistant tests."""

from __future__ import annotations

import asyncio
import io
from pathlib import Path

import pytest

from visionassist.analysis import AnalysisResult, Description
from visionassist.camera import Frame
from visionassist.common.events import EventBus
from visionassist.config import Config, ProviderConfig


def pytest_addoption(parser: pytest.Parser) -> None:
    """Add custom command line options."""
    parser.addoption(
        "--hil",
        action="store_true",
        default=False,
        help="Run hardware-in-the-loop tests (requires a real camera)",
    )
    parser.addoption(
        "--slow",
        action="store_true",
        default=False,
        help="Run slow tests",
    )


def pytest_configure(config: pytest.Config) -> None:
    """Configure test markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "hil: Hardware-in-the-loop tests")
    config.addinivalue_line("markers", "slow: Slow running tests")


def pytest_collection_modifyitems(
    config: pytest.Config, items: list[pytest.Item]
) -> None:
    """Modify test collection based on options."""
    if not config.getoption("--hil"):
        skip_hil = pytest.mark.skip(reason="Need --hil option to run")
        for item in items:
            if "hil" in item.keywords:
                item.add_marker(skip_hil)

    if not config.getoption("--slow"):
        skip_slow = pytest.mark.skip(reason="Need --slow option to run")
        for item in items:
            if "slow" in item.keywords:
                item.add_marker(skip_slow)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's own settings out of the tests."""
    for name in ("VISIONASSIST_API_KEY", "VISIONASSIST_PROVIDER", "VISIONASSIST_MOCK_MODE"):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def config(tmp_path: Path) -> Config:
    """Get test configuration."""
    cfg = Config()
    cfg.mock_mode = True
    cfg.device.mode = "development"
    cfg.device.log_level = "DEBUG"
    cfg.settings_path = tmp_path / "settings.yaml"
    cfg.analysis.simulation_delay_seconds = 0
    cfg.analysis.timeout_seconds = 2.0
    return cfg


@pytest.fixture
def hil_config(request: pytest.FixtureRequest, tmp_path: Path) -> Config:
    """Get configuration for HIL tests (real camera)."""
    cfg = Config()
    cfg.mock_mode = not request.config.getoption("--hil")
    cfg.settings_path = tmp_path / "settings.yaml"
    return cfg


@pytest.fixture
def event_bus() -> EventBus:
    """Create a fresh event bus for each test."""
    return EventBus()


# Service fixtures


@pytest.fixture
async def camera_service(config: Config):
    """Create Camera service for testing."""
    from visionassist.camera import CameraService

    service = CameraService(config, mock_mode=config.mock_mode)
    await service.setup()
    yield service
    await service.teardown()


@pytest.fixture
async def speech_service(config: Config):
    """Create Speech service for testing."""
    from visionassist.speech import SpeechService

    service = SpeechService(config, mock_mode=config.mock_mode)
    await service.setup()
    yield service
    await service.teardown()


# Fakes for the orchestrator collaborators


class FakeCamera:
    """Frame source returning a fixed frame (or nothing)."""

    def __init__(self, frame: Frame | None = None, error: Exception | None = None) -> None:
        self.frame = frame
        self.error = error
        self.captures = 0

    def capture_frame(self) -> Frame | None:
        self.captures += 1
        if self.error:
            raise self.error
        return self.frame


class FakeSpeech:
    """Speech output that records every utterance."""

    def __init__(self) -> None:
        self.spoken: list[str] = []

    def speak(self, text: str, locale: str | None = None) -> None:
        self.spoken.append(text)


class FakeAnalyzer:
    """Analyzer returning a canned result, optionally held until released."""

    def __init__(
        self,
        result: AnalysisResult | None = None,
        error: Exception | None = None,
    ) -> None:
        self.result = result or Description(text="A table with a cup on it.", provider="gemini")
        self.error = error
        self.calls: list[tuple[Frame | str, str, ProviderConfig]] = []
        self.gate: asyncio.Event | None = None
        self.entered = asyncio.Event()

    async def analyze(
        self, frame: Frame | str, query: str, provider_config: ProviderConfig
    ) -> AnalysisResult:
        self.calls.append((frame, query, provider_config))
        self.entered.set()
        if self.gate is not None:
            await self.gate.wait()
        if self.error:
            raise self.error
        return self.result


@pytest.fixture
def mock_image_bytes() -> bytes:
    """Create mock JPEG image."""
    from PIL import Image

    img = Image.new("RGB", (640, 480), color=(73, 109, 137))
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=85)
    return buffer.getvalue()


@pytest.fixture
def frame(mock_image_bytes: bytes) -> Frame:
    """A captured frame."""
    return Frame(data=mock_image_bytes, width=640, height=480)


@pytest.fixture
def fake_camera(frame: Frame) -> FakeCamera:
    return FakeCamera(frame)


@pytest.fixture
def fake_speech() -> FakeSpeech:
    return FakeSpeech()


@pytest.fixture
def fake_analyzer() -> FakeAnalyzer:
    return FakeAnalyzer()


@pytest.fixture
def credential() -> ProviderConfig:
    return ProviderConfig(provider="gemini", api_key="test-key")
