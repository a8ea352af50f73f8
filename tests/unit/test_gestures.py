"""Tests for multi-tap detection."""

import asyncio

import pytest

from visionassist.assistant import TapDetector

WINDOW_MS = 50
SETTLE = 0.15


class Actions:
    def __init__(self):
        self.singles = 0
        self.settings = 0

    def single(self):
        self.singles += 1

    async def open_settings(self):
        self.settings += 1


@pytest.fixture
def actions() -> Actions:
    return Actions()


@pytest.fixture
def detector(actions: Actions) -> TapDetector:
    return TapDetector(
        on_single=actions.single,
        on_settings=actions.open_settings,
        window_ms=WINDOW_MS,
        settings_taps=3,
    )


class TestTapDetector:
    """Tests for TapDetector."""

    @pytest.mark.asyncio
    async def test_single_tap(self, detector, actions):
        """Test one tap fires the single action once the window ends."""
        detector.tap()
        assert actions.singles == 0
        assert detector.pending_taps == 1

        await asyncio.sleep(SETTLE)

        assert actions.singles == 1
        assert actions.settings == 0
        assert detector.pending_taps == 0

    @pytest.mark.asyncio
    async def test_double_tap_is_one_single(self, detector, actions):
        """Test two quick taps still fire only one single action."""
        detector.tap()
        await asyncio.sleep(0.01)
        detector.tap()

        await asyncio.sleep(SETTLE)

        assert actions.singles == 1
        assert actions.settings == 0

    @pytest.mark.asyncio
    async def test_triple_tap(self, detector, actions):
        """Test three quick taps fire the settings action and nothing else."""
        for _ in range(3):
            detector.tap()

        await asyncio.sleep(SETTLE)

        assert actions.settings == 1
        assert actions.singles == 0

    @pytest.mark.asyncio
    async def test_fourth_tap_starts_new_burst(self, detector, actions):
        """Test a tap right after a triple tap counts from one again."""
        for _ in range(4):
            detector.tap()

        await asyncio.sleep(SETTLE)

        assert actions.settings == 1
        assert actions.singles == 1

    @pytest.mark.asyncio
    async def test_separate_taps(self, detector, actions):
        """Test taps further apart than the window are separate singles."""
        detector.tap()
        await asyncio.sleep(SETTLE)
        detector.tap()
        await asyncio.sleep(SETTLE)

        assert actions.singles == 2
        assert actions.settings == 0

    @pytest.mark.asyncio
    async def test_reset(self, detector, actions):
        """Test pending taps can be discarded."""
        detector.tap()
        detector.tap()
        detector.reset()

        await asyncio.sleep(SETTLE)

        assert actions.singles == 0
        assert actions.settings == 0
        assert detector.pending_taps == 0

    @pytest.mark.asyncio
    async def test_custom_tap_count(self, actions):
        detector = TapDetector(
            on_single=actions.single,
            on_settings=actions.open_settings,
            window_ms=WINDOW_MS,
            settings_taps=2,
        )

        detector.tap()
        detector.tap()
        await asyncio.sleep(SETTLE)

        assert actions.settings == 1
        assert actions.singles == 0
