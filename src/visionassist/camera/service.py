"""Camera service implementation."""

from __future__ import annotations

import asyncio
import base64
import io
import threading
import time
import uuid
from dataclasses import dataclass, field

import cv2
import numpy as np
from PIL import Image

from visionassist.common import BaseService, get_logger
from visionassist.config import Config


@dataclass(frozen=True)
class Frame:
    """One encoded still image taken from the capture device."""

    data: bytes
    width: int
    height: int
    mime_type: str = "image/jpeg"
    frame_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    timestamp: float = field(default_factory=time.time)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"


def encode_jpeg(rgb: np.ndarray, quality: int = 80) -> Frame | None:
    """Encode an RGB array as a JPEG frame.

    Returns None for an empty array (a device that has not delivered a
    picture yet reports zero width or height).
    """
    if rgb.ndim < 2 or rgb.shape[0] == 0 or rgb.shape[1] == 0:
        return None

    img = Image.fromarray(rgb)
    buffer = io.BytesIO()
    img.save(buffer, format="JPEG", quality=quality)
    return Frame(data=buffer.getvalue(), width=img.width, height=img.height)


@dataclass
class CameraDevice:
    """A capture device that could be opened."""

    index: int
    width: int
    height: int
    active: bool = False


class CameraBackend:
    """Abstract camera backend."""

    async def setup(self) -> None:
        """Setup camera."""
        pass

    async def teardown(self) -> None:
        """Teardown camera."""
        pass

    def capture(self, quality: int = 80) -> Frame | None:
        """Encode the most recent picture, or None if there is none yet."""
        raise NotImplementedError

    def switch_device(self, index: int) -> None:
        """Request a different capture device. Does not wait for it to open."""
        raise NotImplementedError

    def list_devices(self) -> list[CameraDevice]:
        raise NotImplementedError

    def get_status(self) -> dict:
        """Get camera status."""
        raise NotImplementedError


class MockCameraBackend(CameraBackend):
    """Mock camera backend for testing."""

    def __init__(self, ready: bool = True, device_count: int = 2) -> None:
        self.ready = ready
        self.device_count = device_count
        self.device_index = 0
        self._frame_count = 0

    def capture(self, quality: int = 80) -> Frame | None:
        """Capture a mock frame."""
        if not self.ready:
            return None

        self._frame_count += 1
        # Tint differs per device so a switch is observable
        color = (73, 109, 137) if self.device_index == 0 else (137, 109, 73)
        img = np.full((480, 640, 3), color, dtype=np.uint8)
        return encode_jpeg(img, quality)

    def switch_device(self, index: int) -> None:
        self.device_index = index

    def list_devices(self) -> list[CameraDevice]:
        return [
            CameraDevice(index=i, width=640, height=480, active=i == self.device_index)
            for i in range(self.device_count)
        ]

    def get_status(self) -> dict:
        """Get mock camera status."""
        return {
            "available": True,
            "state": "streaming" if self.ready else "initializing",
            "device_index": self.device_index,
            "frames_captured": self._frame_count,
        }


class OpenCVCameraBackend(CameraBackend):
    """Camera backend using an OpenCV capture device.

    A reader thread keeps only the newest decoded picture, so ``capture``
    never blocks on the device.
    """

    def __init__(self, config: Config) -> None:
        self.config = config
        self.device_index = config.camera.device_index
        self._requested_index: int | None = None
        self._latest: np.ndarray | None = None
        self._lock = threading.Lock()
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self._opened = False
        self.logger = get_logger("opencv_camera_backend")

    async def setup(self) -> None:
        """Start the reader thread."""
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._reader_loop,
            name="camera-reader",
            daemon=True,
        )
        self._thread.start()

    async def teardown(self) -> None:
        """Stop the reader thread and release the device."""
        self._stop.set()
        if self._thread:
            await asyncio.to_thread(self._thread.join, 2.0)
            self._thread = None
        with self._lock:
            self._latest = None

    def _open(self, index: int) -> cv2.VideoCapture | None:
        capture = cv2.VideoCapture(index)
        width, height = self.config.camera.resolution
        capture.set(cv2.CAP_PROP_FRAME_WIDTH, width)
        capture.set(cv2.CAP_PROP_FRAME_HEIGHT, height)

        if not capture.isOpened():
            self.logger.warning("camera_open_failed", device_index=index)
            capture.release()
            return None

        self.logger.info("camera_opened", device_index=index)
        return capture

    def _reader_loop(self) -> None:
        capture: cv2.VideoCapture | None = None
        try:
            while not self._stop.is_set():
                with self._lock:
                    requested = self._requested_index
                    self._requested_index = None

                if requested is not None and requested != self.device_index:
                    if capture is not None:
                        capture.release()
                        capture = None
                    with self._lock:
                        self.device_index = requested
                        self._latest = None

                if capture is None:
                    capture = self._open(self.device_index)
                    self._opened = capture is not None
                    if capture is None:
                        self._stop.wait(1.0)
                        continue

                ok, bgr = capture.read()
                if not ok or bgr is None:
                    self._stop.wait(0.05)
                    continue

                rgb = cv2.cvtColor(bgr, cv2.COLOR_BGR2RGB)
                with self._lock:
                    self._latest = rgb
        finally:
            if capture is not None:
                capture.release()
            self._opened = False

    def capture(self, quality: int = 80) -> Frame | None:
        with self._lock:
            latest = self._latest

        if latest is None:
            return None
        return encode_jpeg(latest, quality)

    def switch_device(self, index: int) -> None:
        with self._lock:
            self._requested_index = index

    def list_devices(self) -> list[CameraDevice]:
        """Probe capture indices. The active device is reported without reopening it."""
        devices = []
        for index in range(self.config.camera.max_probe):
            if index == self.device_index and self._opened:
                with self._lock:
                    latest = self._latest
                height, width = latest.shape[:2] if latest is not None else (0, 0)
                devices.append(CameraDevice(index=index, width=width, height=height, active=True))
                continue

            capture = cv2.VideoCapture(index)
            try:
                if capture.isOpened():
                    devices.append(
                        CameraDevice(
                            index=index,
                            width=int(capture.get(cv2.CAP_PROP_FRAME_WIDTH)),
                            height=int(capture.get(cv2.CAP_PROP_FRAME_HEIGHT)),
                        )
                    )
            finally:
                capture.release()

        return devices

    def get_status(self) -> dict:
        with self._lock:
            has_frame = self._latest is not None
        return {
            "available": self._opened,
            "state": "streaming" if has_frame else ("initializing" if self._opened else "error"),
            "device_index": self.device_index,
        }


class CameraService(BaseService):
    """Camera service.

    Responsibilities:
    - Snapshot of the current picture from the selected device
    - Switching between capture devices
    """

    def __init__(
        self,
        config: Config | None = None,
        mock_mode: bool = False,
        backend: CameraBackend | None = None,
    ) -> None:
        super().__init__("camera", config, mock_mode)
        self._backend = backend

    @property
    def backend(self) -> CameraBackend | None:
        return self._backend

    async def setup(self) -> None:
        """Setup Camera service."""
        self.logger.info("camera_service_setup", mock_mode=self.mock_mode)

        if self._backend is None:
            if self.mock_mode:
                self._backend = MockCameraBackend()
            else:
                self._backend = OpenCVCameraBackend(self.config)

        await self._backend.setup()

    async def teardown(self) -> None:
        """Teardown Camera service."""
        self.logger.info("camera_service_teardown")

        if self._backend:
            await self._backend.teardown()

    def capture_frame(self) -> Frame | None:
        """Take a snapshot of what the active device currently shows.

        Returns:
            The encoded frame, or None while the device is still starting.
        """
        if not self._backend:
            raise RuntimeError("Camera not initialized")

        frame = self._backend.capture(self.config.camera.quality)
        if frame is None:
            self.logger.info("no_frame_available")
        else:
            self.logger.debug(
                "frame_captured",
                frame_id=frame.frame_id,
                width=frame.width,
                height=frame.height,
                size=len(frame.data),
            )
        return frame

    def switch_device(self, index: int) -> None:
        """Select another capture device."""
        if not self._backend:
            raise RuntimeError("Camera not initialized")

        self.logger.info("camera_switch_requested", device_index=index)
        self._backend.switch_device(index)

    def list_devices(self) -> list[CameraDevice]:
        if not self._backend:
            raise RuntimeError("Camera not initialized")
        return self._backend.list_devices()

    def get_status(self) -> dict:
        """Get camera status."""
        if not self._backend:
            return {
                "available": False,
                "state": "not_initialized",
                "error_message": "Camera not initialized",
            }
        return self._backend.get_status()
