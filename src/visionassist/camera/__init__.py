"""Camera service - still frames from the selected capture device."""

from visionassist.camera.service import (
    CameraBackend,
    CameraDevice,
    CameraService,
    Frame,
    MockCameraBackend,
    OpenCVCameraBackend,
)

__all__ = [
    "CameraBackend",
    "CameraDevice",
    "CameraService",
    "Frame",
    "MockCameraBackend",
    "OpenCVCameraBackend",
]
