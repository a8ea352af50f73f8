"""Vision Assistant - describes the camera view aloud for blind and low-vision users."""

__version__ = "0.1.0"
__author__ = "Vision Assistant Team"

from visionassist.config import Config, ProviderConfig, load_config

__all__ = ["Config", "ProviderConfig", "load_config", "__version__"]
