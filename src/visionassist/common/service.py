"""Base service class for device-facing components."""

from __future__ import annotations

from abc import ABC, abstractmethod
from enum import Enum

from visionassist.common.logging import get_logger
from visionassist.config import Config, load_config


class ServiceState(Enum):
    """Service state enum."""

    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    STOPPED = "stopped"
    ERROR = "error"


class BaseService(ABC):
    """Base class for the camera and speech services.

    Provides common functionality:
    - Lifecycle state tracking
    - Logging
    - Configuration
    """

    def __init__(
        self,
        name: str,
        config: Config | None = None,
        mock_mode: bool = False,
    ) -> None:
        """Initialize the service.

        Args:
            name: Service name.
            config: Configuration object. Loaded from file if None.
            mock_mode: Use mock backends instead of real devices.
        """
        self.name = name
        self.config = config or load_config()
        self.mock_mode = mock_mode or self.config.mock_mode
        self.logger = get_logger(name, service=name)
        self._state = ServiceState.STOPPED

    @property
    def state(self) -> ServiceState:
        """Get current service state."""
        return self._state

    @abstractmethod
    async def setup(self) -> None:
        """Acquire service-specific resources."""
        pass

    @abstractmethod
    async def teardown(self) -> None:
        """Release service-specific resources."""
        pass

    async def start(self) -> None:
        """Start the service."""
        if self._state == ServiceState.RUNNING:
            return

        self.logger.info("starting_service", mock_mode=self.mock_mode)
        self._state = ServiceState.STARTING

        try:
            await self.setup()
        except Exception as e:
            self._state = ServiceState.ERROR
            self.logger.exception("service_start_failed", error=str(e))
            raise

        self._state = ServiceState.RUNNING
        self.logger.info("service_started")

    async def stop(self) -> None:
        """Stop the service gracefully."""
        if self._state in (ServiceState.STOPPING, ServiceState.STOPPED):
            return

        self.logger.info("stopping_service")
        self._state = ServiceState.STOPPING

        try:
            await self.teardown()
            self._state = ServiceState.STOPPED
            self.logger.info("service_stopped")

        except Exception as e:
            self._state = ServiceState.ERROR
            self.logger.exception("service_stop_failed", error=str(e))
