"""Common utilities for Vision Assistant."""

from visionassist.common.logging import get_logger, setup_logging
from visionassist.common.service import BaseService, ServiceState
from visionassist.common.events import EventBus, Event

__all__ = [
    "get_logger",
    "setup_logging",
    "BaseService",
    "ServiceState",
    "EventBus",
    "Event",
]
