"""Assistant control flow - gestures in, spoken answers out."""

from visionassist.assistant.gestures import Gesture, GestureKind, TapDetector
from visionassist.assistant.orchestrator import (
    DEFAULT_QUERY,
    OrchestratorState,
    QueryOrchestrator,
)

__all__ = [
    "DEFAULT_QUERY",
    "Gesture",
    "GestureKind",
    "OrchestratorState",
    "QueryOrchestrator",
    "TapDetector",
]
