"""Image analysis through remote multimodal providers."""

from visionassist.analysis.client import SIMULATION_NOTICE, AnalysisClient, to_image_payload
from visionassist.analysis.providers import (
    SYSTEM_PROMPT,
    AnalysisProvider,
    GeminiProvider,
    ImagePayload,
    OpenAIProvider,
)
from visionassist.analysis.result import AnalysisResult, Description, Failure, FailureKind

__all__ = [
    "SIMULATION_NOTICE",
    "SYSTEM_PROMPT",
    "AnalysisClient",
    "AnalysisProvider",
    "AnalysisResult",
    "Description",
    "Failure",
    "FailureKind",
    "GeminiProvider",
    "ImagePayload",
    "OpenAIProvider",
    "to_image_payload",
]
