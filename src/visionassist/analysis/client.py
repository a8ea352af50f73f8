"""Analysis client - frame plus query in, description or failure out."""

from __future__ import annotations

import asyncio
import re
import time

import httpx

from visionassist.analysis.providers import (
    AnalysisProvider,
    GeminiProvider,
    ImagePayload,
    OpenAIProvider,
)
from visionassist.analysis.result import AnalysisResult, Description, Failure, FailureKind
from visionassist.camera import Frame
from visionassist.common import get_logger
from visionassist.config import AnalysisConfig, ProviderConfig

SIMULATION_NOTICE = (
    "Simulation Mode: Please enter your API Key in settings to see the real world."
)

_DATA_URL_PREFIX = re.compile(r"^data:(image/(?:png|jpeg|jpg));base64,")


def to_image_payload(image: Frame | str) -> ImagePayload:
    """Normalise a frame or an encoded image string.

    Strings may be bare base64 (assumed JPEG) or a data URL, whose prefix is
    stripped and whose MIME type is kept.
    """
    if isinstance(image, Frame):
        return ImagePayload(data=image.to_base64(), mime_type=image.mime_type)

    match = _DATA_URL_PREFIX.match(image)
    if not match:
        return ImagePayload(data=image)

    mime_type = match.group(1)
    if mime_type == "image/jpg":
        mime_type = "image/jpeg"
    return ImagePayload(data=image[match.end():], mime_type=mime_type)


class AnalysisClient:
    """Calls the configured provider for one frame at a time.

    ``analyze`` never raises; every problem comes back as a ``Failure``.
    Callers are expected to keep a single call outstanding.
    """

    def __init__(
        self,
        config: AnalysisConfig | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.config = config or AnalysisConfig()
        self.logger = get_logger("analysis_client")
        self._providers: dict[str, AnalysisProvider] = {
            "gemini": GeminiProvider(
                self.config.gemini_endpoint,
                self.config.gemini_models,
                timeout_seconds=self.config.timeout_seconds,
                transport=transport,
            ),
            "openai": OpenAIProvider(
                self.config.openai_endpoint,
                model=self.config.openai_model,
                max_tokens=self.config.max_tokens,
                timeout_seconds=self.config.timeout_seconds,
                transport=transport,
            ),
        }
        self._total_requests = 0
        self._total_failures = 0

    def provider(self, name: str) -> AnalysisProvider:
        provider = self._providers.get(name)
        if provider is None:
            raise ValueError(f"Provider {name} not found")
        return provider

    async def analyze(
        self,
        frame: Frame | str,
        query: str,
        provider_config: ProviderConfig,
    ) -> AnalysisResult:
        """Describe a frame in answer to a query.

        Args:
            frame: Captured frame, or base64 / data URL image text.
            query: What the user wants to know.
            provider_config: Provider and credential for this call.

        Returns:
            Description on success, Failure otherwise.
        """
        if not provider_config.has_credential:
            self.logger.info("simulation_mode")
            await asyncio.sleep(self.config.simulation_delay_seconds)
            return Description(text=SIMULATION_NOTICE)

        self._total_requests += 1
        start_time = time.time()

        try:
            provider = self.provider(provider_config.provider)
            result = await provider.analyze(
                to_image_payload(frame),
                query,
                provider_config.api_key,
            )
        except Exception as e:
            self.logger.exception("analysis_error", provider=provider_config.provider, error=str(e))
            result = Failure(
                FailureKind.UNKNOWN,
                str(e) or "Could not connect to AI.",
                provider_config.provider,
            )

        latency_ms = int((time.time() - start_time) * 1000)
        if isinstance(result, Failure):
            self._total_failures += 1
            self.logger.warning(
                "analysis_failed",
                provider=provider_config.provider,
                kind=result.kind.value,
                error=result.message,
                attempts=list(result.attempts),
                latency_ms=latency_ms,
            )
        else:
            self.logger.info(
                "analysis_complete",
                provider=result.provider,
                model=result.model,
                latency_ms=latency_ms,
            )
        return result

    def get_status(self) -> dict:
        return {
            "providers": list(self._providers),
            "gemini_models": list(self.config.gemini_models),
            "metrics": {
                "total_requests": self._total_requests,
                "total_failures": self._total_failures,
            },
        }
