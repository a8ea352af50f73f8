"""Remote multimodal providers."""

from __future__ import annotations

import asyncio
import re
from dataclasses import dataclass, replace
from typing import Any

import httpx

from visionassist.analysis.result import AnalysisResult, Description, Failure, FailureKind
from visionassist.common import get_logger

SYSTEM_PROMPT = """You are a multimodal assistant designed to help blind and visually impaired users in real time.
CONTEXT & INPUT: The user is using a mobile app. The phone camera is sending you images.
GOALS: Describe clearly and concisely what the camera is seeing. Help the user understand their surroundings. Read visible text. Guide the user. Prioritize safety.
DESCRIPTION STYLE: Short, clear sentences. No "as you can see". Use relative positions.
SAFETY RULES: Warn about danger clearly.
"""

_AUTH_PATTERN = re.compile(
    r"\b(401|403)\b|api[ _]?key|permission[ _]denied|unauthenticated|unauthorized",
    re.IGNORECASE,
)


@dataclass(frozen=True)
class ImagePayload:
    """Base64 image data ready to embed in a request."""

    data: str
    mime_type: str = "image/jpeg"

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.data}"


def is_auth_error(status_code: int | None, message: str) -> bool:
    """Whether a failure means the credential itself was rejected."""
    if status_code in (401, 403):
        return True
    return bool(_AUTH_PATTERN.search(message))


def error_message(response: httpx.Response) -> str | None:
    """Extract ``error.message`` from a JSON error body, if present."""
    try:
        body = response.json()
    except ValueError:
        return None

    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"])
        if isinstance(error, str) and error:
            return error
    return None


class AnalysisProvider:
    """Abstract analysis provider."""

    name = "abstract"

    def __init__(
        self,
        endpoint: str,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.endpoint = endpoint.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._transport = transport
        self.logger = get_logger(f"analysis_provider_{self.name}")

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            timeout=httpx.Timeout(self.timeout_seconds),
            transport=self._transport,
        )

    async def _post(
        self,
        client: httpx.AsyncClient,
        url: str,
        payload: dict[str, Any],
        **kwargs: Any,
    ) -> httpx.Response:
        # Bounds the whole exchange, not just each socket operation
        return await asyncio.wait_for(
            client.post(url, json=payload, **kwargs),
            timeout=self.timeout_seconds,
        )

    async def analyze(self, image: ImagePayload, query: str, api_key: str) -> AnalysisResult:
        """Describe the image in answer to the query."""
        raise NotImplementedError


class GeminiProvider(AnalysisProvider):
    """Google Gemini provider with ordered model fallback.

    Models are tried from first to last. The first success wins; a rejected
    credential stops the walk immediately because no other model can accept
    it either.
    """

    name = "gemini"

    def __init__(
        self,
        endpoint: str,
        models: list[str],
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(endpoint, timeout_seconds, transport)
        self.models = list(models)

    async def analyze(self, image: ImagePayload, query: str, api_key: str) -> AnalysisResult:
        attempts: list[str] = []
        last_failure: Failure | None = None

        async with self._client() as client:
            for model in self.models:
                attempts.append(model)
                self.logger.info("trying_model", model=model)

                try:
                    result = await self._call_model(client, model, image, query, api_key)
                except Exception as e:
                    self.logger.exception("model_call_error", model=model, error=str(e))
                    result = Failure(FailureKind.UNKNOWN, str(e) or type(e).__name__, self.name)

                if isinstance(result, Description):
                    self.logger.info("model_succeeded", model=model, attempts=len(attempts))
                    return result

                if result.kind is FailureKind.AUTH:
                    self.logger.warning("auth_failed", model=model, error=result.message)
                    return replace(result, attempts=tuple(attempts))

                self.logger.warning(
                    "analysis_model_failed",
                    model=model,
                    kind=result.kind.value,
                    error=result.message,
                )
                last_failure = result

        return Failure(
            kind=FailureKind.ALL_MODELS_EXHAUSTED,
            message=last_failure.message if last_failure else "No Gemini models configured",
            provider=self.name,
            attempts=tuple(attempts),
        )

    async def _call_model(
        self,
        client: httpx.AsyncClient,
        model: str,
        image: ImagePayload,
        query: str,
        api_key: str,
    ) -> AnalysisResult:
        payload = {
            "contents": [
                {
                    "parts": [
                        {"text": f"{SYSTEM_PROMPT}\nUser Question: {query}"},
                        {
                            "inline_data": {
                                "mime_type": image.mime_type,
                                "data": image.data,
                            }
                        },
                    ]
                }
            ]
        }

        try:
            response = await self._post(
                client,
                f"{self.endpoint}/models/{model}:generateContent",
                payload,
                params={"key": api_key},
            )
        except (httpx.TimeoutException, asyncio.TimeoutError):
            return Failure(FailureKind.TIMEOUT, f"Gemini API ({model}) timed out", self.name)
        except httpx.HTTPError as e:
            return Failure(FailureKind.UNKNOWN, str(e) or type(e).__name__, self.name)

        if not response.is_success:
            message = error_message(response) or f"Gemini API ({model}) failed"
            kind = FailureKind.AUTH if is_auth_error(response.status_code, message) else FailureKind.HTTP
            return Failure(kind, message, self.name)

        try:
            data = response.json()
        except ValueError:
            return Failure(FailureKind.UNKNOWN, f"Malformed response from Gemini ({model})", self.name)

        if not isinstance(data, dict):
            return Failure(FailureKind.UNKNOWN, f"Malformed response from Gemini ({model})", self.name)

        candidates = data.get("candidates") or []
        if not candidates:
            return Failure(FailureKind.NO_CANDIDATES, "No response candidates from Gemini", self.name)

        try:
            text = candidates[0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return Failure(FailureKind.NO_CANDIDATES, f"Empty candidate from Gemini ({model})", self.name)

        if not isinstance(text, str):
            return Failure(FailureKind.NO_CANDIDATES, f"Empty candidate from Gemini ({model})", self.name)

        return Description(text=text.strip(), provider=self.name, model=model)


class OpenAIProvider(AnalysisProvider):
    """OpenAI chat completions provider (single fixed model)."""

    name = "openai"

    def __init__(
        self,
        endpoint: str,
        model: str = "gpt-4o",
        max_tokens: int = 300,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        super().__init__(endpoint, timeout_seconds, transport)
        self.model = model
        self.max_tokens = max_tokens

    async def analyze(self, image: ImagePayload, query: str, api_key: str) -> AnalysisResult:
        payload = {
            "model": self.model,
            "messages": [
                {"role": "system", "content": SYSTEM_PROMPT},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": query},
                        {"type": "image_url", "image_url": {"url": image.data_url}},
                    ],
                },
            ],
            "max_tokens": self.max_tokens,
        }
        headers = {"Authorization": f"Bearer {api_key}"}

        try:
            async with self._client() as client:
                response = await self._post(
                    client,
                    f"{self.endpoint}/chat/completions",
                    payload,
                    headers=headers,
                )
        except (httpx.TimeoutException, asyncio.TimeoutError):
            return Failure(FailureKind.TIMEOUT, "OpenAI API timed out", self.name, (self.model,))

        if not response.is_success:
            return Failure(
                FailureKind.HTTP,
                error_message(response) or "OpenAI API failed",
                self.name,
                (self.model,),
            )

        choices = response.json().get("choices") or []
        if not choices:
            return Failure(FailureKind.NO_CANDIDATES, "No choices from OpenAI", self.name, (self.model,))

        content = choices[0].get("message", {}).get("content") or ""
        return Description(text=content.strip(), provider=self.name, model=self.model)
