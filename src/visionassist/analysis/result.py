"""Outcome of one image analysis request."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Union


class FailureKind(Enum):
    """Why an analysis request produced no description."""

    AUTH = "auth"  # invalid or missing credential, never retried
    NO_CANDIDATES = "no_candidates"
    HTTP = "http"
    ALL_MODELS_EXHAUSTED = "all_models_exhausted"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class Description:
    """Natural-language description returned by a provider."""

    text: str
    provider: str | None = None
    model: str | None = None


@dataclass(frozen=True)
class Failure:
    """An expected, inspectable analysis failure."""

    kind: FailureKind
    message: str
    provider: str | None = None
    attempts: tuple[str, ...] = ()

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"


AnalysisResult = Union[Description, Failure]
