"""Abstract bases for label and caption backends."""

from __future__ import annotations

import abc
from dataclasses import dataclass
from typing import Optional

from autoscene.core.image_processing import EncodedPayload
from autoscene.services.ai.caption.contracts import CaptionRequest
from autoscene.services.ai.vision.contracts import AnalysisResult


class RemoteCallError(Exception):
    """Network failure, non-success status or malformed body from a remote backend."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, body: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body


@dataclass(frozen=True)
class ProviderResult:
    """Immutable result of one language-model call."""

    raw_text: str
    model: str
    provider: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    latency_ms: float = 0.0


class LabelBackend(abc.ABC):
    """Turns an encoded image into an ``AnalysisResult``."""

    name: str = "base"

    @abc.abstractmethod
    async def analyze(self, payload: EncodedPayload) -> AnalysisResult:
        """Analyze *payload*. Implementations never raise for remote failures."""


class CaptionBackend(abc.ABC):
    """Turns a ``CaptionRequest`` into caption text."""

    name: str = "base"

    @abc.abstractmethod
    async def generate(self, request: CaptionRequest) -> str:
        """Return caption text. Implementations never raise for remote failures."""
