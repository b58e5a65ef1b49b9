"""Cloud API provider: the intermediary service used in proxied mode.

Analyze endpoint bodies come in two shapes: the plain ``{labels, description}``
and the richer one that also carries ``affectScore`` / ``recognizedText``.
Both are reconciled into ``AnalysisResult`` here.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx
from pydantic import ValidationError

from autoscene.core.image_processing import EncodedPayload
from autoscene.services.ai.caption.contracts import CaptionRequest
from autoscene.services.ai.vision.contracts import AnalysisResult

from .base import RemoteCallError
from .remote import RemoteCaptionBackend, RemoteLabelBackend, post_json

logger = logging.getLogger(__name__)

ANALYZE_PATH = "/analyze-image"
CAPTION_PATH = "/generate-caption"
DEFAULT_AFFECT_SCORE = 0.5


def _join(base_url: str, path: str) -> str:
    return base_url.rstrip("/") + path


def analysis_from_proxy(data: dict[str, Any], *, top_labels: int = 3) -> AnalysisResult:
    """Map a proxy analyze body onto ``AnalysisResult``.

    ``labels`` wins over ``description``; the description is a comma-joined
    label list when it is the only thing present.
    """
    labels = data.get("labels")
    if not labels:
        description = data.get("description") or ""
        if not isinstance(description, str):
            raise TypeError("description is not a string")
        labels = [part.strip() for part in description.split(",") if part.strip()]
    if not isinstance(labels, list):
        raise TypeError("labels is not a list")

    affect = data.get("affectScore", data.get("joy"))
    return AnalysisResult(
        labels=labels[:top_labels],
        affect_score=DEFAULT_AFFECT_SCORE if affect is None else affect,
        recognized_text=data.get("recognizedText", data.get("text")) or "",
    )


class CloudApiLabelBackend(RemoteLabelBackend):
    name = "cloud_api"

    def __init__(self, client: httpx.AsyncClient, *, base_url: str, top_labels: int = 3) -> None:
        super().__init__(client)
        self._url = _join(base_url, ANALYZE_PATH)
        self._top_labels = top_labels

    async def analyze_remote(self, payload: EncodedPayload) -> AnalysisResult:
        data = await post_json(self._client, self._url, body={"image": payload.content})
        try:
            analysis = analysis_from_proxy(data, top_labels=self._top_labels)
        except (TypeError, ValidationError) as exc:
            raise RemoteCallError(f"{self._url}: malformed analysis body: {exc}") from exc
        if not analysis.labels:
            raise RemoteCallError(f"{self._url}: body has neither labels nor description")
        return analysis


class CloudApiCaptionBackend(RemoteCaptionBackend):
    name = "cloud_api"

    def __init__(self, client: httpx.AsyncClient, *, base_url: str) -> None:
        super().__init__(client)
        self._url = _join(base_url, CAPTION_PATH)

    async def generate_remote(self, request: CaptionRequest) -> str:
        data = await post_json(
            self._client,
            self._url,
            body={
                "visionResult": request.analysis.to_wire(),
                "length": request.length_class.value,
            },
        )
        caption = data.get("copy")
        if not isinstance(caption, str) or not caption.strip():
            raise RemoteCallError(f"{self._url}: body has no 'copy' text")
        return caption.strip()
