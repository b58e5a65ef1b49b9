"""Google Cloud Vision provider (``images:annotate`` REST endpoint)."""

from __future__ import annotations

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from autoscene.core.image_processing import EncodedPayload
from autoscene.services.ai.vision.contracts import AnalysisResult

from .base import RemoteCallError
from .remote import RemoteLabelBackend, post_json

logger = logging.getLogger(__name__)

DEFAULT_AFFECT_SCORE = 0.5
JOYFUL_AFFECT_SCORE = 0.9
STRONGEST_LIKELIHOOD = "VERY_LIKELY"


def label_features(max_labels: int = 10) -> list[dict[str, Any]]:
    return [
        {"type": "LABEL_DETECTION", "maxResults": max_labels},
        {"type": "FACE_DETECTION", "maxResults": 1},
        {"type": "TEXT_DETECTION"},
    ]


def rich_features(max_labels: int = 10) -> list[dict[str, Any]]:
    """Label features plus landmarks and dominant colors, used by the cloud endpoint."""
    return label_features(max_labels) + [
        {"type": "LANDMARK_DETECTION", "maxResults": 5},
        {"type": "IMAGE_PROPERTIES"},
    ]


def top_labels(response: dict[str, Any], limit: int) -> list[str]:
    annotations = response.get("labelAnnotations") or []
    ranked = sorted(annotations, key=lambda a: a.get("score", 0.0), reverse=True)
    return [a["description"] for a in ranked if a.get("description")][:limit]


def affect_score(response: dict[str, Any]) -> float:
    faces = response.get("faceAnnotations") or []
    if not faces:
        return DEFAULT_AFFECT_SCORE
    if faces[0].get("joyLikelihood") == STRONGEST_LIKELIHOOD:
        return JOYFUL_AFFECT_SCORE
    return DEFAULT_AFFECT_SCORE


def recognized_text(response: dict[str, Any]) -> str:
    texts = response.get("textAnnotations") or []
    if not texts:
        return ""
    return texts[0].get("description") or ""


def landmarks(response: dict[str, Any]) -> list[str]:
    return [a["description"] for a in response.get("landmarkAnnotations") or [] if a.get("description")]


def dominant_colors(response: dict[str, Any]) -> list[dict[str, float]]:
    colors = (
        (response.get("imagePropertiesAnnotation") or {})
        .get("dominantColors", {})
        .get("colors", [])
    )
    result = []
    for entry in colors:
        color = entry.get("color") or {}
        result.append(
            {
                "red": color.get("red", 0),
                "green": color.get("green", 0),
                "blue": color.get("blue", 0),
                "score": entry.get("score", 0.0),
            }
        )
    return result


class GoogleVisionLabelBackend(RemoteLabelBackend):
    name = "google_vision"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_key: str,
        url: str = "https://vision.googleapis.com/v1/images:annotate",
        max_labels: int = 10,
        top_labels: int = 3,
        language_hints: Optional[list[str]] = None,
    ) -> None:
        super().__init__(client)
        self._api_key = api_key
        self._url = url
        self._max_labels = max_labels
        self._top_labels = top_labels
        self._language_hints = list(language_hints) if language_hints is not None else ["ja", "en"]

    async def annotate(
        self,
        payload: EncodedPayload,
        features: Optional[list[dict[str, Any]]] = None,
    ) -> dict[str, Any]:
        """Return the first per-image response of ``images:annotate``."""
        request: dict[str, Any] = {
            "image": {"content": payload.content},
            "features": features or label_features(self._max_labels),
        }
        if self._language_hints:
            request["imageContext"] = {"languageHints": self._language_hints}

        data = await post_json(
            self._client,
            self._url,
            body={"requests": [request]},
            headers={"Content-Type": "application/json"},
            params={"key": self._api_key},
        )

        responses = data.get("responses")
        if not isinstance(responses, list) or not responses or not isinstance(responses[0], dict):
            raise RemoteCallError(f"{self._url}: missing 'responses' in body")
        response = responses[0]
        if response.get("error"):
            err = response["error"]
            if not isinstance(err, dict):
                raise RemoteCallError(f"{self._url}: image error: {err!r}")
            raise RemoteCallError(
                f"{self._url}: image error {err.get('code')}: {err.get('message', '')}",
                status_code=err.get("code"),
            )
        return response

    async def analyze_remote(self, payload: EncodedPayload) -> AnalysisResult:
        response = await self.annotate(payload)
        try:
            analysis = AnalysisResult(
                labels=top_labels(response, self._top_labels),
                affect_score=affect_score(response),
                recognized_text=recognized_text(response),
            )
        except (AttributeError, KeyError, TypeError, ValidationError) as exc:
            raise RemoteCallError(f"{self._url}: malformed annotations: {exc}") from exc
        if not analysis.labels:
            raise RemoteCallError(f"{self._url}: no labels detected")
        return analysis
