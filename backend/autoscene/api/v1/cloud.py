"""Cloud API: the intermediary service called by proxied-mode clients.

Serves ``/analyze-image`` (Google Vision) and ``/generate-caption``
(OpenAI) so that API keys stay on the server.  Unlike the in-process
backends, these endpoints report remote failures as HTTP errors; the
proxied client decides whether to degrade.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse, PlainTextResponse

from autoscene.core.config import get_settings
from autoscene.core.image_processing import EncodeError, decode_payload, encode_image
from autoscene.schemas.cloud import (
    AnalyzeImageRequest,
    AnalyzeImageResponse,
    DominantColor,
    ErrorBody,
    GenerateCaptionRequest,
    GenerateCaptionResponse,
)
from autoscene.services.ai.caption.contracts import CaptionRequest
from autoscene.services.ai.caption.prompts import build_caption_prompt
from autoscene.services.ai.common import router as ai_router
from autoscene.services.ai.common.providers.base import RemoteCallError
from autoscene.services.ai.common.providers.google_vision import (
    GoogleVisionLabelBackend,
    affect_score,
    dominant_colors,
    landmarks,
    recognized_text,
    rich_features,
    top_labels,
)
from autoscene.services.ai.common.providers.openai import OpenAICaptionBackend

logger = logging.getLogger(__name__)

router = APIRouter()


@dataclass(frozen=True)
class CloudBackends:
    vision: Optional[GoogleVisionLabelBackend]
    language: Optional[OpenAICaptionBackend]


_cloud_backends: Optional[CloudBackends] = None


def get_cloud_backends() -> CloudBackends:
    """Server-side backends, built once from the API keys regardless of OPERATING_MODE."""
    global _cloud_backends
    if _cloud_backends is None:
        settings = get_settings()
        client = ai_router.get_backends().client
        vision = None
        if settings.google_cloud_api_key:
            vision = GoogleVisionLabelBackend(
                client,
                api_key=settings.google_cloud_api_key,
                url=settings.vision_api_url,
                max_labels=settings.vision_max_labels,
                top_labels=settings.vision_max_labels,
                language_hints=settings.vision_language_hints,
            )
        language = None
        if settings.openai_api_key:
            language = OpenAICaptionBackend(
                client,
                api_key=settings.openai_api_key,
                url=settings.openai_api_url,
                model=settings.caption_model,
                temperature=settings.caption_temperature,
                max_tokens=settings.caption_max_tokens,
            )
        _cloud_backends = CloudBackends(vision=vision, language=language)
    return _cloud_backends


def reset_cloud_backends() -> None:
    global _cloud_backends
    _cloud_backends = None


def _error(status_code: int, error: str, details: Optional[str] = None) -> JSONResponse:
    body = ErrorBody(error=error, details=details).model_dump(exclude_none=True)
    return JSONResponse(status_code=status_code, content=body)


@router.get("/", response_class=PlainTextResponse, include_in_schema=False)
def health() -> str:
    return "Hello World!"


@router.post("/analyze-image", response_model=AnalyzeImageResponse, response_model_by_alias=True)
async def analyze_image_endpoint(
    body: AnalyzeImageRequest,
    backends: CloudBackends = Depends(get_cloud_backends),
):
    if not body.image:
        return _error(400, "Image data is required")
    if backends.vision is None:
        return _error(503, "Vision backend is not configured")

    try:
        payload = encode_image(decode_payload(body.image))
    except EncodeError as exc:
        return _error(400, "Invalid image data", str(exc))

    try:
        response = await backends.vision.annotate(payload, rich_features(get_settings().vision_max_labels))
    except RemoteCallError as exc:
        logger.warning("analyze-image: vision call failed: %s", exc)
        return _error(502, "Vision API request failed", str(exc))

    try:
        labels = top_labels(response, get_settings().vision_max_labels)
        return AnalyzeImageResponse(
            labels=labels,
            description=", ".join(labels),
            affect_score=affect_score(response),
            recognized_text=recognized_text(response),
            landmarks=landmarks(response),
            dominant_colors=[DominantColor(**c) for c in dominant_colors(response)],
        )
    except (AttributeError, KeyError, TypeError, ValueError) as exc:
        logger.warning("analyze-image: malformed vision response: %s", exc)
        return _error(502, "Vision API response was malformed", str(exc))


@router.post("/generate-caption", response_model=GenerateCaptionResponse, response_model_by_alias=True)
async def generate_caption_endpoint(
    body: GenerateCaptionRequest,
    backends: CloudBackends = Depends(get_cloud_backends),
):
    if backends.language is None:
        return _error(503, "Language model backend is not configured")

    request = CaptionRequest(analysis=body.vision_result, length_class=body.length)
    try:
        result = await backends.language.complete(build_caption_prompt(request))
    except RemoteCallError as exc:
        logger.warning("generate-caption: completion failed: %s", exc)
        return _error(502, "Caption generation failed", str(exc))

    caption = result.raw_text.strip()
    if not caption:
        return _error(502, "Caption generation failed", "empty completion")
    return GenerateCaptionResponse(copy_text=caption)
