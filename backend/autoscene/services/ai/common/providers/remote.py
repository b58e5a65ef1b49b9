"""Shared plumbing for DIRECT and PROXIED backends.

Each remote backend implements ``analyze_remote`` / ``generate_remote``,
which raise ``RemoteCallError`` on any failure.  The public ``analyze`` /
``generate`` methods catch that error, and mapping errors on unexpected
bodies, and serve the mock result instead, so the pipeline always completes
with some output.
"""

from __future__ import annotations

import abc
import logging
from typing import Any, Optional

import httpx

from autoscene.core.image_processing import EncodedPayload
from autoscene.services.ai.caption.contracts import CaptionRequest
from autoscene.services.ai.vision.contracts import AnalysisResult
from autoscene.utils.alerting import alert_tracker

from .base import CaptionBackend, LabelBackend, RemoteCallError
from .mock import mock_analysis, mock_caption

logger = logging.getLogger(__name__)

MAX_ERROR_BODY_CHARS = 500

# Mapping bugs on unexpected bodies degrade the same way as remote failures.
DEGRADE_ERRORS = (RemoteCallError, AttributeError, KeyError, TypeError, ValueError)


async def post_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    body: dict[str, Any],
    headers: Optional[dict[str, str]] = None,
    params: Optional[dict[str, str]] = None,
) -> dict[str, Any]:
    """POST *body* as JSON and return the decoded JSON object.

    ``params`` are kept out of error messages since they may carry API keys.
    """
    try:
        resp = await client.post(url, json=body, headers=headers, params=params)
    except httpx.HTTPError as exc:
        raise RemoteCallError(f"{url}: transport error: {exc.__class__.__name__}: {exc}") from exc

    if not resp.is_success:
        raise RemoteCallError(
            f"{url}: HTTP {resp.status_code}",
            status_code=resp.status_code,
            body=resp.text[:MAX_ERROR_BODY_CHARS],
        )

    try:
        data = resp.json()
    except ValueError as exc:
        raise RemoteCallError(f"{url}: response is not JSON", status_code=resp.status_code) from exc

    if not isinstance(data, dict):
        raise RemoteCallError(f"{url}: expected a JSON object, got {type(data).__name__}")
    return data


class RemoteLabelBackend(LabelBackend):
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @abc.abstractmethod
    async def analyze_remote(self, payload: EncodedPayload) -> AnalysisResult:
        """Call the remote service; raise ``RemoteCallError`` on any failure."""

    async def analyze(self, payload: EncodedPayload) -> AnalysisResult:
        try:
            return await self.analyze_remote(payload)
        except DEGRADE_ERRORS as exc:
            status = getattr(exc, "status_code", None)
            logger.warning(
                "Label backend %s failed (status=%s) – serving mock analysis: %s",
                self.name,
                status,
                exc,
                exc_info=True,
            )
            alert_tracker.record("ANALYZE_DEGRADED", {"backend": self.name, "status": status})
            return mock_analysis()


class RemoteCaptionBackend(CaptionBackend):
    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    @abc.abstractmethod
    async def generate_remote(self, request: CaptionRequest) -> str:
        """Call the remote service; raise ``RemoteCallError`` on any failure."""

    async def generate(self, request: CaptionRequest) -> str:
        try:
            return await self.generate_remote(request)
        except DEGRADE_ERRORS as exc:
            status = getattr(exc, "status_code", None)
            logger.warning(
                "Caption backend %s failed (status=%s) – serving mock %s caption: %s",
                self.name,
                status,
                request.length_class.value,
                exc,
                exc_info=True,
            )
            alert_tracker.record("CAPTION_DEGRADED", {"backend": self.name, "status": status})
            return mock_caption(request.length_class)
