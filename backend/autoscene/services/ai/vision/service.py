"""Label Analyzer: encoded image -> AnalysisResult via the mode's label backend.

The backend never raises for remote failures: DIRECT and PROXIED backends
serve the mock analysis instead (see ``providers.remote``).
"""

from __future__ import annotations

import logging
import time
from typing import Optional

from autoscene.core.image_processing import EncodedPayload
from autoscene.services.ai.common import router as ai_router
from autoscene.services.ai.common.providers.base import LabelBackend

from .contracts import AnalysisResult

logger = logging.getLogger(__name__)


async def analyze_image(payload: EncodedPayload, backend: Optional[LabelBackend] = None) -> AnalysisResult:
    backend = backend or ai_router.get_backends().label

    t0 = time.monotonic()
    result = await backend.analyze(payload)
    latency_ms = int((time.monotonic() - t0) * 1000)

    logger.info(
        "Analysis done backend=%s labels=%d affect=%.2f text=%s latency_ms=%d",
        backend.name,
        len(result.labels),
        result.affect_score,
        bool(result.recognized_text),
        latency_ms,
    )
    return result
