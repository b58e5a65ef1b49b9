"""Caption Generator: CaptionRequest -> caption text via the mode's caption backend."""

from __future__ import annotations

import logging
import time
from typing import Optional

from autoscene.services.ai.common import router as ai_router
from autoscene.services.ai.common.providers.base import CaptionBackend

from .contracts import CaptionRequest

logger = logging.getLogger(__name__)


async def generate_caption(request: CaptionRequest, backend: Optional[CaptionBackend] = None) -> str:
    backend = backend or ai_router.get_backends().caption

    t0 = time.monotonic()
    caption = await backend.generate(request)
    latency_ms = int((time.monotonic() - t0) * 1000)

    logger.info(
        "Caption done backend=%s length=%s chars=%d latency_ms=%d",
        backend.name,
        request.length_class.value,
        len(caption),
        latency_ms,
    )
    return caption
