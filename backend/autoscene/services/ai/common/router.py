"""AI Router: resolves the operating mode into label + caption backends, once per process."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

import httpx

from autoscene.core.config import OperatingMode, Settings, get_settings

from .providers import CaptionBackend, LabelBackend, get_caption_backend, get_label_backend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Backends:
    """Backends selected for the active mode plus the HTTP client they share."""

    mode: OperatingMode
    label: LabelBackend
    caption: CaptionBackend
    client: httpx.AsyncClient


_backends: Optional[Backends] = None


def build_backends(
    settings: Optional[Settings] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> Backends:
    """Build backends for ``settings.operating_mode``.

    Raises ``ConfigurationError`` in production when the mode lacks credentials.
    """
    settings = settings or get_settings()
    if client is None:
        client = httpx.AsyncClient(timeout=settings.http_timeout_seconds)

    label = get_label_backend(settings, client)
    caption = get_caption_backend(settings, client)
    logger.info(
        "Pipeline backends: mode=%s label=%s caption=%s",
        settings.operating_mode.value,
        label.name,
        caption.name,
    )
    return Backends(mode=settings.operating_mode, label=label, caption=caption, client=client)


def init_backends(
    settings: Optional[Settings] = None,
    *,
    client: Optional[httpx.AsyncClient] = None,
) -> Backends:
    """Build the process-wide backends (call once at startup)."""
    global _backends
    _backends = build_backends(settings, client=client)
    return _backends


def get_backends() -> Backends:
    """Return the process-wide backends, building them on first use."""
    if _backends is None:
        return init_backends()
    return _backends


async def aclose_backends() -> None:
    global _backends
    if _backends is not None:
        await _backends.client.aclose()
        _backends = None


def reset_backends() -> None:
    """Forget the process-wide backends without closing the client (tests)."""
    global _backends
    _backends = None
