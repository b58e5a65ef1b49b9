"""Backend factory: returns the label/caption backend for an operating mode or falls back to mock."""

from __future__ import annotations

import logging

import httpx

from autoscene.core.config import ConfigurationError, OperatingMode, Settings
from autoscene.utils.alerting import alert_tracker

from .base import CaptionBackend, LabelBackend, ProviderResult, RemoteCallError
from .mock import MockCaptionBackend, MockLabelBackend

logger = logging.getLogger(__name__)

__all__ = [
    "get_label_backend",
    "get_caption_backend",
    "CaptionBackend",
    "LabelBackend",
    "MockCaptionBackend",
    "MockLabelBackend",
    "ProviderResult",
    "RemoteCallError",
]


def _missing(settings: Settings, what: str) -> None:
    """Raise in strict (production) setups, otherwise warn so the caller can fall back to mock."""
    if settings.strict_config:
        raise ConfigurationError(f"{what} not set for {settings.operating_mode.value} mode")
    logger.warning("%s not set – falling back to mock", what)
    alert_tracker.record("CONFIG_FALLBACK_TO_MOCK", {"missing": what})


def get_label_backend(settings: Settings, client: httpx.AsyncClient) -> LabelBackend:
    """Return the label backend for ``settings.operating_mode``.

    A mode whose credentials are absent gets ``MockLabelBackend`` unless
    ``ENVIRONMENT=production``, where ``ConfigurationError`` is raised.
    """
    mode = settings.operating_mode

    if mode == OperatingMode.MOCK:
        return MockLabelBackend()

    if mode == OperatingMode.DIRECT:
        if not settings.google_cloud_api_key:
            _missing(settings, "GOOGLE_CLOUD_API_KEY")
            return MockLabelBackend()
        from .google_vision import GoogleVisionLabelBackend

        return GoogleVisionLabelBackend(
            client,
            api_key=settings.google_cloud_api_key,
            url=settings.vision_api_url,
            max_labels=settings.vision_max_labels,
            top_labels=settings.analysis_top_labels,
            language_hints=settings.vision_language_hints,
        )

    if mode == OperatingMode.PROXIED:
        if not settings.cloud_api_url:
            _missing(settings, "CLOUD_API_URL")
            return MockLabelBackend()
        from .cloud_api import CloudApiLabelBackend

        return CloudApiLabelBackend(client, base_url=settings.cloud_api_url, top_labels=settings.analysis_top_labels)

    logger.warning("Unknown operating mode %r – falling back to mock", mode)
    return MockLabelBackend()


def get_caption_backend(settings: Settings, client: httpx.AsyncClient) -> CaptionBackend:
    """Return the caption backend for ``settings.operating_mode`` (same fallback rules)."""
    mode = settings.operating_mode

    if mode == OperatingMode.MOCK:
        return MockCaptionBackend()

    if mode == OperatingMode.DIRECT:
        if not settings.openai_api_key:
            _missing(settings, "OPENAI_API_KEY")
            return MockCaptionBackend()
        from .openai import OpenAICaptionBackend

        return OpenAICaptionBackend(
            client,
            api_key=settings.openai_api_key,
            url=settings.openai_api_url,
            model=settings.caption_model,
            temperature=settings.caption_temperature,
            max_tokens=settings.caption_max_tokens,
        )

    if mode == OperatingMode.PROXIED:
        if not settings.cloud_api_url:
            _missing(settings, "CLOUD_API_URL")
            return MockCaptionBackend()
        from .cloud_api import CloudApiCaptionBackend

        return CloudApiCaptionBackend(client, base_url=settings.cloud_api_url)

    logger.warning("Unknown operating mode %r – falling back to mock", mode)
    return MockCaptionBackend()
