"""OpenAI provider (chat completions) for caption text."""

from __future__ import annotations

import logging
import time

import httpx

from autoscene.services.ai.caption.contracts import CaptionRequest
from autoscene.services.ai.caption.prompts import CAPTION_SYSTEM_PROMPT, build_caption_prompt

from .base import ProviderResult, RemoteCallError
from .remote import RemoteCaptionBackend, post_json

logger = logging.getLogger(__name__)


class OpenAICaptionBackend(RemoteCaptionBackend):
    name = "openai"

    def __init__(
        self,
        client: httpx.AsyncClient,
        *,
        api_key: str,
        url: str = "https://api.openai.com/v1/chat/completions",
        model: str = "gpt-4o",
        temperature: float = 0.8,
        max_tokens: int = 200,
    ) -> None:
        super().__init__(client)
        self._api_key = api_key
        self._url = url
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def complete(
        self,
        prompt: str,
        *,
        system_prompt: str | None = CAPTION_SYSTEM_PROMPT,
        model: str = "",
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> ProviderResult:
        model = model or self._model
        t0 = time.monotonic()

        messages: list[dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        data = await post_json(
            self._client,
            self._url,
            headers={
                "Authorization": f"Bearer {self._api_key}",
                "Content-Type": "application/json",
            },
            body={
                "model": model,
                "max_tokens": max_tokens if max_tokens is not None else self._max_tokens,
                "temperature": temperature if temperature is not None else self._temperature,
                "messages": messages,
            },
        )

        elapsed = (time.monotonic() - t0) * 1000
        try:
            text = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as exc:
            raise RemoteCallError(f"{self._url}: malformed completion body") from exc
        if not isinstance(text, str):
            raise RemoteCallError(f"{self._url}: completion content is not text")
        usage = data.get("usage") if isinstance(data.get("usage"), dict) else {}

        return ProviderResult(
            raw_text=text,
            model=data.get("model") or model,
            provider=self.name,
            prompt_tokens=usage.get("prompt_tokens", 0),
            completion_tokens=usage.get("completion_tokens", 0),
            latency_ms=round(elapsed, 2),
        )

    async def generate_remote(self, request: CaptionRequest) -> str:
        result = await self.complete(build_caption_prompt(request))
        caption = result.raw_text.strip()
        if not caption:
            raise RemoteCallError(f"{self._url}: empty caption")
        logger.info(
            "Caption generated model=%s tokens=%s/%s latency_ms=%s",
            result.model,
            result.prompt_tokens,
            result.completion_tokens,
            result.latency_ms,
        )
        return caption
