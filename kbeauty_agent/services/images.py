from __future__ import annotations

import asyncio
import base64
import logging
from typing import Optional

from kbeauty_agent.config import DEFAULT_FALLBACK_IMAGE_URL
from kbeauty_agent.services.gemini import ImageGenerator
from kbeauty_agent.services.prompts import build_image_prompt

logger = logging.getLogger("kbeauty-agent.images")


class ImageEnricher:
    """Resolves a product image URL, falling back to a placeholder.

    ``enrich`` never raises.
    """

    def __init__(
        self,
        generator: Optional[ImageGenerator] = None,
        *,
        fallback_url: str = DEFAULT_FALLBACK_IMAGE_URL,
        timeout_s: float = 30.0,
    ) -> None:
        self._generator = generator
        self._fallback_url = fallback_url
        self._timeout_s = timeout_s

    @property
    def fallback_url(self) -> str:
        return self._fallback_url

    async def enrich(self, name: str, brand: str) -> str:
        if self._generator is None:
            return self._fallback_url

        prompt = build_image_prompt(name, brand)
        try:
            data = await asyncio.wait_for(self._generator.generate_image(prompt), timeout=self._timeout_s)
        except asyncio.TimeoutError:
            logger.warning("image_generation_timeout product=%r timeout_s=%s", name, self._timeout_s)
            return self._fallback_url
        except Exception as exc:
            logger.warning("image_generation_failed product=%r err=%s", name, exc)
            return self._fallback_url

        if not data:
            logger.warning("image_generation_empty product=%r", name)
            return self._fallback_url

        encoded = base64.b64encode(data).decode("ascii")
        return f"data:image/jpeg;base64,{encoded}"
