from __future__ import annotations

import logging
from typing import Any, Optional, Protocol

from google import genai
from google.genai import types

from kbeauty_agent.config import DEFAULT_IMAGE_MODEL, DEFAULT_TEXT_MODEL

logger = logging.getLogger("kbeauty-agent.gemini")


class TextGenerator(Protocol):
    async def generate_text(self, *, system_instruction: str, contents: str, use_search: bool) -> str: ...


class ImageGenerator(Protocol):
    async def generate_image(self, prompt: str) -> Optional[bytes]: ...


class GeminiService(TextGenerator, ImageGenerator):
    """Text and image generation backed by one ``google.genai`` client."""

    def __init__(
        self,
        *,
        api_key: Optional[str] = None,
        client: Any = None,
        text_model: str = DEFAULT_TEXT_MODEL,
        image_model: str = DEFAULT_IMAGE_MODEL,
        temperature: Optional[float] = None,
    ) -> None:
        if client is None:
            if not api_key:
                raise ValueError("api_key is required when no client is given")
            client = genai.Client(api_key=api_key)
        self._client = client
        self._text_model = text_model
        self._image_model = image_model
        self._temperature = temperature

    async def generate_text(self, *, system_instruction: str, contents: str, use_search: bool) -> str:
        config = types.GenerateContentConfig(
            system_instruction=system_instruction,
            tools=[types.Tool(google_search=types.GoogleSearch())] if use_search else None,
            temperature=self._temperature,
        )
        response = await self._client.aio.models.generate_content(
            model=self._text_model,
            contents=contents,
            config=config,
        )
        text = getattr(response, "text", None)
        return text if isinstance(text, str) else ""

    async def generate_image(self, prompt: str) -> Optional[bytes]:
        response = await self._client.aio.models.generate_images(
            model=self._image_model,
            prompt=prompt,
            config=types.GenerateImagesConfig(
                number_of_images=1,
                output_mime_type="image/jpeg",
                aspect_ratio="1:1",
            ),
        )
        images = getattr(response, "generated_images", None) or []
        if not images:
            return None
        image = getattr(images[0], "image", None)
        data = getattr(image, "image_bytes", None)
        return data if data else None

    async def aclose(self) -> None:
        closer = getattr(self._client.aio, "aclose", None)
        if closer is None:
            return
        try:
            await closer()
        except Exception as exc:
            logger.warning("gemini_client_close_failed err=%s", exc)
