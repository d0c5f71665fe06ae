from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
import time
from typing import Optional

from kbeauty_agent.config import Settings
from kbeauty_agent.models import Product, ProductSchema, RecommendationRequest
from kbeauty_agent.services.extractor import ExtractionError, ResponseExtractor
from kbeauty_agent.services.gemini import ImageGenerator, TextGenerator
from kbeauty_agent.services.images import ImageEnricher
from kbeauty_agent.services.prompts import build_system_instruction, build_user_instruction

logger = logging.getLogger("kbeauty-agent.recommendations")


class GenerationError(Exception):
    pass


@dataclass(frozen=True)
class RecommendationOptions:
    schema: ProductSchema = ProductSchema.BASE
    use_search: bool = True
    generate_images: bool = True
    generation_timeout_s: float = 90.0


class RecommendationService:
    def __init__(
        self,
        *,
        generator: TextGenerator,
        extractor: ResponseExtractor,
        enricher: ImageEnricher,
        options: RecommendationOptions,
    ) -> None:
        self._generator = generator
        self._extractor = extractor
        self._enricher = enricher
        self._options = options

    @property
    def options(self) -> RecommendationOptions:
        return self._options

    async def recommend(self, request: RecommendationRequest) -> list[Product]:
        started_at = time.perf_counter()
        system_instruction = build_system_instruction(
            request.preferences,
            request.prompt_text,
            request.language,
            self._options.schema,
        )
        raw_text = await self._generate(system_instruction, build_user_instruction(request.language))

        try:
            products = self._extractor.extract(raw_text)
        except ExtractionError as exc:
            logger.error("extraction_failed kind=%s err=%s raw=%r", exc.kind, exc, exc.raw_text[:4000])
            raise

        if not products:
            logger.info("recommendations_empty language=%s schema=%s", request.language, self._extractor.schema.value)
            return []

        enriched = await self._enrich(products)
        elapsed_ms = int(round((time.perf_counter() - started_at) * 1000))
        logger.info("recommendations_ready count=%s elapsed_ms=%s", len(enriched), elapsed_ms)
        return enriched

    async def _generate(self, system_instruction: str, contents: str) -> str:
        try:
            return await asyncio.wait_for(
                self._generator.generate_text(
                    system_instruction=system_instruction,
                    contents=contents,
                    use_search=self._options.use_search,
                ),
                timeout=self._options.generation_timeout_s,
            )
        except asyncio.TimeoutError as exc:
            logger.error("generation_timeout timeout_s=%s", self._options.generation_timeout_s)
            raise GenerationError("Generation call timed out") from exc
        except Exception as exc:
            logger.error("generation_failed err=%s", exc)
            raise GenerationError(str(exc) or "Generation call failed") from exc

    async def _enrich(self, products: list[Product]) -> list[Product]:
        async def _one(product: Product) -> Product:
            if product.image_url:
                return product
            image_url = await self._enricher.enrich(product.product_name, product.brand)
            return product.model_copy(update={"image_url": image_url})

        # gather keeps results in argument order regardless of completion order.
        return list(await asyncio.gather(*(_one(p) for p in products)))


def build_recommendation_service(
    settings: Settings,
    *,
    generator: TextGenerator,
    image_generator: Optional[ImageGenerator] = None,
) -> RecommendationService:
    options = RecommendationOptions(
        schema=settings.product_schema,
        use_search=settings.use_search_tool,
        generate_images=settings.generate_images,
        generation_timeout_s=settings.upstream_timeout_s,
    )
    enricher = ImageEnricher(
        image_generator if options.generate_images else None,
        fallback_url=settings.fallback_image_url,
        timeout_s=settings.image_timeout_s,
    )
    return RecommendationService(
        generator=generator,
        extractor=ResponseExtractor(options.schema),
        enricher=enricher,
        options=options,
    )
