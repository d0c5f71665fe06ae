from __future__ import annotations

import asyncio
import json
from pathlib import Path
import sys
from typing import Optional
import unittest

ROOT = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(ROOT))

from kbeauty_agent.config import Settings
from kbeauty_agent.models import ProductSchema, RecommendationRequest
from kbeauty_agent.services.extractor import MalformedJson, NoArrayFound, ResponseExtractor
from kbeauty_agent.services.images import ImageEnricher
from kbeauty_agent.services.recommendations import (
    GenerationError,
    RecommendationOptions,
    RecommendationService,
    build_recommendation_service,
)


def _items(n: int) -> list[dict]:
    return [
        {
            "productName": f"Product {i}",
            "brand": f"Brand {i}",
            "price": 15000 + i,
            "productUrl": f"https://shop.test/p{i}",
            "explanation": "Gentle",
        }
        for i in range(n)
    ]


def _request(language: str = "en") -> RecommendationRequest:
    return RecommendationRequest.model_validate(
        {
            "preferences": {"skinType": "oily", "age": 31, "budget": 40000, "delivery": "online"},
            "promptText": "lightweight sunscreen",
            "language": language,
        }
    )


class _FakeText:
    def __init__(self, reply: str = "", *, delay_s: float = 0.0, error: Optional[Exception] = None) -> None:
        self.reply = reply
        self.delay_s = delay_s
        self.error = error
        self.calls: list[dict] = []

    async def generate_text(self, *, system_instruction: str, contents: str, use_search: bool) -> str:
        self.calls.append({"system_instruction": system_instruction, "contents": contents, "use_search": use_search})
        if self.delay_s:
            await asyncio.sleep(self.delay_s)
        if self.error is not None:
            raise self.error
        return self.reply


class _StaggeredImages:
    """Finishes later for earlier products so completion order is reversed."""

    def __init__(self) -> None:
        self.completed: list[str] = []

    async def generate_image(self, prompt: str) -> Optional[bytes]:
        index = int(prompt.split("'Product ")[1].split("'")[0])
        await asyncio.sleep(0.05 * (5 - index))
        self.completed.append(f"Product {index}")
        return f"img{index}".encode()


def _service(text: _FakeText, images=None, **options) -> RecommendationService:
    opts = RecommendationOptions(**options)
    return RecommendationService(
        generator=text,
        extractor=ResponseExtractor(opts.schema),
        enricher=ImageEnricher(images, fallback_url="https://fallback.test/img"),
        options=opts,
    )


class TestRecommendationService(unittest.IsolatedAsyncioTestCase):
    async def test_enrichment_preserves_extracted_order(self) -> None:
        images = _StaggeredImages()
        service = _service(_FakeText("Here you go\n" + json.dumps(_items(5))), images)

        products = await service.recommend(_request())

        self.assertEqual([p.product_name for p in products], [f"Product {i}" for i in range(5)])
        self.assertEqual(images.completed[0], "Product 4")
        for i, p in enumerate(products):
            self.assertTrue(p.image_url.startswith("data:image/jpeg;base64,"))
            self.assertEqual(p.price, 15000 + i)

    async def test_generator_receives_built_instructions(self) -> None:
        text = _FakeText(json.dumps(_items(1)))
        service = _service(text, use_search=False)

        await service.recommend(_request("ko"))

        call = text.calls[0]
        self.assertFalse(call["use_search"])
        self.assertIn("lightweight sunscreen", call["system_instruction"])
        self.assertIn("40000", call["system_instruction"])
        self.assertIn("JSON 배열", call["contents"])

    async def test_missing_images_fall_back_without_generator(self) -> None:
        service = _service(_FakeText(json.dumps(_items(2))), None)
        products = await service.recommend(_request())
        self.assertEqual([p.image_url for p in products], ["https://fallback.test/img"] * 2)

    async def test_model_supplied_images_are_kept(self) -> None:
        items = _items(2)
        for item in items:
            item["imageUrl"] = f"https://cdn.test/{item['brand']}.jpg"
        items.append(_items(3)[2])
        images = _StaggeredImages()
        service = _service(_FakeText(json.dumps(items)), images, schema=ProductSchema.WITH_IMAGE)

        products = await service.recommend(_request())

        self.assertEqual([p.image_url for p in products], ["https://cdn.test/Brand 0.jpg", "https://cdn.test/Brand 1.jpg"])
        self.assertEqual(images.completed, [])

    async def test_input_products_are_not_mutated(self) -> None:
        extractor = ResponseExtractor()
        extracted = extractor.extract(json.dumps(_items(2)))
        service = _service(_FakeText(""), None)

        enriched = await service._enrich(extracted)

        self.assertIsNone(extracted[0].image_url)
        self.assertIsNot(enriched[0], extracted[0])
        self.assertEqual(enriched[0].product_name, extracted[0].product_name)

    async def test_empty_result_is_not_an_error(self) -> None:
        service = _service(_FakeText('{"not": "an array"}'), _StaggeredImages())
        with self.assertLogs("kbeauty-agent.recommendations", level="INFO") as logs:
            self.assertEqual(await service.recommend(_request()), [])
        self.assertTrue(any("recommendations_empty" in line and "schema=base" in line for line in logs.output))

    async def test_extraction_errors_propagate(self) -> None:
        with self.assertRaises(NoArrayFound):
            await _service(_FakeText("Sorry, I could not find anything.")).recommend(_request())
        with self.assertRaises(MalformedJson):
            await _service(_FakeText("```json\n[{\"a\": 1,}]\n```")).recommend(_request())

    async def test_generation_failure_is_wrapped(self) -> None:
        service = _service(_FakeText(error=RuntimeError("503 unavailable")))
        with self.assertRaises(GenerationError):
            await service.recommend(_request())

    async def test_generation_timeout_is_wrapped(self) -> None:
        service = _service(_FakeText("[]", delay_s=1.0), generation_timeout_s=0.05)
        with self.assertRaises(GenerationError):
            await service.recommend(_request())


class TestBuildRecommendationService(unittest.IsolatedAsyncioTestCase):
    async def test_settings_map_to_options(self) -> None:
        settings = Settings(
            product_schema=ProductSchema.WITH_IMAGE,
            use_search_tool=False,
            generate_images=False,
            upstream_timeout_s=12.0,
        )
        service = build_recommendation_service(settings, generator=_FakeText(), image_generator=_StaggeredImages())
        self.assertEqual(
            service.options,
            RecommendationOptions(
                schema=ProductSchema.WITH_IMAGE,
                use_search=False,
                generate_images=False,
                generation_timeout_s=12.0,
            ),
        )

    async def test_disabled_images_skip_the_generator(self) -> None:
        images = _StaggeredImages()
        settings = Settings(generate_images=False, fallback_image_url="https://fallback.test/x")
        service = build_recommendation_service(
            settings,
            generator=_FakeText(json.dumps(_items(1))),
            image_generator=images,
        )
        products = await service.recommend(_request())
        self.assertEqual(products[0].image_url, "https://fallback.test/x")
        self.assertEqual(images.completed, [])


if __name__ == "__main__":
    unittest.main()
