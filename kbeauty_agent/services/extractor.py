from __future__ import annotations

import json
import logging
import math
import re
from typing import Any, Optional

from pydantic import ValidationError

from kbeauty_agent.models import MAX_PRODUCTS, Product, ProductSchema

logger = logging.getLogger("kbeauty-agent.extractor")

_FENCED_JSON_RE = re.compile(r"```(?:json)?[ \t]*(?:\r?\n|(?=[\[{]))([\s\S]*?)\s*```", re.IGNORECASE)


class ExtractionError(Exception):
    kind = "extraction_error"

    def __init__(self, message: str, *, raw_text: str) -> None:
        super().__init__(message)
        self.raw_text = raw_text or ""


class NoArrayFound(ExtractionError):
    kind = "no_array_found"

    def __init__(self, *, raw_text: str) -> None:
        super().__init__("Response did not contain a JSON array.", raw_text=raw_text)


class MalformedJson(ExtractionError):
    kind = "malformed_json"

    def __init__(self, *, raw_text: str, error: json.JSONDecodeError) -> None:
        super().__init__(f"Response contained malformed JSON: {error}", raw_text=raw_text)
        self.error = error


def find_candidate_json(text: str) -> Optional[str]:
    """Locate the substring most likely to hold the JSON array.

    An untagged fence or one tagged ``json`` wins; fences in any other
    language fall through to the span from the first ``[`` to the last ``]``.
    """
    match = _FENCED_JSON_RE.search(text)
    if match:
        return match.group(1)

    start = text.find("[")
    end = text.rfind("]")
    if start != -1 and end != -1 and end > start:
        return text[start : end + 1]
    return None


def coerce_price(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, str):
        text = value.strip().replace(",", "")
        if not text:
            return None
        try:
            value = float(text)
        except ValueError:
            return None
    if not isinstance(value, (int, float)):
        return None
    if isinstance(value, float) and not math.isfinite(value):
        return None
    if value < 0:
        return None
    return int(round(value))


def _non_empty_str(value: Any) -> Optional[str]:
    if not isinstance(value, str):
        return None
    text = value.strip()
    return text or None


class ResponseExtractor:
    """Turns a generation reply into at most ``MAX_PRODUCTS`` validated products.

    Only a missing array or unparsable JSON is an error; anything else
    degrades to a shorter (possibly empty) list.
    """

    def __init__(self, schema: ProductSchema = ProductSchema.BASE) -> None:
        self._schema = schema

    @property
    def schema(self) -> ProductSchema:
        return self._schema

    def extract(self, raw_text: str) -> list[Product]:
        text = (raw_text or "").strip()

        candidate = find_candidate_json(text)
        if candidate is None:
            # A bare JSON value without brackets is a non-array reply, not a miss.
            try:
                parsed = json.loads(text)
            except json.JSONDecodeError as exc:
                raise NoArrayFound(raw_text=raw_text) from exc
        else:
            try:
                parsed = json.loads(candidate)
            except json.JSONDecodeError as exc:
                raise MalformedJson(raw_text=raw_text, error=exc) from exc

        if not isinstance(parsed, list):
            logger.info("extract_non_array type=%s", type(parsed).__name__)
            return []

        products: list[Product] = []
        for index, item in enumerate(parsed[:MAX_PRODUCTS]):
            product = self._to_product(item)
            if product is None:
                logger.debug("extract_dropped_element index=%s", index)
                continue
            products.append(product)
        return products

    def _to_product(self, item: Any) -> Optional[Product]:
        if not isinstance(item, dict):
            return None

        name = _non_empty_str(item.get("productName"))
        brand = _non_empty_str(item.get("brand"))
        url = _non_empty_str(item.get("productUrl"))
        explanation = item.get("explanation")
        price = coerce_price(item.get("price"))
        if not name or not brand or not url or price is None:
            return None
        if not isinstance(explanation, str):
            return None

        image_url = _non_empty_str(item.get("imageUrl"))
        if "imageUrl" in self._schema.required_fields and not image_url:
            return None

        try:
            return Product(
                productName=name,
                brand=brand,
                price=price,
                productUrl=url,
                explanation=explanation.strip(),
                imageUrl=image_url,
            )
        except ValidationError:
            return None
