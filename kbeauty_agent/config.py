from __future__ import annotations

import logging
import os
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from kbeauty_agent.models import ProductSchema

logger = logging.getLogger("kbeauty-agent.config")

DEFAULT_TEXT_MODEL = "gemini-2.5-pro"
DEFAULT_IMAGE_MODEL = "imagen-4.0-generate-001"
DEFAULT_FALLBACK_IMAGE_URL = "https://picsum.photos/300/300"


class Settings(BaseModel):
    model_config = ConfigDict(frozen=True)

    gemini_api_key: Optional[str] = None
    text_model: str = DEFAULT_TEXT_MODEL
    image_model: str = DEFAULT_IMAGE_MODEL
    temperature: Optional[float] = None
    use_search_tool: bool = True
    generate_images: bool = True
    product_schema: ProductSchema = ProductSchema.BASE
    upstream_timeout_s: float = 90.0
    image_timeout_s: float = 30.0
    fallback_image_url: str = DEFAULT_FALLBACK_IMAGE_URL
    cors_origins: list[str] = Field(default_factory=lambda: ["*"])

    @property
    def gemini_configured(self) -> bool:
        return bool(self.gemini_api_key)

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            gemini_api_key=_env_str("GEMINI_API_KEY") or _env_str("API_KEY"),
            text_model=_env_str("GEMINI_TEXT_MODEL") or DEFAULT_TEXT_MODEL,
            image_model=_env_str("GEMINI_IMAGE_MODEL") or DEFAULT_IMAGE_MODEL,
            temperature=_env_optional_float("GEMINI_TEMPERATURE"),
            use_search_tool=_env_bool("USE_SEARCH_TOOL", True),
            generate_images=_env_bool("GENERATE_IMAGES", True),
            product_schema=_env_schema("PRODUCT_SCHEMA"),
            upstream_timeout_s=_env_float("UPSTREAM_TIMEOUT_S", 90.0),
            image_timeout_s=_env_float("IMAGE_TIMEOUT_S", 30.0),
            fallback_image_url=_env_str("FALLBACK_IMAGE_URL") or DEFAULT_FALLBACK_IMAGE_URL,
            cors_origins=parse_cors_origins(os.getenv("CORS_ORIGINS")),
        )


def parse_cors_origins(raw: Optional[str]) -> list[str]:
    if not raw:
        return ["*"]
    parts = [p.strip() for p in raw.split(",")]
    return [p for p in parts if p] or ["*"]


def _env_str(name: str) -> Optional[str]:
    return (os.getenv(name) or "").strip() or None


def _env_bool(name: str, default: bool) -> bool:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return default
    return raw in {"1", "true", "yes", "y"}


def _env_float(name: str, default: float) -> float:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except Exception:
        return default


def _env_optional_float(name: str) -> Optional[float]:
    raw = (os.getenv(name) or "").strip()
    if not raw:
        return None
    try:
        return float(raw)
    except Exception:
        logger.warning("invalid_env_float name=%s value=%r", name, raw)
        return None


def _env_schema(name: str) -> ProductSchema:
    raw = (os.getenv(name) or "").strip().lower()
    if not raw:
        return ProductSchema.BASE
    try:
        return ProductSchema(raw)
    except ValueError:
        logger.warning("unknown_product_schema value=%r fallback=%s", raw, ProductSchema.BASE.value)
        return ProductSchema.BASE
