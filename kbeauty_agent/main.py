from __future__ import annotations

from contextlib import asynccontextmanager
import logging
import os
import re
from typing import Optional
from urllib.parse import urlparse

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from kbeauty_agent.config import Settings
from kbeauty_agent.routes.health import router as health_router
from kbeauty_agent.routes.v1 import router as v1_router
from kbeauty_agent.services.gemini import GeminiService, ImageGenerator, TextGenerator
from kbeauty_agent.services.recommendations import build_recommendation_service

logger = logging.getLogger("kbeauty-agent.main")


def _build_allow_origin_regex(origins: list[str]) -> Optional[str]:
    patterns: list[str] = []
    for origin in origins:
        try:
            parsed = urlparse(origin)
        except Exception:
            continue

        if not parsed.scheme or not parsed.hostname:
            continue

        host = parsed.hostname
        if not host.endswith(".vercel.app"):
            continue

        base = host[: -len(".vercel.app")]
        if not base:
            continue

        patterns.append(rf"{re.escape(parsed.scheme)}://{re.escape(base)}(-.*)?\.vercel\.app")

    if not patterns:
        return None

    return rf"^(?:{'|'.join(patterns)})$"


def _setup_logging() -> None:
    level = (os.getenv("LOG_LEVEL") or "INFO").upper()
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(
    settings: Optional[Settings] = None,
    *,
    text_generator: Optional[TextGenerator] = None,
    image_generator: Optional[ImageGenerator] = None,
) -> FastAPI:
    """Build the app.

    Generators passed in are used as-is; otherwise a Gemini client is created
    on startup when an API key is configured and closed on shutdown.
    """
    _setup_logging()
    settings = settings or Settings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned: Optional[GeminiService] = None
        generator = text_generator
        images = image_generator

        if generator is None and settings.gemini_configured:
            owned = GeminiService(
                api_key=settings.gemini_api_key,
                text_model=settings.text_model,
                image_model=settings.image_model,
                temperature=settings.temperature,
            )
            generator = owned
            images = images or owned

        if generator is not None:
            app.state.recommendations = build_recommendation_service(
                settings,
                generator=generator,
                image_generator=images,
            )
            logger.info(
                "recommendations_enabled schema=%s generate_images=%s search=%s",
                settings.product_schema.value,
                settings.generate_images,
                settings.use_search_tool,
            )
        else:
            logger.warning("recommendations_disabled reason=missing_GEMINI_API_KEY")

        try:
            yield
        finally:
            app.state.recommendations = None
            if owned is not None:
                await owned.aclose()

    app = FastAPI(title="K-Beauty Shopper Agent", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.recommendations = None

    origins = list(settings.cors_origins)
    allow_all = "*" in origins
    allow_origin_regex = None if allow_all else _build_allow_origin_regex(origins)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else origins,
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        allow_origin_regex=allow_origin_regex,
        max_age=86400,
    )

    app.include_router(health_router)
    app.include_router(v1_router, prefix="/v1")

    return app


app = create_app()
