from __future__ import annotations

import os

from fastapi import APIRouter, Request

router = APIRouter()


_COMMIT_SHA_ENV_KEYS = ("VERCEL_GIT_COMMIT_SHA", "GITHUB_SHA", "COMMIT_SHA")


def _get_commit_sha() -> str | None:
    return next((os.environ[k] for k in _COMMIT_SHA_ENV_KEYS if os.environ.get(k)), None)


@router.get("/healthz")
def healthz(request: Request):
    settings = request.app.state.settings
    return {
        "ok": True,
        "service": "kbeauty-shopper-agent",
        "commit_sha": _get_commit_sha(),
        "environment": os.getenv("VERCEL_ENV") or os.getenv("ENVIRONMENT"),
        "gemini_configured": settings.gemini_configured,
        "product_schema": settings.product_schema.value,
        "generate_images": settings.generate_images,
    }
