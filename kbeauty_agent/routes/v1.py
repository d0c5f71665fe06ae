from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request

from kbeauty_agent.models import RecommendationRequest
from kbeauty_agent.services.extractor import ExtractionError
from kbeauty_agent.services.recommendations import GenerationError, RecommendationService


router = APIRouter()

logger = logging.getLogger("kbeauty-agent.v1")


def _require_service(request: Request) -> RecommendationService:
    service: Optional[RecommendationService] = getattr(request.app.state, "recommendations", None)
    if service is None:
        raise HTTPException(
            status_code=500,
            detail={"error": "NOT_CONFIGURED", "message": "API key is not configured on the server."},
        )
    return service


@router.post("/recommendations")
async def recommendations(body: RecommendationRequest, request: Request) -> list[dict[str, Any]]:
    service = _require_service(request)

    try:
        products = await service.recommend(body)
    except ExtractionError as exc:
        raise HTTPException(
            status_code=502,
            detail={
                "upstream": "gemini",
                "error": exc.kind.upper(),
                "message": "Failed to parse recommendations from the AI service.",
            },
        ) from exc
    except GenerationError as exc:
        raise HTTPException(
            status_code=502,
            detail={"upstream": "gemini", "error": "GENERATION_FAILED", "message": "Failed to get recommendations."},
        ) from exc

    return [p.to_payload() for p in products]
