"""Health check + meta endpoints."""

from __future__ import annotations

from fastapi import APIRouter

from splitter.models.responses import HealthResponse

router = APIRouter()


@router.get("/health", response_model=HealthResponse)
async def health() -> HealthResponse:
    return HealthResponse(status="ok", version="0.1.0")


@router.get("/prompts")
async def prompts() -> dict[str, str]:
    from splitter.llm.prompts import get_all_templates

    return get_all_templates()
