"""Master API router: mounts all endpoint routers."""

from __future__ import annotations

from fastapi import APIRouter

from splitter.api import decompose, health, refine, snapshot

api_router = APIRouter(prefix="/api")

api_router.include_router(health.router)
api_router.include_router(decompose.router)
api_router.include_router(refine.router)
api_router.include_router(snapshot.router)
