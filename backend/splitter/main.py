"""FastAPI app factory."""

from __future__ import annotations

import logging

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from splitter.config import get_settings
from splitter.engine.errors import InputError, ServiceResponseError, ServiceUnavailableError

load_dotenv()

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.splitter_log_level.upper(), logging.INFO),
    format="%(asctime)s %(name)s %(levelname)s %(message)s",
)

logger = logging.getLogger(__name__)

# Raw collaborator output echoed back in 502 responses is cut to this length
_RAW_EXCERPT = 500


def create_app() -> FastAPI:
    app = FastAPI(
        title="Screen Splitter",
        description="Tall screenshot decomposition: pixel-level segmentation plus AI-assisted merging",
        version="0.1.0",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    from splitter.api.router import api_router

    app.include_router(api_router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(InputError)
    async def input_error(request: Request, exc: InputError) -> JSONResponse:
        return JSONResponse(status_code=422, content={"error": "input", "detail": str(exc)})

    @app.exception_handler(ServiceResponseError)
    async def response_error(request: Request, exc: ServiceResponseError) -> JSONResponse:
        logger.warning("Unusable collaborator response on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=502,
            content={
                "error": "service_response",
                "detail": str(exc),
                "raw": exc.raw_text[:_RAW_EXCERPT],
            },
        )

    @app.exception_handler(ServiceUnavailableError)
    async def unavailable(request: Request, exc: ServiceUnavailableError) -> JSONResponse:
        logger.warning("Collaborator unavailable on %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=503,
            content={"error": "service_unavailable", "detail": str(exc), "attempts": exc.attempts},
        )


app = create_app()
