from __future__ import annotations

from typing import Dict, List, Optional, Type

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from crossroute.api.http.http_api import router as http_router
from crossroute.configuration.config import settings
from crossroute.core.errors import (
    BridgeError,
    InvalidRequest,
    NoSupportedProvider,
    NoValidRoute,
    UnsupportedAsset,
    UnsupportedChain,
)
from crossroute.core.service import BridgeService
from crossroute.logging.logger import get_logger

log = get_logger(__name__)

_ERROR_STATUS: Dict[Type[BridgeError], int] = {
    InvalidRequest: 400,
    UnsupportedChain: 400,
    UnsupportedAsset: 400,
    NoSupportedProvider: 404,
    NoValidRoute: 503,
}


def _parse_allowed_origins(env_value: str) -> List[str]:
    """Parse a comma-separated CORS origins string into a clean list."""
    return [origin.strip() for origin in env_value.split(",") if origin.strip()]


def _status_for(error: BridgeError) -> int:
    for error_type, status_code in _ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status_code
    return 422


def create_app(service: Optional[BridgeService] = None) -> FastAPI:
    """Create and configure the FastAPI application.

    Args:
        service: Pre-built bridge service (tests inject one); built from settings otherwise.

    Returns:
        FastAPI: Configured crossroute API application.
    """
    app = FastAPI(title="Crossroute API")
    app.state.bridge_service = service or BridgeService.from_settings()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_parse_allowed_origins(settings.CORS_ORIGINS),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BridgeError)
    async def on_bridge_error(request: Request, exc: BridgeError) -> JSONResponse:
        log.warning("[HTTP][ERROR] path=%s kind=%s message=%s", request.url.path, exc.kind, exc.message)
        return JSONResponse(status_code=_status_for(exc), content=exc.to_dict())

    @app.on_event("startup")
    async def on_startup() -> None:
        service_ = app.state.bridge_service
        log.info("Crossroute startup: providers=%s", ",".join(adapter.name for adapter in service_.adapters))

    @app.on_event("shutdown")
    async def on_shutdown() -> None:
        """Stop monitors and close HTTP clients."""
        await app.state.bridge_service.aclose()

    app.include_router(http_router)
    return app
