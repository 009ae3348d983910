"""
FastAPI application for the trichat streaming proxy.

Run with: uvicorn trichat.app:app
"""

from __future__ import annotations

import logging
import sys
from typing import Optional

import httpx
from fastapi import FastAPI
from fastapi.responses import JSONResponse
from starlette.middleware.cors import CORSMiddleware

from .api.http import router as http_router
from .common.dotenv import load_env_auto
from .common.errors import ApiError
from .core.config import AppConfig, ConfigManager
from .core.orchestrator import Dispatcher
from .core.registry import ProviderRegistry
from .models import ErrorBody

logger = logging.getLogger("trichat")

LOG_FORMAT = "[%(asctime)s] %(levelname)s [%(name)s] %(message)s"


def configure_logging(level: str) -> None:
    """Attach one stdout handler to the ``trichat`` logger tree (idempotent)."""
    root = logging.getLogger("trichat")
    root.setLevel(getattr(logging, level.upper(), logging.INFO))
    if not root.handlers:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
        root.addHandler(handler)


def create_app(
    cfg: Optional[AppConfig] = None,
    *,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> FastAPI:
    """Build the proxy app.

    ``cfg`` defaults to .env + config file + environment, loaded once here.
    ``transport`` is handed to every upstream client (tests pass a MockTransport).
    """
    app = FastAPI(title="trichat proxy")

    if cfg is None:
        # process env wins over .env
        load_env_auto(override=False)
        cfg = ConfigManager().load()
    configure_logging(cfg.log_level)

    # every origin allowed; preflight answered by the middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.config = cfg
    app.state.registry = ProviderRegistry(cfg)
    app.state.dispatcher = Dispatcher(cfg, transport=transport)

    missing = cfg.secrets.missing()
    if missing:
        logger.warning("missing secrets %s: chat calls will fail until configured", ", ".join(missing))

    @app.exception_handler(ApiError)
    async def api_error_handler(_, exc: ApiError):
        logger.warning("request failed: %s (%s)", exc.message, exc.code)
        return JSONResponse(status_code=exc.http_status, content=ErrorBody(error=exc.message).model_dump())

    app.include_router(http_router, prefix="/v1")
    return app


app = create_app()
