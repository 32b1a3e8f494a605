"""
Dialogflow Webhook — Application Factory & Entrypoint
======================================================

What:  Builds the FastAPI routing layer, wraps it in the middleware pipeline
       and runs it under uvicorn.
Who:   ``uvicorn dfwebhook.main:app``, ``python -m dfwebhook`` or the
       ``dfwebhook`` console script.

Application Architecture:
    ┌─────────────────────────────────────────────────────┐
    │  Middleware Pipeline (chain_middleware)             │
    │  ┌─────────┐ ┌────────────┐ ┌─────────┐ ┌────────┐  │
    │  │ Recover │→│ Access Log │→│ Real IP │→│ Req ID │  │
    │  └─────────┘ └────────────┘ └─────────┘ └────────┘  │
    │                                                     │
    │  FastAPI Routes:                                    │
    │  ┌───────────┐ ┌──────────────────────┐             │
    │  │ GET /     │ │ POST /wh/dialogflow  │             │
    │  └───────────┘ └──────────────────────┘             │
    │                                                     │
    │  Exception Handlers:                                │
    │  ┌──────────────────────────────────────────────┐   │
    │  │ RequestValidationError → 400                 │   │
    │  │ anything else          → Recover → 500       │   │
    │  └──────────────────────────────────────────────┘   │
    └─────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging
    Shutdown: uvicorn stops accepting connections on SIGINT/SIGTERM and
              waits up to ``shutdown_grace_period`` seconds for in-flight
              requests before closing them
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional, TextIO

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pythonjsonlogger.json import JsonFormatter
from starlette.types import ASGIApp

from dfwebhook import __version__
from dfwebhook.config import settings
from dfwebhook.middleware.access_log import access_logger
from dfwebhook.middleware.chain import chain_middleware
from dfwebhook.middleware.real_ip import RealIPMiddleware
from dfwebhook.middleware.recover import RecoverMiddleware
from dfwebhook.middleware.request_id import RequestIDFilter, RequestIDMiddleware, request_id_var
from dfwebhook.routes import dialogflow, health
from dfwebhook.routes.health import is_health_check

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def build_log_handler(stream: Optional[TextIO] = None) -> logging.Handler:
    """
    Handler writing one JSON object per record.

    Every ``extra`` field of a record becomes a top-level key, so the access
    record's ``host``, ``user_agent``, ``latency`` etc. are readable as
    fields rather than only inside ``message``.
    """
    handler = logging.StreamHandler(stream or sys.stdout)
    handler.addFilter(RequestIDFilter())
    handler.setFormatter(
        JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(request_id)s %(message)s",
            datefmt="%Y-%m-%dT%H:%M:%S",
            rename_fields={"asctime": "time", "levelname": "level"},
            json_ensure_ascii=False,
        )
    )
    return handler


def setup_logging() -> None:
    """
    Configure process-wide logging.

    Output: JSON lines on stdout (python-json-logger), e.g.
        {"time": "...", "level": "INFO", "name": "dfwebhook.access",
         "request_id": "5d0c...", "message": "POST /wh/dialogflow 200 ...",
         "remote_ip": "203.0.113.7", "status_code": 200, "latency": 1.42, ...}

    ``RequestIDFilter`` sits on the handler, so every record (ours and
    third-party) has a ``request_id`` attribute, "-" outside a request.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        handlers=[build_log_handler()],
        force=True,
    )

    # Our access logger replaces uvicorn's
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    setup_logging()
    logger.info("%s %s starting on port %d", settings.app_name, __version__, settings.port)

    yield

    logger.info("shutting down")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def register_exception_handlers(app: FastAPI) -> None:
    """
    Map expected failures to responses.

    Unexpected exceptions are deliberately not handled here: they travel up
    to RecoverMiddleware, which logs the traceback and owns the 500.
    """

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError):
        """Body did not decode into the expected payload."""
        rid = request_id_var.get("")
        message = "; ".join(
            "{}: {}".format(".".join(str(part) for part in err.get("loc", ())), err.get("msg", ""))
            for err in exc.errors()
        )
        logger.warning("Malformed webhook payload: %s", message)
        return JSONResponse(
            status_code=400,
            content={
                "error": "validation_error",
                "message": message,
                "request_id": rid,
            },
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """Create the FastAPI routing layer (no pipeline middlewares)."""
    app = FastAPI(
        title="Dialogflow Webhook",
        description="Fulfillment webhook for the order complaint and confirmation intents.",
        version=__version__,
        lifespan=lifespan,
    )

    register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(dialogflow.router)

    return app


def build_pipeline(app: ASGIApp) -> ASGIApp:
    """Wrap ``app`` in the request middlewares, outermost first."""
    return chain_middleware(
        app,
        RecoverMiddleware,
        access_logger(skip=is_health_check),
        RealIPMiddleware,
        RequestIDMiddleware,
    )


app = build_pipeline(create_app())


def run() -> None:
    """Serve ``app`` until interrupted."""
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        timeout_keep_alive=settings.idle_timeout,
        timeout_graceful_shutdown=settings.shutdown_grace_period,
        log_level=settings.log_level.lower(),
        access_log=False,
    )
