"""
Dialogflow Webhook — Request ID Middleware
===========================================

What:  Makes sure every request carries an ``X-Request-Id`` and that every
       log record emitted while serving it carries the same id.
How:   Reuses the inbound header when the caller sent one, otherwise
       generates a UUID4 and writes it into the request headers. The id is
       then bound to a per-request logger (``RequestContext``), published
       through a ContextVar for module-level loggers, and echoed back on
       the response.

Consumers:
    - Route handlers:   ``Depends(get_request_context)`` → ``ctx.logger``
    - Module loggers:   ``RequestIDFilter`` stamps ``record.request_id``
    - Access logger:    reads the header back from the shared scope
"""

import logging
import uuid
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, MutableMapping, Optional, Tuple

from starlette.datastructures import MutableHeaders
from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from dfwebhook.config import settings

# Coroutine-local: each request task sees only its own id
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

REQUEST_CONTEXT_KEY = "request_context"


class RequestLoggerAdapter(logging.LoggerAdapter):
    """LoggerAdapter that merges per-call ``extra`` with the bound fields."""

    def process(
        self, msg: Any, kwargs: MutableMapping[str, Any]
    ) -> Tuple[Any, MutableMapping[str, Any]]:
        kwargs["extra"] = {**self.extra, **(kwargs.get("extra") or {})}
        return msg, kwargs


class RequestIDFilter(logging.Filter):
    """Stamps ``record.request_id`` from ``request_id_var`` ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "request_id"):
            record.request_id = request_id_var.get() or "-"
        return True


@dataclass(frozen=True)
class RequestContext:
    """Request-scoped correlation data handed to handlers and services."""

    request_id: str
    logger: RequestLoggerAdapter


def bind_request_logger(request_id: str, name: str = "dfwebhook") -> RequestLoggerAdapter:
    return RequestLoggerAdapter(logging.getLogger(name), {"request_id": request_id})


def get_request_context(request: Request) -> RequestContext:
    """
    FastAPI dependency returning the context bound by ``RequestIDMiddleware``.

    Falls back to an uncorrelated context when the app runs without the
    middleware pipeline (e.g. a bare ``create_app()`` in tests).
    """
    ctx = getattr(request.state, REQUEST_CONTEXT_KEY, None)
    if ctx is None:
        rid = request_id_var.get("")
        ctx = RequestContext(request_id=rid, logger=bind_request_logger(rid))
    return ctx


class RequestIDMiddleware:
    """
    Assigns a request id and binds it into the logging context.

    Behavior:
        1. Read the id header; if absent or empty, generate a UUID4 and set
           it on the request headers (in place on the shared scope)
        2. Store a ``RequestContext`` on ``scope["state"]``
        3. Set ``request_id_var`` for log records from module loggers
        4. Add the id to the response headers
    """

    def __init__(self, app: ASGIApp, header_name: Optional[str] = None):
        self.app = app
        self.header_name = header_name or settings.request_id_header

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        headers = MutableHeaders(scope=scope)
        rid = headers.get(self.header_name, "")
        if not rid:
            rid = str(uuid.uuid4())
            headers[self.header_name] = rid

        scope.setdefault("state", {})[REQUEST_CONTEXT_KEY] = RequestContext(
            request_id=rid, logger=bind_request_logger(rid)
        )
        request_id_var.set(rid)

        async def send_with_request_id(message: Message) -> None:
            if message["type"] == "http.response.start":
                message.setdefault("headers", [])
                response_headers = MutableHeaders(scope=message)
                if self.header_name not in response_headers:
                    response_headers.append(self.header_name, rid)
            await send(message)

        await self.app(scope, receive, send_with_request_id)
