"""
Dialogflow Webhook — Panic Recovery Middleware
===============================================

What:  Fault boundary around the whole pipeline. An exception escaping any
       later stage is logged with its traceback and turned into a 500.
When:  Outermost middleware, so failures in the access logger and the other
       middlewares are caught too.

    AbortHandler      → re-raised unchanged, not logged, nothing written
    any Exception     → ERROR record with stack trace, 500 if no response
                        has started yet; the request then ends normally

A response that already started is left alone: the 500 start is a no-op
through the ResponseWriter and no extra body is sent.
"""

import json
import logging

from starlette.types import ASGIApp, Receive, Scope, Send

from dfwebhook.exceptions import AbortHandler
from dfwebhook.middleware.request_id import request_id_var
from dfwebhook.middleware.response_writer import ResponseWriter

logger = logging.getLogger(__name__)

INTERNAL_ERROR_BODY = {
    "error": "internal_server_error",
    "message": "An unexpected error occurred. Please try again or contact support.",
}


class RecoverMiddleware:
    """Converts unexpected exceptions into a logged, generic 500 response."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        writer = ResponseWriter(send)
        try:
            await self.app(scope, receive, writer)
        except AbortHandler:
            # The server drops the connection; this is not an application error
            raise
        except Exception as e:
            logger.error(
                "panic recover: %s",
                e,
                exc_info=True,
                extra={"error": repr(e)},
            )
            await self._write_internal_error(writer)

    @staticmethod
    async def _write_internal_error(writer: ResponseWriter) -> None:
        body = json.dumps(
            {**INTERNAL_ERROR_BODY, "request_id": request_id_var.get("")}
        ).encode("utf-8")
        started = await writer.write_header(
            500,
            headers=[
                (b"content-type", b"application/json"),
                (b"content-length", str(len(body)).encode("latin-1")),
            ],
        )
        if started:
            await writer({"type": "http.response.body", "body": body})
