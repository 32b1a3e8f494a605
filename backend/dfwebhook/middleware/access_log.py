"""
Dialogflow Webhook — Access Logging Middleware
===============================================

What:  One structured log record per request, written after the response.
How:   Buffers the request body and replays it to the downstream app,
       sends the response through a ``ResponseWriter`` to learn its status,
       and times the whole exchange with ``perf_counter_ns``.

Record (logger ``dfwebhook.access``), carried as ``extra`` fields:
    {
        "remote_ip": "203.0.113.7",
        "host": "hooks.example.com",
        "user_agent": "Google-Dialogflow",
        "method": "POST",
        "path": "/wh/dialogflow",
        "body": "{\\"queryResult\\":{...}}",
        "body_truncated": false,
        "status_code": 200,
        "latency": 1.42,
        "request_id": "5d0c3c2e-..."
    }

Severity follows the status code:
    >= 500  ERROR
    >= 400  ERROR
    >= 300  WARNING
    >= 200  INFO
    other   DEBUG (no response start was seen)

If the downstream app raises, no access record is written; the recover
middleware outside this one reports the failure.
"""

import json
import logging
import time
from functools import partial
from typing import Callable, List, Optional, Tuple

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from dfwebhook.config import settings
from dfwebhook.middleware.response_writer import ResponseWriter

logger = logging.getLogger("dfwebhook.access")

SkipFilter = Callable[[Scope], bool]


def log_severity(status_code: int) -> int:
    """Map a response status to a logging level."""
    if status_code >= 500:
        return logging.ERROR
    if status_code >= 400:
        return logging.ERROR
    if status_code >= 300:
        return logging.WARNING
    if status_code >= 200:
        return logging.INFO
    return logging.DEBUG


def _reject_constant(name: str) -> None:
    raise ValueError(f"invalid JSON constant {name!r}")


_JSON_WHITESPACE = frozenset(" \t\r\n")


def compact_json(text: str) -> str:
    """Drop insignificant whitespace from valid JSON text, leaving every token as written."""
    out = []
    in_string = False
    escaped = False
    for ch in text:
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
        elif ch == '"':
            in_string = True
        elif ch in _JSON_WHITESPACE:
            continue
        out.append(ch)
    return "".join(out)


def format_request_body(data: bytes) -> str:
    """
    Render a captured request body for the access log.

    A JSON object is logged compacted; anything else (malformed JSON, arrays,
    scalars, non-JSON payloads) is logged as the raw text. Compaction only
    removes whitespace, so numbers, escapes and duplicate keys stay as sent.
    """
    text = data.decode("utf-8", errors="replace")
    try:
        parsed = json.loads(text, parse_constant=_reject_constant)
    except ValueError:
        return text
    if not isinstance(parsed, dict):
        return text
    return compact_json(text)


async def read_body(receive: Receive, limit: int) -> Tuple[List[Message], bytes, bool]:
    """
    Drain request messages from ``receive`` until the body ends or ``limit``
    bytes have been exceeded.

    Returns:
        (messages read, body bytes to log, whether the logged body is truncated)
    """
    messages: List[Message] = []
    body = bytearray()
    while True:
        message = await receive()
        messages.append(message)
        if message["type"] != "http.request":
            break
        body.extend(message.get("body", b""))
        if not message.get("more_body", False) or len(body) > limit:
            break

    truncated = len(body) > limit
    return messages, bytes(body[:limit]) if truncated else bytes(body), truncated


def replay_receive(messages: List[Message], receive: Receive) -> Receive:
    """Return a ``receive`` that yields ``messages`` first, then reads on from ``receive``."""
    pending = list(messages)

    async def receive_replayed() -> Message:
        if pending:
            return pending.pop(0)
        return await receive()

    return receive_replayed


class AccessLogMiddleware:
    """
    Logs method, path, body, status and latency of every request.

    Args:
        app:            Downstream ASGI app
        skip:           Optional predicate on the scope; matching requests
                        pass through untouched and are not logged
        max_body_bytes: Cap on buffered body bytes (defaults to settings)
    """

    def __init__(
        self,
        app: ASGIApp,
        skip: Optional[SkipFilter] = None,
        max_body_bytes: Optional[int] = None,
    ):
        self.app = app
        self.skip = skip
        self.max_body_bytes = (
            settings.log_body_max_bytes if max_body_bytes is None else max_body_bytes
        )

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        if self.skip is not None and self.skip(scope):
            await self.app(scope, receive, send)
            return

        start = time.perf_counter_ns()

        messages, body, truncated = await read_body(receive, self.max_body_bytes)

        writer = ResponseWriter(send)
        await self.app(scope, replay_receive(messages, receive), writer)

        # Milliseconds, truncated to two decimals
        latency = (time.perf_counter_ns() - start) // 10_000 / 100

        # Read after the downstream app returns: inner stages rewrite
        # scope["client"] and the request id header in place.
        headers = Headers(scope=scope)
        client = scope.get("client")
        remote_ip = client[0] if client else ""
        status = writer.status
        logged_body = format_request_body(body)

        logger.log(
            log_severity(status),
            "%s %s %d %.2fms from %s body=%s",
            scope["method"],
            scope["path"],
            status,
            latency,
            remote_ip,
            logged_body,
            extra={
                "remote_ip": remote_ip,
                "host": headers.get("host", ""),
                "user_agent": headers.get("user-agent", ""),
                "method": scope["method"],
                "path": scope["path"],
                "body": logged_body,
                "body_truncated": truncated,
                "status_code": status,
                "latency": latency,
                "request_id": headers.get(settings.request_id_header, ""),
            },
        )


def access_logger(skip: Optional[SkipFilter] = None) -> Callable[[ASGIApp], ASGIApp]:
    """Middleware factory for use with ``chain_middleware``."""
    return partial(AccessLogMiddleware, skip=skip)
