"""
Dialogflow Webhook — Real Client IP Middleware
===============================================

What:  Replaces the transport peer address with the originating client
       address announced by a trusted proxy header.

Header priority (first header present wins, later ones are not consulted):
    1. True-Client-IP
    2. X-Real-IP
    3. X-Forwarded-For, left-most hop (text before the first comma)

The chosen value must be a literal IPv4 or IPv6 address. Anything else is
ignored and the peer address stays as it is. This is enrichment only: a bad
header never fails the request.
"""

import ipaddress
from typing import Mapping

from starlette.datastructures import Headers
from starlette.types import ASGIApp, Receive, Scope, Send

TRUE_CLIENT_IP = "True-Client-IP"
X_REAL_IP = "X-Real-IP"
X_FORWARDED_FOR = "X-Forwarded-For"


def real_ip(headers: Mapping[str, str]) -> str:
    """
    Resolve the client IP from proxy headers.

    Args:
        headers: Case-insensitive header mapping (e.g. starlette ``Headers``).

    Returns:
        The IP literal, or an empty string if no header carries a valid one.
    """
    ip = ""
    if headers.get(TRUE_CLIENT_IP):
        ip = headers[TRUE_CLIENT_IP]
    elif headers.get(X_REAL_IP):
        ip = headers[X_REAL_IP]
    elif headers.get(X_FORWARDED_FOR):
        ip = headers[X_FORWARDED_FOR].split(",", 1)[0]

    if not ip:
        return ""
    try:
        ipaddress.ip_address(ip)
    except ValueError:
        return ""
    return ip


class RealIPMiddleware:
    """Rewrites ``scope["client"]`` when a proxy header names the client."""

    def __init__(self, app: ASGIApp):
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        rip = real_ip(Headers(scope=scope))
        if rip:
            # In place: outer middlewares read the same scope after we return
            client = scope.get("client")
            port = client[1] if client else 0
            scope["client"] = (rip, port)

        await self.app(scope, receive, send)
