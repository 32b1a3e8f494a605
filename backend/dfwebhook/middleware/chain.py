"""
Dialogflow Webhook — Middleware Chain
======================================

Composes ASGI middlewares around a terminal app.

    chain_middleware(app, a, b, c)  ==  a(b(c(app)))

The first middleware listed becomes the outermost wrapper, so a request
flows through the list left to right and the response flows back right to
left.
"""

from typing import Callable

from starlette.types import ASGIApp

Middleware = Callable[[ASGIApp], ASGIApp]


def chain_middleware(app: ASGIApp, *middlewares: Middleware) -> ASGIApp:
    for middleware in reversed(middlewares):
        app = middleware(app)
    return app
