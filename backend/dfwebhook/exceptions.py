"""
Dialogflow Webhook — Exception Hierarchy
=========================================

What:  Application-specific exceptions and the abort sentinel.

Exception Hierarchy:
    WebhookError (base)
    └── CustomerDataError    order text could not be parsed (handled in-service)

    AbortHandler (BaseException)
        Raised by a handler to drop the connection without a response.
        It is not an Exception subclass, so `except Exception` blocks
        (ours and Starlette's) let it through untouched. Only the server
        sees it.
"""

from typing import Any, Dict, Optional


class WebhookError(Exception):
    """
    Base exception for all webhook application errors.

    Attributes:
        message:  Human-readable error description
        context:  Additional debug info (logged, never returned to a client)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class CustomerDataError(WebhookError):
    """
    Raised when an order confirmation text does not match the expected
    ``Nomor ID: <id> Nama: <name>`` layout.

    The fulfillment service catches it and answers with the fallback event,
    so it never reaches the client as an HTTP error.
    """

    def __init__(
        self,
        message: str = "invalid data format",
        text: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if text is not None:
            ctx["text"] = text
        super().__init__(message=message, context=ctx)


class AbortHandler(BaseException):
    """
    Sentinel raised to abort the current response.

    The recover middleware re-raises it unchanged and does not log it; the
    ASGI server then tears the connection down.
    """
