"""
Dialogflow Webhook — Instrumented Response Writer
==================================================

What:  Wraps an ASGI ``send`` callable and remembers the status code of the
       response it starts.
How:   The first ``http.response.start`` message is recorded and forwarded.
       Any later start message is dropped, so the first write wins and the
       recorded status never changes afterwards.

The plain ``send`` callable is write-only: once a status has gone out there
is no way to ask what it was. Middlewares that need the status after the
downstream app returns (access logging, panic recovery) send through this
wrapper instead.
"""

import logging
from typing import Iterable, Optional, Tuple

from starlette.types import Message, Send

logger = logging.getLogger(__name__)

RawHeaders = Iterable[Tuple[bytes, bytes]]


class ResponseWriter:
    """
    ``send`` decorator capturing the response status.

    Attributes:
        status:       Status of the first response start, 0 until one is sent
        wrote_header: True once a response start has been forwarded
    """

    def __init__(self, send: Send):
        self._send = send
        self._status = 0
        self._wrote_header = False

    @property
    def status(self) -> int:
        return self._status

    @property
    def wrote_header(self) -> bool:
        return self._wrote_header

    async def __call__(self, message: Message) -> None:
        if message["type"] == "http.response.start":
            if self._wrote_header:
                logger.debug(
                    "superfluous response start (status %s), keeping %d",
                    message.get("status"),
                    self._status,
                )
                return
            self._status = message["status"]
            self._wrote_header = True
        await self._send(message)

    async def write_header(self, status: int, headers: Optional[RawHeaders] = None) -> bool:
        """
        Begin a response with ``status`` unless one has already started.

        Returns:
            True if this call started the response, False if it was a no-op.
        """
        if self._wrote_header:
            return False
        await self(
            {
                "type": "http.response.start",
                "status": status,
                "headers": list(headers or []),
            }
        )
        return True
