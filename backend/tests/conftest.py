"""
Dialogflow Webhook — Test Configuration (conftest.py)
======================================================

Shared pytest fixtures for the test suite.

Fixture Overview:
    ├── make_scope:      builds a raw ASGI HTTP scope
    ├── make_receive:    ASGI ``receive`` replaying given body chunks
    ├── send_recorder:   ASGI ``send`` that records every message
    ├── webhook_payload: a Dialogflow request for a known customer
    └── test_client:     HTTPX AsyncClient wired to the full pipeline
"""

import os
from typing import Dict, List, Optional, Tuple

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

# Before any dfwebhook import, so Settings() picks them up
os.environ["LOG_LEVEL"] = "DEBUG"
os.environ.setdefault("LOG_BODY_MAX_BYTES", "65536")


class SendRecorder:
    """ASGI ``send`` double that keeps every message it is given."""

    def __init__(self):
        self.messages: List[dict] = []

    async def __call__(self, message: dict) -> None:
        self.messages.append(message)

    @property
    def starts(self) -> List[dict]:
        return [m for m in self.messages if m["type"] == "http.response.start"]

    @property
    def body(self) -> bytes:
        return b"".join(
            m.get("body", b"") for m in self.messages if m["type"] == "http.response.body"
        )


@pytest.fixture
def make_scope():
    """Factory for minimal but complete ASGI HTTP scopes."""

    def _make_scope(
        path: str = "/wh/dialogflow",
        method: str = "POST",
        headers: Optional[Dict[str, str]] = None,
        client: Optional[Tuple[str, int]] = ("10.0.0.1", 51234),
    ) -> dict:
        return {
            "type": "http",
            "asgi": {"version": "3.0"},
            "http_version": "1.1",
            "method": method,
            "scheme": "http",
            "path": path,
            "raw_path": path.encode("latin-1"),
            "query_string": b"",
            "root_path": "",
            "headers": [
                (name.lower().encode("latin-1"), value.encode("latin-1"))
                for name, value in (headers or {}).items()
            ],
            "client": client,
            "server": ("testserver", 80),
        }

    return _make_scope


@pytest.fixture
def make_receive():
    """Factory for a ``receive`` that yields the body in the given chunks."""

    def _make_receive(*chunks: bytes):
        messages = [
            {"type": "http.request", "body": chunk, "more_body": i < len(chunks) - 1}
            for i, chunk in enumerate(chunks or (b"",))
        ]

        async def receive() -> dict:
            if messages:
                return messages.pop(0)
            return {"type": "http.disconnect"}

        return receive

    return _make_receive


@pytest.fixture
def send_recorder():
    return SendRecorder()


@pytest.fixture
def webhook_payload():
    """Dialogflow request for a customer on record."""
    return {
        "responseId": "7a3c1d4e-0000-4000-8000-000000000001",
        "session": "projects/pesanan-agent/agent/sessions/abc123",
        "queryResult": {
            "queryText": "Nomor ID: 1234 Nama: Joko",
            "languageCode": "en",
            "intent": {
                "name": "projects/pesanan-agent/agent/intents/42",
                "displayName": "2konfirmasi-pesanan-sent-intent",
            },
        },
    }


@pytest_asyncio.fixture
async def test_client():
    """
    HTTPX AsyncClient talking to the assembled pipeline through ASGITransport.

    Usage:
        async def test_health(test_client):
            response = await test_client.get("/")
            assert response.status_code == 200
    """
    from dfwebhook.main import app

    transport = ASGITransport(app=app, client=("192.0.2.10", 40000))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client
