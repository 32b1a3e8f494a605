"""
Dialogflow Webhook — Health Check Route
========================================

Liveness probe. Always 200 ``ok``; the access logger skips this path so
frequent probes do not flood the log.
"""

from fastapi import APIRouter
from fastapi.responses import PlainTextResponse
from starlette.types import Scope

router = APIRouter(tags=["Health"])

HEALTH_PATH = "/"


@router.get(HEALTH_PATH, response_class=PlainTextResponse, summary="Liveness probe")
async def health_check() -> str:
    return "ok"


def is_health_check(scope: Scope) -> bool:
    """Access-log bypass filter for the liveness probe."""
    return scope.get("path") == HEALTH_PATH
