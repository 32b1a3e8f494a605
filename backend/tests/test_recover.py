"""
Dialogflow Webhook — Recover Middleware Unit Tests
===================================================

What we test:
    ✅ An exception becomes exactly one 500 and one ERROR record with traceback
    ✅ The middleware returns normally after recovering
    ✅ AbortHandler propagates untouched: nothing written, nothing logged
    ✅ ... also when raised from async and threadpool FastAPI routes
    ✅ A response already in flight is not restarted
    ✅ Failures in later middlewares (e.g. the access logger) are caught
"""

import json
import logging

import pytest

from dfwebhook.exceptions import AbortHandler
from dfwebhook.main import build_pipeline, create_app
from dfwebhook.middleware.recover import RecoverMiddleware

RECOVER_LOGGER = "dfwebhook.middleware.recover"


def _error_records(caplog):
    return [
        r for r in caplog.records
        if r.name.startswith("dfwebhook") and r.levelno >= logging.ERROR
    ]


class TestRecoverMiddleware:

    @pytest.mark.asyncio
    async def test_exception_becomes_500(self, make_scope, make_receive, send_recorder, caplog):
        caplog.set_level(logging.DEBUG)

        async def failing(scope, receive, send):
            raise ValueError("unexpected state")

        await RecoverMiddleware(failing)(make_scope(), make_receive(), send_recorder)

        assert len(send_recorder.starts) == 1
        assert send_recorder.starts[0]["status"] == 500
        body = json.loads(send_recorder.body)
        assert body["error"] == "internal_server_error"
        assert "unexpected state" not in send_recorder.body.decode()

        records = _error_records(caplog)
        assert len(records) == 1
        assert records[0].name == RECOVER_LOGGER
        assert records[0].exc_info is not None
        assert records[0].exc_info[0] is ValueError
        assert records[0].error == "ValueError('unexpected state')"

    @pytest.mark.asyncio
    async def test_abort_handler_propagates(self, make_scope, make_receive, send_recorder, caplog):
        caplog.set_level(logging.DEBUG)
        sentinel = AbortHandler()

        async def aborting(scope, receive, send):
            raise sentinel

        with pytest.raises(AbortHandler) as excinfo:
            await RecoverMiddleware(aborting)(make_scope(), make_receive(), send_recorder)

        assert excinfo.value is sentinel
        assert send_recorder.messages == []
        assert _error_records(caplog) == []

    def test_abort_handler_is_not_an_exception(self):
        assert not issubclass(AbortHandler, Exception)

    @pytest.mark.asyncio
    async def test_started_response_not_restarted(self, make_scope, make_receive, send_recorder, caplog):
        caplog.set_level(logging.DEBUG)

        async def half_sent(scope, receive, send):
            await send({"type": "http.response.start", "status": 200, "headers": []})
            await send({"type": "http.response.body", "body": b"partial", "more_body": True})
            raise RuntimeError("mid-stream failure")

        await RecoverMiddleware(half_sent)(make_scope(), make_receive(), send_recorder)

        assert [m["status"] for m in send_recorder.starts] == [200]
        assert send_recorder.body == b"partial"
        assert len(_error_records(caplog)) == 1

    @pytest.mark.asyncio
    async def test_success_passes_through(self, make_scope, make_receive, send_recorder, caplog):
        caplog.set_level(logging.DEBUG)

        async def ok(scope, receive, send):
            await send({"type": "http.response.start", "status": 204, "headers": []})
            await send({"type": "http.response.body", "body": b""})

        await RecoverMiddleware(ok)(make_scope(), make_receive(), send_recorder)

        assert send_recorder.starts[0]["status"] == 204
        assert _error_records(caplog) == []


class TestPipelineRecovery:
    """Recovery as the outermost stage of the assembled pipeline."""

    @pytest.mark.asyncio
    async def test_terminal_exception_single_500_single_error(
        self, make_scope, make_receive, send_recorder, caplog
    ):
        caplog.set_level(logging.DEBUG)

        async def failing(scope, receive, send):
            raise KeyError("customer")

        await build_pipeline(failing)(make_scope(), make_receive(b"{}"), send_recorder)

        assert [m["status"] for m in send_recorder.starts] == [500]
        records = _error_records(caplog)
        assert len(records) == 1
        assert records[0].name == RECOVER_LOGGER
        assert records[0].exc_info is not None

    @pytest.mark.asyncio
    async def test_terminal_abort_writes_nothing(self, make_scope, make_receive, send_recorder, caplog):
        caplog.set_level(logging.DEBUG)

        async def aborting(scope, receive, send):
            raise AbortHandler()

        with pytest.raises(AbortHandler):
            await build_pipeline(aborting)(make_scope(), make_receive(b"{}"), send_recorder)

        assert send_recorder.messages == []
        assert _error_records(caplog) == []

    @pytest.mark.asyncio
    async def test_failure_inside_access_logger_is_recovered(
        self, make_scope, make_receive, send_recorder, caplog
    ):
        caplog.set_level(logging.DEBUG)

        async def receive():
            raise OSError("connection reset while reading body")

        async def never_called(scope, rcv, send):
            raise AssertionError("handler should not run")

        await build_pipeline(never_called)(make_scope(), receive, send_recorder)

        assert [m["status"] for m in send_recorder.starts] == [500]
        assert len(_error_records(caplog)) == 1


class TestAbortFromRoutes:
    """AbortHandler raised inside real FastAPI routes still reaches the server."""

    @staticmethod
    def _routes():
        routes = create_app()

        @routes.get("/abort-async")
        async def abort_async():
            raise AbortHandler()

        @routes.get("/abort-sync")
        def abort_sync():
            raise AbortHandler()

        return routes

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", ["/abort-async", "/abort-sync"])
    async def test_route_abort_propagates(self, path, make_scope, make_receive, send_recorder, caplog):
        caplog.set_level(logging.DEBUG)
        pipeline = build_pipeline(self._routes())

        with pytest.raises(AbortHandler):
            await pipeline(make_scope(path=path, method="GET"), make_receive(b""), send_recorder)

        assert send_recorder.starts == []
        assert _error_records(caplog) == []
        assert [r for r in caplog.records if r.name == "dfwebhook.access"] == []
