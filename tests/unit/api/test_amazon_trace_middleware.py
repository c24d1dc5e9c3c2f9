from __future__ import annotations

import asyncio
import sys
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.testclient import TestClient
from starlette.responses import Response

sys.path.insert(0, str(Path(__file__).resolve().parents[3] / "src"))

from albtrace.api.middleware.amazon_trace import AmazonTraceMiddleware, get_propagation_context
from albtrace.domain.propagation.context import PropagationContext


def _build_app(**middleware_options) -> FastAPI:
    app = FastAPI()
    app.add_middleware(AmazonTraceMiddleware, **middleware_options)

    @app.get("/trace")
    async def read_trace(request: Request) -> dict:
        prop = get_propagation_context()
        if prop is None:
            return {"context": None, "state": request.state.propagation_context is None}
        return {
            "context": {
                "trace_id": prop.trace_id,
                "parent_id": prop.parent_id,
                "grand_parent_id": prop.grand_parent_id,
                "trace_context": prop.trace_context,
            },
            "state": request.state.propagation_context is prop,
        }

    return app


def test_middleware_exposes_parsed_context() -> None:
    client = TestClient(_build_app())
    response = client.get(
        "/trace",
        headers={"X-Amzn-Trace-Id": "Root=1-abc;Self=2-def;Parent=3-ghi;tenant=acme"},
    )

    assert response.status_code == 200
    assert response.json() == {
        "context": {
            "trace_id": "1-abc",
            "parent_id": "2-def",
            "grand_parent_id": "3-ghi",
            "trace_context": {"tenant": "acme"},
        },
        "state": True,
    }


def test_middleware_tolerates_missing_header() -> None:
    client = TestClient(_build_app())
    response = client.get("/trace")

    assert response.status_code == 200
    assert response.json() == {"context": None, "state": True}


def test_middleware_tolerates_invalid_header() -> None:
    client = TestClient(_build_app())
    response = client.get("/trace", headers={"X-Amzn-Trace-Id": "garbage"})

    assert response.status_code == 200
    assert response.json()["context"] is None


def test_middleware_reads_configured_header() -> None:
    client = TestClient(_build_app(header_name="X-Edge-Trace-Id"))
    response = client.get("/trace", headers={"X-Edge-Trace-Id": "Root=1-abc"})

    assert response.status_code == 200
    assert response.json()["context"]["parent_id"] == "1-abc"


def test_context_is_cleared_after_request() -> None:
    async def endpoint(scope, receive, send) -> None:
        return None

    async def call_next(request: Request) -> Response:
        seen.append(get_propagation_context())
        return Response("ok")

    async def run_dispatch() -> PropagationContext | None:
        request = Request(
            {
                "type": "http",
                "method": "GET",
                "path": "/trace",
                "query_string": b"",
                "headers": [(b"x-amzn-trace-id", b"Root=1-abc;Self=2-def")],
            }
        )
        response = await AmazonTraceMiddleware(endpoint).dispatch(request, call_next)
        assert response.status_code == 200
        return get_propagation_context()

    seen: list[PropagationContext | None] = []
    after = asyncio.run(run_dispatch())

    assert seen[0] is not None
    assert seen[0].parent_id == "2-def"
    assert after is None
