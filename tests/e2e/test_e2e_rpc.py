"""E2E tests: authenticated JSON-RPC over HTTP and the event stream."""

from __future__ import annotations

import httpx
import orjson
from starlette.requests import Request

from social_mcp.server import AppContext

TEST_SERVER_URL = "http://testserver"


def _rpc(method: str, params: dict | None = None, id: int | None = 1) -> dict:
    body: dict = {"jsonrpc": "2.0", "method": method, "id": id}
    if params is not None:
        body["params"] = params
    return body


class TestAuthRejection:
    async def test_no_auth_header(self, http_client: httpx.AsyncClient) -> None:
        async with http_client as client:
            resp = await client.post("/mcp", json=_rpc("initialize", {}))
            assert resp.status_code == 401
            assert resp.json()["error"] == "unauthorized"
            assert resp.json()["reason"] == "missing_token"

    async def test_malformed_header(self, http_client: httpx.AsyncClient) -> None:
        async with http_client as client:
            resp = await client.post(
                "/mcp", json=_rpc("tools/list"), headers={"Authorization": "Token abc"}
            )
            assert resp.status_code == 401
            assert resp.json()["reason"] == "malformed_header"

    async def test_invalid_token(self, http_client: httpx.AsyncClient) -> None:
        async with http_client as client:
            resp = await client.post(
                "/sse",
                json=_rpc("tools/list"),
                headers={"Authorization": "Bearer totally-bogus-token"},
            )
            assert resp.status_code == 401
            assert resp.json()["reason"] == "invalid_or_expired_token"

    async def test_event_stream_requires_auth(self, http_client: httpx.AsyncClient) -> None:
        async with http_client as client:
            resp = await client.get("/sse")
            assert resp.status_code == 401
            assert resp.json()["reason"] == "missing_token"

    async def test_expired_token(
        self, http_client: httpx.AsyncClient, access_token: str, clock
    ) -> None:
        clock.advance(3601)
        async with http_client as client:
            resp = await client.post(
                "/mcp",
                json=_rpc("tools/list"),
                headers={"Authorization": f"Bearer {access_token}"},
            )
            assert resp.status_code == 401


class TestJsonRpc:
    async def test_handshake_and_tool_call(
        self, http_client: httpx.AsyncClient, access_token: str
    ) -> None:
        headers = {"Authorization": f"Bearer {access_token}"}
        async with http_client as client:
            init = await client.post("/mcp", json=_rpc("initialize", {}), headers=headers)
            assert init.status_code == 200
            assert init.json()["result"]["serverInfo"]["name"] == "social-mcp"

            ack = await client.post(
                "/mcp", json=_rpc("notifications/initialized", id=None), headers=headers
            )
            assert ack.status_code == 202
            assert ack.content == b""

            listed = await client.post("/mcp", json=_rpc("tools/list", id=2), headers=headers)
            names = [t["name"] for t in listed.json()["result"]["tools"]]
            assert "simple_calculator" in names

            called = await client.post(
                "/mcp",
                json=_rpc("tools/call", {
                    "name": "simple_calculator",
                    "arguments": {"operation": "add", "a": 2, "b": 3},
                }, id=3),
                headers=headers,
            )
            assert called.status_code == 200
            assert called.json()["id"] == 3
            assert "5" in called.json()["result"]["content"][0]["text"]

    async def test_domain_error_does_not_break_transport(
        self, http_client: httpx.AsyncClient, access_token: str
    ) -> None:
        headers = {"Authorization": f"Bearer {access_token}"}
        async with http_client as client:
            resp = await client.post(
                "/sse",
                json=_rpc("tools/call", {
                    "name": "simple_calculator",
                    "arguments": {"operation": "divide", "a": 10, "b": 0},
                }),
                headers=headers,
            )
            assert resp.status_code == 200
            assert resp.json()["error"]["code"] == -32603

            again = await client.post("/sse", json=_rpc("tools/list"), headers=headers)
            assert again.status_code == 200

    async def test_parse_error(self, http_client: httpx.AsyncClient, access_token: str) -> None:
        async with http_client as client:
            resp = await client.post(
                "/mcp",
                content=b"{not json",
                headers={
                    "Authorization": f"Bearer {access_token}",
                    "Content-Type": "application/json",
                },
            )
            assert resp.status_code == 400
            assert resp.json()["error"]["code"] == -32700

    async def test_invalid_envelope(
        self, http_client: httpx.AsyncClient, access_token: str
    ) -> None:
        async with http_client as client:
            resp = await client.post(
                "/mcp",
                json={"jsonrpc": "1.0", "method": "tools/list", "id": 9},
                headers={"Authorization": f"Bearer {access_token}"},
            )
            assert resp.status_code == 400
            assert resp.json()["error"]["code"] == -32600

    async def test_method_not_allowed(self, http_client: httpx.AsyncClient) -> None:
        async with http_client as client:
            resp = await client.delete("/mcp")
            assert resp.status_code == 405
            assert resp.json()["error"]["code"] == -32000


class TestEventStream:
    async def test_ready_notification_then_keepalive(
        self, context: AppContext, access_token: str
    ) -> None:
        request = Request({
            "type": "http",
            "method": "GET",
            "path": "/sse",
            "query_string": b"",
            "headers": [(b"authorization", f"Bearer {access_token}".encode())],
        })
        response = await context.endpoints.events(request)
        assert response.status_code == 200
        assert response.media_type == "text/event-stream"

        frames = response.body_iterator
        first = await frames.__anext__()
        second = await frames.__anext__()
        await frames.aclose()

        event, data = first.decode().strip().split("\n")
        assert event == "event: message"
        ready = orjson.loads(data.removeprefix("data: "))
        assert ready["method"] == "server/ready"
        assert ready["params"]["principal"]["id"] == "user-123"
        assert "greet_user" in ready["params"]["capabilities"]["tools"]
        assert second.startswith(b"event: ping")
