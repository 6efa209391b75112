"""Authenticated MCP transport endpoints: JSON-RPC over POST, events over GET."""

from __future__ import annotations

import logging

import orjson
from mcp.types import INVALID_REQUEST, PARSE_ERROR
from starlette.requests import Request
from starlette.responses import Response, StreamingResponse
from starlette.routing import Route

from social_mcp.auth.bearer import AuthenticationError, BearerAuthenticator
from social_mcp.responses import ORJSONResponse, unauthorized
from social_mcp.rpc.dispatcher import Dispatcher, RpcError, error_response
from social_mcp.rpc.stream import KEEPALIVE_INTERVAL, EventStream

logger = logging.getLogger(__name__)

METHOD_NOT_ALLOWED = -32000


class McpEndpoints:
    """HTTP glue between the bearer gate and the dispatcher."""

    def __init__(
        self,
        dispatcher: Dispatcher,
        authenticator: BearerAuthenticator,
        keepalive_interval: float = KEEPALIVE_INTERVAL,
    ) -> None:
        self.dispatcher = dispatcher
        self.authenticator = authenticator
        self.keepalive_interval = keepalive_interval

    async def rpc(self, request: Request) -> Response:
        """Handle one JSON-RPC envelope."""
        try:
            context = self.authenticator.authenticate(request.headers.get("authorization"))
        except AuthenticationError as e:
            logger.warning("Rejected %s %s: %s", request.method, request.url.path, e.reason)
            return unauthorized(e)

        try:
            payload = orjson.loads(await request.body())
        except orjson.JSONDecodeError:
            return ORJSONResponse(
                error_response(None, RpcError(PARSE_ERROR, "Parse error")), status_code=400
            )

        response = self.dispatcher.handle(payload, context)
        if response is None:
            return Response(status_code=202)
        status = 400 if response.get("error", {}).get("code") == INVALID_REQUEST else 200
        return ORJSONResponse(response, status_code=status)

    async def events(self, request: Request) -> Response:
        """Open an event stream: ready notification, then keep-alives."""
        try:
            context = self.authenticator.authenticate(request.headers.get("authorization"))
        except AuthenticationError as e:
            logger.warning("Rejected event stream: %s", e.reason)
            return unauthorized(e)

        stream = EventStream(keepalive_interval=self.keepalive_interval)
        stream.send({
            "jsonrpc": "2.0",
            "method": "server/ready",
            "params": {
                "serverInfo": self.dispatcher.server_info.model_dump(exclude_none=True),
                "capabilities": {"tools": self.dispatcher.registry.names},
                "principal": {
                    "id": context.principal.id,
                    "displayName": context.principal.display_name,
                },
            },
        })
        return StreamingResponse(
            stream.frames(),
            media_type="text/event-stream",
            headers={
                "Cache-Control": "no-cache",
                "Connection": "keep-alive",
                "X-Accel-Buffering": "no",
            },
        )

    async def method_not_allowed(self, request: Request) -> Response:
        return ORJSONResponse(
            error_response(
                None,
                RpcError(
                    METHOD_NOT_ALLOWED,
                    "Method not allowed. Use POST for MCP requests or GET for the event stream.",
                ),
            ),
            status_code=405,
        )

    def routes(self) -> list[Route]:
        other = ["PUT", "PATCH", "DELETE"]
        return [
            Route("/mcp", self.rpc, methods=["POST"]),
            Route("/mcp", self.method_not_allowed, methods=["GET", *other]),
            Route("/sse", self.events, methods=["GET"]),
            Route("/sse", self.rpc, methods=["POST"]),
            Route("/sse", self.method_not_allowed, methods=other),
        ]
